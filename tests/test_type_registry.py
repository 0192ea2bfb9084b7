"""
Tests for the type-tag table.

Tests validate:
- The shipped YAML loads and carries the expected flags
- Table-level checks (duplicate ids, single publishable type)
- GPAT_TYPES_FILE override and process-wide caching
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from gpat.models import Kind
from gpat.type_registry import TypeRegistry, get_type_registry

# =============================================================================
# Shipped table
# =============================================================================


class TestShippedTable:
    def test_publishable_types(self, types):
        """Country and statement are the publishable subtypes."""
        assert types.publishable_id(Kind.ACTOR) == 1
        assert types.publishable_id(Kind.MEASURE) == 1

    def test_task_type_notifies(self, types):
        assert types.get(Kind.MEASURE, 3).notifications is True
        assert types.get(Kind.MEASURE, 2).notifications is False

    def test_group_type_has_members(self, types):
        assert types.ids_where(Kind.ACTOR, "has_members") == [5]

    def test_unknown_and_missing_ids(self, types):
        assert types.get(Kind.ACTOR, 99) is None
        assert types.get(Kind.ACTOR, None) is None
        assert types.get(Kind.ACTOR, "country") is None

    def test_indicators_have_no_types(self, types):
        assert types.all(Kind.INDICATOR) == []
        assert types.publishable_id(Kind.INDICATOR) is None

    def test_string_ids_are_accepted(self, types):
        """Ids coming from form payloads may be strings."""
        assert types.get(Kind.MEASURE, "1").title == "Statement"


# =============================================================================
# Table validation
# =============================================================================


class TestTableValidation:
    def test_duplicate_ids_rejected(self):
        with pytest.raises(PydanticValidationError, match="duplicate type ids"):
            TypeRegistry.from_dict({"actortypes": [{"id": 1, "title": "A"}, {"id": 1, "title": "B"}]})

    def test_two_publishable_types_rejected(self):
        with pytest.raises(PydanticValidationError, match="at most one publishable"):
            TypeRegistry.from_dict(
                {
                    "measuretypes": [
                        {"id": 1, "title": "Statement", "publishable": True},
                        {"id": 2, "title": "Declaration", "publishable": True},
                    ]
                }
            )

    def test_flags_default_false(self):
        registry = TypeRegistry.from_dict({"actortypes": [{"id": 7, "title": "Region"}]})
        tag = registry.get(Kind.ACTOR, 7)
        assert not any([tag.publishable, tag.has_members, tag.is_active, tag.is_target])

    def test_empty_document(self):
        registry = TypeRegistry.from_dict(None)
        assert registry.all(Kind.ACTOR) == []


# =============================================================================
# Loading
# =============================================================================


class TestLoading:
    def test_types_file_override(self, tmp_path, monkeypatch):
        path = tmp_path / "types.yaml"
        path.write_text("actortypes:\n  - id: 9\n    title: Region\n    publishable: true\n")
        monkeypatch.setenv("GPAT_TYPES_FILE", str(path))

        registry = TypeRegistry.load()

        assert registry.publishable_id(Kind.ACTOR) == 9
        assert registry.all(Kind.MEASURE) == []

    def test_registry_is_cached(self):
        assert get_type_registry() is get_type_registry()
