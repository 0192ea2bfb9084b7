"""
Tests for HierarchyValidator.

Tests validate:
- self-reference short-circuits with a single error
- ancestry cycles are caught, bounded walks terminate on corrupt data
- indicators stay two levels deep
- measure parents need a type that allows children
"""

import pytest

from gpat.errors import Violation
from gpat.integrity import HierarchyValidator
from gpat.models import Kind
from tests.fixtures import EVENT, TASK, add_actor, add_measure


class MapLookup:
    """ParentLookup over plain dicts."""

    def __init__(self, parents: dict, type_ids: dict | None = None):
        self.parents = parents
        self.type_ids = type_ids or {}

    def parent_id_of(self, kind, record_id):
        return self.parents.get(record_id)

    def type_id_of(self, kind, record_id):
        return self.type_ids.get(record_id)

    def count(self, kind):
        return len(self.parents)

    def has_children(self, kind, record_id):
        return record_id in self.parents.values()


@pytest.fixture
def hierarchy(types):
    return HierarchyValidator(types)


# =============================================================================
# Self reference and cycles
# =============================================================================


class TestCycles:
    def test_no_parent(self, hierarchy):
        assert hierarchy.validate(Kind.ACTOR, 1, None, MapLookup({1: None})) == []

    def test_self_reference(self, hierarchy):
        violations = hierarchy.validate(Kind.ACTOR, 1, 1, MapLookup({1: None}))
        assert violations == [Violation("parent_id", "can't be the same as id")]

    def test_descendant_as_parent(self, hierarchy):
        # 3 -> 2 -> 1
        lookup = MapLookup({1: None, 2: 1, 3: 2})

        violations = hierarchy.validate(Kind.ACTOR, 1, 3, lookup)

        assert violations == [Violation("parent_id", "can't be its own descendant")]

    def test_sibling_as_parent(self, hierarchy):
        lookup = MapLookup({1: None, 2: 1, 3: 1})
        assert hierarchy.validate(Kind.ACTOR, 2, 3, lookup) == []

    def test_existing_loop_does_not_hang(self, hierarchy):
        """A loop already in stored data is walked a bounded number of steps."""
        lookup = MapLookup({1: None, 2: 3, 3: 2})
        assert hierarchy.validate(Kind.ACTOR, 1, 2, lookup) == []

    def test_cycle_against_store(self, hierarchy, store):
        root = add_actor(store, title="Region")
        child = add_actor(store, title="Country", parent_id=root["id"])

        violations = hierarchy.validate(Kind.ACTOR, root["id"], child["id"], store)

        assert violations == [Violation("parent_id", "can't be its own descendant")]


# =============================================================================
# Indicator depth
# =============================================================================


class TestIndicatorDepth:
    def test_parent_must_be_top_level(self, hierarchy):
        lookup = MapLookup({1: None, 2: 1, 3: None})

        violations = hierarchy.validate(Kind.INDICATOR, 3, 2, lookup)

        assert violations == [Violation("parent_id", "can't be an indicator that already has a parent (max 2 levels)")]

    def test_indicator_with_children_cannot_take_parent(self, hierarchy):
        lookup = MapLookup({1: None, 2: None, 3: 2})

        violations = hierarchy.validate(Kind.INDICATOR, 2, 1, lookup)

        assert violations == [Violation("parent_id", "can't be set on an indicator that has children (max 2 levels)")]

    def test_two_levels_allowed(self, hierarchy):
        lookup = MapLookup({1: None, 2: None})
        assert hierarchy.validate(Kind.INDICATOR, 2, 1, lookup) == []

    def test_actors_have_no_depth_limit(self, hierarchy):
        lookup = MapLookup({1: None, 2: 1, 3: None})
        assert hierarchy.validate(Kind.ACTOR, 3, 2, lookup) == []


# =============================================================================
# Measure parent types
# =============================================================================


class TestMeasureParentType:
    def test_task_may_parent(self, hierarchy):
        lookup = MapLookup({1: None, 2: None}, type_ids={1: TASK, 2: TASK})
        assert hierarchy.validate(Kind.MEASURE, 2, 1, lookup) == []

    def test_event_may_not_parent(self, hierarchy):
        lookup = MapLookup({1: None, 2: None}, type_ids={1: EVENT, 2: TASK})

        violations = hierarchy.validate(Kind.MEASURE, 2, 1, lookup)

        assert violations == [Violation("parent_id", "is not allowed for this measuretype")]

    def test_new_record_checked_too(self, hierarchy, store):
        event = add_measure(store, measuretype_id=EVENT, title="Summit")

        violations = hierarchy.validate(Kind.MEASURE, None, event["id"], store)

        assert violations == [Violation("parent_id", "is not allowed for this measuretype")]
