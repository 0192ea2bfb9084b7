"""
State invariants for visibility flags and publication eligibility.

Checks the *resulting* state of a record (stored row merged with the
requested changes), so flags changed together in one request are judged
jointly. Every violation is returned; nothing stops at the first one.

Conflicts are reported on both sides: archiving a published record yields
an error on is_archive *and* on public_api, so whichever field the client
just touched carries a message naming the other.
"""

from gpat.due_dates import validate_schedule
from gpat.errors import Violation
from gpat.models import Kind, type_field
from gpat.type_registry import TypeRegistry

# Flags that must all be false while public_api is true
_CLEAN_STATE_FLAGS = ("is_archive", "private", "draft")


def _flag(record: dict, name: str) -> bool:
    return bool(record.get(name))


class StateInvariantValidator:
    """Validates flag combinations and type-scoped publication rules."""

    def __init__(self, types: TypeRegistry):
        self.types = types

    def validate(self, kind: Kind, state: dict, previous: dict | None = None) -> list[Violation]:
        violations: list[Violation] = []
        violations.extend(self._validate_required(kind, state, previous))
        violations.extend(self._validate_clean_state(state))
        violations.extend(self._validate_publishable_type(kind, state))
        if kind == Kind.MEASURE:
            violations.extend(self._validate_official(state))
        if kind == Kind.INDICATOR:
            violations.extend(validate_schedule(state))
        return violations

    def publicly_accessible(self, kind: Kind, record: dict | None) -> bool:
        """True when the record is in the public read-only subset."""
        if not record or not _flag(record, "public_api"):
            return False
        if any(_flag(record, name) for name in _CLEAN_STATE_FLAGS):
            return False
        if kind in (Kind.ACTOR, Kind.MEASURE) and not self._is_publishable_type(kind, record):
            return False
        if kind == Kind.MEASURE and not _flag(record, "is_official"):
            return False
        return True

    # ------------------------------------------------------------------

    def _validate_required(self, kind: Kind, state: dict, previous: dict | None) -> list[Violation]:
        violations = []
        if not str(state.get("title") or "").strip():
            violations.append(Violation("title", "can't be blank"))

        field = type_field(kind)
        if field:
            type_id = state.get(field)
            if previous is not None and previous.get(field) != type_id:
                violations.append(Violation(field, "can't be changed after creation"))
            elif type_id is None:
                violations.append(Violation(field, "can't be blank"))
            elif self.types.get(kind, type_id) is None:
                violations.append(Violation(field, "is not a known type"))
        return violations

    def _validate_clean_state(self, state: dict) -> list[Violation]:
        if not _flag(state, "public_api"):
            return []
        violations = []
        for name in _CLEAN_STATE_FLAGS:
            if _flag(state, name):
                violations.append(Violation("public_api", f"and {name} cannot both be true"))
                violations.append(Violation(name, "and public_api cannot both be true"))
        return violations

    def _validate_publishable_type(self, kind: Kind, state: dict) -> list[Violation]:
        if kind not in (Kind.ACTOR, Kind.MEASURE) or not _flag(state, "public_api"):
            return []
        if self._is_publishable_type(kind, state):
            return []
        publishable = self.types.get(kind, self.types.publishable_id(kind))
        label = publishable.title.lower() if publishable else "the publishable type"
        return [Violation("public_api", f"can only be set to true for {label} records")]

    def _validate_official(self, state: dict) -> list[Violation]:
        if not _flag(state, "public_api") or _flag(state, "is_official"):
            return []
        return [
            Violation("public_api", "requires is_official to be true"),
            Violation("is_official", "cannot be false while public_api is true"),
        ]

    def _is_publishable_type(self, kind: Kind, record: dict) -> bool:
        tag = self.types.get(kind, record.get(type_field(kind)))
        return bool(tag and tag.publishable)
