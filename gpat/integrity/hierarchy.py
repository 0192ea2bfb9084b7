"""
Parent-reference validation for hierarchical records.

Checks, in order:
1. self-reference
2. ancestry cycle: walk parent links up from the candidate parent; the
   walk is bounded by the number of records of that kind so a loop that
   already exists in stored data cannot hang the request
3. indicators: the parent must itself be top level, and an indicator that
   already has children cannot take a parent (two levels at most)
4. measures: the parent's type must allow parenthood (has_parent)
"""

from typing import Protocol

from gpat.errors import Violation
from gpat.models import Kind
from gpat.type_registry import TypeRegistry


class ParentLookup(Protocol):
    """Read access the validator needs; RecordStore provides it."""

    def parent_id_of(self, kind: Kind, record_id: int) -> int | None: ...

    def type_id_of(self, kind: Kind, record_id: int) -> int | None: ...

    def count(self, kind: Kind) -> int: ...

    def has_children(self, kind: Kind, record_id: int) -> bool: ...


class HierarchyValidator:
    def __init__(self, types: TypeRegistry):
        self.types = types

    def validate(
        self,
        kind: Kind,
        entity_id: int | None,
        parent_id: int | None,
        lookup: ParentLookup,
    ) -> list[Violation]:
        if parent_id is None:
            return []

        if entity_id is not None and parent_id == entity_id:
            return [Violation("parent_id", "can't be the same as id")]

        violations = []
        if entity_id is not None and self._is_ancestor(kind, entity_id, parent_id, lookup):
            violations.append(Violation("parent_id", "can't be its own descendant"))

        if kind == Kind.INDICATOR:
            if lookup.parent_id_of(kind, parent_id) is not None:
                violations.append(
                    Violation("parent_id", "can't be an indicator that already has a parent (max 2 levels)")
                )
            if entity_id is not None and lookup.has_children(kind, entity_id):
                violations.append(
                    Violation("parent_id", "can't be set on an indicator that has children (max 2 levels)")
                )

        if kind == Kind.MEASURE:
            tag = self.types.get(kind, lookup.type_id_of(kind, parent_id))
            if tag is None or not tag.has_parent:
                violations.append(Violation("parent_id", "is not allowed for this measuretype"))

        return violations

    def _is_ancestor(self, kind: Kind, entity_id: int, parent_id: int, lookup: ParentLookup) -> bool:
        """True when entity_id shows up walking up from parent_id."""
        limit = lookup.count(kind)
        current: int | None = parent_id
        steps = 0
        while current is not None and steps <= limit:
            if current == entity_id:
                return True
            current = lookup.parent_id_of(kind, current)
            steps += 1
        return False
