"""
Authorization policy for records and relationships.

Each kind gets an explicit policy object built from a field table and a
list of FieldGate rules; nothing is inherited implicitly. Policies are
pure functions of (identity roles, record flags, ownership).

Actions:
  index/show    analyst, manager, coordinator, admin
  create/update manager, coordinator, admin
  destroy       admin; manager/coordinator only for records they created

Relationships:
  read          analyst and up
  mutate        manager, coordinator, admin, regardless of who created
                the row, unless a linked record is published: then admin
                and coordinator only
  update        denied outright for immutable join kinds

Scoping (what a role may see):
  admin                 everything
  coordinator, manager  own drafts and own private records, not archived
  analyst               no drafts, no private, no archived

Usage:
    policies = PolicySet(types, state_validator)
    policy = policies.record(Kind.MEASURE)
    if not policy.permitted(identity, measure, Action.UPDATE):
        raise AuthorizationError()
    changes = policy.filter(identity, measure, Action.UPDATE, payload)
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from gpat.integrity.state import StateInvariantValidator
from gpat.models import (
    READ_ACTIONS,
    Action,
    JoinKind,
    JoinSpec,
    JOINS,
    Kind,
    type_field,
)
from gpat.security.roles import EDIT_ROLES, PUBLISH_ROLES, READ_ROLES, Identity, Role
from gpat.type_registry import TypeRegistry

logger = logging.getLogger(__name__)

ADMIN_ONLY = frozenset({Role.ADMIN})

ACTOR_FIELDS = (
    "activity_summary",
    "address",
    "code",
    "description",
    "draft",
    "email",
    "gdp",
    "manager_id",
    "parent_id",
    "phone",
    "population",
    "prefix",
    "private",
    "title",
    "url",
)

MEASURE_FIELDS = (
    "amount",
    "amount_comment",
    "code",
    "comment",
    "date_comment",
    "date_end",
    "date_start",
    "description",
    "draft",
    "notifications",
    "outcome",
    "parent_id",
    "private",
    "quote_api",
    "source_api",
    "status_comment",
    "target_comment",
    "target_date",
    "target_date_comment",
    "title",
    "url",
)

INDICATOR_FIELDS = (
    "annotation_api",
    "code",
    "code_api",
    "description",
    "draft",
    "end_date",
    "frequency_months",
    "manager_id",
    "parent_id",
    "private",
    "reference",
    "repeat",
    "short_api",
    "start_date",
    "teaser_api",
    "title",
)


def _always(record: dict) -> bool:
    return True


@dataclass(frozen=True)
class FieldGate:
    """A field writable only by some roles, optionally only for some records."""

    field: str
    roles: frozenset[Role]
    applies: Callable[[dict], bool] = _always
    create_only: bool = False

    def opens(self, identity: Identity, record: dict, action: Action) -> bool:
        if self.create_only and action != Action.CREATE:
            return False
        return identity.has_any(self.roles) and self.applies(record)


def _visible(identity: Identity, record: dict) -> bool:
    if not identity.authenticated or not record:
        return False
    if identity.has_role(Role.ADMIN):
        return True
    if record.get("is_archive"):
        return False
    if record.get("draft") or record.get("private"):
        return identity.has_role(Role.MANAGER, Role.COORDINATOR) and identity.owns(record)
    return identity.has_any(READ_ROLES)


class RecordPolicy:
    """Policy for one primary record kind (actor, measure, indicator)."""

    def __init__(self, kind: Kind, fields: Iterable[str], gates: Iterable[FieldGate] = ()):
        self.kind = kind
        self.fields = frozenset(fields)
        self.gates = tuple(gates)

    def visible(self, identity: Identity, record: dict) -> bool:
        return _visible(identity, record)

    def scope(self, identity: Identity, records: Iterable[dict]) -> list[dict]:
        return [r for r in records if self.visible(identity, r)]

    def permitted(self, identity: Identity, record: dict | None, action: Action) -> bool:
        if not identity.authenticated:
            return False
        if action in READ_ACTIONS:
            if not identity.has_any(READ_ROLES):
                return False
            return action == Action.INDEX or self.visible(identity, record)
        if action == Action.CREATE:
            return identity.has_any(EDIT_ROLES)
        if action == Action.UPDATE:
            return identity.has_any(EDIT_ROLES) and self.visible(identity, record)
        if action == Action.DESTROY:
            if identity.has_role(Role.ADMIN):
                return True
            return identity.has_role(Role.MANAGER, Role.COORDINATOR) and identity.owns(record)
        return False

    def permitted_fields(self, identity: Identity, record: dict | None, action: Action) -> frozenset[str]:
        if action not in (Action.CREATE, Action.UPDATE):
            return frozenset()
        if not self.permitted(identity, record, action):
            return frozenset()
        record = record or {}
        gated = {g.field for g in self.gates if g.opens(identity, record, action)}
        return self.fields | gated

    def filter(self, identity: Identity, record: dict | None, action: Action, payload: dict) -> dict:
        """Drop every payload key the identity may not write."""
        allowed = self.permitted_fields(identity, record, action)
        dropped = sorted(k for k in payload if k not in allowed)
        if dropped:
            logger.debug(f"{self.kind} {action}: filtered fields {dropped}")
        return {k: v for k, v in payload.items() if k in allowed}


class RelationshipPolicy:
    """Policy for one join kind."""

    def __init__(self, spec: JoinSpec, published: Callable[[Kind, dict], bool]):
        self.spec = spec
        self.published = published

    def visible(self, identity: Identity, linked: Iterable[tuple[Kind, dict]]) -> bool:
        if not identity.has_any(READ_ROLES):
            return False
        return all(_visible(identity, record) for kind, record in linked if kind in _SCOPED_KINDS)

    def permitted(
        self,
        identity: Identity,
        link: dict | None,
        action: Action,
        linked: Iterable[tuple[Kind, dict]] = (),
    ) -> bool:
        if not identity.authenticated:
            return False
        if action in READ_ACTIONS:
            return identity.has_any(READ_ROLES)
        if action == Action.UPDATE and not self.spec.updatable:
            return False
        if not identity.has_any(EDIT_ROLES):
            return False
        return self.can_change(identity, linked)

    def can_change(self, identity: Identity, linked: Iterable[tuple[Kind, dict]]) -> bool:
        """Published linked records lock the relationship to admin/coordinator."""
        if identity.has_any(PUBLISH_ROLES):
            return True
        return not any(self.published(kind, record) for kind, record in linked if record)

    def permitted_fields(
        self,
        identity: Identity,
        link: dict | None,
        action: Action,
        linked: Iterable[tuple[Kind, dict]] = (),
    ) -> frozenset[str]:
        if not self.permitted(identity, link, action, linked):
            return frozenset()
        if action == Action.CREATE:
            return frozenset(self.spec.columns)
        if action == Action.UPDATE:
            return frozenset(self.spec.fields)
        return frozenset()

    def filter(self, identity: Identity, link: dict | None, action: Action, payload: dict, linked=()) -> dict:
        allowed = self.permitted_fields(identity, link, action, linked)
        return {k: v for k, v in payload.items() if k in allowed}


_SCOPED_KINDS = frozenset({Kind.ACTOR, Kind.MEASURE, Kind.INDICATOR})


class PolicySet:
    """All policies, built once per type table."""

    def __init__(self, types: TypeRegistry, state: StateInvariantValidator):
        self.types = types
        self.state = state
        self._records = {
            Kind.ACTOR: RecordPolicy(
                Kind.ACTOR,
                ACTOR_FIELDS,
                gates=(
                    FieldGate("actortype_id", EDIT_ROLES, create_only=True),
                    FieldGate("is_archive", ADMIN_ONLY),
                    FieldGate("public_api", PUBLISH_ROLES, self._publishable(Kind.ACTOR)),
                ),
            ),
            Kind.MEASURE: RecordPolicy(
                Kind.MEASURE,
                MEASURE_FIELDS,
                gates=(
                    FieldGate("measuretype_id", EDIT_ROLES, create_only=True),
                    FieldGate("is_archive", ADMIN_ONLY),
                    FieldGate("public_api", PUBLISH_ROLES, self._publishable(Kind.MEASURE)),
                    FieldGate("is_official", ADMIN_ONLY, self._publishable(Kind.MEASURE)),
                ),
            ),
            Kind.INDICATOR: RecordPolicy(
                Kind.INDICATOR,
                INDICATOR_FIELDS,
                gates=(
                    FieldGate("is_archive", ADMIN_ONLY),
                    FieldGate("public_api", PUBLISH_ROLES),
                ),
            ),
        }
        self._links = {kind: RelationshipPolicy(spec, state.publicly_accessible) for kind, spec in JOINS.items()}

    def record(self, kind: Kind) -> RecordPolicy:
        return self._records[Kind(kind)]

    def link(self, kind: JoinKind) -> RelationshipPolicy:
        return self._links[JoinKind(kind)]

    def _publishable(self, kind: Kind) -> Callable[[dict], bool]:
        field = type_field(kind)

        def applies(record: dict) -> bool:
            tag = self.types.get(kind, record.get(field))
            return bool(tag and tag.publishable)

        return applies
