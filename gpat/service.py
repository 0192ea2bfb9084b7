"""
Registry operations: the request flow around the integrity core.

Every call takes the acting Identity explicitly. Mutations run:

1. authentication (writes need a signed-in identity)
2. scope: the target and every referenced record must exist and be
   visible, else ReferenceNotFound
3. authorization: action check, then unpermitted fields are dropped
4. optimistic concurrency check on the client's updated_at
5. state and hierarchy validation on the resulting state (all violations)
6. commit
7. post-commit: relationship touches, then task notifications

Steps 1-4 fail fast. Nothing in step 7 can undo or fail step 6.

Usage:
    service = RegistryService(RecordStore())
    measure = service.create(identity, Kind.MEASURE, {"measuretype_id": 3, "title": "Draft law"})
    service.update(identity, Kind.MEASURE, measure["id"], {"title": "Law", "updated_at": measure["updated_at"]})
"""

import logging

from gpat.due_dates import build_due_dates, schedule_changed
from gpat.errors import (
    AuthenticationRequired,
    AuthorizationError,
    ReferenceNotFound,
    ValidationError,
    Violation,
)
from gpat.integrity import HierarchyValidator, OptimisticConcurrencyGuard, StateInvariantValidator
from gpat.models import (
    JOINS,
    MANAGED_KINDS,
    SYSTEM_FIELDS,
    Action,
    JoinKind,
    JoinSpec,
    Kind,
    type_field,
)
from gpat.notifier import JobBroker, SqliteJobBroker, TaskNotificationScheduler
from gpat.relationships import RelationshipTouchPropagator
from gpat.security.policy import PolicySet
from gpat.security.roles import Identity
from gpat.store import RecordStore
from gpat.type_registry import TypeRegistry, get_type_registry

logger = logging.getLogger(__name__)

RECORD_DEFAULTS = {
    Kind.ACTOR: {"draft": False, "private": False, "is_archive": False, "public_api": False},
    Kind.MEASURE: {
        "draft": False,
        "private": False,
        "is_archive": False,
        "public_api": False,
        "is_official": False,
        "notifications": True,
    },
    Kind.INDICATOR: {"draft": False, "private": False, "is_archive": False, "public_api": False, "repeat": False},
}

RELATIONSHIP_CHANGE = frozenset({"relationship_updated_at"})


def _payload(values: dict | None) -> dict:
    return {k: v for k, v in (values or {}).items() if k not in SYSTEM_FIELDS}


def _changed(stored: dict, changes: dict) -> dict:
    return {k: v for k, v in changes.items() if stored.get(k) != v}


class RegistryService:
    def __init__(
        self,
        store: RecordStore,
        types: TypeRegistry | None = None,
        broker: JobBroker | None = None,
        notification_delay: int | None = None,
    ):
        self.store = store
        self.types = types or get_type_registry()
        self.state = StateInvariantValidator(self.types)
        self.hierarchy = HierarchyValidator(self.types)
        self.guard = OptimisticConcurrencyGuard()
        self.policies = PolicySet(self.types, self.state)
        self.touches = RelationshipTouchPropagator(store)
        self.notifier = TaskNotificationScheduler(
            self.types,
            broker or SqliteJobBroker(store),
            store.assignee_ids,
            delay=notification_delay,
        )

    # ==================================================================
    # Primary records
    # ==================================================================

    def list_records(self, identity: Identity, kind: Kind) -> list[dict]:
        policy = self.policies.record(kind)
        if not policy.permitted(identity, None, Action.INDEX):
            raise AuthorizationError()
        return policy.scope(identity, self.store.all(kind))

    def get(self, identity: Identity, kind: Kind, record_id: int) -> dict:
        policy = self.policies.record(kind)
        if not policy.permitted(identity, None, Action.INDEX):
            raise AuthorizationError()
        return self._visible_record(identity, kind, record_id)

    def create(self, identity: Identity, kind: Kind, values: dict) -> dict:
        kind = Kind(kind)
        self._require_authenticated(identity)
        policy = self.policies.record(kind)
        payload = _payload(values)
        if not policy.permitted(identity, payload, Action.CREATE):
            self._deny(identity, kind, Action.CREATE)

        changes = policy.filter(identity, payload, Action.CREATE, payload)
        state = {**RECORD_DEFAULTS[kind], **changes}
        self._resolve_parent(identity, kind, state.get("parent_id"))

        violations = self.state.validate(kind, state)
        violations += self.hierarchy.validate(kind, None, state.get("parent_id"), self.store)
        if violations:
            raise ValidationError(violations)

        with self.store.transaction():
            record = self.store.insert(kind, state, identity.user_id)
            if kind == Kind.INDICATOR:
                self.store.replace_due_dates(record["id"], build_due_dates(record))

        logger.info(f"{identity.request_id}: user {identity.user_id} created {kind} {record['id']}")
        return record

    def update(self, identity: Identity, kind: Kind, record_id: int, values: dict) -> dict:
        kind = Kind(kind)
        self._require_authenticated(identity)
        policy = self.policies.record(kind)
        stored = self.get(identity, kind, record_id)
        if not policy.permitted(identity, stored, Action.UPDATE):
            self._deny(identity, kind, Action.UPDATE)

        self.guard.check((values or {}).get("updated_at"), stored.get("updated_at"))

        changes = _changed(stored, policy.filter(identity, stored, Action.UPDATE, _payload(values)))
        if not changes:
            return stored

        state = {**stored, **changes}
        if "parent_id" in changes:
            self._resolve_parent(identity, kind, state.get("parent_id"))

        violations = self.state.validate(kind, state, previous=stored)
        if "parent_id" in changes:
            violations += self.hierarchy.validate(kind, record_id, state.get("parent_id"), self.store)
        if violations:
            raise ValidationError(violations)

        with self.store.transaction():
            record = self.store.update(kind, record_id, changes, identity.user_id)
            if kind == Kind.INDICATOR and schedule_changed(changes):
                self.store.replace_due_dates(record_id, build_due_dates(record))

        logger.info(f"{identity.request_id}: user {identity.user_id} updated {kind} {record_id} {sorted(changes)}")
        if kind == Kind.MEASURE:
            self.notifier.measure_updated(record, changes.keys(), identity.user_id)
        return record

    def destroy(self, identity: Identity, kind: Kind, record_id: int) -> None:
        kind = Kind(kind)
        self._require_authenticated(identity)
        policy = self.policies.record(kind)
        stored = self.get(identity, kind, record_id)
        if not policy.permitted(identity, stored, Action.DESTROY):
            self._deny(identity, kind, Action.DESTROY)

        cascaded = self.store.links_for(kind, record_id)
        with self.store.transaction():
            self.store.delete(kind, record_id)

        logger.info(
            f"{identity.request_id}: user {identity.user_id} destroyed {kind} {record_id} "
            f"({len(cascaded)} join rows cascaded)"
        )
        for spec, link in cascaded:
            self._after_link_change(identity, spec, link)

    def due_dates(self, identity: Identity, indicator_id: int) -> list[str]:
        self.get(identity, Kind.INDICATOR, indicator_id)
        return self.store.due_dates(indicator_id)

    # ==================================================================
    # Join rows
    # ==================================================================

    def list_links(self, identity: Identity, kind: JoinKind, **filters) -> list[dict]:
        spec = JOINS[JoinKind(kind)]
        policy = self.policies.link(spec.kind)
        if not policy.permitted(identity, None, Action.INDEX):
            raise AuthorizationError()
        visible = []
        for link in self.store.links(spec.kind, **filters):
            linked = [(side.kind, self.store.get(side.kind, link[side.column])) for side in spec.sides]
            if policy.visible(identity, linked):
                visible.append(link)
        return visible

    def create_link(self, identity: Identity, kind: JoinKind, values: dict) -> dict:
        spec = JOINS[JoinKind(kind)]
        self._require_authenticated(identity)
        policy = self.policies.link(spec.kind)
        if not policy.permitted(identity, None, Action.CREATE):
            self._deny(identity, spec.kind, Action.CREATE)

        payload = _payload(values)
        blank = [Violation(side.column, "can't be blank") for side in spec.sides if payload.get(side.column) is None]
        if blank:
            raise ValidationError(blank)
        linked = self._resolve_sides(identity, spec, payload)
        if not policy.permitted(identity, None, Action.CREATE, linked):
            self._deny(identity, spec.kind, Action.CREATE)

        changes = policy.filter(identity, None, Action.CREATE, payload, linked)
        records = {side.column: record for side, (_, record) in zip(spec.sides, linked)}
        violations = self._validate_link(spec, changes, records)
        if violations:
            raise ValidationError(violations)

        with self.store.transaction():
            link = self.store.insert_link(spec.kind, changes, identity.user_id)

        logger.info(f"{identity.request_id}: user {identity.user_id} created {spec.kind} {link['id']}")
        exclude = (link["user_id"],) if spec.kind == JoinKind.USER_MEASURE else ()
        self._after_link_change(identity, spec, link, exclude_user_ids=exclude)
        return link

    def update_link(self, identity: Identity, kind: JoinKind, link_id: int, values: dict) -> dict:
        spec = JOINS[JoinKind(kind)]
        self._require_authenticated(identity)
        policy = self.policies.link(spec.kind)
        stored, linked = self._visible_link(identity, spec, link_id)
        if not policy.permitted(identity, stored, Action.UPDATE, linked):
            self._deny(identity, spec.kind, Action.UPDATE)

        self.guard.check((values or {}).get("updated_at"), stored.get("updated_at"))

        changes = _changed(stored, policy.filter(identity, stored, Action.UPDATE, _payload(values), linked))
        if not changes:
            return stored

        with self.store.transaction():
            link = self.store.update_link(spec.kind, link_id, changes, identity.user_id)

        logger.info(f"{identity.request_id}: user {identity.user_id} updated {spec.kind} {link_id} {sorted(changes)}")
        self._after_link_change(identity, spec, link)
        return link

    def destroy_link(self, identity: Identity, kind: JoinKind, link_id: int) -> None:
        spec = JOINS[JoinKind(kind)]
        self._require_authenticated(identity)
        policy = self.policies.link(spec.kind)
        stored, linked = self._visible_link(identity, spec, link_id)
        if not policy.permitted(identity, stored, Action.DESTROY, linked):
            self._deny(identity, spec.kind, Action.DESTROY)

        with self.store.transaction():
            self.store.delete_link(spec.kind, link_id)

        logger.info(f"{identity.request_id}: user {identity.user_id} destroyed {spec.kind} {link_id}")
        self._after_link_change(identity, spec, stored)

    # ==================================================================
    # Internals
    # ==================================================================

    def _require_authenticated(self, identity: Identity) -> None:
        if not identity.authenticated:
            raise AuthenticationRequired()

    def _deny(self, identity: Identity, kind: str, action: Action):
        logger.warning(f"{identity.request_id}: user {identity.user_id} denied {action} on {kind}")
        raise AuthorizationError()

    def _visible_record(self, identity: Identity, kind: Kind, record_id) -> dict:
        record = self.store.get(kind, record_id) if record_id is not None else None
        if record is None:
            raise ReferenceNotFound(kind, record_id)
        if kind in MANAGED_KINDS and not self.policies.record(kind).visible(identity, record):
            raise ReferenceNotFound(kind, record_id)
        return record

    def _resolve_parent(self, identity: Identity, kind: Kind, parent_id) -> None:
        if parent_id is not None:
            self._visible_record(identity, kind, parent_id)

    def _resolve_sides(self, identity: Identity, spec: JoinSpec, values: dict) -> list[tuple[Kind, dict]]:
        return [(side.kind, self._visible_record(identity, side.kind, values.get(side.column))) for side in spec.sides]

    def _visible_link(self, identity: Identity, spec: JoinSpec, link_id: int) -> tuple[dict, list[tuple[Kind, dict]]]:
        link = self.store.get_link(spec.kind, link_id)
        if link is None:
            raise ReferenceNotFound(spec.kind, link_id)
        return link, self._resolve_sides(identity, spec, link)

    def _validate_link(self, spec: JoinSpec, values: dict, records: dict[str, dict]) -> list[Violation]:
        violations = []
        left_id = values.get(spec.left.column)
        right_id = values.get(spec.right.column)
        if self.store.find_link(spec.kind, left_id, right_id) is not None:
            violations.append(Violation(spec.right.column, "has already been taken"))

        if spec.kind == JoinKind.ACTOR_MEASURE:
            tag = self._type_of(Kind.ACTOR, records["actor_id"])
            if not (tag and tag.is_active):
                violations.append(Violation("actor_id", "actor's actortype is not active"))
        elif spec.kind == JoinKind.MEASURE_ACTOR:
            actor_tag = self._type_of(Kind.ACTOR, records["actor_id"])
            if not (actor_tag and actor_tag.is_target):
                violations.append(Violation("actor_id", "actor's actortype is not target"))
            measure_tag = self._type_of(Kind.MEASURE, records["measure_id"])
            if not (measure_tag and measure_tag.has_target):
                violations.append(Violation("measure_id", "measure's measuretype can't have target"))
        elif spec.kind == JoinKind.MEMBERSHIP:
            if left_id == right_id:
                violations.append(Violation("memberof_id", "can't be the same as member_id"))
            group_tag = self._type_of(Kind.ACTOR, records["memberof_id"])
            if not (group_tag and group_tag.has_members):
                violations.append(Violation("memberof_id", "actor's actortype can't have members"))
        return violations

    def _type_of(self, kind: Kind, record: dict):
        return self.types.get(kind, record.get(type_field(kind)))

    def _after_link_change(self, identity: Identity, spec: JoinSpec, link: dict, exclude_user_ids=()) -> None:
        """Post-commit: touch both sides, then notify on every touched measure."""
        touched = self.touches.propagate(spec, link, identity.user_id)
        for kind, record_id in touched:
            if kind != Kind.MEASURE:
                continue
            measure = self.store.get(Kind.MEASURE, record_id)
            if measure is not None:
                self.notifier.measure_updated(
                    measure,
                    RELATIONSHIP_CHANGE,
                    identity.user_id,
                    exclude_user_ids=exclude_user_ids,
                )
