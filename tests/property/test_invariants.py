"""
Property-based tests for core invariants using Hypothesis.

These tests stress the integrity rules with random inputs to find edge cases.
"""

from datetime import UTC, datetime

from hypothesis import given, settings
from hypothesis import strategies as st

from gpat.errors import Violation
from gpat.integrity import HierarchyValidator, OptimisticConcurrencyGuard, StateInvariantValidator
from gpat.models import Kind
from gpat.notifier import TaskNotificationScheduler
from gpat.type_registry import TypeRegistry
from tests.fixtures import RecordingBroker

TYPES = TypeRegistry.load()
CLEAN_STATE_FLAGS = ("is_archive", "private", "draft")

# ============================================================================
# Flag exclusion
# ============================================================================


@given(
    public_api=st.booleans(),
    flags=st.fixed_dictionaries({name: st.booleans() for name in CLEAN_STATE_FLAGS}),
)
def test_flag_conflicts_reported_pairwise(public_api, flags):
    """Each conflicting flag yields exactly one error on itself and one on public_api."""
    state = {"actortype_id": 1, "title": "France", "public_api": public_api, **flags}

    violations = StateInvariantValidator(TYPES).validate(Kind.ACTOR, state)

    raised = [name for name, value in flags.items() if value]
    if not public_api:
        assert violations == []
        return
    assert len(violations) == 2 * len(raised)
    for name in raised:
        assert Violation(name, "and public_api cannot both be true") in violations
        assert Violation("public_api", f"and {name} cannot both be true") in violations


@given(
    kind=st.sampled_from([Kind.ACTOR, Kind.MEASURE]),
    type_id=st.sampled_from([1, 2, 3, 4, 5]),
    flags=st.fixed_dictionaries({name: st.booleans() for name in (*CLEAN_STATE_FLAGS, "public_api", "is_official")}),
)
def test_valid_state_is_publicly_accessible_iff_published(kind, type_id, flags):
    """A record that passes validation is public exactly when public_api is set."""
    field = "actortype_id" if kind == Kind.ACTOR else "measuretype_id"
    if TYPES.get(kind, type_id) is None:
        return
    state = {field: type_id, "title": "Record", **flags}
    validator = StateInvariantValidator(TYPES)

    if validator.validate(kind, state):
        return
    assert validator.publicly_accessible(kind, state) == flags["public_api"]


# ============================================================================
# Hierarchy stays acyclic
# ============================================================================


class _Forest:
    def __init__(self, parents):
        self.parents = parents

    def parent_id_of(self, kind, record_id):
        return self.parents.get(record_id)

    def type_id_of(self, kind, record_id):
        return None

    def count(self, kind):
        return len(self.parents)

    def has_children(self, kind, record_id):
        return record_id in self.parents.values()


def _acyclic(parents) -> bool:
    for start in parents:
        seen = set()
        current = start
        while current is not None:
            if current in seen:
                return False
            seen.add(current)
            current = parents.get(current)
    return True


@settings(max_examples=200)
@given(data=st.data(), size=st.integers(min_value=2, max_value=12))
def test_accepted_parent_changes_never_create_cycles(data, size):
    """Starting from a forest, any change the validator accepts keeps it a forest."""
    parents = {}
    for node in range(1, size + 1):
        parent = data.draw(st.integers(min_value=0, max_value=node - 1))
        parents[node] = parent or None

    entity = data.draw(st.integers(min_value=1, max_value=size))
    new_parent = data.draw(st.integers(min_value=1, max_value=size))

    violations = HierarchyValidator(TYPES).validate(Kind.ACTOR, entity, new_parent, _Forest(parents))

    if not violations:
        parents[entity] = new_parent
        assert _acyclic(parents)


# ============================================================================
# Notification dedup
# ============================================================================


@given(
    edits=st.lists(
        st.tuples(st.integers(min_value=1, max_value=5), st.sampled_from(["title", "description", "draft"])),
        min_size=1,
        max_size=15,
    ),
    assignees=st.sets(st.integers(min_value=1, max_value=5), max_size=5),
)
def test_at_most_one_pending_job_per_pair(edits, assignees):
    broker = RecordingBroker()
    scheduler = TaskNotificationScheduler(TYPES, broker, assignees=lambda measure_id: sorted(assignees), delay=20)
    measure = {"id": 1, "measuretype_id": 3, "notifications": 1, "draft": 0, "is_archive": 0}

    for acting_user_id, field in edits:
        scheduler.measure_updated(measure, {field}, acting_user_id)

    pairs = broker.pending_pairs()
    assert len(pairs) == len(set(pairs))
    assert {user_id for user_id, _ in pairs} <= assignees
    for call in broker.calls:
        if call[0] == "schedule":
            assert call[2] in assignees


# ============================================================================
# Concurrency precision
# ============================================================================


@given(st.datetimes(min_value=datetime(1970, 1, 2), max_value=datetime(2100, 1, 1), timezones=st.just(UTC)))
def test_sub_second_differences_ignored(dt):
    """Dropping the microseconds never counts as a conflict."""
    OptimisticConcurrencyGuard().check(dt.replace(microsecond=0).isoformat(), dt.isoformat())
