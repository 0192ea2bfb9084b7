"""
Relationship bookkeeping for join rows.

After a join row is created, updated or destroyed, every primary record it
references (actor, measure, indicator, user) gets relationship_updated_at
and relationship_updated_by_id stamped. The acting user is passed in
explicitly.

Touches are direct column updates: they do not bump updated_at, do not
re-enter the service and so cannot recurse. Records that have already
gone (a cascade destroy) are skipped.
"""

import logging

from gpat.models import TOUCHABLE_KINDS, JoinSpec, Kind
from gpat.store import RecordStore
from gpat.utils import now_utc_iso

logger = logging.getLogger(__name__)


class RelationshipTouchPropagator:
    def __init__(self, store: RecordStore):
        self.store = store

    def propagate(self, spec: JoinSpec, link: dict, acting_user_id: int | None) -> list[tuple[Kind, int]]:
        """Touch both sides of one join row. Returns the (kind, id) pairs touched."""
        touched = []
        at = now_utc_iso()
        for side in spec.sides:
            if side.kind not in TOUCHABLE_KINDS:
                continue
            record_id = link.get(side.column)
            if record_id is None:
                continue
            if self.store.touch(side.kind, record_id, acting_user_id, at=at):
                touched.append((side.kind, record_id))
            else:
                logger.debug(f"Skipped touch of missing {side.kind} {record_id} via {spec.table}")
        return touched
