"""
Delayed "task updated" notifications for assigned users.

Runs after commit. For a qualifying measure change every assignee except
the acting user gets exactly one pending job: any job already queued for
that (user, measure) pair is cancelled before the new one is scheduled, so
a burst of edits collapses into a single notification per user.

A measure qualifies when:
- its type has notifications enabled
- it is not archived
- its own notifications flag is on
- it is not a draft, and draft did not change in this commit
- at least one persisted field other than updated_at changed

Scheduling failures are logged and swallowed. Losing a notification is
acceptable; failing the already committed edit is not.
"""

import logging
from collections.abc import Callable, Iterable

from gpat import config
from gpat.models import NON_NOTIFIABLE_FIELDS, Kind
from gpat.notifier.broker import Job, JobBroker
from gpat.type_registry import TypeRegistry

logger = logging.getLogger(__name__)


class TaskNotificationScheduler:
    def __init__(
        self,
        types: TypeRegistry,
        broker: JobBroker,
        assignees: Callable[[int], list[int]],
        delay: int | None = None,
        job_kind: str = config.TASK_NOTIFICATION_JOB,
    ):
        self.types = types
        self.broker = broker
        self.assignees = assignees
        self.delay = delay
        self.job_kind = job_kind

    def should_notify(self, measure: dict, changed_fields: Iterable[str]) -> bool:
        changed = set(changed_fields)
        tag = self.types.get(Kind.MEASURE, measure.get("measuretype_id"))
        if tag is None or not tag.notifications:
            return False
        if measure.get("is_archive") or not measure.get("notifications"):
            return False
        if measure.get("draft") or "draft" in changed:
            return False
        return bool(changed - NON_NOTIFIABLE_FIELDS)

    def measure_updated(
        self,
        measure: dict,
        changed_fields: Iterable[str],
        acting_user_id: int | None,
        exclude_user_ids: Iterable[int] = (),
    ) -> list[int]:
        """Reschedule notifications for a committed change. Returns notified user ids."""
        if not self.should_notify(measure, changed_fields):
            return []

        measure_id = measure["id"]
        skip = {acting_user_id, *exclude_user_ids}
        try:
            recipients = [uid for uid in self.assignees(measure_id) if uid not in skip]
        except Exception as e:
            logger.warning(f"Could not load assignees for measure {measure_id}: {e}")
            return []

        delay = self.delay if self.delay is not None else config.task_notification_delay()
        notified = []
        for user_id in recipients:
            try:
                self._reschedule(delay, user_id, measure_id)
                notified.append(user_id)
            except Exception as e:
                logger.warning(f"Task notification for user {user_id} measure {measure_id} dropped: {e}")
        return notified

    def _reschedule(self, delay: int, user_id: int, measure_id: int) -> None:
        def same_pair(job: Job) -> bool:
            return job.user_id == user_id and job.measure_id == measure_id

        removed = self.broker.cancel_pending(self.job_kind, same_pair)
        if removed:
            logger.debug(f"Cancelled {removed} pending {self.job_kind} for user {user_id} measure {measure_id}")
        self.broker.schedule(delay, user_id, measure_id)
