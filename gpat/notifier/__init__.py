"""Task notification scheduling."""

from .broker import Job, JobBroker, SqliteJobBroker
from .scheduler import TaskNotificationScheduler

__all__ = ["Job", "JobBroker", "SqliteJobBroker", "TaskNotificationScheduler"]
