"""
Centralized configuration for the GPAT registry.

Values that vary by deployment belong here.
Override via environment variables where marked.
"""

import os

# ============================================================
# Notifications
# ============================================================

DEFAULT_TASK_NOTIFICATION_DELAY: int = 20
"""Seconds between a task edit and the delayed "task updated" job, unless TASK_NOTIFICATION_DELAY is set."""

TASK_NOTIFICATION_JOB: str = "TaskNotificationJob"
"""Job kind used when scheduling and cancelling task notifications."""

# ============================================================
# Persistence
# ============================================================

SQLITE_TIMEOUT: float = float(os.environ.get("GPAT_SQLITE_TIMEOUT", "30"))
"""Seconds to wait on a locked database before failing."""


def task_notification_delay() -> int:
    """TASK_NOTIFICATION_DELAY, read at call time."""
    return int(os.environ.get("TASK_NOTIFICATION_DELAY", DEFAULT_TASK_NOTIFICATION_DELAY))
