"""
Error types raised by the registry core.

Ordering contract:
- AuthenticationRequired / AuthorizationError and ConcurrencyConflict are
  raised fail-fast, before any field validation runs.
- ValidationError carries every field-scoped violation found for the
  resulting state, so one round trip surfaces all of them.
- NotificationSchedulingFailure is raised by job brokers only; the
  scheduler logs it and never lets it reach the caller.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Violation:
    """A single field-scoped validation failure."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field} {self.message}"


class RegistryError(Exception):
    """Base class for all registry errors."""


class ValidationError(RegistryError):
    """The resulting state of a mutation breaks one or more invariants."""

    def __init__(self, violations: list[Violation]):
        self.violations = list(violations)
        super().__init__("; ".join(str(v) for v in self.violations) or "invalid")

    def errors(self) -> dict[str, list[str]]:
        """Violations grouped by field, in report order."""
        grouped: dict[str, list[str]] = {}
        for violation in self.violations:
            grouped.setdefault(violation.field, []).append(violation.message)
        return grouped

    def has_error(self, field: str) -> bool:
        return any(v.field == field for v in self.violations)


class AuthorizationError(RegistryError):
    """Generic denial. Never says which rule failed."""

    def __init__(self, message: str = "not authorized"):
        super().__init__(message)


class AuthenticationRequired(AuthorizationError):
    """A write was attempted without an authenticated identity."""

    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


class ConcurrencyConflict(RegistryError):
    """The client edited a stale copy of the record."""

    def __init__(self, message: str = "Record outdated"):
        super().__init__(message)


class ReferenceNotFound(RegistryError):
    """
    Target or related record is missing, or outside the caller's scope.

    Both cases report identically.
    """

    def __init__(self, kind: str, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"Couldn't find {kind} with id={record_id}")


class NotificationSchedulingFailure(RegistryError):
    """The job broker could not enumerate, delete or schedule a job."""
