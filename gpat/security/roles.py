"""
Roles and the acting identity.

Roles:
  ADMIN        full access, sees archived records, sets archive flag
  COORDINATOR  edits and publishes, sees every private record
  MANAGER      edits, sees own private records
  ANALYST      read only
  GUEST        signed in without a role; denied everywhere

Unlike a strict hierarchy, coordinator and manager differ in scoping and
publication rights, so checks name the roles they accept explicitly.
"""

from dataclasses import dataclass, field
from enum import StrEnum

from gpat.utils import generate_request_id


class Role(StrEnum):
    """Role enumeration.

    Inherits from str to make comparisons with string literals work naturally.
    """

    ADMIN = "admin"
    COORDINATOR = "coordinator"
    MANAGER = "manager"
    ANALYST = "analyst"
    GUEST = "guest"


READ_ROLES = frozenset({Role.ADMIN, Role.COORDINATOR, Role.MANAGER, Role.ANALYST})
EDIT_ROLES = frozenset({Role.ADMIN, Role.COORDINATOR, Role.MANAGER})
PUBLISH_ROLES = frozenset({Role.ADMIN, Role.COORDINATOR})


def parse_roles(values) -> frozenset[Role]:
    """Map role names to Role members, ignoring names we don't know."""
    roles = set()
    for value in values or ():
        try:
            roles.add(Role(str(value).strip().lower()))
        except ValueError:
            continue
    return frozenset(roles)


@dataclass(frozen=True)
class Identity:
    """
    Who is doing this.

    Passed explicitly into every service call; user_id None means the
    caller is not signed in.
    """

    user_id: int | None
    roles: frozenset[Role] = frozenset()
    request_id: str = field(default_factory=generate_request_id)

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls(user_id=None)

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    def has_role(self, *roles: Role) -> bool:
        return any(role in self.roles for role in roles)

    def has_any(self, roles: frozenset[Role]) -> bool:
        return self.authenticated and bool(self.roles & roles)

    def owns(self, record: dict | None) -> bool:
        return bool(record) and self.authenticated and record.get("created_by_id") == self.user_id
