"""
Security module for the GPAT registry.

Provides:
- Role and Identity: who is acting
- PolicySet: per-kind authorization, field gating and scoping
- FastAPI adapter: get_identity dependency and error handlers
"""

from .policy import FieldGate, PolicySet, RecordPolicy, RelationshipPolicy
from .roles import EDIT_ROLES, PUBLISH_ROLES, READ_ROLES, Identity, Role, parse_roles

__all__ = [
    "EDIT_ROLES",
    "PUBLISH_ROLES",
    "READ_ROLES",
    "FieldGate",
    "Identity",
    "PolicySet",
    "RecordPolicy",
    "RelationshipPolicy",
    "Role",
    "parse_roles",
]
