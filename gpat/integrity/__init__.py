"""
Pre-commit integrity checks.

- StateInvariantValidator: visibility flags and publication eligibility
- HierarchyValidator: parent references (self, cycles, depth, type rules)
- OptimisticConcurrencyGuard: stale-update detection
"""

from .concurrency import OptimisticConcurrencyGuard
from .hierarchy import HierarchyValidator, ParentLookup
from .state import StateInvariantValidator

__all__ = [
    "StateInvariantValidator",
    "HierarchyValidator",
    "ParentLookup",
    "OptimisticConcurrencyGuard",
]
