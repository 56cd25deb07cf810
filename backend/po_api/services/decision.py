from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional

# Machine-distinguishable deny / reject reasons
REASON_UNAUTHENTICATED = 'unauthenticated'
REASON_FORBIDDEN_ROLE = 'forbidden_role'
REASON_FORBIDDEN_PERMISSION = 'forbidden_permission'
REASON_FORBIDDEN_SPENDING_LIMIT = 'forbidden_spending_limit'
REASON_INVALID_TRANSITION = 'invalid_transition'

ALL_REASONS = (
    REASON_UNAUTHENTICATED,
    REASON_FORBIDDEN_ROLE,
    REASON_FORBIDDEN_PERMISSION,
    REASON_FORBIDDEN_SPENDING_LIMIT,
    REASON_INVALID_TRANSITION,
)


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization or transition check.

    ``requirement`` is the unmet requirement on a deny (role set, permission name,
    spending requirement or the ``(current, requested)`` transition pair).
    """
    allowed: bool
    reason: Optional[str] = None
    requirement: Any = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)

__all__ = [
    'Decision', 'ALLOW', 'ALL_REASONS', 'REASON_UNAUTHENTICATED', 'REASON_FORBIDDEN_ROLE',
    'REASON_FORBIDDEN_PERMISSION', 'REASON_FORBIDDEN_SPENDING_LIMIT', 'REASON_INVALID_TRANSITION',
]
