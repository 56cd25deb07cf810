from __future__ import annotations
"""Authorization evaluator.

Pure decision functions over an immutable ``Principal``; the only store access is
``resolve_permissions`` which callers run once per request before a permission gate.
"""
import logging
from dataclasses import dataclass, field
from typing import AbstractSet, FrozenSet, Optional, Set, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from po_api.errors import Forbidden, Unauthenticated
from po_api.models.authz import Permission, Role, RolePermission, User, UserRole
from po_api.services.decision import (
    ALLOW, Decision, REASON_FORBIDDEN_PERMISSION, REASON_FORBIDDEN_ROLE,
    REASON_FORBIDDEN_SPENDING_LIMIT, REASON_UNAUTHENTICATED,
)

logger = logging.getLogger(__name__)

ROLE_BASIC = User.ROLE_BASIC
ROLE_MANAGER = User.ROLE_MANAGER
ROLE_ADMIN = User.ROLE_ADMIN
ALL_ROLES = User.ALL_ROLES


@dataclass(frozen=True)
class Principal:
    id: int
    role: str
    email: Optional[str] = None
    name: Optional[str] = None
    division_id: Optional[int] = None
    spending_limit_cents: int = 0

    @classmethod
    def from_user(cls, user: User) -> 'Principal':
        return cls(
            id=user.id,
            role=user.role,
            email=user.email,
            name=user.name,
            division_id=user.division_id,
            spending_limit_cents=int(user.spending_limit_cents or 0),
        )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class RoleRequirement:
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, *roles: str) -> 'RoleRequirement':
        return cls(frozenset(roles))


@dataclass(frozen=True)
class PermissionRequirement:
    name: str


@dataclass(frozen=True)
class SpendingLimitRequirement:
    total_value_cents: int


Requirement = Union[RoleRequirement, PermissionRequirement, SpendingLimitRequirement]


def can_create_purchase_order(principal: Principal, total_value_cents: int) -> bool:
    # admin is exempt regardless of its configured limit; boundary is inclusive
    if principal.role == ROLE_ADMIN:
        return True
    return total_value_cents <= principal.spending_limit_cents


def can_manage_users(principal: Principal) -> bool:
    return principal.role in (ROLE_ADMIN, ROLE_MANAGER)


def can_manage_roles(principal: Principal) -> bool:
    return principal.role == ROLE_ADMIN


def can_access_division(principal: Principal, division_id: Optional[int]) -> bool:
    return principal.role == ROLE_ADMIN or principal.division_id == division_id


def authorize(principal: Optional[Principal], requirement: Requirement,
              permissions: Optional[AbstractSet[str]] = None) -> Decision:
    """Evaluate one requirement for ``principal``.

    Role gates use exact set membership (no hierarchy). Permission gates need the
    principal's resolved permission set (see ``resolve_permissions``).
    """
    if principal is None:
        return Decision(False, REASON_UNAUTHENTICATED, requirement)
    if isinstance(requirement, RoleRequirement):
        if principal.role in requirement.roles:
            return ALLOW
        return Decision(False, REASON_FORBIDDEN_ROLE, requirement)
    if isinstance(requirement, PermissionRequirement):
        if permissions is None:
            raise ValueError('permission gate requires the resolved permission set')
        if requirement.name in permissions:
            return ALLOW
        return Decision(False, REASON_FORBIDDEN_PERMISSION, requirement)
    if isinstance(requirement, SpendingLimitRequirement):
        if can_create_purchase_order(principal, requirement.total_value_cents):
            return ALLOW
        return Decision(False, REASON_FORBIDDEN_SPENDING_LIMIT, requirement)
    raise TypeError(f'Unsupported requirement {requirement!r}')


def resolve_permissions(session: Session, user_id: int) -> Set[str]:
    """Union of permission names over every live role held by a live user."""
    stmt = (
        select(Permission.name)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(Role, Role.id == RolePermission.role_id)
        .join(UserRole, UserRole.role_id == Role.id)
        .join(User, User.id == UserRole.user_id)
        .where(
            User.id == user_id,
            User.deleted_at.is_(None),
            UserRole.deleted_at.is_(None),
            Role.deleted_at.is_(None),
            RolePermission.deleted_at.is_(None),
            Permission.deleted_at.is_(None),
        )
        .distinct()
    )
    return set(session.execute(stmt).scalars().all())


def enforce(decision: Decision, principal: Optional[Principal] = None) -> None:
    """Raise the HTTP error matching a deny; no-op on allow."""
    if decision.allowed:
        return
    req = decision.requirement
    logger.info('authorization denied: reason=%s principal=%s requirement=%r',
                decision.reason, principal.id if principal else None, req)
    if decision.reason == REASON_UNAUTHENTICATED:
        raise Unauthenticated()
    if decision.reason == REASON_FORBIDDEN_ROLE:
        roles = sorted(req.roles)
        raise Forbidden(decision.reason, f"Requires one of roles: {', '.join(roles)}", required_roles=roles)
    if decision.reason == REASON_FORBIDDEN_PERMISSION:
        raise Forbidden(decision.reason, f'Missing permission {req.name}', required_permission=req.name)
    if decision.reason == REASON_FORBIDDEN_SPENDING_LIMIT:
        limit = principal.spending_limit_cents if principal else None
        raise Forbidden(
            decision.reason,
            'Purchase order total exceeds your spending limit',
            spending_limit_cents=limit,
            total_value_cents=req.total_value_cents,
        )
    raise Forbidden(decision.reason or 'forbidden')


__all__ = [
    'Principal', 'RoleRequirement', 'PermissionRequirement', 'SpendingLimitRequirement', 'Decision', 'ALLOW',
    'authorize', 'resolve_permissions', 'enforce', 'can_create_purchase_order', 'can_manage_users',
    'can_manage_roles', 'can_access_division', 'ROLE_BASIC', 'ROLE_MANAGER', 'ROLE_ADMIN', 'ALL_ROLES',
]
