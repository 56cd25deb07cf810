from __future__ import annotations
from typing import Iterable, List, Optional, Type

from sqlalchemy import select
from sqlalchemy.orm import Session

from po_api.errors import ValidationError
from po_api.models.authz import Permission, Role, RolePermission, UserRole
from po_api.models.base import utcnow


def replace_links(session: Session, model: Type, owner_field: str, owner_id: int, target_field: str,
                  target_ids: Iterable[int], actor_id: Optional[int]):
    """Make the live links of one owner exactly ``target_ids``.

    Links no longer wanted are soft-deleted, kept links are untouched and previously
    soft-deleted links are revived rather than duplicated. Caller commits.
    """
    wanted = set(target_ids)
    existing = session.execute(
        select(model).where(getattr(model, owner_field) == owner_id)
    ).scalars().all()
    by_target = {getattr(link, target_field): link for link in existing}
    now = utcnow()
    for target, link in by_target.items():
        if target not in wanted and link.deleted_at is None:
            link.deleted_at = now
            link.updated_by = actor_id
    for target in sorted(wanted):
        link = by_target.get(target)
        if link is None:
            session.add(model(**{owner_field: owner_id, target_field: target}, created_by=actor_id, updated_by=actor_id))
        elif link.deleted_at is not None:
            link.deleted_at = None
            link.updated_by = actor_id


def _require_live_ids(session: Session, model: Type, ids: List[int], field: str):
    if not ids:
        return
    found = set(session.execute(
        select(model.id).where(model.id.in_(ids), model.deleted_at.is_(None))
    ).scalars().all())
    missing = sorted(set(ids) - found)
    if missing:
        raise ValidationError(f'Unknown {field}: {missing}', {field: f'unknown ids {missing}'})


def set_role_permissions(session: Session, role_id: int, permission_ids: List[int], actor_id: Optional[int]):
    _require_live_ids(session, Permission, permission_ids, 'permissions')
    replace_links(session, RolePermission, 'role_id', role_id, 'permission_id', permission_ids, actor_id)


def set_user_roles(session: Session, user_id: int, role_ids: List[int], actor_id: Optional[int]):
    _require_live_ids(session, Role, role_ids, 'role_ids')
    replace_links(session, UserRole, 'user_id', user_id, 'role_id', role_ids, actor_id)


def live_role_names(session: Session, user_id: int) -> List[str]:
    stmt = (
        select(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id, UserRole.deleted_at.is_(None), Role.deleted_at.is_(None))
        .order_by(Role.name)
    )
    return list(session.execute(stmt).scalars().all())


def live_permission_names(session: Session, role_id: int) -> List[str]:
    stmt = (
        select(Permission.name)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role_id, RolePermission.deleted_at.is_(None), Permission.deleted_at.is_(None))
        .order_by(Permission.name)
    )
    return list(session.execute(stmt).scalars().all())


def count_live_role_users(session: Session, role_id: int) -> int:
    from sqlalchemy import func
    from po_api.models.authz import User
    return session.execute(
        select(func.count(UserRole.id))
        .join(User, User.id == UserRole.user_id)
        .where(UserRole.role_id == role_id, UserRole.deleted_at.is_(None), User.deleted_at.is_(None))
    ).scalar_one()
