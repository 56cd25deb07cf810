from __future__ import annotations
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, UniqueConstraint, CheckConstraint, Index, Text, BigInteger, text
from typing import Optional

from .base import Base, AuditMixin

LIVE = text('deleted_at IS NULL')


class Permission(AuditMixin, Base):
    __tablename__ = 'permissions'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    role_links = relationship('RolePermission', back_populates='permission')

    __table_args__ = (UniqueConstraint('resource', 'action', name='uq_permission_resource_action'),)


class Role(AuditMixin, Base):
    __tablename__ = 'roles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_system_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    permission_links = relationship('RolePermission', back_populates='role')
    user_links = relationship('UserRole', back_populates='role')

    __table_args__ = (
        Index('uq_roles_name_live', 'name', unique=True, sqlite_where=LIVE, postgresql_where=LIVE),
    )


class RolePermission(AuditMixin, Base):
    __tablename__ = 'role_permissions'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey('roles.id', ondelete='CASCADE'), nullable=False, index=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False, index=True)

    role = relationship('Role', back_populates='permission_links')
    permission = relationship('Permission', back_populates='role_links')

    __table_args__ = (UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),)


class User(AuditMixin, Base):
    __tablename__ = 'users'
    ROLE_BASIC = 'basic'
    ROLE_MANAGER = 'manager'
    ROLE_ADMIN = 'admin'
    ALL_ROLES = (ROLE_BASIC, ROLE_MANAGER, ROLE_ADMIN)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_BASIC)
    division_id: Mapped[Optional[int]] = mapped_column(ForeignKey('divisions.id'), nullable=True, index=True)
    spending_limit_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    role_links = relationship('UserRole', back_populates='user')
    division = relationship('Division')

    __table_args__ = (
        CheckConstraint("role IN ('basic', 'manager', 'admin')", name='ck_users_role'),
        CheckConstraint('spending_limit_cents >= 0', name='ck_users_spending_limit'),
        Index('uq_users_email_live', 'email', unique=True, sqlite_where=LIVE, postgresql_where=LIVE),
    )

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, raw)


class UserRole(AuditMixin, Base):
    __tablename__ = 'user_roles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role_id: Mapped[int] = mapped_column(ForeignKey('roles.id', ondelete='CASCADE'), nullable=False, index=True)
    __table_args__ = (UniqueConstraint('user_id', 'role_id', name='uq_user_role'),)
    user = relationship('User', back_populates='role_links')
    role = relationship('Role', back_populates='user_links')
