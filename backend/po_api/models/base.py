from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import Integer, DateTime, func

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


class AuditMixin:
    """Audit stamps and soft-delete marker carried by every domain table."""
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, actor_id: Optional[int] = None):
        self.deleted_at = utcnow()
        self.updated_by = actor_id

    def stamp(self, actor_id: Optional[int], *, created: bool = False):
        if created:
            self.created_by = actor_id
        self.updated_by = actor_id


__all__ = ['Base', 'AuditMixin', 'utcnow', 'isoformat']
