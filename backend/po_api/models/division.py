from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Index
from typing import Optional

from .base import Base, AuditMixin
from .authz import LIVE


class Division(AuditMixin, Base):
    __tablename__ = 'divisions'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index('uq_divisions_name_live', 'name', unique=True, sqlite_where=LIVE, postgresql_where=LIVE),
    )

__all__ = ["Division"]
