from __future__ import annotations
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, BigInteger, String, Text, Numeric, ForeignKey, DateTime, CheckConstraint, Index
from typing import Optional, List

from .base import Base, AuditMixin
from .authz import LIVE


class PurchaseOrder(AuditMixin, Base):
    __tablename__ = 'purchase_orders'
    # Status constants
    STATUS_DRAFT = 'draft'
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_ORDERED = 'ordered'
    STATUS_RECEIVED = 'received'
    STATUS_CANCELLED = 'cancelled'
    ALL_STATUSES = (STATUS_DRAFT, STATUS_PENDING, STATUS_APPROVED, STATUS_ORDERED, STATUS_RECEIVED, STATUS_CANCELLED)
    # Statuses that keep a supplier from being deleted
    OPEN_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_ORDERED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    po_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    supplier_id: Mapped[int] = mapped_column(ForeignKey('suppliers.id'), nullable=False, index=True)
    division_id: Mapped[Optional[int]] = mapped_column(ForeignKey('divisions.id'), nullable=True, index=True)
    delivery_address_id: Mapped[Optional[int]] = mapped_column(ForeignKey('delivery_addresses.id'), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_DRAFT, index=True)
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expected_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    total_value_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default='USD')
    notes: Mapped[Optional[str]] = mapped_column(Text)

    supplier = relationship('Supplier')
    items: Mapped[List['PurchaseOrderItem']] = relationship(
        'PurchaseOrderItem', back_populates='purchase_order', order_by='PurchaseOrderItem.line_no'
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'ordered', 'received', 'cancelled')",
            name='ck_purchase_orders_status',
        ),
        CheckConstraint('total_value_cents >= 0', name='ck_purchase_orders_total'),
        Index('uq_purchase_orders_po_number_live', 'po_number', unique=True, sqlite_where=LIVE, postgresql_where=LIVE),
    )


class PurchaseOrderItem(AuditMixin, Base):
    __tablename__ = 'purchase_order_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    purchase_order_id: Mapped[int] = mapped_column(ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Supplied by the caller; never recomputed from quantity * unit price
    total_price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    purchase_order = relationship('PurchaseOrder', back_populates='items')

    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_po_items_quantity'),
        CheckConstraint('unit_price_cents >= 0', name='ck_po_items_unit_price'),
        CheckConstraint('total_price_cents >= 0', name='ck_po_items_total_price'),
    )
