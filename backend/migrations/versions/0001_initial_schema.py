"""initial purchase order schema

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-17
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

LIVE = sa.text('deleted_at IS NULL')


def _audit_columns():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def _live_unique(name, table, column):
    op.create_index(name, table, [column], unique=True, sqlite_where=LIVE, postgresql_where=LIVE)


def upgrade():
    op.create_table('divisions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text()),
        *_audit_columns(),
    )
    _live_unique('uq_divisions_name_live', 'divisions', 'name')

    op.create_table('permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False, unique=True),
        sa.Column('resource', sa.String(length=50), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text()),
        *_audit_columns(),
        sa.UniqueConstraint('resource', 'action', name='uq_permission_resource_action'),
    )
    op.create_index('ix_permissions_resource', 'permissions', ['resource'])

    op.create_table('roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('is_system_role', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_audit_columns(),
    )
    _live_unique('uq_roles_name_live', 'roles', 'name')

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='basic'),
        sa.Column('division_id', sa.Integer(), sa.ForeignKey('divisions.id'), nullable=True),
        sa.Column('spending_limit_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
        sa.CheckConstraint("role IN ('basic', 'manager', 'admin')", name='ck_users_role'),
        sa.CheckConstraint('spending_limit_cents >= 0', name='ck_users_spending_limit'),
    )
    _live_unique('uq_users_email_live', 'users', 'email')
    op.create_index('ix_users_division_id', 'users', ['division_id'])

    op.create_table('role_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('permissions.id', ondelete='CASCADE'), nullable=False),
        *_audit_columns(),
        sa.UniqueConstraint('role_id', 'permission_id', name='uq_role_permission'),
    )

    op.create_table('user_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), nullable=False),
        *_audit_columns(),
        sa.UniqueConstraint('user_id', 'role_id', name='uq_user_role'),
    )

    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_name', sa.String(length=255)),
        sa.Column('contact_email', sa.String(length=255)),
        sa.Column('contact_phone', sa.String(length=50)),
        sa.Column('address', sa.Text()),
        sa.Column('city', sa.String(length=100)),
        sa.Column('state', sa.String(length=100)),
        sa.Column('zip_code', sa.String(length=20)),
        sa.Column('country', sa.String(length=100)),
        sa.Column('tax_id', sa.String(length=50)),
        sa.Column('payment_terms', sa.String(length=100)),
        sa.Column('notes', sa.Text()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )
    _live_unique('uq_suppliers_name_live', 'suppliers', 'name')

    op.create_table('delivery_addresses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address_line_1', sa.String(length=255), nullable=False),
        sa.Column('address_line_2', sa.String(length=255)),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=False),
        sa.Column('postal_code', sa.String(length=20), nullable=False),
        sa.Column('country', sa.String(length=100), nullable=False, server_default='USA'),
        sa.Column('contact_name', sa.String(length=255)),
        sa.Column('contact_phone', sa.String(length=50)),
        sa.Column('notes', sa.Text()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )

    op.create_table('purchase_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('po_number', sa.String(length=100), nullable=False),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False),
        sa.Column('division_id', sa.Integer(), sa.ForeignKey('divisions.id'), nullable=True),
        sa.Column('delivery_address_id', sa.Integer(), sa.ForeignKey('delivery_addresses.id'), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expected_delivery_date', sa.DateTime(timezone=True)),
        sa.Column('total_value_cents', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('notes', sa.Text()),
        *_audit_columns(),
        sa.CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'ordered', 'received', 'cancelled')",
            name='ck_purchase_orders_status',
        ),
        sa.CheckConstraint('total_value_cents >= 0', name='ck_purchase_orders_total'),
    )
    _live_unique('uq_purchase_orders_po_number_live', 'purchase_orders', 'po_number')
    op.create_index('ix_purchase_orders_status', 'purchase_orders', ['status'])
    op.create_index('ix_purchase_orders_supplier_id', 'purchase_orders', ['supplier_id'])

    op.create_table('purchase_order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('purchase_order_id', sa.Integer(), sa.ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
        sa.Column('unit_price_cents', sa.BigInteger(), nullable=False),
        sa.Column('total_price_cents', sa.BigInteger(), nullable=False),
        sa.Column('notes', sa.Text()),
        *_audit_columns(),
        sa.CheckConstraint('quantity >= 1', name='ck_po_items_quantity'),
        sa.CheckConstraint('unit_price_cents >= 0', name='ck_po_items_unit_price'),
        sa.CheckConstraint('total_price_cents >= 0', name='ck_po_items_total_price'),
    )
    op.create_index('ix_purchase_order_items_purchase_order_id', 'purchase_order_items', ['purchase_order_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('table_name', sa.String(length=100), nullable=False),
        sa.Column('record_id', sa.String(length=64), nullable=True),
        sa.Column('action', sa.String(length=10), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('po_id', sa.Integer(), sa.ForeignKey('purchase_orders.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_table_name', 'audit_logs', ['table_name'])
    op.create_index('ix_audit_logs_record_id', 'audit_logs', ['record_id'])
    op.create_index('ix_audit_logs_po_id', 'audit_logs', ['po_id'])


def downgrade():
    for table in (
        'audit_logs', 'purchase_order_items', 'purchase_orders', 'delivery_addresses', 'suppliers',
        'user_roles', 'role_permissions', 'users', 'roles', 'permissions', 'divisions',
    ):
        op.drop_table(table)
