from .base import Base, AuditMixin, utcnow, isoformat
from .authz import Permission, Role, RolePermission, User, UserRole
from .division import Division
from .supplier import Supplier
from .delivery_address import DeliveryAddress
from .purchase_order import PurchaseOrder, PurchaseOrderItem
from .audit import AuditLog

__all__ = [
    'Base', 'AuditMixin', 'utcnow', 'isoformat',
    'Permission', 'Role', 'RolePermission', 'User', 'UserRole',
    'Division', 'Supplier', 'DeliveryAddress', 'PurchaseOrder', 'PurchaseOrderItem', 'AuditLog',
]
