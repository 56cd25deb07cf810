"""Central permission catalogue and system role presets.

Permission names follow ``resource:action``. Extend cautiously; never rename names silently,
add new ones and retire old ones through a migration.
"""
from __future__ import annotations
from typing import Dict, List

RESOURCE_ACTIONS: Dict[str, Dict[str, str]] = {
    'users': {
        'read': 'View users and user profiles',
        'write': 'Create and update user accounts',
        'delete': 'Delete or deactivate users',
        'impersonate': 'Login as another user',
        'roles': 'Assign roles to users',
    },
    'roles': {
        'read': 'View roles and permissions',
        'write': 'Create and update roles',
        'delete': 'Delete roles',
        'assign': 'Assign permissions to roles',
    },
    'pos': {
        'read': 'View purchase orders',
        'write': 'Create and update purchase orders',
        'delete': 'Delete purchase orders',
        'submit': 'Submit purchase orders for approval',
        'approve': 'Approve purchase orders',
        'reject': 'Reject purchase orders',
        'cancel': 'Cancel purchase orders',
        'match': 'Match invoices to purchase orders',
    },
    'suppliers': {
        'read': 'View supplier information',
        'write': 'Create and update suppliers',
        'delete': 'Delete or deactivate suppliers',
    },
    'deliveries': {
        'read': 'View delivery records',
        'write': 'Create and update deliveries',
        'delete': 'Delete delivery records',
        'receive': 'Mark items as received',
    },
    'invoices': {
        'read': 'View invoices',
        'write': 'Create and update invoices',
        'delete': 'Delete invoices',
        'approve': 'Approve invoices for payment',
        'pay': 'Mark invoices as paid',
    },
    'divisions': {
        'read': 'View organizational divisions',
        'write': 'Create and update divisions',
        'delete': 'Delete divisions',
    },
    'delivery_addresses': {
        'read': 'View delivery addresses',
        'write': 'Create and update delivery addresses',
        'delete': 'Delete delivery addresses',
    },
    'files': {
        'upload': 'Upload files and attachments',
        'download': 'Download files and attachments',
        'delete': 'Delete files and attachments',
        'manage': 'Manage file storage and organization',
    },
    'admin': {
        'overview': 'View system overview and dashboard',
        'audit': 'View audit logs and system activity',
        'export': 'Export system data',
        'config': 'Modify system configuration',
        'maintenance': 'Perform system maintenance',
    },
    'reports': {
        'view': 'View standard reports',
        'create': 'Create custom reports',
        'export': 'Export reports in various formats',
        'schedule': 'Schedule automated reports',
    },
}

# Standard verbs offered to clients building custom permissions
STANDARD_ACTIONS = ['create', 'read', 'update', 'delete', 'execute', 'manage']


def permission_name(resource: str, action: str) -> str:
    return f"{resource}:{action}"


def build_all_permission_names() -> List[str]:
    names: List[str] = []
    for resource, actions in RESOURCE_ACTIONS.items():
        for action in actions:
            names.append(permission_name(resource, action))
    return names

ALL_PERMISSION_NAMES = build_all_permission_names()


def _resource(resource: str) -> List[str]:
    return [permission_name(resource, a) for a in RESOURCE_ACTIONS[resource]]


ROLE_PRESETS: Dict[str, Dict[str, object]] = {
    'Super Admin': {
        'description': 'Full system access with all permissions',
        'permissions': ['*'],
    },
    'Admin': {
        'description': 'Administrative access to most system functions',
        'permissions': [
            'users:read', 'users:write', 'users:roles',
            'roles:read', 'roles:write', 'roles:assign',
            *_resource('pos'), *_resource('suppliers'), *_resource('deliveries'), *_resource('invoices'),
            'divisions:read', 'divisions:write',
            *_resource('delivery_addresses'), *_resource('files'),
            'admin:overview', 'admin:audit', 'admin:export',
            *_resource('reports'),
        ],
    },
    'Manager': {
        'description': 'Management level access for department operations',
        'permissions': [
            'users:read',
            'pos:read', 'pos:write', 'pos:submit', 'pos:approve', 'pos:reject', 'pos:cancel', 'pos:match',
            'suppliers:read', 'suppliers:write',
            'deliveries:read', 'deliveries:write', 'deliveries:receive',
            'invoices:read', 'invoices:write', 'invoices:approve',
            'divisions:read',
            'delivery_addresses:read', 'delivery_addresses:write',
            'files:upload', 'files:download', 'files:delete',
            'admin:overview',
            'reports:view', 'reports:create', 'reports:export',
        ],
    },
    'Senior User': {
        'description': 'Advanced user with extended permissions',
        'permissions': [
            'users:read',
            'pos:read', 'pos:write', 'pos:submit', 'pos:match',
            'suppliers:read',
            'deliveries:read', 'deliveries:write', 'deliveries:receive',
            'invoices:read', 'invoices:write',
            'divisions:read',
            'delivery_addresses:read', 'delivery_addresses:write',
            'files:upload', 'files:download',
            'reports:view', 'reports:export',
        ],
    },
    'Basic User': {
        'description': 'Standard user access for daily operations',
        'permissions': [
            'pos:read', 'pos:write', 'pos:submit',
            'suppliers:read',
            'deliveries:read', 'deliveries:receive',
            'invoices:read',
            'divisions:read',
            'delivery_addresses:read',
            'files:upload', 'files:download',
            'reports:view',
        ],
    },
    'Read Only': {
        'description': 'View-only access for auditing and reporting',
        'permissions': [
            'users:read', 'roles:read', 'pos:read', 'suppliers:read', 'deliveries:read',
            'invoices:read', 'divisions:read', 'delivery_addresses:read', 'files:download',
            'admin:overview', 'reports:view',
        ],
    },
}

# Permission required to move a purchase order into each target status
PO_STATUS_PERMISSIONS: Dict[str, str] = {
    'pending': 'pos:submit',
    'approved': 'pos:approve',
    'ordered': 'pos:write',
    'received': 'deliveries:receive',
    'cancelled': 'pos:cancel',
}
