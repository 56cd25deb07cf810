from po_api.constants.permissions import (
    ALL_PERMISSION_NAMES, PO_STATUS_PERMISSIONS, ROLE_PRESETS, build_all_permission_names, permission_name,
)


def test_role_presets_reference_known_permissions():
    known = set(build_all_permission_names())
    missing = {
        role: sorted(set(preset['permissions']) - known - {'*'})
        for role, preset in ROLE_PRESETS.items()
    }
    assert not any(missing.values()), f"Role presets reference unknown permissions: {missing}"


def test_status_permissions_exist_and_are_granted_to_some_role():
    granted = set().union(*(set(p['permissions']) for p in ROLE_PRESETS.values()))
    for target, perm in PO_STATUS_PERMISSIONS.items():
        assert perm in ALL_PERMISSION_NAMES, target
        assert perm in granted, target


def test_status_changing_presets_hold_every_status_permission():
    # Only admins and managers pass the status route's role gate
    for role in ('Admin', 'Manager'):
        perms = set(ROLE_PRESETS[role]['permissions'])
        missing = sorted(set(PO_STATUS_PERMISSIONS.values()) - perms)
        assert not missing, f"{role} preset lacks {missing}"


def test_permission_names_are_resource_action_pairs():
    assert permission_name('pos', 'read') == 'pos:read'
    names = build_all_permission_names()
    assert len(names) == len(set(names))
    assert all(n.count(':') == 1 for n in names)


def test_read_only_preset_has_no_write_actions():
    perms = ROLE_PRESETS['Read Only']['permissions']
    assert 'pos:read' in perms
    assert not any(p.endswith((':write', ':delete', ':approve')) for p in perms)
