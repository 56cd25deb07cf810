#!/usr/bin/env python
"""Idempotent seed script for permissions, system roles and the initial admin.

Usage:
    python backend/scripts/seed_authz.py               # seed normally
    python backend/scripts/seed_authz.py --show-roles  # print role -> permission counts (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_authz.py --dry-run --show-roles
"""
from __future__ import annotations
import os, sys, argparse, textwrap, logging
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError, ProgrammingError

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from po_api import create_app, get_db, get_database  # type: ignore
from po_api.constants.permissions import RESOURCE_ACTIONS, ROLE_PRESETS, build_all_permission_names, permission_name
from po_api.models.authz import Permission, Role, RolePermission, User, UserRole
from po_api.services.assignments import live_permission_names

logger = logging.getLogger('seed_authz')


def ensure_permissions(session):
    existing = {p.name for p in session.execute(select(Permission)).scalars().all()}
    created = 0
    for resource, actions in RESOURCE_ACTIONS.items():
        for action, description in actions.items():
            name = permission_name(resource, action)
            if name not in existing:
                session.add(Permission(name=name, resource=resource, action=action, description=description))
                created += 1
    session.flush()
    return created


def ensure_roles(session):
    existing_roles = {
        r.name: r for r in session.execute(select(Role).where(Role.deleted_at.is_(None))).scalars().all()
    }
    created = 0
    for role_name, preset in ROLE_PRESETS.items():
        if role_name not in existing_roles:
            role = Role(name=role_name, description=preset['description'], is_system_role=True)
            session.add(role)
            existing_roles[role_name] = role
            created += 1
    session.flush()

    all_names = set(build_all_permission_names())
    perms_map = {p.name: p for p in session.execute(select(Permission).where(Permission.deleted_at.is_(None))).scalars()}
    for role_name, preset in ROLE_PRESETS.items():
        role = existing_roles[role_name]
        raw = preset['permissions']
        desired = all_names if '*' in raw else set(raw)
        links = {
            rp.permission_id: rp
            for rp in session.execute(select(RolePermission).where(RolePermission.role_id == role.id)).scalars()
        }
        for name in sorted(desired):
            perm = perms_map.get(name)
            if perm is None:
                logger.warning('Missing permission referenced by role %s: %s', role_name, name)
                continue
            link = links.get(perm.id)
            if link is None:
                session.add(RolePermission(role_id=role.id, permission_id=perm.id))
            elif link.deleted_at is not None:
                link.deleted_at = None
    return created


def ensure_initial_admin(session):
    super_admin = session.execute(
        select(Role).where(Role.name == 'Super Admin', Role.deleted_at.is_(None))
    ).scalar_one_or_none()
    if not super_admin:
        logger.warning('Super Admin role missing; skipping admin user creation')
        return
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com').lower()
    existing_admin = session.execute(
        select(User).where(User.email == admin_email, User.deleted_at.is_(None))
    ).scalar_one_or_none()
    if not existing_admin:
        user = User(name='Administrator', email=admin_email, role=User.ROLE_ADMIN, spending_limit_cents=0)
        user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
        session.add(user)
        session.flush()
        session.add(UserRole(user_id=user.id, role_id=super_admin.id))
        logger.info('Created initial admin user %s with temporary password.', admin_email)


def summarize_roles(session):
    rows = []
    for role in session.execute(select(Role).where(Role.deleted_at.is_(None)).order_by(Role.name)).scalars().all():
        perms = live_permission_names(session, role.id)
        rows.append((role.name, len(perms), perms[:8]))
    return rows


def print_role_summary(session):
    rows = summarize_roles(session)
    if not rows:
        print("[INFO] No roles present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, cnt, sample in rows:
        print(f"{name.ljust(name_w)} | {str(cnt).rjust(5)} | {', '.join(sample)}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed RBAC permissions & system roles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show roles: seed_authz.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args(argv)


def run(session, dry_run: bool = False):
    created_p = ensure_permissions(session)
    created_r = ensure_roles(session)
    ensure_initial_admin(session)
    if dry_run:
        session.rollback()
    else:
        session.commit()
    return created_p, created_r


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            # Ensure tables exist (lightweight fallback if migrations not run yet)
            session.execute(text('SELECT 1 FROM permissions LIMIT 1'))
        except (OperationalError, ProgrammingError):
            session.rollback()
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            get_database().create_all()
        finally:
            session.commit()

        try:
            created_p, created_r = run(session, dry_run=args.dry_run)
            if args.dry_run:
                print(f"[DRY-RUN] (rolled back) Permissions would create: {created_p}, Roles would create: {created_r}")
            else:
                print(f"[DONE] Permissions created: {created_p}, Roles created: {created_r}")
            if args.show_roles:
                print('\nRole Permission Summary:')
                print_role_summary(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    main()
