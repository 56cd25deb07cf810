from __future__ import annotations
from flask import Blueprint
from sqlalchemy.exc import IntegrityError

from po_api import get_db
from po_api.decorators.audit import audit_log
from po_api.decorators.auth import require_auth
from po_api.errors import Conflict
from po_api.models.authz import User
from po_api.models.division import Division
from po_api.services.auth import authenticate, current_user, find_live_user_by_email, issue_token
from po_api.services.authorization import resolve_permissions
from po_api.utils.filters import get_live
from po_api.utils.validation import json_body, email_field, string_field, int_field
from po_api.routes.users import _user_json

auth_bp = Blueprint('auth', __name__)


@auth_bp.post('/register')
@audit_log('INSERT', table='users', record_id_key='id',
           value_keys=['email', 'name', 'role', 'division_id', 'spending_limit_cents'])
def register():
    data = json_body()
    email = email_field(data, required=True)
    password = string_field(data, 'password', required=True, min_len=6)
    name = string_field(data, 'name', required=True, max_len=255)
    division_id = int_field(data, 'division_id')
    session = get_db()
    if division_id is not None:
        get_live(session, Division, division_id, 'Division')
    if find_live_user_by_email(email):
        raise Conflict('User with this email already exists')
    # self-registered accounts always start as basic with no spending headroom
    user = User(email=email, name=name, role=User.ROLE_BASIC, division_id=division_id, spending_limit_cents=0)
    user.set_password(password)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise Conflict('User with this email already exists')
    return {**_user_json(user), 'token': issue_token(user)}, 201


@auth_bp.post('/login')
def login():
    data = json_body()
    email = email_field(data, required=True)
    password = string_field(data, 'password', required=True)
    user = authenticate(email, password)
    return {'token': issue_token(user), 'user': _user_json(user)}


@auth_bp.get('/verify')
@require_auth
def verify():
    return {'valid': True, 'user': _user_json(current_user())}


@auth_bp.get('/me')
@require_auth
def me():
    user = current_user()
    perms = resolve_permissions(get_db(), user.id)
    return {**_user_json(user), 'permissions': sorted(perms)}
