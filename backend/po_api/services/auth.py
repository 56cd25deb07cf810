from __future__ import annotations
from typing import Optional
from flask_jwt_extended import create_access_token, verify_jwt_in_request, get_jwt_identity
from sqlalchemy import select

from po_api import get_db
from po_api.errors import Unauthenticated
from po_api.models.authz import User
from po_api.services.authorization import Principal


def issue_token(user: User) -> str:
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    return create_access_token(identity=str(user.id), additional_claims={
        'email': user.email,
        'role': user.role,
        'division_id': user.division_id,
        'spending_limit_cents': int(user.spending_limit_cents or 0),
    })


def find_live_user(user_id: int) -> Optional[User]:
    session = get_db()
    return session.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    ).scalar_one_or_none()


def find_live_user_by_email(email: str) -> Optional[User]:
    session = get_db()
    return session.execute(
        select(User).where(User.email == email.lower(), User.deleted_at.is_(None))
    ).scalar_one_or_none()


def authenticate(email: str, password: str) -> User:
    user = find_live_user_by_email(email)
    if not user or not user.verify_password(password):
        raise Unauthenticated('Invalid email or password')
    if not user.is_active:
        raise Unauthenticated('Account is deactivated')
    return user


def current_user() -> User:
    """Verify the bearer token and re-read its user from the store.

    Claims are never trusted for role or limit: a user deactivated, deleted or demoted
    after the token was issued is seen as they are now.
    """
    verify_jwt_in_request()
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise Unauthenticated('Invalid token subject')
    user = find_live_user(user_id)
    if not user or not user.is_active:
        raise Unauthenticated('User not found or inactive')
    return user


def current_principal() -> Principal:
    return Principal.from_user(current_user())
