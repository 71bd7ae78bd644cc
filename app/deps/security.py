# app/deps/security.py
from fastapi import Depends

from app.auth_token import get_current_user
from app.errors import Forbidden, Unauthorized
from app.services.access import can_create_contests


def require_user(user=Depends(get_current_user)):
    """401 if not logged in; returns the user otherwise."""
    if user is None:
        raise Unauthorized()
    return user


def require_creator(user=Depends(require_user)):
    """403 unless the logged-in user may author contests."""
    if not can_create_contests(user):
        raise Forbidden()
    return user
