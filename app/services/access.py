"""Capability predicates shared by the window guard, the routes and the serializers."""

from __future__ import annotations

from app.models.contest import Contest
from app.models.user import User, UserRole


def can_create_contests(user: User) -> bool:
    return getattr(user, "role", None) == UserRole.CREATOR


def can_author(contest: Contest, user: User) -> bool:
    """Only the contest's own creator may add or see its answer keys."""
    return contest.creator_id == user.id


def can_compete(contest: Contest, user: User) -> bool:
    """Everyone except the contest's creator may submit to it."""
    return not can_author(contest, user)


__all__ = ["can_author", "can_compete", "can_create_contests"]
