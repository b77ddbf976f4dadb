"""SQLAlchemy models package."""

from orchestra.models.user import EMPTY_USER, User, UserAuthorityRelation

__all__ = [
    "EMPTY_USER",
    "User",
    "UserAuthorityRelation",
]
