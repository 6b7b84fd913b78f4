"""Models layer - SQLAlchemy ORM models.

Models define the database schema and relationships.
All models inherit from the Base class defined in core.database.
"""

from app.core.database import Base
from app.models.group import GROUP_NAME_MAX_LENGTH, Group, GroupItem
from app.models.query import Query
from app.models.user_action import UserAction, UserActionType

__all__ = [
    "Base",
    "GROUP_NAME_MAX_LENGTH",
    "Group",
    "GroupItem",
    "Query",
    "UserAction",
    "UserActionType",
]
