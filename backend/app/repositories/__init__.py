"""Repositories layer - Data access and persistence.

Repositories handle all database operations using SQLAlchemy.
They abstract the database implementation from the service layer.
"""

from app.repositories.audit import AuditRepository
from app.repositories.group import GroupRepository
from app.repositories.query import QueryRepository

__all__ = ["AuditRepository", "GroupRepository", "QueryRepository"]
