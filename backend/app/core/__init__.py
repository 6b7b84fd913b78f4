"""Core utilities and configuration."""

from app.core.config import Settings, get_settings
from app.core.database import Base, db_manager, get_session
from app.core.logging import (
    clustering_logger,
    completion_logger,
    db_logger,
    get_logger,
    setup_logging,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "db_manager",
    "get_session",
    # Logging
    "clustering_logger",
    "completion_logger",
    "db_logger",
    "get_logger",
    "setup_logging",
]
