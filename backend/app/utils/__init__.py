"""Utility modules for the application.

This package contains shared utility functions and classes.
"""

from app.utils.cluster_identity import generate_cluster_id, string_hash
from app.utils.validation import UUID_PATTERN, is_valid_uuid, validate_cluster_name

__all__ = [
    # Cluster identity
    "generate_cluster_id",
    "string_hash",
    # Validation
    "UUID_PATTERN",
    "is_valid_uuid",
    "validate_cluster_name",
]
