"""Shape checks for untrusted identifiers and names."""

import re
from typing import Any

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_uuid(value: Any) -> bool:
    """True for a string in canonical 8-4-4-4-12 hex form."""
    return isinstance(value, str) and UUID_PATTERN.fullmatch(value) is not None


def validate_cluster_name(value: Any) -> bool:
    """True for a string with at least one non-whitespace character."""
    return isinstance(value, str) and bool(value.strip())
