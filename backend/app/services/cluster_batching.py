"""Split candidate queries into fixed-size batches for completion requests."""

from collections.abc import Sequence
from typing import TypeVar

DEFAULT_BATCH_SIZE = 1000

T = TypeVar("T")


def create_batches(items: Sequence[T], batch_size: int = DEFAULT_BATCH_SIZE) -> list[list[T]]:
    """Partition items into consecutive batches of at most batch_size.

    Order is preserved within and across batches, and every item appears in
    exactly one batch. Empty input gives an empty list.

    Raises:
        ValueError: If batch_size is not positive.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]
