from collections.abc import Sequence
from typing import TypeVar

from conduit.errors import ConduitError, InternalError

T = TypeVar("T")


def single(rows: Sequence[T], not_found: ConduitError) -> T:
    """
    Return the only item in *rows*.

    Zero items raises *not_found*; more than one means a uniqueness
    invariant was broken and raises ``InternalError``.
    """
    if not rows:
        raise not_found
    if len(rows) > 1:
        raise InternalError(f"expected a single row, got {len(rows)}")
    return rows[0]


def single_or_none(rows: Sequence[T]) -> T | None:
    """Return the only item in *rows*, or None when it is empty."""
    if len(rows) > 1:
        raise InternalError(f"expected at most one row, got {len(rows)}")
    return rows[0] if rows else None
