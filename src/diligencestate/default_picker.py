"""
Default selection for a tier.

Picks the earliest-created visible item, oldest first, with id order as the
deterministic fallback. Items that were never stamped come after every
stamped item; among themselves they are ordered by id.
"""
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple, TypeVar

T = TypeVar('T')

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _sort_key(item) -> Tuple[bool, datetime, str]:
    created_at = item.created_at
    missing = created_at is None
    if missing:
        created_at = EPOCH
    elif created_at.tzinfo is None:
        # Naive timestamps are stored as UTC by the data source
        created_at = created_at.replace(tzinfo=timezone.utc)
    return missing, created_at, str(item.id)


def pick_default(items: Sequence[T]) -> Optional[T]:
    """Return the default item of a visible list, or None if the list is empty.

    Args:
        items: Entities exposing ``id`` and ``created_at`` (Optional[datetime]).

    Returns:
        The first element after sorting by (unstamped last, created_at, id).
    """
    if not items:
        return None
    if len(items) == 1:
        return items[0]
    return min(items, key=_sort_key)
