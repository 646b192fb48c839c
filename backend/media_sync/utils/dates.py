from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Current time as naive UTC, the format every stored timestamp uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_storage_datetime(value: datetime) -> datetime:
    """
    Normalize a datetime for storage and comparison.

    Media Manager sends microseconds in `updated_at` values but local
    storage does not keep them, so they are dropped here. Aware values are
    converted to UTC and made naive.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)


def empty_to_none(value: Any) -> Optional[Any]:
    # The API uses both null and "" for unset dates.
    if value == "":
        return None
    return value
