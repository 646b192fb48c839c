"""
Availability window evaluation for Video Content.

A record carries several named windows (e.g. "public" and "passport"),
each a start/end pair where a missing start or end is unbounded on that
side. All checks use strict inequalities: the start and end instants
themselves are not available.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

RESTRICTED_WINDOWS = ("passport",)


@dataclass(frozen=True)
class AvailabilityWindow:
    name: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def is_active(self, at: datetime) -> bool:
        return self.start is not None and self.start < at and (self.end is None or at < self.end)


def earliest_start(windows: Iterable[AvailabilityWindow]) -> Optional[datetime]:
    starts = [w.start for w in windows if w.start is not None]
    return min(starts) if starts else None


def latest_end(windows: Iterable[AvailabilityWindow]) -> Optional[datetime]:
    ends = [w.end for w in windows if w.end is not None]
    return max(ends) if ends else None


def is_available(windows: Sequence[AvailabilityWindow], at: datetime) -> bool:
    """True if the item is available to any audience at `at`."""
    start = earliest_start(windows)
    end = latest_end(windows)
    return start is not None and start < at and (end is None or at < end)


def is_restricted_only(
    windows: Sequence[AvailabilityWindow],
    at: datetime,
    restricted: Sequence[str] = RESTRICTED_WINDOWS,
) -> bool:
    """
    True if the item is only available through a restricted window at `at`.

    Windows are scanned in order. An active unrestricted window settles the
    answer as False no matter where it appears; an active restricted window
    only makes the answer True if no active unrestricted window follows.
    """
    restricted_only = False
    for window in windows:
        if not window.is_active(at):
            continue
        if window.name not in restricted:
            return False
        restricted_only = True
    return restricted_only
