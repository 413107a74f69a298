"""Tolerant date parsing, completion-log cleanup and window resolution."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta

from habitlens.data.schemas import DateWindow, ProgressRecord

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


def parse_day(value: object) -> date | None:
    """Return the calendar day of an ISO date/datetime string or date object, else None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_instant(value: object) -> datetime | None:
    """Parse an ISO instant into a naive UTC datetime; return None on failure.

    Date-only strings resolve to midnight.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def iso_week_start(d: date) -> date:
    """Return the Monday of the ISO week containing d."""
    return d - timedelta(days=d.weekday())


@dataclass(frozen=True)
class DayLog:
    """A cleaned completion log: unique days ascending, plus what was dropped."""

    days: tuple[date, ...] = ()
    skipped: int = 0
    duplicates: int = 0
    day_set: frozenset[date] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "day_set", frozenset(self.days))

    @property
    def first(self) -> date | None:
        return self.days[0] if self.days else None

    @property
    def last(self) -> date | None:
        return self.days[-1] if self.days else None

    def until(self, reference: date) -> DayLog:
        """Drop days after reference (future-dated entries)."""
        kept = tuple(d for d in self.days if d <= reference)
        if len(kept) == len(self.days):
            return self
        return DayLog(days=kept, skipped=self.skipped, duplicates=self.duplicates)

    def count_between(self, first: date, last: date) -> int:
        """Number of logged days in [first, last]."""
        return sum(1 for d in self.days if first <= d <= last)


def extract_days(values: Iterable[object] | None) -> DayLog:
    """Deduplicate and sort completion dates, counting unparseable and duplicate entries."""
    seen: set[date] = set()
    skipped = 0
    duplicates = 0
    for value in values or ():
        parsed = parse_day(value)
        if parsed is None:
            skipped += 1
            logger.debug("Unparseable completion date: %r", value)
            continue
        if parsed in seen:
            duplicates += 1
            continue
        seen.add(parsed)
    return DayLog(days=tuple(sorted(seen)), skipped=skipped, duplicates=duplicates)


def effective_start(progress: ProgressRecord, log: DayLog) -> date | None:
    """Declared start date, or the earliest completion when it is absent or malformed."""
    declared = parse_day(progress.get("date_started"))
    if declared is not None:
        return declared
    return log.first


@dataclass(frozen=True)
class ResolvedWindow:
    """A window of whole calendar days [start, start + length)."""

    start: date | None = None
    length: int = 0

    @property
    def is_empty(self) -> bool:
        return self.start is None or self.length <= 0

    @property
    def last_day(self) -> date | None:
        if self.start is None or self.length <= 0:
            return None
        return self.start + timedelta(days=self.length - 1)

    def __contains__(self, d: object) -> bool:
        if self.start is None or not isinstance(d, date):
            return False
        return 0 <= (d - self.start).days < self.length

    def iter_days(self) -> Iterator[date]:
        if self.start is None:
            return
        for offset in range(self.length):
            yield self.start + timedelta(days=offset)

    def previous(self) -> ResolvedWindow:
        """The equal-length window immediately before this one, clamped at date.min."""
        if self.start is None or self.length <= 0:
            return ResolvedWindow()
        available = (self.start - date.min).days
        if available < self.length:
            return ResolvedWindow(start=date.min, length=available)
        return ResolvedWindow(start=self.start - timedelta(days=self.length), length=self.length)

    def clip_from(self, first: date | None) -> ResolvedWindow:
        """The part of this window on or after first; empty when first is None."""
        if first is None or self.start is None or self.length <= 0:
            return ResolvedWindow()
        if first <= self.start:
            return self
        offset = (first - self.start).days
        if offset >= self.length:
            return ResolvedWindow()
        return ResolvedWindow(start=first, length=self.length - offset)


def resolve_window(window: DateWindow | None) -> ResolvedWindow:
    """Turn a caller window into whole days; inverted or malformed windows are empty.

    The length is the number of (partial) days between the two instants, so
    [2024-01-01, 2024-01-08) spans seven days.
    """
    if not window:
        return ResolvedWindow()
    start = parse_instant(window.get("start"))
    end = parse_instant(window.get("end"))
    if start is None or end is None:
        logger.warning("Unparseable date window %r, treating as empty", window)
        return ResolvedWindow()
    seconds = (end - start).total_seconds()
    if seconds < 0:
        logger.warning("Inverted date window %s > %s, treating as empty", start, end)
        return ResolvedWindow()
    length = math.ceil(seconds / _SECONDS_PER_DAY)
    return ResolvedWindow(start=start.date(), length=length)

