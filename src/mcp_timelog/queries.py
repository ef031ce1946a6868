"""Read-only views over a collection of records: search and look-back."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, Optional

from .models import Record, ensure_aware, utc_now

RECENT_WINDOW = timedelta(days=7)


class SearchFilter(Enum):
    """Secondary filter applied after text matching."""
    ALL = "all"
    HAS_IMAGE = "has_image"
    TEXT_ONLY = "text_only"
    RECENT = "recent"


def search(
    records: Iterable[Record],
    text: str = "",
    search_filter: SearchFilter = SearchFilter.ALL,
    now: Optional[datetime] = None,
) -> list[Record]:
    """Case-insensitive content search, then the given filter."""
    needle = text.strip().casefold()
    matches = [r for r in records if not needle or needle in r.content.casefold()]

    if search_filter == SearchFilter.HAS_IMAGE:
        return [r for r in matches if r.has_image]
    if search_filter == SearchFilter.TEXT_ONLY:
        return [r for r in matches if not r.has_image]
    if search_filter == SearchFilter.RECENT:
        cutoff = ensure_aware(now or utc_now()) - RECENT_WINDOW
        return [r for r in matches if ensure_aware(r.timestamp) >= cutoff]
    return matches


def local_date(record: Record, tz: tzinfo = timezone.utc) -> date:
    return ensure_aware(record.timestamp).astimezone(tz).date()


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 in a non-leap year
        return day.replace(year=day.year - years, day=28)


def on_this_day(
    records: Iterable[Record],
    today: date,
    years_back: int = 1,
    tz: tzinfo = timezone.utc,
) -> list[Record]:
    """Records written on the same calendar day ``years_back`` years ago."""
    target = _years_before(today, years_back)
    return [r for r in records if local_date(r, tz) == target]


def group_by_day(records: Iterable[Record], tz: tzinfo = timezone.utc) -> dict[date, list[Record]]:
    """Records grouped by local date, newest day first."""
    groups: dict[date, list[Record]] = {}
    for record in records:
        groups.setdefault(local_date(record, tz), []).append(record)
    return {day: groups[day] for day in sorted(groups, reverse=True)}


def group_by_month(records: Iterable[Record], tz: tzinfo = timezone.utc) -> dict[date, list[Record]]:
    """Records grouped by the first day of their local month, newest first."""
    groups: dict[date, list[Record]] = {}
    for record in records:
        groups.setdefault(local_date(record, tz).replace(day=1), []).append(record)
    return {month: groups[month] for month in sorted(groups, reverse=True)}
