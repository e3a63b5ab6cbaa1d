"""Grouping of time ranges into Monday-start weeks."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timedelta, tzinfo

import pytz

from timeclock_payroll.calculators.types import TimeRange


def get_timezone(name: str | None) -> tzinfo:
    """Look up a location timezone, defaulting to UTC."""
    if not name:
        return pytz.utc
    return pytz.timezone(name)


def local_date(instant: datetime, tz: tzinfo) -> date:
    return instant.astimezone(tz).date()


def week_start(instant: datetime, tz: tzinfo = pytz.utc) -> date:
    """Monday of the local week containing ``instant`` (Sunday -> prior Monday)."""
    day = local_date(instant, tz)
    return day - timedelta(days=day.weekday())


def bucket_by_week(
    ranges: Iterable[TimeRange],
    tz: tzinfo = pytz.utc,
) -> dict[date, list[TimeRange]]:
    """Group closed ranges by the week their start falls in.

    Open ranges have no hours and are skipped.
    """
    weeks: dict[date, list[TimeRange]] = defaultdict(list)
    for time_range in ranges:
        if time_range.is_open:
            continue
        weeks[week_start(time_range.start, tz)].append(time_range)
    return dict(weeks)
