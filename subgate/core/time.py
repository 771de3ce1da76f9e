from __future__ import annotations

import calendar
import time
from datetime import datetime, timezone


def now_ts() -> int:
    return int(time.time())


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def from_ts(ts: int) -> datetime:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def to_ts(dt: datetime) -> int:
    return int(dt.timestamp())


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar-month addition, clamped to the last day of the target month.

    Jan 31 + 1 month is Feb 28 (Feb 29 in leap years), not early March.
    """
    index = dt.month - 1 + months
    year = dt.year + index // 12
    month = index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def add_years(dt: datetime, years: int) -> datetime:
    return add_months(dt, 12 * years)
