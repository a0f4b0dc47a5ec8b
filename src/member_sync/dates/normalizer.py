# src/member_sync/dates/normalizer.py

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional, Union


# ---------------------------------------------------------------------------
# Accepted input shapes
# ---------------------------------------------------------------------------

# Tried in order after ISO-8601 parsing fails.
FALLBACK_DATE_FORMATS = (
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d %b %Y",
    "%d %B %Y",
)

DateLike = Union[str, date, datetime, None]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_datetime(value: DateLike) -> Optional[datetime]:
    """
    Parse a stored timestamp into a naive datetime.

    Accepts ``YYYY-MM-DD``, full ISO-8601 (including a trailing ``Z``) and a
    few day-first forms. Timezone offsets are dropped, keeping the wall-clock
    reading that was stored. Returns None for empty or unparsable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    s = str(value).strip()
    if not s:
        return None

    iso = s[:-1] + "+00:00" if s.endswith("Z") else s
    try:
        return datetime.fromisoformat(iso).replace(tzinfo=None)
    except ValueError:
        pass

    for fmt in FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def parse_date(value: DateLike) -> Optional[date]:
    dt = parse_datetime(value)
    return dt.date() if dt is not None else None


def to_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


# ---------------------------------------------------------------------------
# Calendar arithmetic
# ---------------------------------------------------------------------------

def with_year(d: date, year: int) -> date:
    """
    Move ``d`` into ``year``. February 29 lands on March 1 when ``year``
    is not a leap year.
    """
    try:
        return d.replace(year=year)
    except ValueError:
        return date(year, 3, 1)


def add_years(d: date, years: int) -> date:
    return with_year(d, d.year + years)


def days_until(target: Union[date, datetime], today: Union[date, datetime]) -> int:
    """Whole days from ``today`` to ``target``; partial days round up."""
    start = datetime.combine(to_date(today), datetime.min.time())
    end = target if isinstance(target, datetime) else datetime.combine(target, datetime.min.time())
    delta = end - start
    whole = delta.days
    if delta - timedelta(days=whole) > timedelta(0):
        whole += 1
    return whole
