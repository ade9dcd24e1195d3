"""
Date normalisation -- turns heterogeneous date cells into ``datetime.date``.

Spreadsheet and CSV uploads carry dates in many shapes.  ``parse_date`` tries,
in order:

  1. native ``datetime`` / ``date`` values (pandas ``Timestamp`` included)
  2. Excel serial day counts (ints, integral floats, pure-digit strings)
  3. slash-separated strings -- DD/MM/YYYY, or YYYY/MM/DD when the first part
     has four digits.  Ambiguous inputs such as ``03/04/2016`` always read as
     3 April 2016; impossible day/month combinations are rejected rather than
     swapped.
  4. dash-separated strings -- ISO style (``2016-01-20``, ``2016-01-20T10:00``)
  5. anything else ``dateutil`` understands (day-first); the year must be
     present, a missing month or day reads as 1

Every branch returns ``None`` instead of raising when the value is not a date.
"""
from __future__ import annotations

import datetime as dt
import math
import re
from typing import Any

from dateutil import parser as date_parser

# Excel's day zero (accounts for the 1900 leap-year bug)
EXCEL_EPOCH = dt.date(1899, 12, 30)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")
_DIGITS_RE = re.compile(r"^[0-9]+$")
_YEAR_FIRST_RE = re.compile(r"^([0-9]{4})/([0-9]{1,2})/([0-9]{1,2})$")
_DAY_FIRST_RE = re.compile(r"^([0-9]{1,2})/([0-9]{1,2})/([0-9]{4}|[0-9]{2})$")

# Two fixed defaults, differing only in year
_PARSE_DEFAULTS = (dt.datetime(2000, 1, 1), dt.datetime(2001, 1, 1))


def _from_serial(days: int) -> dt.date | None:
    try:
        return EXCEL_EPOCH + dt.timedelta(days=days)
    except OverflowError:
        return None


def _from_slashes(text: str) -> dt.date | None:
    m = _YEAR_FIRST_RE.match(text)
    if m:
        year, month, day = (int(p) for p in m.groups())
    else:
        m = _DAY_FIRST_RE.match(text)
        if not m:
            return None
        day, month, year = (int(p) for p in m.groups())
        if len(m.group(3)) == 2:
            year += 2000

    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def _dateutil_parse(text: str, **kwargs: Any) -> dt.date | None:
    """Parse with dateutil; a missing day or month defaults to 1.

    A value without a year (``"March"``) is rejected: it is parsed against two
    default years and only accepted when both agree.
    """
    try:
        first, second = (
            date_parser.parse(text, default=default, **kwargs).date()
            for default in _PARSE_DEFAULTS
        )
    except (ValueError, OverflowError):
        return None
    return first if first == second else None


def _from_iso(text: str) -> dt.date | None:
    try:
        return dt.datetime.fromisoformat(text).date()
    except ValueError:
        pass
    return _dateutil_parse(text, yearfirst=True, dayfirst=False)


def _from_generic(text: str) -> dt.date | None:
    return _dateutil_parse(text, dayfirst=True)


def parse_date(value: Any) -> dt.date | None:
    """Normalise *value* to a calendar date, or ``None`` when it isn't one."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value

    if isinstance(value, int):
        return _from_serial(value)
    if isinstance(value, float):
        if math.isnan(value) or not value.is_integer():
            return None
        return _from_serial(int(value))

    text = str(value).strip()
    if not text:
        return None

    if _DIGITS_RE.match(text):
        return _from_serial(int(text))
    if "/" in text:
        return _from_slashes(text)
    if "-" in text:
        return _from_iso(text)
    return _from_generic(text)


def compare_dates(left: dt.date | None, right: dt.date | None, operator: str) -> bool:
    """Compare two normalised dates at day granularity.

    Unparsed operands and unknown operators never match.
    """
    if left is None or right is None:
        return False
    if operator == "=":
        return left == right
    if operator == ">":
        return left > right
    if operator == "<":
        return left < right
    if operator == ">=":
        return left >= right
    if operator == "<=":
        return left <= right
    return False


def month_key(value: dt.date) -> str:
    """Bucket key for the calendar month containing *value*: ``YYYY-MM``."""
    return f"{value.year:04d}-{value.month:02d}"


def is_month_key(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    m = _MONTH_KEY_RE.match(key)
    return bool(m) and 1 <= int(m.group(2)) <= 12


def render_month_key(key: str) -> str:
    """``2016-01`` -> ``January 2016``.  Non month keys pass through."""
    if not is_month_key(key):
        return key
    year, month = key.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year}"


def to_iso(value: Any) -> str | None:
    """ISO ``YYYY-MM-DD`` form of *value*, used when binding date filters."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None
