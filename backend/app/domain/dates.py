"""Calendar helpers for the DD-MM-YYYY result date format."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from app.errors import InvalidValue

RESULT_DATE_FORMAT = "%d-%m-%Y"
_RESULT_DATE_PATTERN = re.compile(r"^\d{2}-\d{2}-\d{4}$")


def parse_result_date(value: str) -> date:
    if not isinstance(value, str) or not _RESULT_DATE_PATTERN.match(value):
        raise InvalidValue(f"Date must be in DD-MM-YYYY format, got {value!r}")
    try:
        return datetime.strptime(value, RESULT_DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidValue(f"Not a calendar date: {value!r}") from exc


def format_result_date(value: date) -> str:
    return value.strftime(RESULT_DATE_FORMAT)


def local_date(moment: datetime, tz: tzinfo | None = None) -> date:
    """Truncate a timestamp to the calendar date observed in ``tz``.

    Naive timestamps are stored in UTC, so they are only shifted when a zone
    is requested.
    """

    if tz is None:
        return moment.date()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def day_bounds(target: date, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Return the UTC [start, end) window covering ``target`` in ``tz``."""

    start = datetime.combine(target, time.min, tzinfo=tz or timezone.utc)
    start = start.astimezone(timezone.utc)
    return start, start + timedelta(days=1)
