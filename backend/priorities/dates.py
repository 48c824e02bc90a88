"""
Day-granularity date handling for task classification.

Every ordering pass captures "now" exactly once in a ``DateContext`` and
threads it through all comparisons, so a pass over many tasks sees one
consistent today/tomorrow even if the wall clock moves on meanwhile.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

from django.utils.dateparse import parse_date, parse_datetime

from .errors import MalformedDate


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateContext:
    """Reference days for one ordering pass."""
    today: date
    tomorrow: date
    day_after_tomorrow: date

    def to_dict(self) -> dict:
        return {
            'today': self.today.isoformat(),
            'tomorrow': self.tomorrow.isoformat(),
            'day_after_tomorrow': self.day_after_tomorrow.isoformat(),
        }


def date_context_for(day: date) -> DateContext:
    """Build a context anchored on an explicit calendar day."""
    if isinstance(day, datetime):
        day = day.date()
    return DateContext(
        today=day,
        tomorrow=day + timedelta(days=1),
        day_after_tomorrow=day + timedelta(days=2),
    )


def create_date_context(now: Optional[datetime] = None) -> DateContext:
    """
    Capture the current instant once and derive the reference days from it.

    Args:
        now: Instant to use instead of the wall clock.
    """
    if now is None:
        now = datetime.now()
    return date_context_for(now.date())


def normalize_date(value: Any) -> date:
    """
    Reduce a date-like input to its calendar day.

    Accepts ``date`` and ``datetime`` values and ISO 8601 strings (plain dates,
    or datetimes with an optional offset). A datetime keeps the calendar fields
    it carries; no timezone conversion happens. Two inputs naming the same day
    normalize to equal values.

    Raises:
        MalformedDate: if the input cannot be parsed.

    >>> normalize_date('2025-06-15T23:30:00+02:00')
    datetime.date(2025, 6, 15)
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return date(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        try:
            parsed_date = parse_date(text)
            if parsed_date is not None:
                return parsed_date
            parsed = parse_datetime(text)
        except ValueError as exc:
            raise MalformedDate(f"Invalid date: {value!r}") from exc
        if parsed is not None:
            return parsed.date()
    raise MalformedDate(f"Invalid date: {value!r}")


def safe_normalize_date(value: Any) -> Optional[date]:
    """Like ``normalize_date`` but returns None for empty or malformed input."""
    if value is None or value == '':
        return None
    try:
        return normalize_date(value)
    except MalformedDate:
        logger.warning("Ignoring malformed date %r; treating it as absent", value)
        return None


def is_date_urgent(value: Any, context: DateContext) -> bool:
    """True when the date falls before the day after tomorrow."""
    try:
        return normalize_date(value) < context.day_after_tomorrow
    except MalformedDate:
        logger.warning("Ignoring malformed date %r in urgency check", value)
        return False
