"""Review acceptance window.

All timestamps here are whole unix seconds, not milliseconds. Thresholds that
were persisted by earlier runs are compared in seconds, so the unit must not
change.

Two window checks exist and are kept apart on purpose:

* ``is_within_window`` (strict, ``>``) is used by ``keep_recent_reviews`` to
  decide which fetched reviews get merged into a product. A review on the
  threshold day itself is treated as already scraped.
* ``is_within_window_inclusive`` (``>=``) is used by ``should_fetch_more`` so
  the fetch layer keeps paging through the boundary day.
"""

import calendar
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
import math

from scrapeledger.schemas import Review


DATE_FORMAT = "%Y-%m-%d"
DEFAULT_DAYS_BACK = 7


class ParseError(ValueError):
    pass


def start_of_day(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def to_seconds(value: datetime) -> int:
    return math.floor(value.timestamp())


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    # Clamp to the last day of the target month.
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def threshold_start(days_back: int = DEFAULT_DAYS_BACK, months_back: int | None = None, *, now: datetime | None = None) -> datetime:
    today = start_of_day(now or datetime.now())
    if months_back:
        return start_of_day(add_months(today, -months_back))
    return start_of_day(today - timedelta(days=days_back))


def compute_threshold(days_back: int = DEFAULT_DAYS_BACK, months_back: int | None = None, *, now: datetime | None = None) -> int:
    """Return the minimum review timestamp in seconds; ``months_back`` wins over ``days_back``."""
    return to_seconds(threshold_start(days_back, months_back, now=now))


def threshold_date_string(days_back: int = DEFAULT_DAYS_BACK, months_back: int | None = None, *, now: datetime | None = None) -> str:
    return format_date(threshold_start(days_back, months_back, now=now))


def format_date(value: date | None = None) -> str:
    return (value or datetime.now()).strftime(DATE_FORMAT)


def parse_date_string(text: str) -> int:
    """Parse a short ``YYYY-MM-DD`` date or an ISO-8601 value into seconds."""
    if not isinstance(text, str):
        raise ParseError(f"date must be a string, got {type(text).__name__}")

    try:
        return to_seconds(datetime.strptime(text, DATE_FORMAT))
    except ValueError:
        pass

    try:
        return to_seconds(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ParseError(f"unsupported date format: {text!r}") from exc


def _day_start_seconds(value: str | date | None) -> int | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None
    return to_seconds(start_of_day(parsed))


def is_within_window(review_date: str | date | None, threshold: int) -> bool:
    day_start = _day_start_seconds(review_date)
    if day_start is None:
        return False
    return day_start > threshold


def is_within_window_inclusive(review_date: str | date | None, threshold: int) -> bool:
    day_start = _day_start_seconds(review_date)
    if day_start is None:
        return False
    return day_start >= threshold


def keep_recent_reviews(reviews: Iterable[Review], threshold: int) -> list[Review]:
    return [review for review in reviews if is_within_window(review.get("reviewDateISO"), threshold)]


def should_fetch_more(oldest_review_date: str | date | None, threshold: int) -> bool:
    return is_within_window_inclusive(oldest_review_date, threshold)
