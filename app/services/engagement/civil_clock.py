"""Civil calendar clock.

Every engagement date is a civil date (no time of day, no UTC offset) in one
fixed reference timezone. "Today" is read from the wall clock in that zone,
never from the caller's locale, so a request from London and one from
Los Angeles agree on which contacts are due.

Civil dates are ``datetime.date`` values in Python and ``YYYY-MM-DD`` strings
on the wire. Every function here accepts either form.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo

CivilDateLike = date | str

_CIVIL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Date-only values are pinned to this time of day before subtracting
_NORMALIZE_TIME = time(12, 0)

DISPLAY_FORMAT = "%a, %b %d, %Y"

LABEL_TODAY = "Today"
LABEL_TOMORROW = "Tomorrow"
LABEL_YESTERDAY = "Yesterday"


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; aware values are returned unchanged.

    Backends without timezone support (SQLite) hand back naive timestamps
    that were written as UTC.
    """
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def parse_civil_date(value: CivilDateLike) -> date:
    """Return ``value`` as a date. Strings must be exactly ``YYYY-MM-DD``.

    Raises:
        ValueError: malformed string or unsupported type.
    """
    if isinstance(value, datetime):
        raise ValueError("Expected a civil date, got a timestamp; use civil_date_of()")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not _CIVIL_DATE_RE.match(text):
            raise ValueError(f"Invalid civil date {value!r}: expected YYYY-MM-DD")
        return date.fromisoformat(text)
    raise ValueError(f"Invalid civil date {value!r}")


def to_civil_string(value: CivilDateLike) -> str:
    """Return the canonical ``YYYY-MM-DD`` form."""
    return parse_civil_date(value).isoformat()


def day_diff(from_date: CivilDateLike, to_date: CivilDateLike) -> int:
    """Calendar days from ``from_date`` to ``to_date`` (negative if earlier).

    Both dates are pinned to noon UTC before subtracting so the result never
    depends on a DST transition between them.
    """
    start = datetime.combine(parse_civil_date(from_date), _NORMALIZE_TIME, tzinfo=UTC)
    end = datetime.combine(parse_civil_date(to_date), _NORMALIZE_TIME, tzinfo=UTC)
    return round((end - start) / timedelta(days=1))


def add_days(value: CivilDateLike, days: int) -> date:
    """Return the civil date ``days`` calendar days after ``value``."""
    return parse_civil_date(value) + timedelta(days=days)


def format_for_display(value: CivilDateLike) -> str:
    """Human-readable civil date, e.g. ``Mon, Feb 26, 2024``."""
    return parse_civil_date(value).strftime(DISPLAY_FORMAT)


def relative_label(today: CivilDateLike, value: CivilDateLike) -> str:
    """``Today`` / ``Tomorrow`` / ``Yesterday`` near ``today``, else the display date."""
    diff = day_diff(today, value)
    if diff == 0:
        return LABEL_TODAY
    if diff == 1:
        return LABEL_TOMORROW
    if diff == -1:
        return LABEL_YESTERDAY
    return format_for_display(value)


class CivilClock:
    """Wall clock bound to a reference timezone.

    ``now`` is injectable so tests can pin "today" instead of depending on
    the host clock. It must return an aware datetime.
    """

    def __init__(
        self,
        timezone: str | ZoneInfo = "America/New_York",
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.tz = timezone if isinstance(timezone, ZoneInfo) else ZoneInfo(timezone)
        self._now = now or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        """Current instant expressed in the reference timezone."""
        return as_utc(self._now()).astimezone(self.tz)

    def today(self) -> date:
        """Current civil date in the reference timezone."""
        return self.now().date()

    def civil_date_of(self, instant: datetime) -> date:
        """Civil date of ``instant`` in the reference timezone.

        Naive datetimes are treated as UTC (see ``as_utc``).
        """
        return as_utc(instant).astimezone(self.tz).date()

    def relative_label(self, value: CivilDateLike, today: CivilDateLike | None = None) -> str:
        return relative_label(today if today is not None else self.today(), value)


@lru_cache(maxsize=1)
def get_clock() -> CivilClock:
    """Process-wide clock in the configured reference timezone."""
    from app.config import get_settings

    return CivilClock(get_settings().reference_timezone)
