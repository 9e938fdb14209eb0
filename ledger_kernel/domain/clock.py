"""
Clock -- Deterministic time abstraction and canonical-zone formatting.

Responsibility:
    Provides an injectable clock interface so that domain and service code
    never call ``datetime.now()`` directly, and ClockService, which renders
    "now" and "today" as strings pinned to one civil time zone.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Invariants enforced:
    - Timestamps never depend on the host's local zone.  Every device in a
      deployment renders the same instant to the same string.
    - Format: ``YYYY-MM-DDTHH:mm:ss.000`` (second resolution, literal
      ``.000``, no offset suffix) and ``YYYY-MM-DD`` for dates.  Callers
      must not read these strings as UTC.

Failure modes:
    - ZoneInfoNotFoundError if the configured zone is unknown.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Beirut"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.000"
DATE_FORMAT = "%Y-%m-%d"


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock that returns actual system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until ``advance()``
          or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()


class ClockService:
    """
    Renders wall-clock time in the canonical zone.

    Contract:
        Both operations read the injected Clock on every call.  Nothing is
        cached beyond the zone itself.
    """

    def __init__(self, clock: Clock | None = None, tz_name: str = DEFAULT_TIMEZONE):
        self._clock = clock or SystemClock()
        self._zone = ZoneInfo(tz_name)

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def local_now(self) -> datetime:
        """Current time converted into the canonical zone."""
        return self._clock.now().astimezone(self._zone)

    def now(self) -> str:
        """Timestamp string ``YYYY-MM-DDTHH:mm:ss.000`` in the canonical zone."""
        return self.local_now().strftime(TIMESTAMP_FORMAT)

    def today(self) -> str:
        """Calendar date ``YYYY-MM-DD`` in the canonical zone."""
        return self.local_now().strftime(DATE_FORMAT)


def previous_day(business_date: str) -> str:
    """Calendar date immediately before ``business_date``."""
    parsed = datetime.strptime(business_date, DATE_FORMAT)
    return (parsed - timedelta(days=1)).strftime(DATE_FORMAT)


def validate_business_date(business_date: str) -> str:
    """
    Check that ``business_date`` is a real ``YYYY-MM-DD`` calendar date.

    Raises:
        ValueError: on any other shape.
    """
    if not isinstance(business_date, str) or len(business_date) != 10:
        raise ValueError(f"Business date must be YYYY-MM-DD, got {business_date!r}")
    datetime.strptime(business_date, DATE_FORMAT)
    return business_date
