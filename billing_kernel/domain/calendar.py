"""
BusinessCalendar -- business-timezone date derivation.

Responsibility:
    Converts absolute instants (UTC-aware datetimes, the only way dates are
    persisted) into business-local calendar dates and back.  Day-of-month
    comparisons in the sweep, period guard and follow-up engine all go
    through one calendar so that the host machine's local zone never leaks
    into billing decisions.

Architecture position:
    Kernel > Domain.  Pure apart from reading the injected Clock.

Failure modes:
    - ZoneInfoNotFoundError if the configured timezone name is unknown.
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from billing_kernel.domain.clock import Clock

DEFAULT_BUSINESS_TIMEZONE = "Asia/Manila"


class BusinessCalendar:
    """Date arithmetic anchored to a named business timezone."""

    def __init__(self, timezone_name: str = DEFAULT_BUSINESS_TIMEZONE):
        self._timezone_name = timezone_name
        self._zone = ZoneInfo(timezone_name)

    @property
    def timezone_name(self) -> str:
        return self._timezone_name

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def today(self, clock: Clock) -> date:
        """Business-local date for the clock's current instant."""
        return self.to_local_date(clock.now())

    def to_local_date(self, instant: datetime) -> date:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self._zone).date()

    def start_of_day(self, day: date) -> datetime:
        """UTC instant of local midnight on ``day``."""
        local = datetime.combine(day, time.min, tzinfo=self._zone)
        return local.astimezone(timezone.utc)

    def __repr__(self) -> str:
        return f"<BusinessCalendar {self._timezone_name}>"
