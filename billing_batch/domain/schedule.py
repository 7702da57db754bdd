"""
Pure cron evaluation for the sweep scheduler.

Contract:
    ``parse_cron(expression)`` and ``next_fire_time(expression,
    timezone_name, now)`` are PURE -- no I/O, no clock reads.  The caller
    supplies ``now``.

Architecture: billing_batch/domain.  ZERO I/O.

Cron fields are matched against wall-clock time in the named zone and
the result is returned in UTC.  Day-of-month and day-of-week must both
match.  Wall-clock times that do not exist in the zone (DST gaps) are
skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Long enough to reach the next Feb 29 under any weekday restriction.
_MAX_SEARCH_DAYS = 366 * 29


# =============================================================================
# CronSpec (lightweight cron parser)
# =============================================================================


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression (minute hour day_of_month month day_of_week).

    Each field is a frozenset of valid integer values.
    Supports: *, values, lists, ranges (1-5), steps (*/5, 1-10/2).
    """

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))

    def matches_day(self, day: date) -> bool:
        # cron weekday 0=Sunday; date.weekday() 0=Monday
        cron_dow = (day.weekday() + 1) % 7
        return (
            day.day in self.days_of_month
            and day.month in self.months
            and cron_dow in self.days_of_week
        )


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse a single cron field into a frozenset of valid values.

    Raises:
        ValueError: If the field is syntactically invalid or values out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()

        if "/" in part:
            range_part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

            if range_part == "*":
                start, end = min_val, max_val
            elif "-" in range_part:
                s, e = range_part.split("-", 1)
                start, end = int(s), int(e)
            else:
                start = int(range_part)
                end = max_val

            values.update(v for v in range(start, end + 1, step) if min_val <= v <= max_val)

        elif part == "*":
            values.update(range(min_val, max_val + 1))

        elif "-" in part:
            s, e = part.split("-", 1)
            start, end = int(s), int(e)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
            values.update(v for v in range(start, end + 1) if min_val <= v <= max_val)

        else:
            v = int(part)
            if v < min_val or v > max_val:
                raise ValueError(f"Value {v} outside range [{min_val}, {max_val}]")
            values.add(v)

    if not values:
        raise ValueError(f"Cron field matches nothing: '{field_str}'")
    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5-field cron expression into a CronSpec.

    Format: ``minute hour day_of_month month day_of_week``

    Raises:
        ValueError: If expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise ValueError(
            f"Cron expression must have 5 fields, got {len(parts)}: '{expression}'"
        )

    return CronSpec(
        minutes=_parse_cron_field(parts[0], 0, 59),
        hours=_parse_cron_field(parts[1], 0, 23),
        days_of_month=_parse_cron_field(parts[2], 1, 31),
        months=_parse_cron_field(parts[3], 1, 12),
        days_of_week=_parse_cron_field(parts[4], 0, 6),
    )


# =============================================================================
# Next fire time (pure)
# =============================================================================


def _zone(timezone_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: '{timezone_name}'") from exc


def _exists(local: datetime) -> bool:
    """False for wall-clock times skipped by a DST transition."""
    round_trip = local.astimezone(timezone.utc).astimezone(local.tzinfo)
    return round_trip.replace(tzinfo=None) == local.replace(tzinfo=None)


def next_fire_time(cron_expression: str, timezone_name: str, now: datetime) -> datetime:
    """First instant strictly after ``now`` matching the expression in ``timezone_name``.

    ``now`` is treated as UTC when naive.  The result is UTC-aware.

    Raises:
        ValueError: Malformed expression, unknown zone, or no match within
            the search horizon.
    """
    spec = parse_cron(cron_expression)
    zone = _zone(timezone_name)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    hours = sorted(spec.hours)
    minutes = sorted(spec.minutes)
    day = now.astimezone(zone).date()

    for _ in range(_MAX_SEARCH_DAYS):
        if spec.matches_day(day):
            for hour in hours:
                for minute in minutes:
                    local = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)
                    if not _exists(local):
                        continue
                    candidate = local.astimezone(timezone.utc)
                    if candidate > now:
                        return candidate
        day += timedelta(days=1)

    raise ValueError(f"No cron match for '{cron_expression}' after {now.isoformat()}")
