"""
Cron expressions for the sync schedule.

Standard 5-field crontab syntax (minute, hour, day of month, month, day of
week). Each field accepts ``*``, ``n``, ``a-b``, lists joined with ``,`` and a
``/step`` suffix on any of them; ``a/step`` runs from ``a`` to the field
maximum. Day of week is 0-6 with Sunday as 0, and 7 is accepted as Sunday too.

When both day of month and day of week are restricted, a day matches if either
one does, as in traditional cron. The default schedule, ``0 12,17 * * *``,
fires every day at 12:00 and 17:00.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from blobmirror.exceptions import SchedulerError

# Upper bound on how far ahead to look for a match (covers leap years)
_SEARCH_DAYS = 370

# (name, lowest, highest) per field, in expression order
_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day of month", 1, 31),
    ("month", 1, 12),
    ("day of week", 0, 6),
)


class CronParseError(SchedulerError, ValueError):
    """Raised for malformed cron expressions, unknown timezones and unsatisfiable schedules."""


@dataclass(frozen=True)
class CronSpec:
    """A parsed cron expression bound to the timezone it is evaluated in."""

    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]  # 0 = Sunday
    days_restricted: bool
    weekdays_restricted: bool
    tz: ZoneInfo

    def matches_day(self, dt: datetime) -> bool:
        day_ok = dt.day in self.days
        # datetime.weekday() has Monday = 0
        weekday_ok = (dt.weekday() + 1) % 7 in self.weekdays
        if self.days_restricted and self.weekdays_restricted:
            return day_ok or weekday_ok
        return day_ok and weekday_ok


def _zone(timezone: str | None) -> ZoneInfo | None:
    if not timezone:
        return None
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise CronParseError(f"unknown timezone: {timezone!r}") from e


def validate_cron(expr: str, *, timezone: str | None = None) -> CronSpec:
    """
    Parse a cron expression without computing a fire time.

    Raises:
        CronParseError: If the expression or timezone is invalid
    """
    return _parse_cron(expr, tz=_zone(timezone) or ZoneInfo("UTC"))


def next_fire_time_cron(expr: str, *, now: datetime, timezone: str | None = None) -> datetime:
    """
    Compute the next time a cron expression fires.

    Args:
        expr: Cron expression (e.g. "0 12,17 * * *" for 12:00 and 17:00 daily)
        now: Reference point; naive values are taken to be in ``timezone``
        timezone: Timezone name the expression is evaluated in (e.g. "Europe/Amsterdam").
            Defaults to the timezone of ``now``, or UTC.

    Returns:
        First matching minute strictly after ``now``, in the evaluation timezone

    Raises:
        CronParseError: If the expression is invalid or never fires within a year
    """
    tz = _zone(timezone) or now.tzinfo or ZoneInfo("UTC")
    now = now.replace(tzinfo=tz) if now.tzinfo is None else now.astimezone(tz)
    spec = _parse_cron(expr, tz=tz)  # type: ignore[arg-type]

    first_candidate = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
    return _next_match(spec, first_candidate)


def _next_match(spec: CronSpec, start: datetime) -> datetime:
    deadline = start + timedelta(days=_SEARCH_DAYS)
    cur = start
    while cur <= deadline:
        if cur.month not in spec.months:
            cur = _next_month_start(cur)
        elif not spec.matches_day(cur):
            cur = (cur + timedelta(days=1)).replace(hour=0, minute=0)
        elif cur.hour not in spec.hours:
            cur = (cur + timedelta(hours=1)).replace(minute=0)
        elif cur.minute not in spec.minutes:
            cur += timedelta(minutes=1)
        else:
            return cur
    raise CronParseError(f"cron expression never fires within {_SEARCH_DAYS} days (no next fire time)")


def _next_month_start(dt: datetime) -> datetime:
    if dt.month == 12:
        return dt.replace(year=dt.year + 1, month=1, day=1, hour=0, minute=0)
    return dt.replace(month=dt.month + 1, day=1, hour=0, minute=0)


def _parse_cron(expr: str, *, tz: ZoneInfo) -> CronSpec:
    fields = expr.split()
    if len(fields) != len(_FIELDS):
        raise CronParseError(f"cron must have 5 fields, got {len(fields)}: {expr!r}")

    minutes, hours, days, months, weekdays = (
        _expand(token, name, low, high) for token, (name, low, high) in zip(fields, _FIELDS)
    )
    return CronSpec(
        minutes=minutes,
        hours=hours,
        days=days,
        months=months,
        weekdays=weekdays,
        days_restricted=fields[2] != "*",
        weekdays_restricted=fields[4] != "*",
        tz=tz,
    )


def _expand(token: str, name: str, low: int, high: int) -> frozenset[int]:
    """Expand one cron field into the set of values it allows."""
    is_weekday = name == "day of week"
    # 7 is an alias for Sunday; accept it in values and range ends, fold it to 0 afterwards
    ceiling = 7 if is_weekday else high

    values: set[int] = set()
    for item in token.split(","):
        if not item:
            raise CronParseError(f"empty list item in {name} field: {token!r}")

        body, _, step_text = item.partition("/")
        step = 1
        if step_text:
            if not step_text.isdigit() or int(step_text) == 0:
                raise CronParseError(f"invalid step in {name} field: {token!r}")
            step = int(step_text)

        if body == "*":
            start, end = low, high
        elif "-" in body:
            start_text, end_text = body.split("-", 1)
            if not (start_text.isdigit() and end_text.isdigit()):
                raise CronParseError(f"invalid range in {name} field: {token!r}")
            start, end = int(start_text), int(end_text)
            if start > end:
                raise CronParseError(f"range start > end in {name} field: {token!r}")
        elif body.isdigit():
            start = int(body)
            end = high if step_text else start
        else:
            raise CronParseError(f"invalid value in {name} field: {token!r}")

        if start < low or end > ceiling:
            raise CronParseError(f"{name} out of bounds ({low}-{high}): {token!r}")
        values.update(range(start, end + 1, step))

    if not values:
        raise CronParseError(f"{name} field matches nothing: {token!r}")
    if is_weekday and 7 in values:
        values.discard(7)
        values.add(0)
    return frozenset(values)
