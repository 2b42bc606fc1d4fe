"""Rangos semanales [inicio, fin) para los reportes de cumplimiento."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo

from dateutil import parser as date_parser
from dateutil import tz


def week_range_containing(
    day: datetime | date | str,
    week_starts_on: int = 0,
    tzinfo: tzinfo | None = None,
) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` range of the week containing ``day``.

    Args:
        day: Any instant/date in the week (ISO string accepted).
        week_starts_on: First weekday, 0 = Monday ... 6 = Sunday.
        tzinfo: Zone whose midnight starts the week (defaults to local time).

    Returns:
        Tuple ``(start, end)`` with ``end = start + 7 days``.

    Raises:
        ValueError: If ``day`` is an unparseable string or the weekday is invalid.
    """
    if not 0 <= week_starts_on <= 6:
        raise ValueError(f"Invalid week start: {week_starts_on}")
    zone = tzinfo or tz.tzlocal()
    local_day = _to_local_date(day, zone)
    diff = (local_day.weekday() - week_starts_on) % 7
    start_day = local_day - timedelta(days=diff)
    start = datetime.combine(start_day, time.min).replace(tzinfo=zone)
    end = datetime.combine(start_day + timedelta(days=7), time.min).replace(
        tzinfo=zone
    )
    return start, end


def this_week_range(
    week_starts_on: int = 0, tzinfo: tzinfo | None = None
) -> tuple[datetime, datetime]:
    """Week range containing the current instant."""
    zone = tzinfo or tz.tzlocal()
    return week_range_containing(datetime.now(tz=zone), week_starts_on, zone)


def window_days(start: datetime, end: datetime) -> float:
    """Length of ``[start, end)`` in days (never negative)."""
    return max(0.0, (end - start) / timedelta(days=1))


def _to_local_date(day: datetime | date | str, zone: tzinfo) -> date:
    if isinstance(day, str):
        try:
            day = date_parser.isoparse(day)
        except (ValueError, OverflowError) as exc:
            raise ValueError(f"Invalid date ISO: {day}") from exc
    if isinstance(day, datetime):
        if day.tzinfo is None:
            return day.date()
        return day.astimezone(zone).date()
    return day
