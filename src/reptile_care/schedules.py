"""Recordatorios por intervalo: alimentacion, calcio y vitamina D3."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from dateutil import tz

from reptile_care.model import CareLogEvent, CareLogType, ScheduleRisk
from reptile_care.storage import CareStore, ensure_aware
from reptile_care.targets import resolve_target

logger = logging.getLogger(__name__)

D3_SUBTYPE = "calcium_d3"

_HOUR = timedelta(hours=1)
_DAY = timedelta(days=1)


@dataclass(frozen=True)
class FeedingScheduleResult:
    """Feeding reminder.

    ``should_warn`` is always True: once the species has a feeding interval the
    reminder card is always shown; only its tier changes.
    """

    pet_id: str
    feeding_interval_min_hours: float | None
    feeding_interval_max_hours: float | None
    last_feed_at: datetime | None
    hours_since_last_feed: float | None
    hours_remaining_until_due: float | None
    next_feed_window_start: datetime | None
    next_feed_window_end: datetime | None
    risk: ScheduleRisk
    should_warn: bool = True


@dataclass(frozen=True)
class CalciumScheduleResult:
    """Calcium dusting reminder, counted in meals."""

    pet_id: str
    calcium_every_meals: int
    last_calcium_at: datetime | None
    meals_since_last_calcium: int | None
    meals_remaining_until_next: int | None
    risk: ScheduleRisk
    should_warn: bool = True


@dataclass(frozen=True)
class VitaminD3ScheduleResult:
    """Vitamin D3 reminder, counted in days."""

    pet_id: str
    vitamin_interval_min_days: float | None
    vitamin_interval_max_days: float | None
    last_vitamin_at: datetime | None
    days_since_last_vitamin: float | None
    days_remaining_until_due: float | None
    next_vitamin_window_start: datetime | None
    next_vitamin_window_end: datetime | None
    risk: ScheduleRisk
    should_warn: bool = True


def _resolve_now(now: datetime | None) -> datetime:
    return ensure_aware(now) if now is not None else datetime.now(tz=tz.UTC)


def _classify_elapsed(
    elapsed: float, bound: float | None
) -> tuple[ScheduleRisk, float | None]:
    """Overdue once ``elapsed`` exceeds ``bound``; else due soon with a countdown."""
    if bound is None:
        return ScheduleRisk.DUE_SOON, None
    if elapsed > bound:
        return ScheduleRisk.OVERDUE, None
    return ScheduleRisk.DUE_SOON, max(0.0, bound - elapsed)


def _shift(base: datetime | None, amount: float | None, unit: timedelta) -> datetime | None:
    if base is None or amount is None:
        return None
    return base + unit * amount


def evaluate_feeding_schedule(
    store: CareStore, pet_id: str, now: datetime | None = None
) -> FeedingScheduleResult | None:
    """Evaluate the feeding reminder of a pet.

    Without any ``feed`` event the pet is ``due_soon`` with no countdown; it is
    ``overdue`` once the hours since the last meal exceed the max interval.

    Args:
        store: Care data store.
        pet_id: Pet identifier.
        now: Evaluation instant (defaults to the current UTC time).

    Returns:
        The schedule, or None when no feeding interval is configured.
    """
    target = resolve_target(store, pet_id)
    if target is None:
        return None

    min_h = target.feeding_interval_hours_min
    max_h = target.feeding_interval_hours_max
    if min_h is None and max_h is None:
        return None

    now = _resolve_now(now)
    last = store.latest_event(pet_id, CareLogType.FEED)

    last_at: datetime | None = None
    hours_since: float | None = None
    risk = ScheduleRisk.DUE_SOON
    remaining: float | None = None
    if last is not None:
        last_at = last.at
        hours_since = (now - last_at) / _HOUR
        risk, remaining = _classify_elapsed(hours_since, max_h)

    result = FeedingScheduleResult(
        pet_id=pet_id,
        feeding_interval_min_hours=min_h,
        feeding_interval_max_hours=max_h,
        last_feed_at=last_at,
        hours_since_last_feed=hours_since,
        hours_remaining_until_due=remaining,
        next_feed_window_start=_shift(last_at, min_h, _HOUR),
        next_feed_window_end=_shift(last_at, max_h, _HOUR),
        risk=risk,
    )
    logger.debug("Feeding schedule for %s: %s", pet_id, result)
    return result


def _last_of_type(
    events: list[CareLogEvent], log_type: CareLogType
) -> CareLogEvent | None:
    for event in reversed(events):
        if event.type is log_type:
            return event
    return None


def evaluate_calcium_schedule(
    store: CareStore, pet_id: str, now: datetime | None = None
) -> CalciumScheduleResult | None:
    """Evaluate the calcium reminder, measured in meals since the last dusting.

    With N = ``calcium_every_meals`` and M = ``feed`` events strictly after the
    last ``calcium`` event:

    - no calcium event at all: overdue
    - M >= N: overdue
    - M < N: due soon, N - M meals remaining
    """
    target = resolve_target(store, pet_id)
    if target is None:
        return None

    every = target.calcium_every_meals
    if every is None or every <= 0:
        logger.debug("No calcium_every_meals for %s", pet_id)
        return None

    now = _resolve_now(now)
    logs = store.list_events(
        pet_id, [CareLogType.FEED, CareLogType.CALCIUM], end=now
    )
    last_calcium = _last_of_type(logs, CareLogType.CALCIUM)

    if last_calcium is None:
        result = CalciumScheduleResult(
            pet_id=pet_id,
            calcium_every_meals=every,
            last_calcium_at=None,
            meals_since_last_calcium=None,
            meals_remaining_until_next=None,
            risk=ScheduleRisk.OVERDUE,
        )
        logger.debug("Calcium schedule for %s: %s", pet_id, result)
        return result

    meals = sum(
        1
        for log in logs
        if log.type is CareLogType.FEED and log.at > last_calcium.at
    )
    if meals >= every:
        risk = ScheduleRisk.OVERDUE
        remaining = None
    else:
        risk = ScheduleRisk.DUE_SOON
        remaining = max(every - meals, 0)

    result = CalciumScheduleResult(
        pet_id=pet_id,
        calcium_every_meals=every,
        last_calcium_at=last_calcium.at,
        meals_since_last_calcium=meals,
        meals_remaining_until_next=remaining,
        risk=risk,
    )
    logger.debug("Calcium schedule for %s: %s", pet_id, result)
    return result


def is_d3_event(event: CareLogEvent) -> bool:
    """Vitamin events and D3-fortified calcium both count as D3 supplementation."""
    if event.type is CareLogType.VITAMIN:
        return True
    return event.type is CareLogType.CALCIUM and event.subtype == D3_SUBTYPE


def evaluate_vitamin_d3_schedule(
    store: CareStore, pet_id: str, now: datetime | None = None
) -> VitaminD3ScheduleResult | None:
    """Evaluate the vitamin D3 reminder, measured in days.

    Without any D3 supplementation on record the pet is overdue.
    """
    target = resolve_target(store, pet_id)
    if target is None:
        return None

    min_days = target.vitamin_d3_interval_days_min
    max_days = target.vitamin_d3_interval_days_max
    if min_days is None and max_days is None:
        return None

    now = _resolve_now(now)
    logs = store.list_events(
        pet_id, [CareLogType.VITAMIN, CareLogType.CALCIUM], end=now
    )
    d3_logs = [log for log in logs if is_d3_event(log)]
    last = d3_logs[-1] if d3_logs else None

    last_at: datetime | None = None
    days_since: float | None = None
    remaining: float | None = None
    if last is None:
        risk = ScheduleRisk.OVERDUE
    else:
        last_at = last.at
        days_since = (now - last_at) / _DAY
        risk, remaining = _classify_elapsed(days_since, max_days)

    result = VitaminD3ScheduleResult(
        pet_id=pet_id,
        vitamin_interval_min_days=min_days,
        vitamin_interval_max_days=max_days,
        last_vitamin_at=last_at,
        days_since_last_vitamin=days_since,
        days_remaining_until_due=remaining,
        next_vitamin_window_start=_shift(last_at, min_days, _DAY),
        next_vitamin_window_end=_shift(last_at, max_days, _DAY),
        risk=risk,
    )
    logger.debug("Vitamin D3 schedule for %s: %s", pet_id, result)
    return result
