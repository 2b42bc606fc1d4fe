"""Reporte de cumplimiento semanal: UVB, suplementos, dieta y temperaturas."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo

from reptile_care.model import CareLogEvent, CareLogType, SpeciesTarget
from reptile_care.schedules import D3_SUBTYPE
from reptile_care.storage import CareStore, ensure_aware
from reptile_care.summary import clipped_hours, events_to_frame, uvb_intervals
from reptile_care.targets import resolve_target
from reptile_care.week import this_week_range, week_range_containing, window_days

logger = logging.getLogger(__name__)

UVB_LOOKBACK = timedelta(days=3)

TEMP_ZONES: tuple[str, ...] = (
    "basking",
    "hot",
    "cool",
    "ambient_day",
    "ambient_night",
)

FEED_SUBTYPE_CATEGORIES: dict[str, str] = {
    "feed_greens": "greens",
    "feed_insect": "insect",
    "feed_meat": "meat",
    "feed_fruit": "fruit",
}

_RULE_RE = re.compile(r"^(per_week|per_2_weeks):(\d+)(?:-(\d+))?$")
_RULE_WINDOW_DAYS = {"per_week": 7, "per_2_weeks": 14}


@dataclass(frozen=True)
class SupplementRule:
    """Parsed supplement rule: ``min``..``max`` doses per ``window_days``."""

    window_days: int
    min: int | None = None
    max: int | None = None


@dataclass(frozen=True)
class UvbCompliance:
    target_hours_per_day: tuple[float, float] | None
    actual_hours: float
    target_hours_range: tuple[float, float] | None
    passed: bool | None


@dataclass(frozen=True)
class SupplementCompliance:
    d3_rule: str | None
    d3_actual_count: int
    plain_calcium_count: int
    vitamin_count: int
    passed: bool | None


@dataclass(frozen=True)
class DietCompliance:
    target_split: dict[str, float] | None
    actual_split: dict[str, float]
    grams_by_category: dict[str, float]
    deviation: dict[str, float]
    total_grams: float


@dataclass(frozen=True)
class ZoneCompliance:
    zone: str
    range: tuple[float, float]
    in_range_ratio: float | None
    samples: int


@dataclass(frozen=True)
class TempCompliance:
    per_zone: list[ZoneCompliance] = field(default_factory=list)


@dataclass(frozen=True)
class ComplianceReport:
    pet_id: str
    start: datetime
    end: datetime
    target: SpeciesTarget | None
    uvb: UvbCompliance
    supplements: SupplementCompliance
    diet: DietCompliance
    temps: TempCompliance
    notes: list[str]


# -- pure helpers ------------------------------------------------------


def parse_supplement_rule(rule: str | None) -> SupplementRule | None:
    """Parse ``per_week:N[-M]``, ``per_2_weeks:N[-M]`` or ``every_meal``."""
    if not rule:
        return None
    text = rule.strip()
    if text == "every_meal":
        return SupplementRule(window_days=7)
    match = _RULE_RE.match(text)
    if match is None:
        return None
    unit, low, high = match.groups()
    return SupplementRule(
        window_days=_RULE_WINDOW_DAYS[unit],
        min=int(low),
        max=int(high) if high is not None else None,
    )


def supplement_passes(
    count: int, rule: SupplementRule, period_days: float
) -> bool | None:
    """Compare a dose count against a rule scaled to the period length.

    Returns None when the rule carries no countable bound.
    """
    scale = period_days / rule.window_days
    low = rule.min * scale if rule.min is not None else None
    high = rule.max * scale if rule.max is not None else None
    if low is None and high is None:
        return None
    if low is not None and count < math.floor(low):
        return False
    if high is not None and count > math.ceil(high):
        return False
    return True


def normalize_split(values: Mapping[str, float]) -> dict[str, float]:
    """Proportions of the positive entries; empty when nothing is positive."""
    positive = {k: v for k, v in values.items() if v is not None and v > 0}
    total = sum(positive.values())
    if total <= 0:
        return {}
    return {k: v / total for k, v in positive.items()}


def diet_grams_by_category(events: Iterable[CareLogEvent]) -> dict[str, float]:
    """Sum ``feed`` grams per diet category (unmapped subtypes are skipped)."""
    frame = events_to_frame(
        [e for e in events if e.type is CareLogType.FEED and e.subtype]
    )
    if frame.empty:
        return {}
    frame["category"] = frame["subtype"].map(FEED_SUBTYPE_CATEGORIES)
    frame = frame.dropna(subset=["category"])
    grams = frame.groupby("category")["value"].sum(min_count=1).fillna(0.0)
    return {str(k): float(v) for k, v in grams.items()}


def diet_deviation(
    actual: Mapping[str, float], target: Mapping[str, float]
) -> dict[str, float]:
    """``|actual - target|`` for every category that has a target."""
    return {key: abs(actual.get(key, 0.0) - value) for key, value in target.items()}


# -- report sections ---------------------------------------------------


def _uvb_section(
    store: CareStore,
    pet_id: str,
    target: SpeciesTarget | None,
    start: datetime,
    end: datetime,
    notes: list[str],
) -> UvbCompliance:
    events = store.list_events(
        pet_id,
        [CareLogType.UVB_ON, CareLogType.UVB_OFF],
        start=start - UVB_LOOKBACK,
        end=end,
    )
    actual = clipped_hours(uvb_intervals(events, open_until=end), start, end)

    if (
        target is None
        or target.photoperiod_hours_min is None
        or target.photoperiod_hours_max is None
    ):
        notes.append("Missing photoperiod target; UVB compliance cannot be judged.")
        return UvbCompliance(
            target_hours_per_day=None,
            actual_hours=actual,
            target_hours_range=None,
            passed=None,
        )

    days = window_days(start, end)
    per_day = (target.photoperiod_hours_min, target.photoperiod_hours_max)
    hours_range = (per_day[0] * days, per_day[1] * days)
    return UvbCompliance(
        target_hours_per_day=per_day,
        actual_hours=actual,
        target_hours_range=hours_range,
        passed=hours_range[0] <= actual <= hours_range[1],
    )


def _supplement_section(
    store: CareStore,
    pet_id: str,
    target: SpeciesTarget | None,
    start: datetime,
    end: datetime,
    notes: list[str],
) -> SupplementCompliance:
    events = store.list_events(
        pet_id, [CareLogType.CALCIUM, CareLogType.VITAMIN], start=start, end=end
    )
    d3_count = sum(1 for e in events if e.subtype == D3_SUBTYPE)
    plain_count = sum(1 for e in events if e.subtype == "calcium_plain")
    vitamin_count = sum(1 for e in events if e.type is CareLogType.VITAMIN)

    rule_text = target.supplement_rules.calcium_d3 if target else None
    rule = parse_supplement_rule(rule_text)
    passed: bool | None = None
    if rule is None:
        notes.append("Missing or unknown D3 rule; D3 compliance cannot be judged.")
    else:
        passed = supplement_passes(d3_count, rule, window_days(start, end))
        if passed is None:
            notes.append(f"D3 rule {rule_text!r} has no countable bound.")

    return SupplementCompliance(
        d3_rule=rule_text,
        d3_actual_count=d3_count,
        plain_calcium_count=plain_count,
        vitamin_count=vitamin_count,
        passed=passed,
    )


def _diet_section(
    store: CareStore,
    pet_id: str,
    target: SpeciesTarget | None,
    start: datetime,
    end: datetime,
    notes: list[str],
) -> DietCompliance:
    feeds = store.list_events(pet_id, [CareLogType.FEED], start=start, end=end)
    grams = diet_grams_by_category(feeds)
    actual = normalize_split(grams)

    target_split = target.diet_split.as_dict() if target and target.diet_split else None
    deviation: dict[str, float] = {}
    if target_split:
        deviation = diet_deviation(actual, target_split)
    else:
        notes.append("Missing diet_split target; only the actual split is shown.")

    return DietCompliance(
        target_split=target_split,
        actual_split=actual,
        grams_by_category=grams,
        deviation=deviation,
        total_grams=sum(grams.values()),
    )


def _temp_section(
    store: CareStore,
    pet_id: str,
    target: SpeciesTarget | None,
    start: datetime,
    end: datetime,
    notes: list[str],
) -> TempCompliance:
    ranges = target.temp_ranges if target else {}
    if not ranges:
        notes.append("Missing temp_ranges target; zone compliance cannot be computed.")
        return TempCompliance()

    per_zone: list[ZoneCompliance] = []
    for zone in TEMP_ZONES:
        bounds = ranges.get(zone)
        if bounds is None:
            continue
        readings = store.list_env_readings(pet_id, zone, start, end)
        samples = len(readings)
        in_range = sum(1 for r in readings if bounds[0] <= r.value <= bounds[1])
        ratio = in_range / samples if samples else None
        if not samples:
            notes.append(f"No temperature samples for zone {zone}.")
        per_zone.append(
            ZoneCompliance(zone=zone, range=bounds, in_range_ratio=ratio, samples=samples)
        )
    return TempCompliance(per_zone=per_zone)


# -- public API --------------------------------------------------------


def build_compliance_report(
    store: CareStore, pet_id: str, start: datetime, end: datetime
) -> ComplianceReport:
    """Build the compliance report of a pet over ``[start, end)``.

    Sections lacking target configuration report ``passed=None`` and add a
    note; the report itself never fails for missing configuration. Store
    errors propagate.

    Args:
        store: Care data store.
        pet_id: Pet identifier.
        start: Window start (inclusive).
        end: Window end (exclusive).

    Returns:
        The compliance report.
    """
    start = ensure_aware(start)
    end = ensure_aware(end)
    notes: list[str] = []
    target = resolve_target(store, pet_id)

    report = ComplianceReport(
        pet_id=pet_id,
        start=start,
        end=end,
        target=target,
        uvb=_uvb_section(store, pet_id, target, start, end, notes),
        supplements=_supplement_section(store, pet_id, target, start, end, notes),
        diet=_diet_section(store, pet_id, target, start, end, notes),
        temps=_temp_section(store, pet_id, target, start, end, notes),
        notes=notes,
    )
    logger.debug("Compliance report for %s: %d notes", pet_id, len(notes))
    return report


def build_compliance_report_for_week(
    store: CareStore,
    pet_id: str,
    day: datetime | date | str,
    week_starts_on: int = 0,
    tzinfo: tzinfo | None = None,
) -> ComplianceReport:
    """Compliance report for the week containing ``day``."""
    start, end = week_range_containing(day, week_starts_on, tzinfo)
    return build_compliance_report(store, pet_id, start, end)


def build_this_week_compliance(
    store: CareStore,
    pet_id: str,
    week_starts_on: int = 0,
    tzinfo: tzinfo | None = None,
) -> ComplianceReport:
    """Compliance report for the current week."""
    start, end = this_week_range(week_starts_on, tzinfo)
    return build_compliance_report(store, pet_id, start, end)
