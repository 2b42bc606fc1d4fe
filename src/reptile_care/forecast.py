"""Riesgo horario de las proximas 24 h: temperatura ambiente y UVB."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

from dateutil import parser as date_parser
from dateutil import tz

from reptile_care.model import HourlySample, TempRiskKind, UvbRiskKind
from reptile_care.storage import CareStore
from reptile_care.targets import resolve_target

logger = logging.getLogger(__name__)

R = TypeVar("R", TempRiskKind, UvbRiskKind)


@dataclass(frozen=True)
class HourlyRisk(Generic[R]):
    """Classification of one forecast hour."""

    hour_offset: int
    local_hour: int | None
    value: float | None
    risk: R
    local_iso: str | None = None


@dataclass
class RiskSegment(Generic[R]):
    """Maximal run of consecutive offsets sharing one risk (bounds inclusive)."""

    from_offset: int
    to_offset: int
    from_hour: int | None
    to_hour: int | None
    risk: R


@dataclass(frozen=True)
class Next24hTempRiskResult:
    pet_id: str
    hours_checked: int
    ambient_min: float
    ambient_max: float
    has_too_cold: bool
    has_too_hot: bool
    should_warn: bool
    hourly: list[HourlyRisk[TempRiskKind]]
    segments: list[RiskSegment[TempRiskKind]]


@dataclass(frozen=True)
class Next24hUvbRiskResult:
    pet_id: str
    hours_checked: int
    uvb_min: float
    uvb_max: float
    has_too_low: bool
    has_too_high: bool
    should_warn: bool
    hourly: list[HourlyRisk[UvbRiskKind]]
    segments: list[RiskSegment[UvbRiskKind]]


def _is_valid(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def classify_value(
    value: float | None,
    minimum: float,
    maximum: float,
    *,
    low: R,
    high: R,
    ok: R,
    unknown: R,
) -> R:
    """Classify one reading against ``[minimum, maximum]``."""
    if value is None or not _is_valid(value):
        return unknown
    if value < minimum:
        return low
    if value > maximum:
        return high
    return ok


def merge_segments(hours: Sequence[HourlyRisk[R]]) -> list[RiskSegment[R]]:
    """Merge consecutive hours with the same risk into segments.

    A new segment starts when the risk changes or when the offset is not
    exactly one past the previous segment's last offset.
    """
    segments: list[RiskSegment[R]] = []
    for hour in hours:
        last = segments[-1] if segments else None
        if (
            last is not None
            and last.risk == hour.risk
            and hour.hour_offset == last.to_offset + 1
        ):
            last.to_offset = hour.hour_offset
            last.to_hour = hour.local_hour
        else:
            segments.append(
                RiskSegment(
                    from_offset=hour.hour_offset,
                    to_offset=hour.hour_offset,
                    from_hour=hour.local_hour,
                    to_hour=hour.local_hour,
                    risk=hour.risk,
                )
            )
    return segments


def _clean_value(value: float | None) -> float | None:
    if value is None:
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _classify_series(
    values: Sequence[float | None],
    minimum: float,
    maximum: float,
    local_hour: Callable[[int], int | None],
    local_iso: Callable[[int], str | None],
    *,
    low: R,
    high: R,
    ok: R,
    unknown: R,
) -> list[HourlyRisk[R]]:
    hourly: list[HourlyRisk[R]] = []
    for offset, raw in enumerate(values):
        value = _clean_value(raw)
        risk = classify_value(
            value, minimum, maximum, low=low, high=high, ok=ok, unknown=unknown
        )
        hourly.append(
            HourlyRisk(
                hour_offset=offset,
                local_hour=local_hour(offset),
                value=value,
                risk=risk,
                local_iso=local_iso(offset),
            )
        )
    return hourly


def evaluate_next_24h_ambient_temp(
    store: CareStore,
    pet_id: str,
    next_24_temp_c: Sequence[float | None],
    now: datetime | None = None,
) -> Next24hTempRiskResult | None:
    """Evaluate ambient temperature risk for the next hours.

    ``next_24_temp_c[0]`` is the current hour; the series may cross local
    midnight. The local hour of each entry is ``(now.hour + offset) % 24`` on
    the device clock.

    Args:
        store: Care data store.
        pet_id: Pet identifier.
        next_24_temp_c: Hourly temperatures in °C (None/NaN means missing).
        now: Device time of the first entry (defaults to local now).

    Returns:
        The risk result, or None when the ambient range is not configured.
    """
    target = resolve_target(store, pet_id)
    if target is None:
        return None

    minimum = target.ambient_temp_c_min
    maximum = target.ambient_temp_c_max
    if minimum is None or maximum is None:
        return None

    now_hour = (now or datetime.now(tz=tz.tzlocal())).hour
    hourly = _classify_series(
        next_24_temp_c,
        minimum,
        maximum,
        local_hour=lambda offset: (now_hour + offset) % 24,
        local_iso=lambda _offset: None,
        low=TempRiskKind.TOO_COLD,
        high=TempRiskKind.TOO_HOT,
        ok=TempRiskKind.OK,
        unknown=TempRiskKind.UNKNOWN,
    )
    has_too_cold = any(h.risk is TempRiskKind.TOO_COLD for h in hourly)
    has_too_hot = any(h.risk is TempRiskKind.TOO_HOT for h in hourly)

    result = Next24hTempRiskResult(
        pet_id=pet_id,
        hours_checked=len(hourly),
        ambient_min=minimum,
        ambient_max=maximum,
        has_too_cold=has_too_cold,
        has_too_hot=has_too_hot,
        should_warn=has_too_cold or has_too_hot,
        hourly=hourly,
        segments=merge_segments(hourly),
    )
    logger.debug(
        "Ambient temp risk for %s: %d hours, %d segments, warn=%s",
        pet_id,
        result.hours_checked,
        len(result.segments),
        result.should_warn,
    )
    return result


def local_hour_from_iso(value: str | None) -> int | None:
    """Hour component of a local ISO timestamp, without any tz conversion.

    ``"2025-11-11T11:00+08:00"`` -> 11. Returns None when missing or invalid.
    """
    if not value or "T" not in value:
        return None
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return None
    return parsed.hour


def evaluate_next_24h_uvb(
    store: CareStore,
    pet_id: str,
    next_24_uvi: Sequence[float | None],
    times_local: Sequence[str | None],
) -> Next24hUvbRiskResult | None:
    """Evaluate UVB intensity risk for the next hours.

    ``next_24_uvi[i]`` pairs with ``times_local[i]``; the local hour is taken
    from the timestamp string itself, so the device time zone is irrelevant.

    Returns:
        The risk result, or None when the UVB intensity range is not configured.
    """
    target = resolve_target(store, pet_id)
    if target is None:
        return None

    minimum = target.uvb_intensity_min
    maximum = target.uvb_intensity_max
    if minimum is None or maximum is None:
        return None

    def iso_at(offset: int) -> str | None:
        return times_local[offset] if offset < len(times_local) else None

    hourly = _classify_series(
        next_24_uvi,
        minimum,
        maximum,
        local_hour=lambda offset: local_hour_from_iso(iso_at(offset)),
        local_iso=iso_at,
        low=UvbRiskKind.TOO_LOW,
        high=UvbRiskKind.TOO_HIGH,
        ok=UvbRiskKind.OK,
        unknown=UvbRiskKind.UNKNOWN,
    )
    has_too_low = any(h.risk is UvbRiskKind.TOO_LOW for h in hourly)
    has_too_high = any(h.risk is UvbRiskKind.TOO_HIGH for h in hourly)

    result = Next24hUvbRiskResult(
        pet_id=pet_id,
        hours_checked=len(hourly),
        uvb_min=minimum,
        uvb_max=maximum,
        has_too_low=has_too_low,
        has_too_high=has_too_high,
        should_warn=has_too_low or has_too_high,
        hourly=hourly,
        segments=merge_segments(hourly),
    )
    logger.debug(
        "UVB risk for %s: %d hours, %d segments, warn=%s",
        pet_id,
        result.hours_checked,
        len(result.segments),
        result.should_warn,
    )
    return result


def evaluate_next_24h_ambient_temp_from_samples(
    store: CareStore,
    pet_id: str,
    samples: Sequence[HourlySample],
    now: datetime | None = None,
) -> Next24hTempRiskResult | None:
    """Ambient temperature risk over forecast samples, in offset order."""
    ordered = sorted(samples, key=lambda s: s.hour_offset)
    return evaluate_next_24h_ambient_temp(
        store, pet_id, [s.value for s in ordered], now
    )


def evaluate_next_24h_uvb_from_samples(
    store: CareStore, pet_id: str, samples: Sequence[HourlySample]
) -> Next24hUvbRiskResult | None:
    """UVB risk over forecast samples; local hours come from ``local_iso``."""
    ordered = sorted(samples, key=lambda s: s.hour_offset)
    return evaluate_next_24h_uvb(
        store,
        pet_id,
        [s.value for s in ordered],
        [s.local_iso for s in ordered],
    )
