from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from dateutil import tz

from reptile_care.forecast import (
    HourlyRisk,
    evaluate_next_24h_ambient_temp,
    evaluate_next_24h_ambient_temp_from_samples,
    evaluate_next_24h_uvb,
    evaluate_next_24h_uvb_from_samples,
    local_hour_from_iso,
    merge_segments,
)
from reptile_care.model import HourlySample, SpeciesTarget, TempRiskKind, UvbRiskKind
from reptile_care.storage import SQLiteStore

LATE_EVENING = datetime(2025, 6, 10, 22, 15, tzinfo=tz.UTC)


def test_temperature_segments_cross_midnight(
    store: SQLiteStore, seed: Callable[..., SpeciesTarget]
) -> None:
    seed(ambient_temp_c_min=20.0, ambient_temp_c_max=28.0)
    result = evaluate_next_24h_ambient_temp(
        store, "rex", [18, 18, 30, 30, 30, 18], LATE_EVENING
    )
    assert result is not None
    assert result.hours_checked == 6
    assert result.has_too_cold and result.has_too_hot
    assert result.should_warn

    spans = [(s.from_offset, s.to_offset, s.risk) for s in result.segments]
    assert spans == [
        (0, 1, TempRiskKind.TOO_COLD),
        (2, 4, TempRiskKind.TOO_HOT),
        (5, 5, TempRiskKind.TOO_COLD),
    ]
    hours = [(s.from_hour, s.to_hour) for s in result.segments]
    assert hours == [(22, 23), (0, 2), (3, 3)]


def test_temperature_segments_partition_offsets(
    store: SQLiteStore, seed: Callable[..., SpeciesTarget]
) -> None:
    seed(ambient_temp_c_min=20.0, ambient_temp_c_max=28.0)
    temps: list[float | None] = [21, 19, None, 25, 29, 29, 24, 24, 15, None]
    result = evaluate_next_24h_ambient_temp(store, "rex", temps, LATE_EVENING)
    assert result is not None

    covered = [
        offset
        for segment in result.segments
        for offset in range(segment.from_offset, segment.to_offset + 1)
    ]
    assert covered == list(range(len(temps)))
    for left, right in zip(result.segments, result.segments[1:]):
        assert left.risk != right.risk


def test_missing_values_are_unknown_without_warning(
    store: SQLiteStore, seed: Callable[..., SpeciesTarget]
) -> None:
    seed(ambient_temp_c_min=20.0, ambient_temp_c_max=28.0)
    result = evaluate_next_24h_ambient_temp(
        store, "rex", [22.0, float("nan"), None, 25.0], LATE_EVENING
    )
    assert result is not None
    assert [h.risk for h in result.hourly] == [
        TempRiskKind.OK,
        TempRiskKind.UNKNOWN,
        TempRiskKind.UNKNOWN,
        TempRiskKind.OK,
    ]
    assert result.hourly[1].value is None
    assert not result.should_warn


def test_temperature_none_without_range(
    store: SQLiteStore, seed: Callable[..., SpeciesTarget]
) -> None:
    seed(ambient_temp_c_min=20.0)
    assert evaluate_next_24h_ambient_temp(store, "rex", [10.0], LATE_EVENING) is None


def test_uvb_uses_local_hour_of_timestamps(
    store: SQLiteStore, seed: Callable[..., SpeciesTarget]
) -> None:
    seed(uvb_intensity_min=1.0, uvb_intensity_max=6.0)
    times = ["2025-11-11T11:00+08:00", "2025-11-11T12:00+08:00"]
    result = evaluate_next_24h_uvb(store, "rex", [0.5, 3.0, 9.0], times)
    assert result is not None
    assert [h.risk for h in result.hourly] == [
        UvbRiskKind.TOO_LOW,
        UvbRiskKind.OK,
        UvbRiskKind.TOO_HIGH,
    ]
    assert [h.local_hour for h in result.hourly] == [11, 12, None]
    assert result.hourly[0].local_iso == "2025-11-11T11:00+08:00"
    assert result.has_too_low and result.has_too_high
    assert result.uvb_min == 1.0


def test_uvb_none_without_range(
    store: SQLiteStore, seed: Callable[..., SpeciesTarget]
) -> None:
    seed()
    assert evaluate_next_24h_uvb(store, "rex", [1.0], ["2025-11-11T11:00"]) is None


def test_merge_segments_splits_on_offset_gap() -> None:
    hours = [
        HourlyRisk(hour_offset=0, local_hour=5, value=1.0, risk=UvbRiskKind.OK),
        HourlyRisk(hour_offset=1, local_hour=6, value=1.0, risk=UvbRiskKind.OK),
        HourlyRisk(hour_offset=3, local_hour=8, value=1.0, risk=UvbRiskKind.OK),
    ]
    segments = merge_segments(hours)
    assert [(s.from_offset, s.to_offset) for s in segments] == [(0, 1), (3, 3)]
    assert merge_segments([]) == []


def test_local_hour_from_iso() -> None:
    assert local_hour_from_iso("2025-11-11T23:00-03:00") == 23
    assert local_hour_from_iso("2025-11-11T07:00") == 7
    assert local_hour_from_iso("2025-11-11") is None
    assert local_hour_from_iso("noTime") is None
    assert local_hour_from_iso(None) is None


def test_sample_evaluators_follow_hour_offsets(
    store: SQLiteStore, seed: Callable[..., SpeciesTarget]
) -> None:
    seed(
        ambient_temp_c_min=20.0,
        ambient_temp_c_max=28.0,
        uvb_intensity_min=1.0,
        uvb_intensity_max=6.0,
    )
    samples = [
        HourlySample(2, None, 9.0, "2025-11-11T13:00+08:00"),
        HourlySample(0, None, 0.5, "2025-11-11T11:00+08:00"),
        HourlySample(1, None, None, "2025-11-11T12:00+08:00"),
    ]

    uvb = evaluate_next_24h_uvb_from_samples(store, "rex", samples)
    assert uvb is not None
    assert [h.risk for h in uvb.hourly] == [
        UvbRiskKind.TOO_LOW,
        UvbRiskKind.UNKNOWN,
        UvbRiskKind.TOO_HIGH,
    ]
    assert [h.local_hour for h in uvb.hourly] == [11, 12, 13]

    temp = evaluate_next_24h_ambient_temp_from_samples(
        store, "rex", samples, LATE_EVENING
    )
    assert temp is not None
    assert [h.risk for h in temp.hourly] == [
        TempRiskKind.TOO_COLD,
        TempRiskKind.UNKNOWN,
        TempRiskKind.TOO_COLD,
    ]
    assert [h.local_hour for h in temp.hourly] == [22, 23, 0]
