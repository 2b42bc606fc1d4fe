from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
from dateutil import tz

from reptile_care.sources.open_meteo import (
    HOURS_AHEAD,
    ForecastPaths,
    OpenMeteoFileSource,
)

SINGAPORE = tz.gettz("Asia/Singapore")


def _write_forecast(tmp_path: Path, payload: Any) -> Path:
    path = tmp_path / "forecast.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _hourly_payload(hours: int = 30) -> dict[str, Any]:
    times = [
        f"2025-11-{11 + h // 24}T{h % 24:02d}:00" for h in range(hours)
    ]
    uv: list[Any] = [float(h % 12) for h in range(hours)]
    uv[6] = None
    uv[7] = "n/a"
    return {
        "timezone": "Asia/Singapore",
        "hourly": {
            "time": times,
            "temperature_2m": [20.0 + h for h in range(hours)],
            "uv_index": uv,
        },
    }


def test_load_slices_next_hours_from_now(tmp_path: Path) -> None:
    path = _write_forecast(tmp_path, _hourly_payload())
    source = OpenMeteoFileSource(ForecastPaths(file=path))
    source.validate()

    forecast = source.load(datetime(2025, 11, 11, 5, 30, tzinfo=SINGAPORE))
    assert forecast.timezone == "Asia/Singapore"
    assert len(forecast.times_local) == HOURS_AHEAD
    assert forecast.times_local[0] == "2025-11-11T05:00+08:00"
    assert forecast.temperature_c[0] == 25.0
    assert forecast.uv_index[1] is None
    assert forecast.uv_index[2] is None

    samples = forecast.uv_samples()
    assert samples[0].hour_offset == 0
    assert samples[0].local_hour == 5
    assert samples[-1].local_hour == 4


def test_load_starts_at_first_hour_when_all_future(tmp_path: Path) -> None:
    path = _write_forecast(tmp_path, _hourly_payload(hours=10))
    source = OpenMeteoFileSource(ForecastPaths(file=path))
    forecast = source.load(datetime(2025, 1, 1, tzinfo=tz.UTC))
    assert len(forecast.times_local) == 10
    assert forecast.temperature_samples()[0].value == 20.0


def test_validate_missing_file(tmp_path: Path) -> None:
    source = OpenMeteoFileSource(ForecastPaths(file=tmp_path / "nope.json"))
    with pytest.raises(FileNotFoundError):
        source.validate()


@pytest.mark.parametrize("payload", [[1, 2, 3], {"hourly": {}}, {"timezone": "UTC"}])
def test_load_rejects_malformed_json(tmp_path: Path, payload: Any) -> None:
    source = OpenMeteoFileSource(ForecastPaths(file=_write_forecast(tmp_path, payload)))
    with pytest.raises(ValueError):
        source.load()
