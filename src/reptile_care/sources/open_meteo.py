"""Lectura de pronosticos horarios guardados en formato Open-Meteo (JSON)."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from dateutil import parser as date_parser
from dateutil import tz

from reptile_care.forecast import local_hour_from_iso
from reptile_care.model import HourlySample

logger = logging.getLogger(__name__)

HOURS_AHEAD = 24


@dataclass(frozen=True)
class ForecastPaths:
    """Path of one saved forecast response."""

    file: Path


@dataclass(frozen=True)
class HourlyForecast:
    """Next-hours slice of a forecast, first entry = current hour."""

    timezone: str
    times_local: list[str] = field(default_factory=list)
    temperature_c: list[float | None] = field(default_factory=list)
    uv_index: list[float | None] = field(default_factory=list)

    def temperature_samples(self) -> list[HourlySample]:
        return _samples(self.times_local, self.temperature_c)

    def uv_samples(self) -> list[HourlySample]:
        return _samples(self.times_local, self.uv_index)


class OpenMeteoFileSource:
    """Reads ``hourly.time``, ``hourly.temperature_2m`` and ``hourly.uv_index``."""

    def __init__(self, paths: ForecastPaths) -> None:
        self._paths = paths

    def validate(self) -> None:
        """Validate that the forecast file exists."""
        if not self._paths.file.exists():
            raise FileNotFoundError(str(self._paths.file))

    def load(self, now: datetime | None = None) -> HourlyForecast:
        """Parse the file and keep the next 24 hours starting at ``now``.

        The slice starts at the last hour not after ``now`` (or at the first
        entry when every hour is in the future).

        Raises:
            ValueError: If the JSON has no ``hourly.time`` list.
        """
        raw: Any = json.loads(self._paths.file.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("Forecast JSON must be an object")
        hourly = raw.get("hourly")
        if not isinstance(hourly, dict) or not isinstance(hourly.get("time"), list):
            raise ValueError("Forecast JSON must contain an hourly.time list")

        tz_name = str(raw.get("timezone") or "UTC")
        zone = tz.gettz(tz_name) or tz.UTC
        stamps = [_localize(str(t), zone) for t in hourly["time"]]

        current = now or datetime.now(tz=tz.UTC)
        start = _start_index(stamps, current)
        end = start + HOURS_AHEAD
        logger.debug("Forecast %s: %d hours, slice from %d", tz_name, len(stamps), start)

        return HourlyForecast(
            timezone=tz_name,
            times_local=[s.isoformat(timespec="minutes") for s in stamps[start:end]],
            temperature_c=_to_floats(hourly.get("temperature_2m"))[start:end],
            uv_index=_to_floats(hourly.get("uv_index"))[start:end],
        )


def _localize(text: str, zone: Any) -> datetime:
    """Hora local con offset; las horas sin zona se asumen en ``zone``."""
    parsed = date_parser.isoparse(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=zone)
    return parsed


def _start_index(stamps: list[datetime], now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz.UTC)
    idx = -1
    for i, stamp in enumerate(stamps):
        if stamp <= now:
            idx = i
        else:
            break
    return max(0, idx)


def _to_floats(values: Any) -> list[float | None]:
    if not isinstance(values, list):
        return []
    out: list[float | None] = []
    for value in values:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            out.append(float(value) if math.isfinite(value) else None)
        else:
            out.append(None)
    return out


def _samples(times: list[str], values: list[float | None]) -> list[HourlySample]:
    return [
        HourlySample(
            hour_offset=offset,
            local_hour=local_hour_from_iso(iso),
            value=value,
            local_iso=iso,
        )
        for offset, (value, iso) in enumerate(zip(values, _pad(times, len(values))))
    ]


def _pad(times: list[str], size: int) -> list[str | None]:
    return [*times[:size], *([None] * (size - len(times)))]
