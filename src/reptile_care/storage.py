"""Persistencia SQLite para mascotas, objetivos por especie y registros de cuidado."""

from __future__ import annotations

import json
import logging
import math
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import closing, contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from dateutil import tz

from reptile_care.model import (
    CareLogEvent,
    CareLogType,
    DietPercentages,
    DietSplit,
    EnvReading,
    LifeStage,
    PercentRange,
    Pet,
    SpeciesTarget,
    SupplementRules,
)

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS pets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    species_key TEXT NOT NULL,
    life_stage TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS species_targets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    species_key TEXT NOT NULL,
    life_stage TEXT NOT NULL,
    uvb_intensity_min REAL,
    uvb_intensity_max REAL,
    uvb_daily_hours_min REAL,
    uvb_daily_hours_max REAL,
    photoperiod_hours_min REAL,
    photoperiod_hours_max REAL,
    ambient_temp_c_min REAL,
    ambient_temp_c_max REAL,
    feeding_interval_hours_min REAL,
    feeding_interval_hours_max REAL,
    diet_note TEXT,
    vitamin_d3_interval_hours_min REAL,
    vitamin_d3_interval_hours_max REAL,
    temp_ranges_json TEXT,
    extra_json TEXT,
    updated_at TEXT NOT NULL,
    UNIQUE(species_key, life_stage)
);

CREATE TABLE IF NOT EXISTS care_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pet_id TEXT NOT NULL,
    type TEXT NOT NULL,
    subtype TEXT,
    value REAL,
    unit TEXT,
    note TEXT,
    at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY(pet_id) REFERENCES pets(id)
);

CREATE INDEX IF NOT EXISTS idx_care_logs_pet_type_at
ON care_logs(pet_id, type, at);

CREATE TABLE IF NOT EXISTS env_readings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pet_id TEXT NOT NULL,
    zone TEXT NOT NULL,
    metric TEXT NOT NULL,
    value REAL NOT NULL,
    at TEXT NOT NULL,
    FOREIGN KEY(pet_id) REFERENCES pets(id)
);

CREATE INDEX IF NOT EXISTS idx_env_readings_pet_zone_at
ON env_readings(pet_id, zone, metric, at);
"""


@dataclass(frozen=True)
class AppConfig:
    """Configuracion persistida de la app.

    ``current_pet_id`` is the session's selected pet. The evaluators never read
    it; callers pass the pet id explicitly.
    """

    timezone: str
    week_starts_on: int
    export_dir: str
    current_pet_id: str | None = None


class CareStore(ABC):
    """Read-only queries the evaluators depend on."""

    @abstractmethod
    def get_pet(self, pet_id: str) -> Pet | None:
        """Return the pet or None when it does not exist."""

    @abstractmethod
    def get_target(
        self, species_key: str, life_stage: LifeStage
    ) -> SpeciesTarget | None:
        """Return the target row for an exact (species, life stage) pair."""

    @abstractmethod
    def list_events(
        self,
        pet_id: str,
        types: Sequence[CareLogType] | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[CareLogEvent]:
        """List care events in ``[start, end)`` ordered by ``at`` ascending."""

    @abstractmethod
    def latest_event(
        self,
        pet_id: str,
        log_type: CareLogType,
        before: datetime | None = None,
    ) -> CareLogEvent | None:
        """Return the most recent event of a type (strictly before ``before``)."""

    @abstractmethod
    def list_env_readings(
        self,
        pet_id: str,
        zone: str,
        start: datetime,
        end: datetime,
        metric: str = "temp_c",
    ) -> list[EnvReading]:
        """List environment readings of one zone in ``[start, end)``."""


class SQLiteStore(CareStore):
    """Repositorio SQLite para la app."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """One connection per operation: committed on success, always closed."""
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        with closing(conn), conn:
            yield conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            self._migrate(conn)
            conn.commit()

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Apply lightweight schema migrations."""
        pet_cols = {row["name"] for row in conn.execute("PRAGMA table_info(pets)")}
        if "life_stage" not in pet_cols:
            conn.execute("ALTER TABLE pets ADD COLUMN life_stage TEXT")

        log_cols = {
            row["name"] for row in conn.execute("PRAGMA table_info(care_logs)")
        }
        for column in ("subtype", "unit"):
            if column not in log_cols:
                conn.execute(f"ALTER TABLE care_logs ADD COLUMN {column} TEXT")

    # -- configuration -------------------------------------------------

    def load_config(self) -> AppConfig:
        """Devuelve configuracion guardada o defaults."""
        defaults = {
            "timezone": "UTC",
            "week_starts_on": "0",
            "export_dir": "",
            "current_pet_id": "",
        }
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}
        merged = {**defaults, **values}
        return AppConfig(
            timezone=merged["timezone"],
            week_starts_on=_parse_weekday(merged["week_starts_on"]),
            export_dir=merged["export_dir"],
            current_pet_id=merged["current_pet_id"] or None,
        )

    def save_config(self, config: AppConfig) -> None:
        """Guarda la configuracion en tabla key/value."""
        payload = {
            "timezone": config.timezone,
            "week_starts_on": str(config.week_starts_on),
            "export_dir": config.export_dir,
            "current_pet_id": config.current_pet_id or "",
        }
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()

    # -- writes --------------------------------------------------------

    def add_pet(self, pet: Pet) -> None:
        """Insert or replace a pet."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO pets(id, name, species_key, life_stage, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    species_key=excluded.species_key,
                    life_stage=excluded.life_stage
                """,
                (
                    pet.id,
                    pet.name,
                    pet.species_key,
                    pet.life_stage.value if pet.life_stage else None,
                    to_db_timestamp(datetime.now(tz=tz.UTC)),
                ),
            )
            conn.commit()

    def upsert_target(self, target: SpeciesTarget) -> None:
        """Insert or update the target of one (species, life stage) pair.

        Vitamin D3 intervals are kept in days inside ``extra_json`` and also
        written in hours to the legacy hour columns.
        """
        d3_hours_min = _days_to_hours(target.vitamin_d3_interval_days_min)
        d3_hours_max = _days_to_hours(target.vitamin_d3_interval_days_max)
        temp_ranges = {
            zone: list(pair)
            for zone, pair in sanitize_temp_ranges(target.temp_ranges).items()
        }
        params = (
            target.species_key,
            target.life_stage.value,
            target.uvb_intensity_min,
            target.uvb_intensity_max,
            target.uvb_daily_hours_min,
            target.uvb_daily_hours_max,
            target.photoperiod_hours_min,
            target.photoperiod_hours_max,
            target.ambient_temp_c_min,
            target.ambient_temp_c_max,
            target.feeding_interval_hours_min,
            target.feeding_interval_hours_max,
            target.diet_note,
            d3_hours_min,
            d3_hours_max,
            json.dumps(temp_ranges),
            json.dumps(_extra_from_target(target)),
            to_db_timestamp(datetime.now(tz=tz.UTC)),
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO species_targets(
                    species_key, life_stage,
                    uvb_intensity_min, uvb_intensity_max,
                    uvb_daily_hours_min, uvb_daily_hours_max,
                    photoperiod_hours_min, photoperiod_hours_max,
                    ambient_temp_c_min, ambient_temp_c_max,
                    feeding_interval_hours_min, feeding_interval_hours_max,
                    diet_note,
                    vitamin_d3_interval_hours_min, vitamin_d3_interval_hours_max,
                    temp_ranges_json, extra_json, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(species_key, life_stage) DO UPDATE SET
                    uvb_intensity_min=excluded.uvb_intensity_min,
                    uvb_intensity_max=excluded.uvb_intensity_max,
                    uvb_daily_hours_min=excluded.uvb_daily_hours_min,
                    uvb_daily_hours_max=excluded.uvb_daily_hours_max,
                    photoperiod_hours_min=excluded.photoperiod_hours_min,
                    photoperiod_hours_max=excluded.photoperiod_hours_max,
                    ambient_temp_c_min=excluded.ambient_temp_c_min,
                    ambient_temp_c_max=excluded.ambient_temp_c_max,
                    feeding_interval_hours_min=excluded.feeding_interval_hours_min,
                    feeding_interval_hours_max=excluded.feeding_interval_hours_max,
                    diet_note=excluded.diet_note,
                    vitamin_d3_interval_hours_min=excluded.vitamin_d3_interval_hours_min,
                    vitamin_d3_interval_hours_max=excluded.vitamin_d3_interval_hours_max,
                    temp_ranges_json=excluded.temp_ranges_json,
                    extra_json=excluded.extra_json,
                    updated_at=excluded.updated_at
                """,
                params,
            )
            conn.commit()

    def add_care_log(self, event: CareLogEvent) -> int:
        """Insert a care event and return its id."""
        log_type = CareLogType(event.type)
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO care_logs(
                    pet_id, type, subtype, value, unit, note, at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.pet_id,
                    log_type.value,
                    event.subtype,
                    event.value,
                    event.unit,
                    event.note,
                    to_db_timestamp(event.at),
                    to_db_timestamp(datetime.now(tz=tz.UTC)),
                ),
            )
            conn.commit()
            return int(cur.lastrowid)

    def add_env_reading(self, reading: EnvReading) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO env_readings(pet_id, zone, metric, value, at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    reading.pet_id,
                    reading.zone,
                    reading.metric,
                    reading.value,
                    to_db_timestamp(reading.at),
                ),
            )
            conn.commit()

    # -- reads ---------------------------------------------------------

    def get_pet(self, pet_id: str) -> Pet | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name, species_key, life_stage FROM pets WHERE id = ?",
                (pet_id,),
            ).fetchone()
        if row is None:
            return None
        return Pet(
            id=row["id"],
            name=row["name"],
            species_key=row["species_key"],
            life_stage=LifeStage(row["life_stage"]) if row["life_stage"] else None,
        )

    def get_target(
        self, species_key: str, life_stage: LifeStage
    ) -> SpeciesTarget | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM species_targets
                WHERE species_key = ? AND life_stage = ?
                LIMIT 1
                """,
                (species_key, LifeStage(life_stage).value),
            ).fetchone()
        if row is None:
            return None
        return _row_to_target(row)

    def list_events(
        self,
        pet_id: str,
        types: Sequence[CareLogType] | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[CareLogEvent]:
        sql = "SELECT * FROM care_logs WHERE pet_id = ?"
        params: list[object] = [pet_id]
        if start is not None:
            sql += " AND at >= ?"
            params.append(to_db_timestamp(start))
        if end is not None:
            sql += " AND at < ?"
            params.append(to_db_timestamp(end))
        if types:
            placeholders = ",".join("?" for _ in types)
            sql += f" AND type IN ({placeholders})"
            params.extend(CareLogType(t).value for t in types)
        sql += " ORDER BY at ASC, id ASC"

        with self._connect() as conn:
            rows = conn.execute(sql, tuple(params)).fetchall()
        return [_row_to_event(row) for row in rows]

    def latest_event(
        self,
        pet_id: str,
        log_type: CareLogType,
        before: datetime | None = None,
    ) -> CareLogEvent | None:
        sql = "SELECT * FROM care_logs WHERE pet_id = ? AND type = ?"
        params: list[object] = [pet_id, CareLogType(log_type).value]
        if before is not None:
            sql += " AND at < ?"
            params.append(to_db_timestamp(before))
        sql += " ORDER BY at DESC, id DESC LIMIT 1"

        with self._connect() as conn:
            row = conn.execute(sql, tuple(params)).fetchone()
        if row is None:
            return None
        return _row_to_event(row)

    def list_env_readings(
        self,
        pet_id: str,
        zone: str,
        start: datetime,
        end: datetime,
        metric: str = "temp_c",
    ) -> list[EnvReading]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT pet_id, zone, metric, value, at
                FROM env_readings
                WHERE pet_id = ?
                  AND zone = ?
                  AND metric = ?
                  AND at >= ?
                  AND at < ?
                ORDER BY at ASC
                """,
                (pet_id, zone, metric, to_db_timestamp(start), to_db_timestamp(end)),
            ).fetchall()
        return [
            EnvReading(
                pet_id=row["pet_id"],
                zone=row["zone"],
                metric=row["metric"],
                value=float(row["value"]),
                at=parse_db_timestamp(row["at"]),
            )
            for row in rows
        ]


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are interpreted as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz.UTC)
    return value


def to_db_timestamp(value: datetime) -> str:
    """UTC text form whose lexical order equals chronological order."""
    return ensure_aware(value).astimezone(tz.UTC).strftime(_TS_FORMAT)


def parse_db_timestamp(raw: str) -> datetime:
    return datetime.strptime(raw, _TS_FORMAT).replace(tzinfo=tz.UTC)


def sanitize_temp_ranges(raw: Any) -> dict[str, tuple[float, float]]:
    """Keep only finite ``[lo, hi]`` pairs with ``lo <= hi``."""
    if not isinstance(raw, dict):
        return {}
    out: dict[str, tuple[float, float]] = {}
    for zone, pair in raw.items():
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            continue
        lo, hi = pair
        if not (_is_number(lo) and _is_number(hi)):
            continue
        if lo > hi:
            continue
        out[str(zone)] = (float(lo), float(hi))
    return out


def _is_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _parse_weekday(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        return 0
    return value if 0 <= value <= 6 else 0


def _days_to_hours(days: float | None) -> float | None:
    return days * 24 if days is not None else None


def _parse_json_object(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed JSON column: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _pick_number(obj: dict[str, Any], *path: str) -> float | None:
    """Sigue ``path`` dentro de ``obj``; None si falta o no es numerico."""
    cur: Any = obj
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return float(cur) if _is_number(cur) else None


def _pick_str(obj: dict[str, Any], *path: str) -> str | None:
    cur: Any = obj
    for key in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur if isinstance(cur, str) and cur else None


def _extra_from_target(target: SpeciesTarget) -> dict[str, Any]:
    extra: dict[str, Any] = {"uvb_unit": target.uvb_unit}
    if target.calcium_every_meals is not None:
        extra["calcium_every_meals"] = target.calcium_every_meals
    if (
        target.vitamin_d3_interval_days_min is not None
        or target.vitamin_d3_interval_days_max is not None
    ):
        extra["vitamin_d3_interval_days"] = {
            "min": target.vitamin_d3_interval_days_min,
            "max": target.vitamin_d3_interval_days_max,
        }
    if target.diet_split is not None:
        extra["diet_split"] = target.diet_split.as_dict()
    if target.diet_percentages is not None:
        percentages = {
            group: {"min": bounds.min, "max": bounds.max}
            for group, bounds in _percentage_groups(target.diet_percentages).items()
            if bounds is not None and (bounds.min is not None or bounds.max is not None)
        }
        if percentages:
            extra["diet_percentages"] = percentages
    rules = {
        "calcium_d3": target.supplement_rules.calcium_d3,
        "calcium_plain": target.supplement_rules.calcium_plain,
        "vitamin_multi": target.supplement_rules.vitamin_multi,
    }
    rules = {k: v for k, v in rules.items() if v}
    if rules:
        extra["supplement_rules"] = rules
    return extra


def _percentage_groups(
    percentages: DietPercentages,
) -> dict[str, PercentRange | None]:
    return {
        "veg": percentages.veg,
        "meat": percentages.meat,
        "fruit": percentages.fruit,
    }


def _parse_diet_percentages(extra: dict[str, Any]) -> DietPercentages | None:
    """``extra_json.diet_percentages.{veg,meat,fruit}.{min,max}``; None if empty."""
    groups: dict[str, PercentRange | None] = {}
    for group in ("veg", "meat", "fruit"):
        low = _pick_number(extra, "diet_percentages", group, "min")
        high = _pick_number(extra, "diet_percentages", group, "max")
        groups[group] = (
            PercentRange(min=low, max=high)
            if low is not None or high is not None
            else None
        )
    if all(bounds is None for bounds in groups.values()):
        return None
    return DietPercentages(**groups)


def _d3_days(extra: dict[str, Any], bound: str, hours: float | None) -> float | None:
    """Prefer the days value in extras; fall back to the legacy hour column.

    Hours convert to whole days with halves rounded up (60 h -> 3 days).
    """
    days = _pick_number(extra, "vitamin_d3_interval_days", bound)
    if days is not None:
        return days
    if hours is None:
        return None
    return float(math.floor(hours / 24 + 0.5))


def _row_to_target(row: sqlite3.Row) -> SpeciesTarget:
    extra = _parse_json_object(row["extra_json"])
    temp_ranges = sanitize_temp_ranges(_parse_json_object(row["temp_ranges_json"]))

    calcium_every_meals = _pick_number(extra, "calcium_every_meals")
    diet_raw = extra.get("diet_split")
    diet_split = None
    if isinstance(diet_raw, dict):
        diet_split = DietSplit(
            greens=_pick_number(diet_raw, "greens"),
            insect=_pick_number(diet_raw, "insect"),
            meat=_pick_number(diet_raw, "meat"),
            fruit=_pick_number(diet_raw, "fruit"),
        )

    return SpeciesTarget(
        species_key=row["species_key"],
        life_stage=LifeStage(row["life_stage"]),
        ambient_temp_c_min=row["ambient_temp_c_min"],
        ambient_temp_c_max=row["ambient_temp_c_max"],
        uvb_intensity_min=row["uvb_intensity_min"],
        uvb_intensity_max=row["uvb_intensity_max"],
        uvb_daily_hours_min=row["uvb_daily_hours_min"],
        uvb_daily_hours_max=row["uvb_daily_hours_max"],
        uvb_unit=_pick_str(extra, "uvb_unit") or "percent",
        photoperiod_hours_min=row["photoperiod_hours_min"],
        photoperiod_hours_max=row["photoperiod_hours_max"],
        feeding_interval_hours_min=row["feeding_interval_hours_min"],
        feeding_interval_hours_max=row["feeding_interval_hours_max"],
        calcium_every_meals=(
            int(calcium_every_meals) if calcium_every_meals is not None else None
        ),
        vitamin_d3_interval_days_min=_d3_days(
            extra, "min", row["vitamin_d3_interval_hours_min"]
        ),
        vitamin_d3_interval_days_max=_d3_days(
            extra, "max", row["vitamin_d3_interval_hours_max"]
        ),
        temp_ranges=temp_ranges,
        diet_split=diet_split,
        diet_percentages=_parse_diet_percentages(extra),
        supplement_rules=SupplementRules(
            calcium_d3=_pick_str(extra, "supplement_rules", "calcium_d3"),
            calcium_plain=_pick_str(extra, "supplement_rules", "calcium_plain"),
            vitamin_multi=_pick_str(extra, "supplement_rules", "vitamin_multi"),
        ),
        diet_note=row["diet_note"],
    )


def _row_to_event(row: sqlite3.Row) -> CareLogEvent:
    return CareLogEvent(
        id=int(row["id"]),
        pet_id=row["pet_id"],
        type=CareLogType(row["type"]),
        subtype=row["subtype"],
        value=row["value"],
        unit=row["unit"],
        note=row["note"],
        at=parse_db_timestamp(row["at"]),
    )
