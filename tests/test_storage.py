from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, cast

import pytest
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
from reptile_care.storage import (
    AppConfig,
    SQLiteStore,
    parse_db_timestamp,
    sanitize_temp_ranges,
    to_db_timestamp,
)

T0 = datetime(2025, 6, 9, 8, 0, tzinfo=tz.UTC)


def test_config_defaults_and_round_trip(store: SQLiteStore) -> None:
    loaded = store.load_config()
    assert loaded == AppConfig(timezone="UTC", week_starts_on=0, export_dir="")

    store.save_config(
        AppConfig(
            timezone="Europe/Madrid",
            week_starts_on=6,
            export_dir="/data/out",
            current_pet_id="rex",
        )
    )
    loaded = store.load_config()
    assert loaded.timezone == "Europe/Madrid"
    assert loaded.week_starts_on == 6
    assert loaded.export_dir == "/data/out"
    assert loaded.current_pet_id == "rex"


def test_target_upsert_round_trip(store: SQLiteStore) -> None:
    target = SpeciesTarget(
        species_key="bearded_dragon",
        life_stage=LifeStage.ADULT,
        ambient_temp_c_min=22.0,
        ambient_temp_c_max=32.0,
        uvb_intensity_min=1.0,
        uvb_intensity_max=6.0,
        uvb_unit="uvi",
        feeding_interval_hours_min=24.0,
        feeding_interval_hours_max=48.0,
        calcium_every_meals=3,
        vitamin_d3_interval_days_min=7.0,
        vitamin_d3_interval_days_max=14.0,
        temp_ranges={"basking": (38.0, 42.0), "cool": (30.0, 22.0)},
        diet_split=DietSplit(greens=0.8, insect=0.2),
        supplement_rules=SupplementRules(calcium_d3="per_week:1-2"),
    )
    store.upsert_target(target)
    store.upsert_target(target)

    loaded = store.get_target("bearded_dragon", LifeStage.ADULT)
    assert loaded is not None
    assert loaded.ambient_temp_c_max == 32.0
    assert loaded.uvb_unit == "uvi"
    assert loaded.calcium_every_meals == 3
    assert loaded.vitamin_d3_interval_days_min == 7.0
    assert loaded.vitamin_d3_interval_days_max == 14.0
    # lo > hi is dropped
    assert loaded.temp_ranges == {"basking": (38.0, 42.0)}
    assert loaded.diet_split == DietSplit(greens=0.8, insect=0.2)
    assert loaded.supplement_rules.calcium_d3 == "per_week:1-2"
    assert store.get_target("bearded_dragon", LifeStage.JUVENILE) is None

    with sqlite3.connect(store._db_path) as conn:
        hours = conn.execute(
            "SELECT vitamin_d3_interval_hours_min, vitamin_d3_interval_hours_max "
            "FROM species_targets"
        ).fetchall()
    assert hours == [(168.0, 336.0)]


def test_target_falls_back_to_hour_columns_on_bad_json(store: SQLiteStore) -> None:
    with sqlite3.connect(store._db_path) as conn:
        conn.execute(
            """
            INSERT INTO species_targets(
                species_key, life_stage,
                vitamin_d3_interval_hours_min, vitamin_d3_interval_hours_max,
                temp_ranges_json, extra_json, updated_at
            ) VALUES ('gecko', 'adult', 170, 340, 'not json', '{broken', 'x')
            """
        )
        conn.commit()

    loaded = store.get_target("gecko", LifeStage.ADULT)
    assert loaded is not None
    assert loaded.vitamin_d3_interval_days_min == 7.0
    assert loaded.vitamin_d3_interval_days_max == 14.0
    assert loaded.temp_ranges == {}
    assert loaded.uvb_unit == "percent"
    assert loaded.calcium_every_meals is None
    assert loaded.diet_split is None


def test_list_events_ordering_and_bounds(store: SQLiteStore) -> None:
    for hours, log_type in [
        (3, CareLogType.FEED),
        (1, CareLogType.CALCIUM),
        (0, CareLogType.FEED),
        (5, CareLogType.WEIGH),
    ]:
        store.add_care_log(
            CareLogEvent(pet_id="rex", type=log_type, at=T0 + timedelta(hours=hours))
        )
    store.add_care_log(CareLogEvent(pet_id="other", type=CareLogType.FEED, at=T0))

    events = store.list_events("rex")
    assert [e.at for e in events] == sorted(e.at for e in events)
    assert len(events) == 4

    window = store.list_events("rex", start=T0, end=T0 + timedelta(hours=3))
    assert [e.type for e in window] == [CareLogType.FEED, CareLogType.CALCIUM]

    feeds = store.list_events("rex", [CareLogType.FEED])
    assert all(e.type is CareLogType.FEED for e in feeds)
    assert len(feeds) == 2

    latest = store.latest_event("rex", CareLogType.FEED)
    assert latest is not None
    assert latest.at == T0 + timedelta(hours=3)
    earlier = store.latest_event("rex", CareLogType.FEED, before=T0 + timedelta(hours=3))
    assert earlier is not None
    assert earlier.at == T0
    assert store.latest_event("rex", CareLogType.VITAMIN) is None


def test_add_care_log_rejects_unknown_type(store: SQLiteStore) -> None:
    event = CareLogEvent(pet_id="rex", type=cast(Any, "bath"), at=T0)
    with pytest.raises(ValueError):
        store.add_care_log(event)


def test_naive_event_time_is_treated_as_utc(store: SQLiteStore) -> None:
    store.add_care_log(
        CareLogEvent(
            pet_id="rex",
            type=CareLogType.FEED,
            at=datetime(2025, 6, 9, 8, 0),
            subtype="feed_insect",
            value=12.5,
            unit="g",
        )
    )
    (event,) = store.list_events("rex")
    assert event.at == T0
    assert event.subtype == "feed_insect"
    assert event.value == 12.5
    assert event.id is not None


def test_env_readings_window(store: SQLiteStore) -> None:
    for hours, value in [(0, 30.0), (1, 31.0), (2, 32.0)]:
        store.add_env_reading(
            EnvReading(pet_id="rex", zone="basking", value=value, at=T0 + timedelta(hours=hours))
        )
    store.add_env_reading(EnvReading(pet_id="rex", zone="cool", value=24.0, at=T0))

    readings = store.list_env_readings("rex", "basking", T0, T0 + timedelta(hours=2))
    assert [r.value for r in readings] == [30.0, 31.0]


def test_migrate_adds_life_stage_column(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    with sqlite3.connect(db) as conn:
        conn.execute(
            """
            CREATE TABLE pets (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                species_key TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.commit()

    store = SQLiteStore(db)
    store.add_pet(
        Pet(id="rex", name="Rex", species_key="gecko", life_stage=LifeStage.JUVENILE)
    )
    pet = store.get_pet("rex")
    assert pet is not None
    assert pet.life_stage is LifeStage.JUVENILE


def test_timestamps_sort_lexically() -> None:
    early = datetime(2025, 6, 9, 23, 0, tzinfo=tz.gettz("America/New_York"))
    late = datetime(2025, 6, 10, 4, 0, 1, tzinfo=tz.UTC)
    assert to_db_timestamp(early) < to_db_timestamp(late)
    assert parse_db_timestamp(to_db_timestamp(late)) == late


def test_sanitize_temp_ranges() -> None:
    raw = {
        "basking": [35, 40],
        "hot": [30, float("nan")],
        "cool": ["22", 26],
        "night": [18, 16],
        "ambient_day": [24.5, 30],
    }
    assert sanitize_temp_ranges(raw) == {
        "basking": (35.0, 40.0),
        "ambient_day": (24.5, 30.0),
    }
    assert sanitize_temp_ranges(["not", "a", "dict"]) == {}


def test_legacy_d3_hours_round_half_up(store: SQLiteStore) -> None:
    with sqlite3.connect(store._db_path) as conn:
        conn.execute(
            """
            INSERT INTO species_targets(
                species_key, life_stage,
                vitamin_d3_interval_hours_min, vitamin_d3_interval_hours_max,
                extra_json, updated_at
            ) VALUES ('tortoise', 'adult', 60, 84, '{}', 'x')
            """
        )
        conn.commit()

    loaded = store.get_target("tortoise", LifeStage.ADULT)
    assert loaded is not None
    assert loaded.vitamin_d3_interval_days_min == 3.0
    assert loaded.vitamin_d3_interval_days_max == 4.0


def test_diet_percentages_round_trip(store: SQLiteStore) -> None:
    store.upsert_target(
        SpeciesTarget(
            species_key="sulcata",
            life_stage=LifeStage.ADULT,
            diet_percentages=DietPercentages(
                veg=PercentRange(min=80.0, max=95.0),
                fruit=PercentRange(max=5.0),
            ),
        )
    )
    loaded = store.get_target("sulcata", LifeStage.ADULT)
    assert loaded is not None
    assert loaded.diet_percentages == DietPercentages(
        veg=PercentRange(min=80.0, max=95.0),
        meat=None,
        fruit=PercentRange(min=None, max=5.0),
    )

    store.upsert_target(SpeciesTarget(species_key="gecko", life_stage=LifeStage.ADULT))
    plain = store.get_target("gecko", LifeStage.ADULT)
    assert plain is not None
    assert plain.diet_percentages is None
