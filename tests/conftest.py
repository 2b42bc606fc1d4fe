from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from reptile_care.model import LifeStage, Pet, SpeciesTarget
from reptile_care.storage import SQLiteStore

PET_ID = "rex"
SPECIES = "bearded_dragon"


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "care.sqlite3")


@pytest.fixture
def seed(store: SQLiteStore) -> Callable[..., SpeciesTarget]:
    """Register ``rex`` and a target for its species built from keyword args."""

    def _seed(
        pet_stage: LifeStage | None = LifeStage.ADULT,
        target_stage: LifeStage = LifeStage.ADULT,
        **fields: Any,
    ) -> SpeciesTarget:
        store.add_pet(
            Pet(id=PET_ID, name="Rex", species_key=SPECIES, life_stage=pet_stage)
        )
        target = SpeciesTarget(species_key=SPECIES, life_stage=target_stage, **fields)
        store.upsert_target(target)
        return target

    return _seed
