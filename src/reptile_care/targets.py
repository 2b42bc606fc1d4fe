"""Resolucion del objetivo efectivo de una mascota."""

from __future__ import annotations

import logging

from reptile_care.model import LifeStage, SpeciesTarget
from reptile_care.storage import CareStore

logger = logging.getLogger(__name__)


def resolve_target(store: CareStore, pet_id: str) -> SpeciesTarget | None:
    """Resolve the effective target for a pet.

    Looks up the target for the pet's own life stage (``adult`` when unset)
    and falls back to the other life stage of the same species.

    Args:
        store: Care data store.
        pet_id: Pet identifier.

    Returns:
        The target, or None when the pet or both target rows are missing.
    """
    pet = store.get_pet(pet_id)
    if pet is None:
        logger.debug("No pet %s; no target", pet_id)
        return None

    desired = pet.life_stage or LifeStage.ADULT
    target = store.get_target(pet.species_key, desired)
    if target is not None:
        return target

    fallback = desired.other()
    target = store.get_target(pet.species_key, fallback)
    if target is None:
        logger.debug("No target for species %s in any life stage", pet.species_key)
    else:
        logger.debug(
            "Target for %s/%s missing; using %s",
            pet.species_key,
            desired.value,
            fallback.value,
        )
    return target
