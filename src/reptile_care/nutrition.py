"""Sugerencias de dieta basadas en los porcentajes recomendados por especie."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from reptile_care.model import DietPercentages, FoodType, PercentRange, SpeciesTarget
from reptile_care.storage import CareStore
from reptile_care.targets import resolve_target

logger = logging.getLogger(__name__)

HERBIVORE_VEG_MIN = 70.0
STRICT_HERBIVORE_VEG_MIN = 80.0
PROTEIN_LIMIT_MAX = 10.0
PROTEIN_TIP_MAX = 50.0
FRUIT_TREAT_MAX = 10.0
FRUIT_OCCASIONAL_MAX = 20.0

NO_DATA_MESSAGE = "No diet recommendation data available"

_FOOD_LABELS: dict[FoodType, str] = {
    FoodType.VEGETABLES: "vegetables",
    FoodType.HAY: "hay",
    FoodType.MEAT: "meat",
    FoodType.FRUIT: "fruit",
    FoodType.INSECTS: "insects",
    FoodType.MIXED: "mixed food",
    FoodType.UNKNOWN: "unknown food",
}


@dataclass(frozen=True)
class FoodCheck:
    ok: bool
    message: str


@dataclass(frozen=True)
class DietFeedback:
    ok: bool
    warning: str | None = None
    tip: str | None = None


@dataclass(frozen=True)
class NutritionalSuggestion:
    """Verdict for one meal against the species' diet percentages."""

    within_recommendation: bool
    message: str
    details: str
    pet_name: str
    species_name: str
    recommendations: dict[FoodType, PercentRange]
    warnings: list[str] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)


def format_percent_range(low: float | None, high: float | None) -> str:
    """``"20-30%"``, ``"25%"``, ``"at least 20%"``, ``"at most 10%"``."""
    if low is not None and high is not None:
        if low == high:
            return f"{low:g}%"
        return f"{low:g}-{high:g}%"
    if low is not None:
        return f"at least {low:g}%"
    if high is not None:
        return f"at most {high:g}%"
    return "no recommendation"


def recommendation_for(
    food_type: FoodType, percentages: DietPercentages | None
) -> PercentRange:
    """Hay shares the vegetable range and insects share the meat range."""
    if percentages is None:
        return PercentRange()
    if food_type in (FoodType.VEGETABLES, FoodType.HAY):
        group = percentages.veg
    elif food_type in (FoodType.MEAT, FoodType.INSECTS):
        group = percentages.meat
    elif food_type is FoodType.FRUIT:
        group = percentages.fruit
    else:
        group = None
    return group or PercentRange()


def _diet_bounds(target: SpeciesTarget | None) -> tuple[float, float, float]:
    """Minimo de vegetales y maximos de carne/fruta, con defaults permisivos."""
    percentages = target.diet_percentages if target else None
    veg = recommendation_for(FoodType.VEGETABLES, percentages)
    meat = recommendation_for(FoodType.MEAT, percentages)
    fruit = recommendation_for(FoodType.FRUIT, percentages)
    return (
        veg.min if veg.min is not None else 0.0,
        meat.max if meat.max is not None else 100.0,
        fruit.max if fruit.max is not None else 100.0,
    )


def _is_strict_herbivore(veg_min: float, meat_max: float) -> bool:
    return veg_min >= STRICT_HERBIVORE_VEG_MIN and meat_max <= PROTEIN_LIMIT_MAX


def food_feedback(
    food_type: FoodType, target: SpeciesTarget | None, species_name: str
) -> DietFeedback:
    """Rule-based warning/tip for feeding one food group."""
    veg_min, meat_max, fruit_max = _diet_bounds(target)
    percentages = target.diet_percentages if target else None

    if food_type in (FoodType.VEGETABLES, FoodType.HAY):
        if veg_min >= HERBIVORE_VEG_MIN:
            return DietFeedback(
                ok=True,
                tip=(
                    f"{species_name} is a herbivore: {_FOOD_LABELS[food_type]} "
                    "should make up most of the diet"
                ),
            )
        return DietFeedback(ok=True)

    if food_type in (FoodType.MEAT, FoodType.INSECTS):
        if _is_strict_herbivore(veg_min, meat_max):
            return DietFeedback(
                ok=False,
                warning=(
                    f"{species_name} is a herbivore; keep protein within "
                    f"{meat_max:g}%"
                ),
                tip="A little protein now and then is fine, but not as a staple",
            )
        if meat_max < PROTEIN_TIP_MAX:
            rec = recommendation_for(food_type, percentages)
            return DietFeedback(
                ok=True,
                tip=(
                    "Protein sources should be "
                    f"{format_percent_range(rec.min, rec.max)} of the diet"
                ),
            )
        return DietFeedback(ok=True)

    if food_type is FoodType.FRUIT:
        if fruit_max <= FRUIT_TREAT_MAX:
            return DietFeedback(
                ok=False,
                warning=(
                    f"Fruit is high in sugar and only a treat for {species_name}; "
                    f"keep it within {fruit_max:g}%"
                ),
            )
        if fruit_max <= FRUIT_OCCASIONAL_MAX:
            return DietFeedback(
                ok=True, tip="Fruit is fine as an occasional treat, not in excess"
            )
        return DietFeedback(ok=True)

    return DietFeedback(ok=True)


def _species_name(store: CareStore, pet_id: str) -> tuple[str, str]:
    pet = store.get_pet(pet_id)
    if pet is None:
        return "your pet", "this species"
    return pet.name, pet.species_key


def quick_check_food_type(
    store: CareStore, pet_id: str, food_type: FoodType
) -> FoodCheck:
    """Quick verdict on whether a food group suits the pet's species.

    Without a target the check passes with a "no data" message.
    """
    target = resolve_target(store, pet_id)
    if target is None:
        return FoodCheck(ok=True, message=NO_DATA_MESSAGE)

    _, species = _species_name(store, pet_id)
    veg_min, meat_max, fruit_max = _diet_bounds(target)
    label = _FOOD_LABELS[food_type]

    if food_type in (FoodType.VEGETABLES, FoodType.HAY):
        if veg_min >= HERBIVORE_VEG_MIN:
            return FoodCheck(
                ok=True, message=f"{species} is a herbivore; {label} are a staple"
            )
        return FoodCheck(ok=True, message=f"A healthy choice: {label}")

    if food_type in (FoodType.MEAT, FoodType.INSECTS):
        if _is_strict_herbivore(veg_min, meat_max):
            return FoodCheck(
                ok=False,
                message=(
                    f"{species} is mostly herbivorous; keep protein within "
                    f"{meat_max:g}%"
                ),
            )
        return FoodCheck(ok=True, message="Protein sources matter for growth")

    if food_type is FoodType.FRUIT:
        if fruit_max <= FRUIT_TREAT_MAX:
            return FoodCheck(
                ok=False,
                message=(
                    f"Fruit is a treat for {species}; keep it within {fruit_max:g}%"
                ),
            )
        return FoodCheck(ok=True, message="Fruit works as a treat")

    return FoodCheck(ok=True, message="")


def nutritional_suggestion(
    store: CareStore,
    pet_id: str,
    food_type: FoodType,
    identified_items: Sequence[str] = (),
) -> NutritionalSuggestion:
    """Full suggestion for one meal of a known food group.

    Args:
        store: Care data store.
        pet_id: Pet identifier.
        food_type: Food group of the meal.
        identified_items: Ingredient names (at most five are listed).

    Returns:
        The suggestion; without a target every recommendation is empty.
    """
    target = resolve_target(store, pet_id)
    pet_name, species = _species_name(store, pet_id)
    percentages = target.diet_percentages if target else None
    recommendations = {
        kind: recommendation_for(kind, percentages)
        for kind in (
            FoodType.VEGETABLES,
            FoodType.HAY,
            FoodType.MEAT,
            FoodType.FRUIT,
            FoodType.INSECTS,
        )
    }

    warnings: list[str] = []
    tips: list[str] = []
    within = True
    label = _FOOD_LABELS[food_type]

    if food_type is FoodType.UNKNOWN:
        message = "Food type not recognised"
        details = "Log the meal with a known food group."
        within = False
    elif food_type is FoodType.MIXED:
        message = "Mixed food"
        details = (
            f"Contains: {', '.join(identified_items[:5])}"
            if identified_items
            else "Several food groups mixed together"
        )
        tips.append("Mixed meals help keep the diet balanced")
    else:
        rec = recommendations[food_type]
        message = f"Detected {label}"
        if rec.min is not None or rec.max is not None:
            details = (
                f"Recommended share of {label} for {species}: "
                f"{format_percent_range(rec.min, rec.max)}"
            )
            feedback = food_feedback(food_type, target, species)
            if feedback.warning:
                warnings.append(feedback.warning)
                within = feedback.ok
            if feedback.tip:
                tips.append(feedback.tip)
        else:
            details = f"No {label} recommendation for {species} yet"

    if identified_items and food_type is not FoodType.UNKNOWN:
        tips.append(f"Identified: {', '.join(identified_items[:5])}")
    if target is not None and target.diet_note:
        tips.append(f"Diet note: {target.diet_note}")

    logger.debug("Nutritional suggestion for %s (%s): ok=%s", pet_id, label, within)
    return NutritionalSuggestion(
        within_recommendation=within,
        message=message,
        details=details,
        pet_name=pet_name,
        species_name=species,
        recommendations=recommendations,
        warnings=warnings,
        tips=tips,
    )


def diet_summary(store: CareStore, pet_id: str) -> str | None:
    """One-line diet summary, e.g. ``"vegetables 80-90%, fruit at most 10%"``.

    Returns None without a target or when no percentage is configured.
    """
    target = resolve_target(store, pet_id)
    if target is None or target.diet_percentages is None:
        return None

    percentages = target.diet_percentages
    parts: list[str] = []
    for name, bounds in (
        ("vegetables", percentages.veg),
        ("protein", percentages.meat),
        ("fruit", percentages.fruit),
    ):
        if bounds is not None and (bounds.min is not None or bounds.max is not None):
            parts.append(f"{name} {format_percent_range(bounds.min, bounds.max)}")
    return ", ".join(parts) if parts else None
