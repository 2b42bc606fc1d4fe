"""Modelos tipados para mascotas, objetivos por especie y registros de cuidado."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class CareLogType(str, Enum):
    """Kinds of care events that can be logged for a pet."""

    FEED = "feed"
    CALCIUM = "calcium"
    VITAMIN = "vitamin"
    UVB_ON = "uvb_on"
    UVB_OFF = "uvb_off"
    HEAT_ON = "heat_on"
    HEAT_OFF = "heat_off"
    CLEAN = "clean"
    WEIGH = "weigh"


class LifeStage(str, Enum):
    JUVENILE = "juvenile"
    ADULT = "adult"

    def other(self) -> LifeStage:
        """Return the opposite life stage (used for target fallback)."""
        return LifeStage.ADULT if self is LifeStage.JUVENILE else LifeStage.JUVENILE


class ScheduleRisk(str, Enum):
    """Two-tier urgency of interval-based care actions."""

    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


class FoodType(str, Enum):
    """Food group of a meal, as logged or identified."""

    VEGETABLES = "vegetables"
    HAY = "hay"
    MEAT = "meat"
    FRUIT = "fruit"
    INSECTS = "insects"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class TempRiskKind(str, Enum):
    OK = "ok"
    TOO_COLD = "too_cold"
    TOO_HOT = "too_hot"
    UNKNOWN = "unknown"


class UvbRiskKind(str, Enum):
    OK = "ok"
    TOO_LOW = "too_low"
    TOO_HIGH = "too_high"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Pet:
    """A pet and the species/life stage used to resolve its targets."""

    id: str
    name: str
    species_key: str
    life_stage: LifeStage | None = None


@dataclass(frozen=True)
class CareLogEvent:
    """One immutable, timestamped care fact."""

    pet_id: str
    type: CareLogType
    at: datetime
    subtype: str | None = None
    value: float | None = None
    unit: str | None = None
    note: str | None = None
    id: int | None = None


@dataclass(frozen=True)
class EnvReading:
    """Environment sample (e.g. temperature of one terrarium zone)."""

    pet_id: str
    zone: str
    value: float
    at: datetime
    metric: str = "temp_c"


@dataclass(frozen=True)
class HourlySample:
    """Forecast-derived reading for one hour."""

    hour_offset: int
    local_hour: int | None
    value: float | None
    local_iso: str | None = None


@dataclass(frozen=True)
class DietSplit:
    """Target diet proportions (0..1) per food category."""

    greens: float | None = None
    insect: float | None = None
    meat: float | None = None
    fruit: float | None = None

    def as_dict(self) -> dict[str, float]:
        """Only the categories that carry a numeric target."""
        values = {
            "greens": self.greens,
            "insect": self.insect,
            "meat": self.meat,
            "fruit": self.fruit,
        }
        return {k: v for k, v in values.items() if v is not None}


@dataclass(frozen=True)
class PercentRange:
    """Recommended share (0..100 %) of one food group in the diet."""

    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class DietPercentages:
    """Recommended diet percentages per food group (``None`` when unknown)."""

    veg: PercentRange | None = None
    meat: PercentRange | None = None
    fruit: PercentRange | None = None


@dataclass(frozen=True)
class SupplementRules:
    """Textual supplement rules, e.g. ``calcium_d3="per_week:1-2"``."""

    calcium_d3: str | None = None
    calcium_plain: str | None = None
    vitamin_multi: str | None = None


@dataclass(frozen=True)
class SpeciesTarget:
    """Per (species, life stage) thresholds. Every threshold is optional."""

    species_key: str
    life_stage: LifeStage

    ambient_temp_c_min: float | None = None
    ambient_temp_c_max: float | None = None

    uvb_intensity_min: float | None = None
    uvb_intensity_max: float | None = None
    uvb_daily_hours_min: float | None = None
    uvb_daily_hours_max: float | None = None
    uvb_unit: str = "percent"

    photoperiod_hours_min: float | None = None
    photoperiod_hours_max: float | None = None

    feeding_interval_hours_min: float | None = None
    feeding_interval_hours_max: float | None = None

    calcium_every_meals: int | None = None

    vitamin_d3_interval_days_min: float | None = None
    vitamin_d3_interval_days_max: float | None = None

    temp_ranges: dict[str, tuple[float, float]] = field(default_factory=dict)
    diet_split: DietSplit | None = None
    diet_percentages: DietPercentages | None = None
    supplement_rules: SupplementRules = field(default_factory=SupplementRules)
    diet_note: str | None = None
