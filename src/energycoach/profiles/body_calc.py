"""Energy expenditure component model.

Breaks total daily energy expenditure into four components:

- BMR: basal metabolic rate (Katch-McArdle when body fat is known,
  otherwise Mifflin-St Jeor)
- TEF: thermic effect of food
- EAT: exercise activity thermogenesis (MET based)
- NEAT: non-exercise activity thermogenesis

NEAT is the least measurable and most adaptive component, so it is the one
that absorbs any discrepancy with an observed TDEE during reconciliation.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from energycoach.errors import ValidationError
from energycoach.tracking.models import Macros, coerce_enum, coerce_number


class Sex(Enum):
    """Biological sex, used only to select the BMR equation branch."""
    MALE = "male"
    FEMALE = "female"


class ActivityLevel(Enum):
    """Self-reported day-to-day activity, excluding planned exercise."""
    SEDENTARY = "sedentary"              # Desk job, little walking
    LIGHTLY_ACTIVE = "lightly_active"    # Some walking
    MODERATE = "moderate"                # On feet part of the day
    VERY_ACTIVE = "very_active"          # On feet most of the day
    EXTRA_ACTIVE = "extra_active"        # Physical job


class ExerciseIntensity(Enum):
    """Intensity tier for planned exercise."""
    LOW = "low"              # Walking, light yoga
    MODERATE = "moderate"    # Jogging, cycling
    HIGH = "high"            # Running, HIIT


# NEAT as a fraction of BMR
NEAT_MULTIPLIERS = {
    ActivityLevel.SEDENTARY: 0.15,
    ActivityLevel.LIGHTLY_ACTIVE: 0.25,
    ActivityLevel.MODERATE: 0.35,
    ActivityLevel.VERY_ACTIVE: 0.45,
    ActivityLevel.EXTRA_ACTIVE: 0.55,
}

# Metabolic equivalents by exercise intensity
EXERCISE_METS = {
    ExerciseIntensity.LOW: 3.5,
    ExerciseIntensity.MODERATE: 6.0,
    ExerciseIntensity.HIGH: 9.0,
}

# Thermic cost as a fraction of each macronutrient's calories
TEF_FRACTIONS = {
    "protein": 0.25,
    "carbs": 0.075,
    "fat": 0.02,
}
DEFAULT_TEF_FRACTION = 0.10

KCAL_PER_STEP = 0.04

# Confidence contributed by each optional signal
BASE_CONFIDENCE = 0.5
BODY_FAT_CONFIDENCE = 0.1
EXERCISE_CONFIDENCE = 0.1
STEPS_CONFIDENCE = 0.1
OBSERVED_TDEE_CONFIDENCE = 0.2


@dataclass(frozen=True)
class BiologicalProfile:
    """Biological inputs for one calculation."""

    age: int
    sex: Sex
    weight_kg: float
    height_cm: float
    body_fat_percent: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "sex", coerce_enum(Sex, "sex", self.sex))
        age = coerce_number("age", self.age)
        if not 10 <= age <= 120:
            raise ValidationError("age", f"must be within 10-120 years, got {age}")
        object.__setattr__(self, "age", int(age))
        object.__setattr__(self, "weight_kg", coerce_number("weight_kg", self.weight_kg, positive=True))
        object.__setattr__(self, "height_cm", coerce_number("height_cm", self.height_cm, positive=True))
        if self.body_fat_percent is not None:
            bf = coerce_number("body_fat_percent", self.body_fat_percent)
            if not 0 < bf < 75:
                raise ValidationError("body_fat_percent", f"must be within (0, 75), got {bf}")
            object.__setattr__(self, "body_fat_percent", bf)

    @property
    def lean_mass_kg(self) -> Optional[float]:
        if self.body_fat_percent is None:
            return None
        return self.weight_kg * (1 - self.body_fat_percent / 100)


@dataclass(frozen=True)
class ActivityProfile:
    """Activity inputs for one calculation."""

    activity_level: ActivityLevel
    exercise_minutes_per_week: Optional[float] = None
    steps_per_day: Optional[float] = None
    exercise_intensity: ExerciseIntensity = ExerciseIntensity.MODERATE

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "activity_level", coerce_enum(ActivityLevel, "activity_level", self.activity_level)
        )
        object.__setattr__(
            self,
            "exercise_intensity",
            coerce_enum(ExerciseIntensity, "exercise_intensity", self.exercise_intensity),
        )
        if self.exercise_minutes_per_week is not None:
            object.__setattr__(
                self,
                "exercise_minutes_per_week",
                coerce_number("exercise_minutes_per_week", self.exercise_minutes_per_week, minimum=0),
            )
        if self.steps_per_day is not None:
            object.__setattr__(
                self, "steps_per_day", coerce_number("steps_per_day", self.steps_per_day, minimum=0)
            )


@dataclass(frozen=True)
class EnergyComponents:
    """TDEE broken into components (kcal/day, rounded)."""

    bmr: int
    tef: int
    eat: int
    neat: int
    total: int
    confidence: float
    reconciled: bool = False

    def __post_init__(self) -> None:
        for name in ("bmr", "tef", "eat", "neat", "total"):
            if getattr(self, name) < 0:
                raise ValidationError(name, "energy components must be non-negative")
        if self.bmr + self.tef + self.eat + self.neat != self.total:
            raise ValidationError(
                "total",
                f"{self.total} != bmr+tef+eat+neat "
                f"({self.bmr}+{self.tef}+{self.eat}+{self.neat})",
            )
        if not 0 <= self.confidence <= 1:
            raise ValidationError("confidence", f"must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> dict:
        return {
            "bmr": self.bmr,
            "tef": self.tef,
            "eat": self.eat,
            "neat": self.neat,
            "total": self.total,
            "confidence": round(self.confidence, 2),
            "reconciled": self.reconciled,
        }


@dataclass(frozen=True)
class ComponentShare:
    """One row of a component breakdown for display."""

    label: str
    value: int
    percentage: float
    description: str


def calculate_bmr(profile: BiologicalProfile) -> int:
    """Calculate Basal Metabolic Rate.

    Body fat data takes precedence: with it, Katch-McArdle
    (370 + 21.6 × lean mass) is used; without it, Mifflin-St Jeor.

    Args:
        profile: Biological profile

    Returns:
        BMR in kcal/day, rounded
    """
    lean_mass = profile.lean_mass_kg
    if lean_mass is not None:
        return round(370 + 21.6 * lean_mass)

    base = (10 * profile.weight_kg) + (6.25 * profile.height_cm) - (5 * profile.age)
    if profile.sex == Sex.MALE:
        return round(base + 5)
    return round(base - 161)


def calculate_tef(average_intake: float, macros: Optional[Macros] = None) -> int:
    """Calculate the thermic effect of food.

    Args:
        average_intake: Average daily calories
        macros: Average daily macronutrient split, if known

    Returns:
        TEF in kcal/day, rounded
    """
    if macros is not None and (macros.protein_g > 0 or macros.carbs_g > 0 or macros.fat_g > 0):
        protein_tef = macros.protein_g * 4 * TEF_FRACTIONS["protein"]
        carbs_tef = macros.carbs_g * 4 * TEF_FRACTIONS["carbs"]
        fat_tef = macros.fat_g * 9 * TEF_FRACTIONS["fat"]
        return round(protein_tef + carbs_tef + fat_tef)

    return round(average_intake * DEFAULT_TEF_FRACTION)


def calculate_eat(
    weight_kg: float,
    exercise_minutes_per_week: Optional[float] = None,
    intensity: ExerciseIntensity = ExerciseIntensity.MODERATE,
) -> int:
    """Estimate exercise activity thermogenesis.

    Calories = MET × weight(kg) × hours of exercise per day.
    """
    minutes_per_day = (exercise_minutes_per_week or 0) / 7
    return round(EXERCISE_METS[intensity] * weight_kg * (minutes_per_day / 60))


def calculate_neat(
    bmr: float,
    activity_level: ActivityLevel,
    steps_per_day: Optional[float] = None,
) -> int:
    """Estimate non-exercise activity thermogenesis.

    Measured steps can only raise the estimate above the self-reported tier.
    """
    neat = bmr * NEAT_MULTIPLIERS[activity_level]
    if steps_per_day:
        neat = max(neat, steps_per_day * KCAL_PER_STEP)
    return round(neat)


def reconcile_components(components: EnergyComponents, actual_tdee: float) -> EnergyComponents:
    """Reconcile a decomposition against an observed TDEE.

    The discrepancy is absorbed by NEAT. When NEAT would go negative, the
    remaining shortfall is taken from EAT, then TEF, then BMR, so that the
    returned total always equals the observed TDEE.

    Args:
        components: Decomposition from `decompose_energy`
        actual_tdee: TDEE inferred from weight trend and intake

    Returns:
        New EnergyComponents with total == round(actual_tdee)
    """
    target = round(coerce_number("actual_tdee", actual_tdee, positive=True))

    values = {
        "neat": components.neat + (target - components.total),
        "eat": components.eat,
        "tef": components.tef,
        "bmr": components.bmr,
    }
    shortfall = 0
    for name in ("neat", "eat", "tef", "bmr"):
        values[name] -= shortfall
        shortfall = max(0, -values[name])
        values[name] = max(0, values[name])

    return replace(
        components,
        bmr=values["bmr"],
        tef=values["tef"],
        eat=values["eat"],
        neat=values["neat"],
        total=target,
        confidence=min(components.confidence + OBSERVED_TDEE_CONFIDENCE, 1.0),
        reconciled=True,
    )


def decompose_energy(
    biological: BiologicalProfile,
    activity: ActivityProfile,
    avg_intake: float,
    actual_tdee: Optional[float] = None,
    macros: Optional[Macros] = None,
) -> EnergyComponents:
    """Calculate all energy expenditure components.

    Args:
        biological: Biological profile
        activity: Activity profile
        avg_intake: Average daily intake (kcal), used for TEF
        actual_tdee: Observed TDEE to reconcile against, if available
        macros: Average macro split, for macro-specific TEF

    Returns:
        EnergyComponents (reconciled when `actual_tdee` is given)
    """
    avg_intake = coerce_number("avg_intake", avg_intake, minimum=0)

    bmr = calculate_bmr(biological)
    tef = calculate_tef(avg_intake, macros)
    eat = calculate_eat(
        biological.weight_kg,
        activity.exercise_minutes_per_week,
        activity.exercise_intensity,
    )
    neat = calculate_neat(bmr, activity.activity_level, activity.steps_per_day)

    confidence = BASE_CONFIDENCE
    if biological.body_fat_percent is not None:
        confidence += BODY_FAT_CONFIDENCE
    if activity.exercise_minutes_per_week:
        confidence += EXERCISE_CONFIDENCE
    if activity.steps_per_day:
        confidence += STEPS_CONFIDENCE

    components = EnergyComponents(
        bmr=bmr,
        tef=tef,
        eat=eat,
        neat=neat,
        total=bmr + tef + eat + neat,
        confidence=min(confidence, 1.0),
    )

    if actual_tdee is not None:
        return reconcile_components(components, actual_tdee)
    return components


def component_breakdown(components: EnergyComponents) -> list[ComponentShare]:
    """Describe each component with its share of the total."""
    total = components.total
    rows = [
        ("BMR", components.bmr, "Basal Metabolic Rate - calories burned at rest"),
        ("TEF", components.tef, "Thermic Effect of Food - calories burned digesting"),
        ("EAT", components.eat, "Exercise Activity - calories from planned exercise"),
        ("NEAT", components.neat, "Daily Activity - calories from movement and fidgeting"),
    ]
    return [
        ComponentShare(
            label=label,
            value=value,
            percentage=(value / total * 100) if total > 0 else 0.0,
            description=description,
        )
        for label, value, description in rows
    ]


def explain_tdee_change(previous: EnergyComponents, current: EnergyComponents) -> list[str]:
    """Explain in plain words why expenditure moved between two decompositions."""
    tdee_change = current.total - previous.total
    if abs(tdee_change) < 50:
        return ["Your TDEE has remained stable."]

    explanations = []

    bmr_change = current.bmr - previous.bmr
    if abs(bmr_change) > 20:
        if bmr_change > 0:
            explanations.append(f"BMR increased by {bmr_change} calories due to weight gain.")
        else:
            explanations.append(f"BMR decreased by {abs(bmr_change)} calories due to weight loss.")

    neat_change = current.neat - previous.neat
    if abs(neat_change) > 50:
        if neat_change > 0:
            explanations.append(
                f"Daily activity increased by {neat_change} calories - you're moving more."
            )
        else:
            explanations.append(
                f"Daily activity decreased by {abs(neat_change)} calories - "
                "possible metabolic adaptation."
            )

    eat_change = current.eat - previous.eat
    if abs(eat_change) > 30:
        if eat_change > 0:
            explanations.append(f"Exercise burn increased by {eat_change} calories.")
        else:
            explanations.append(f"Exercise burn decreased by {abs(eat_change)} calories.")

    if not explanations:
        direction = "rose" if tdee_change > 0 else "fell"
        explanations.append(f"TDEE {direction} by {abs(tdee_change)} calories across several components.")

    return explanations
