"""Weekly calorie and macro adjustment.

The weekly weight change is compared against the band expected for the
goal. Outside the band, calories move by a bounded step that closes half of
the gap between the actual and the expected rate. Subjective ratings then
nudge that step additively: they can soften or slightly deepen it, but they
never reverse a weight-driven correction.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from energycoach.config.settings import Settings
from energycoach.errors import ValidationError
from energycoach.profiles.body_calc import Sex
from energycoach.tracking.models import Macros, coerce_enum, coerce_number

logger = logging.getLogger(__name__)

FIBER_G_PER_1000_KCAL = 14


class GoalType(Enum):
    """Body composition goal."""
    CUT = "cut"
    GAIN = "gain"
    MAINTENANCE = "maintenance"
    RECOMP = "recomp"


class AdjustmentDirection(Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    MAINTAIN = "maintain"


@dataclass(frozen=True)
class GoalBand:
    """Acceptable weekly weight change (kg) for a goal."""

    low: float
    high: float
    expected: float

    def contains(self, weekly_change_kg: float) -> bool:
        return self.low <= weekly_change_kg <= self.high


GOAL_BANDS = {
    GoalType.CUT: GoalBand(low=-1.0, high=-0.25, expected=-0.5),
    GoalType.GAIN: GoalBand(low=0.1, high=0.5, expected=0.25),
    GoalType.MAINTENANCE: GoalBand(low=-0.25, high=0.25, expected=0.0),
    GoalType.RECOMP: GoalBand(low=-0.35, high=0.1, expected=-0.1),
}


class TrainingExperience(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ProteinPolicy(Enum):
    """How protein is set when calories change."""
    HOLD = "hold"      # keep current grams
    PER_KG = "per_kg"  # goal multiplier × body weight


@dataclass(frozen=True)
class GoalConstraints:
    """Safe weekly rate (signed % body weight) and protein intake for a goal."""

    min_weekly_rate_percent: float
    max_weekly_rate_percent: float
    recommended_rate_percent: float
    protein_g_per_kg: float
    description: str

    def to_dict(self) -> dict:
        return {
            "min_weekly_rate_percent": self.min_weekly_rate_percent,
            "max_weekly_rate_percent": self.max_weekly_rate_percent,
            "recommended_rate_percent": self.recommended_rate_percent,
            "protein_g_per_kg": self.protein_g_per_kg,
            "description": self.description,
        }


@dataclass(frozen=True)
class RateSafety:
    safe: bool
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {"safe": self.safe, "warnings": list(self.warnings)}


# Rates outside the constraint band by up to this fraction still count as safe
RATE_SAFETY_MARGIN = 0.2


def goal_constraints(
    goal_type: Union[GoalType, str],
    sex: Union[Sex, str, None] = None,
    experience: Union[TrainingExperience, str] = TrainingExperience.INTERMEDIATE,
) -> GoalConstraints:
    """
    Evidence-based rate limits and protein intake for a goal.

    Rates are signed: a cut of 0.5% per week is -0.5. Women get a gentler
    maximum cut; beginners can gain faster.

    Example:
        >>> goal_constraints("cut", "female").min_weekly_rate_percent
        -0.75
        >>> goal_constraints("gain", experience="beginner").max_weekly_rate_percent
        0.5
    """
    goal_type = coerce_enum(GoalType, "goal_type", goal_type)
    if sex is not None:
        sex = coerce_enum(Sex, "sex", sex)
    experience = coerce_enum(TrainingExperience, "experience", experience)
    beginner = experience == TrainingExperience.BEGINNER

    if goal_type == GoalType.CUT:
        return GoalConstraints(
            min_weekly_rate_percent=-0.75 if sex == Sex.FEMALE else -1.0,
            max_weekly_rate_percent=-0.25,
            recommended_rate_percent=-0.5,
            protein_g_per_kg=2.3,
            description="Sustainable fat loss while preserving muscle",
        )
    if goal_type == GoalType.GAIN:
        return GoalConstraints(
            min_weekly_rate_percent=0.1,
            max_weekly_rate_percent=0.5 if beginner else 0.25,
            recommended_rate_percent=0.3 if beginner else 0.15,
            protein_g_per_kg=1.8,
            description="Lean muscle gain with minimal fat",
        )
    if goal_type == GoalType.RECOMP:
        return GoalConstraints(
            min_weekly_rate_percent=-0.15,
            max_weekly_rate_percent=0.05,
            recommended_rate_percent=-0.05,
            protein_g_per_kg=2.2,
            description="Simultaneous fat loss and muscle gain",
        )
    return GoalConstraints(
        min_weekly_rate_percent=-0.1,
        max_weekly_rate_percent=0.1,
        recommended_rate_percent=0.0,
        protein_g_per_kg=1.6,
        description="Weight stability with potential recomposition",
    )


def is_rate_safe(
    weekly_rate_percent: float,
    goal_type: Union[GoalType, str],
    constraints: Optional[GoalConstraints] = None,
) -> RateSafety:
    """
    Check a signed weekly rate (% body weight) against a goal's limits.

    The rate is safe within the constraint band widened by 20% of each
    bound. Warnings are given for any rate outside the band itself.
    """
    goal_type = coerce_enum(GoalType, "goal_type", goal_type)
    constraints = constraints or goal_constraints(goal_type)
    low = constraints.min_weekly_rate_percent
    high = constraints.max_weekly_rate_percent
    warnings: list[str] = []

    if weekly_rate_percent < low:
        if goal_type == GoalType.CUT:
            warnings.append("Rate is too aggressive - high risk of muscle loss")
            warnings.append("Consider a more moderate deficit for sustainability")
        elif goal_type == GoalType.GAIN:
            warnings.append("Rate is below the minimum for a muscle growth stimulus")
        else:
            warnings.append(f"Losing {abs(weekly_rate_percent):.2f}% per week is faster than this goal allows")
    elif weekly_rate_percent > high:
        if goal_type == GoalType.CUT:
            warnings.append("Rate may be too slow to see meaningful progress")
        elif goal_type == GoalType.GAIN:
            warnings.append("Rate is too high - excessive fat gain likely")
            warnings.append("Slow down to maximize the muscle-to-fat ratio")
        else:
            warnings.append(f"Gaining {weekly_rate_percent:.2f}% per week is faster than this goal allows")

    safe = (
        low - RATE_SAFETY_MARGIN * abs(low)
        <= weekly_rate_percent
        <= high + RATE_SAFETY_MARGIN * abs(high)
    )
    return RateSafety(safe=safe, warnings=tuple(warnings))


@dataclass(frozen=True)
class MacroAdjustment:
    """A computed change to the daily targets."""

    previous: Macros
    proposed: Macros
    calorie_delta: int
    primary_delta: int   # weight-trend correction
    nudge_delta: int     # effective contribution of subjective ratings
    direction: AdjustmentDirection
    reasons: tuple[str, ...] = field(default_factory=tuple)
    flags: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "previous": self.previous.to_dict(),
            "proposed": self.proposed.to_dict(),
            "calorie_delta": self.calorie_delta,
            "primary_delta": self.primary_delta,
            "nudge_delta": self.nudge_delta,
            "direction": self.direction.value,
            "reasons": list(self.reasons),
            "flags": list(self.flags),
        }


@dataclass(frozen=True)
class NoAdjustment:
    """Returned when there is not enough data to justify a change."""

    reason: str

    def to_dict(self) -> dict:
        return {"reason": self.reason}


AdjustmentResult = Union[MacroAdjustment, NoAdjustment]


def validate_rating(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError(name, f"must be an integer rating 1-5, got {value!r}")
    return value


def minimum_calories(sex: Optional[Sex], bmr: Optional[float], settings: Settings) -> int:
    """Calorie floor: the larger of BMR and the sex-specific minimum."""
    adj = settings.adjustment
    if sex == Sex.MALE:
        floor = adj.min_calories_male
    elif sex == Sex.FEMALE:
        floor = adj.min_calories_female
    else:
        floor = adj.min_calories_default
    if bmr is not None:
        floor = max(floor, round(bmr))
    return floor


def calculate_primary_correction(
    weekly_weight_delta: float,
    goal_type: GoalType,
    current_calories: float,
    settings: Settings,
) -> tuple[float, Optional[str]]:
    """
    Weight-trend correction for one week.

    Args:
        weekly_weight_delta: Measured weight change over the week (kg)
        goal_type: Goal whose band is checked
        current_calories: Current daily calorie target
        settings: Policy constants

    Returns:
        (kcal/day correction, reason) with a zero correction and no reason
        when the change is inside the goal band
    """
    band = GOAL_BANDS[goal_type]
    if band.contains(weekly_weight_delta):
        return 0.0, None

    kcal_per_day = (weekly_weight_delta - band.expected) * settings.estimator.kcal_per_kg / 7
    correction = -kcal_per_day * settings.adjustment.correction_gain
    max_step = current_calories * settings.adjustment.max_step_fraction
    correction = max(-max_step, min(max_step, correction))

    if weekly_weight_delta > band.high:
        what = "losing too slowly" if goal_type in (GoalType.CUT, GoalType.RECOMP) else "gaining too fast"
        if goal_type == GoalType.MAINTENANCE:
            what = "gaining"
    else:
        what = "losing too fast" if goal_type != GoalType.GAIN else "gaining too slowly"
        if goal_type == GoalType.MAINTENANCE:
            what = "losing"
    reason = (
        f"Weight changed {weekly_weight_delta:+.2f} kg this week ({what}; "
        f"target {band.low:+.2f} to {band.high:+.2f} kg)"
    )
    return correction, reason


def calculate_nudge(
    goal_type: GoalType,
    energy: int,
    hunger: int,
    performance: int,
    settings: Settings,
) -> tuple[float, list[str]]:
    """Additive nudge from subjective 1-5 ratings, bounded to ±max_nudge_kcal."""
    adj = settings.adjustment
    nudge = 0.0
    reasons: list[str] = []

    if energy <= 2:
        nudge += adj.nudge_kcal
        reasons.append("Low energy reported")
    if performance <= 2:
        nudge += adj.nudge_kcal
        reasons.append("Training performance is suffering")
    if hunger >= 4 and goal_type in (GoalType.CUT, GoalType.RECOMP):
        nudge += adj.nudge_kcal
        reasons.append("High hunger during a deficit")
    if goal_type == GoalType.CUT and energy >= 4 and performance >= 4 and hunger <= 2:
        nudge -= adj.amplify_kcal
        reasons.append("Energy, performance and hunger are all good")

    nudge = max(-adj.max_nudge_kcal, min(adj.max_nudge_kcal, nudge))
    return nudge, reasons


def combine_corrections(primary: float, nudge: float) -> float:
    """Add a nudge to the primary correction without flipping its sign."""
    total = primary + nudge
    if primary > 0:
        return max(total, 0.0)
    if primary < 0:
        return min(total, 0.0)
    return total


def redistribute_macros(
    current: Macros,
    new_calories: float,
    protein_g: float,
) -> Macros:
    """Re-derive grams for a new calorie target.

    Protein is held at `protein_g`; carbs and fat split the remaining
    calories in their current calorie proportions (50/50 when neither is
    set).
    """
    carb_kcal = current.carbs_g * 4
    fat_kcal = current.fat_g * 9
    carb_share = carb_kcal / (carb_kcal + fat_kcal) if carb_kcal + fat_kcal > 0 else 0.5

    remaining = max(new_calories - protein_g * 4, 0.0)
    fiber = current.fiber_g
    if fiber is None:
        fiber = round(new_calories / 1000 * FIBER_G_PER_1000_KCAL)

    return Macros(
        calories=new_calories,
        protein_g=round(protein_g),
        carbs_g=round(remaining * carb_share / 4),
        fat_g=round(remaining * (1 - carb_share) / 9),
        fiber_g=fiber,
    )


def adjust_macros(
    current_targets: Macros,
    weekly_weight_delta: Optional[float],
    goal_type: Union[GoalType, str],
    energy: int,
    hunger: int,
    performance: int,
    *,
    body_weight_kg: Optional[float] = None,
    bmr: Optional[float] = None,
    sex: Union[Sex, str, None] = None,
    logged_days: Optional[int] = None,
    protein_g_per_kg: Optional[float] = None,
    settings: Optional[Settings] = None,
) -> AdjustmentResult:
    """
    Compute next week's targets from this week's outcome and ratings.

    Args:
        current_targets: Current daily targets
        weekly_weight_delta: Trend weight change over the week (kg)
        goal_type: cut, gain, maintenance or recomp
        energy: Energy rating 1-5 (5 = great)
        hunger: Hunger rating 1-5 (5 = starving)
        performance: Training performance rating 1-5 (5 = great)
        body_weight_kg: Current body weight, for the protein floor
        bmr: Estimated BMR, for the calorie floor
        sex: Biological sex, for the calorie floor
        logged_days: Days with a nutrition log this week
        protein_g_per_kg: Protein policy; with `body_weight_kg`, protein is
                          set to this many grams per kg instead of held
        settings: Policy constants (defaults to built-in values)

    Returns:
        MacroAdjustment, or NoAdjustment when the week has too little data
    """
    settings = settings or Settings()
    adj = settings.adjustment

    goal_type = coerce_enum(GoalType, "goal_type", goal_type)
    energy = validate_rating("energy", energy)
    hunger = validate_rating("hunger", hunger)
    performance = validate_rating("performance", performance)
    if sex is not None:
        sex = coerce_enum(Sex, "sex", sex)
    if body_weight_kg is not None:
        body_weight_kg = coerce_number("body_weight_kg", body_weight_kg, positive=True)
    if protein_g_per_kg is not None:
        protein_g_per_kg = coerce_number("protein_g_per_kg", protein_g_per_kg, positive=True)

    if logged_days is not None and logged_days < adj.min_checkin_days:
        logger.debug("No adjustment: %d logged days", logged_days)
        return NoAdjustment(
            reason=f"Only {logged_days} days logged this week; need at least {adj.min_checkin_days}"
        )
    if weekly_weight_delta is None or not math.isfinite(weekly_weight_delta):
        logger.debug("No adjustment: weekly weight change unavailable")
        return NoAdjustment(reason="Weekly weight change is unavailable")

    current_calories = current_targets.calories
    reasons: list[str] = []
    flags: list[str] = []

    primary, primary_reason = calculate_primary_correction(
        weekly_weight_delta, goal_type, current_calories, settings
    )
    if primary_reason:
        reasons.append(primary_reason)
    else:
        reasons.append("Weight change is on track for your goal")

    nudge, nudge_reasons = calculate_nudge(goal_type, energy, hunger, performance, settings)
    reasons.extend(nudge_reasons)

    max_step = current_calories * adj.max_step_fraction
    total = combine_corrections(primary, nudge)
    total = max(-max_step, min(max_step, total))

    new_calories = round(current_calories + total)
    floor = minimum_calories(sex, bmr, settings)
    if new_calories < floor:
        new_calories = floor
        flags.append("calorie_floor")
        reasons.append(f"Calories held at the {floor} kcal minimum")

    protein_g = current_targets.protein_g
    if body_weight_kg is not None and protein_g_per_kg is not None:
        protein_g = body_weight_kg * protein_g_per_kg
        if round(protein_g) != round(current_targets.protein_g):
            reasons.append(f"Protein set to {protein_g_per_kg} g/kg ({round(protein_g)} g)")
    if body_weight_kg is not None:
        protein_floor = body_weight_kg * adj.protein_floor_g_per_kg
        if protein_g < protein_floor:
            protein_g = protein_floor
            flags.append("protein_floor")
            reasons.append(
                f"Protein raised to the {adj.protein_floor_g_per_kg} g/kg minimum ({round(protein_floor)} g)"
            )

    proposed = redistribute_macros(current_targets, new_calories, protein_g)
    calorie_delta = round(new_calories - current_calories)
    primary_delta = round(primary)

    if calorie_delta > 0:
        direction = AdjustmentDirection.INCREASE
    elif calorie_delta < 0:
        direction = AdjustmentDirection.DECREASE
    else:
        direction = AdjustmentDirection.MAINTAIN

    logger.debug(
        "Adjustment for %s: primary=%.0f nudge=%.0f -> %+d kcal",
        goal_type.value,
        primary,
        nudge,
        calorie_delta,
    )

    return MacroAdjustment(
        previous=current_targets,
        proposed=proposed,
        calorie_delta=calorie_delta,
        primary_delta=primary_delta,
        nudge_delta=round(total) - primary_delta,
        direction=direction,
        reasons=tuple(reasons),
        flags=tuple(flags),
    )
