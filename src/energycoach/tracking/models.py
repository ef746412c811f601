"""Data models for weight tracking and TDEE estimation.

All records are immutable and validated on construction, so malformed rows
are rejected at the boundary before they reach the estimators.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Optional

from energycoach.errors import ValidationError

if TYPE_CHECKING:
    from energycoach.data.quality import DataQualityReport
    from energycoach.profiles.body_calc import EnergyComponents


class WeightTrend(Enum):
    """Direction of the smoothed weight trend."""
    GAINING = "gaining"
    LOSING = "losing"
    MAINTAINING = "maintaining"


class ConfidenceLevel(Enum):
    """Qualitative bucket for a 0-100 confidence or a 0-1 quality score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Methodology(Enum):
    """How a TDEE estimate was produced."""
    INITIAL = "initial"                      # profile-based, not enough history
    ADHERENCE_NEUTRAL = "adherence_neutral"  # energy balance from weight trend


def coerce_date(field_name: str, value: Any) -> date:
    """Return `value` as a date, accepting ISO strings and datetimes."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError as exc:
            raise ValidationError(field_name, f"invalid ISO date '{value}'") from exc
    raise ValidationError(field_name, f"expected a date, got {type(value).__name__}")


def coerce_enum(enum_cls: type[Enum], field_name: str, value: Any) -> Any:
    """Return `value` as a member of `enum_cls`, accepting its string value."""
    if isinstance(value, enum_cls):
        return value
    valid = tuple(m.value for m in enum_cls)  # type: ignore[attr-defined]
    if isinstance(value, str) and value.lower() in valid:
        return enum_cls(value.lower())
    raise ValidationError(field_name, f"must be one of {valid}, got {value!r}")


def coerce_number(
    field_name: str,
    value: Any,
    minimum: Optional[float] = None,
    positive: bool = False,
) -> float:
    """Return `value` as a finite float, enforcing the given lower bound.

    Raises:
        ValidationError: If the value is not a finite real number in range
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(field_name, f"expected a number, got {type(value).__name__}")
    number = float(value)
    if not math.isfinite(number):
        raise ValidationError(field_name, "must be finite")
    if positive and number <= 0:
        raise ValidationError(field_name, f"must be positive, got {number}")
    if minimum is not None and number < minimum:
        raise ValidationError(field_name, f"must be >= {minimum}, got {number}")
    return number


@dataclass(frozen=True)
class WeightEntry:
    """A single daily weigh-in (kilograms)."""

    date: date
    weight: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", coerce_date("date", self.date))
        object.__setattr__(self, "weight", coerce_number("weight", self.weight, positive=True))


@dataclass(frozen=True)
class NutritionLogDay:
    """Aggregated intake for one day.

    A day with zero calories is a gap in logging, not a fasting day.
    """

    date: date
    calories: float
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", coerce_date("date", self.date))
        for name in ("calories", "protein_g", "carbs_g", "fat_g", "fiber_g"):
            object.__setattr__(self, name, coerce_number(name, getattr(self, name), minimum=0))

    @property
    def is_logged(self) -> bool:
        return self.calories > 0

    @property
    def has_macros(self) -> bool:
        return self.protein_g > 0 or self.carbs_g > 0 or self.fat_g > 0


@dataclass(frozen=True)
class Macros:
    """Daily calorie and macronutrient targets."""

    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    fiber_g: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "calories", coerce_number("calories", self.calories, positive=True))
        for name in ("protein_g", "carbs_g", "fat_g"):
            object.__setattr__(self, name, coerce_number(name, getattr(self, name), minimum=0))
        if self.fiber_g is not None:
            object.__setattr__(self, "fiber_g", coerce_number("fiber_g", self.fiber_g, minimum=0))

    @property
    def macro_calories(self) -> float:
        """Calories implied by the macronutrients (Atwater 4/4/9)."""
        return self.protein_g * 4 + self.carbs_g * 4 + self.fat_g * 9

    def to_dict(self) -> dict:
        return {
            "calories": self.calories,
            "protein_g": self.protein_g,
            "carbs_g": self.carbs_g,
            "fat_g": self.fat_g,
            "fiber_g": self.fiber_g,
        }


@dataclass(frozen=True)
class TDEEEstimate:
    """A freshly computed TDEE estimate. The engine keeps no copy of it."""

    as_of: Optional[date]
    current_tdee: int
    confidence_percent: int
    confidence_level: ConfidenceLevel
    trend_weight: float
    daily_change_rate: float        # kg/day
    weekly_change_rate_percent: float
    weight_trend: WeightTrend
    adherence_score_percent: int
    data_quality: ConfidenceLevel
    methodology: Methodology
    average_intake: Optional[int] = None
    logged_days: int = 0
    energy_components: Optional["EnergyComponents"] = None
    quality_report: Optional["DataQualityReport"] = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dict."""
        components = self.energy_components
        return {
            "as_of": self.as_of.isoformat() if self.as_of else None,
            "current_tdee": self.current_tdee,
            "confidence_percent": self.confidence_percent,
            "confidence_level": self.confidence_level.value,
            "trend_weight": round(self.trend_weight, 2),
            "daily_change_rate": round(self.daily_change_rate, 4),
            "weekly_change_rate_percent": round(self.weekly_change_rate_percent, 3),
            "weight_trend": self.weight_trend.value,
            "adherence_score_percent": self.adherence_score_percent,
            "data_quality": self.data_quality.value,
            "methodology": self.methodology.value,
            "average_intake": self.average_intake,
            "logged_days": self.logged_days,
            "energy_components": components.to_dict() if components else None,
            "warnings": list(self.warnings),
        }


def confidence_level_for(confidence_percent: float) -> ConfidenceLevel:
    """Bucket a 0-100 confidence: low < 60, medium 60-79, high >= 80."""
    if confidence_percent >= 80:
        return ConfidenceLevel.HIGH
    if confidence_percent >= 60:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def normalize_weight_series(entries: Iterable[WeightEntry]) -> list[WeightEntry]:
    """Sort weigh-ins by date, keeping the last-written entry for each day.

    Raises:
        ValidationError: If an element is not a WeightEntry
    """
    by_day: dict[date, WeightEntry] = {}
    for entry in entries:
        if not isinstance(entry, WeightEntry):
            raise ValidationError("weight_series", f"expected WeightEntry, got {type(entry).__name__}")
        by_day[entry.date] = entry
    return [by_day[day] for day in sorted(by_day)]


def normalize_nutrition_series(logs: Iterable[NutritionLogDay]) -> list[NutritionLogDay]:
    """Sort daily totals by date, keeping the last-written total for each day."""
    by_day: dict[date, NutritionLogDay] = {}
    for log in logs:
        if not isinstance(log, NutritionLogDay):
            raise ValidationError("nutrition_series", f"expected NutritionLogDay, got {type(log).__name__}")
        by_day[log.date] = log
    return [by_day[day] for day in sorted(by_day)]


def average_logged_macros(logs: Iterable[NutritionLogDay]) -> Optional[Macros]:
    """Average intake over logged days only.

    Calories are averaged over every logged day; grams only over days that
    carry a macro breakdown, so calorie-only days do not dilute the split.

    Returns:
        Mean Macros, or None when no day in `logs` was logged
    """
    logged = [log for log in logs if log.is_logged]
    if not logged:
        return None
    with_macros = [log for log in logged if log.has_macros]
    m = len(with_macros) or 1
    return Macros(
        calories=sum(log.calories for log in logged) / len(logged),
        protein_g=sum(log.protein_g for log in with_macros) / m,
        carbs_g=sum(log.carbs_g for log in with_macros) / m,
        fat_g=sum(log.fat_g for log in with_macros) / m,
        fiber_g=sum(log.fiber_g for log in with_macros) / m,
    )
