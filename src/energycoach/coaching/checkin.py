"""Weekly check-in summary."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Iterable, Optional

from energycoach.coaching.adjuster import validate_rating
from energycoach.config.settings import Settings
from energycoach.errors import ValidationError
from energycoach.tracking.ema import smooth_weights
from energycoach.tracking.estimator import adherence_score
from energycoach.tracking.models import (
    Macros,
    NutritionLogDay,
    WeightEntry,
    average_logged_macros,
    coerce_date,
    normalize_nutrition_series,
)

DAYS_PER_WEEK = 7
BASELINE_SLACK_DAYS = 3


@dataclass(frozen=True)
class WeeklyCheckIn:
    """One week of outcomes plus the user's subjective ratings.

    Ratings are 1-5: energy (5 = great), hunger (5 = starving) and
    training performance (5 = great).
    """

    week_start_date: date
    average_weight: Optional[float]
    average_macros: Optional[Macros]
    adherence_percent: int
    energy_level: int
    hunger_level: int
    training_performance: int
    weight_change_kg: Optional[float] = None
    logging_days: int = 0
    notes: str = ""
    macro_adjustment: Optional[object] = None  # MacroAdjustment once decided

    def __post_init__(self) -> None:
        object.__setattr__(self, "week_start_date", coerce_date("week_start_date", self.week_start_date))
        validate_rating("energy_level", self.energy_level)
        validate_rating("hunger_level", self.hunger_level)
        validate_rating("training_performance", self.training_performance)
        if not 0 <= self.logging_days <= DAYS_PER_WEEK:
            raise ValidationError("logging_days", f"must be within 0-7, got {self.logging_days}")

    @property
    def week_end_date(self) -> date:
        return self.week_start_date + timedelta(days=DAYS_PER_WEEK - 1)

    def with_adjustment(self, adjustment: object) -> "WeeklyCheckIn":
        """Return a copy carrying the adjustment decided for this week."""
        return replace(self, macro_adjustment=adjustment)

    def to_dict(self) -> dict:
        adjustment = self.macro_adjustment
        return {
            "week_start_date": self.week_start_date.isoformat(),
            "average_weight": round(self.average_weight, 2) if self.average_weight is not None else None,
            "average_macros": self.average_macros.to_dict() if self.average_macros else None,
            "adherence_percent": self.adherence_percent,
            "energy_level": self.energy_level,
            "hunger_level": self.hunger_level,
            "training_performance": self.training_performance,
            "weight_change_kg": (
                round(self.weight_change_kg, 2) if self.weight_change_kg is not None else None
            ),
            "logging_days": self.logging_days,
            "notes": self.notes,
            "macro_adjustment": adjustment.to_dict() if adjustment is not None else None,  # type: ignore[attr-defined]
        }


def summarize_week(
    weight_series: Iterable[WeightEntry],
    nutrition_series: Iterable[NutritionLogDay],
    week_start: date,
    current_targets: Macros,
    energy: int,
    hunger: int,
    performance: int,
    notes: str = "",
    settings: Optional[Settings] = None,
) -> WeeklyCheckIn:
    """
    Build a check-in for the seven days starting at `week_start`.

    The weight figures come from the smoothed trend, so a single heavy
    morning does not swing the weekly change. The change is measured from
    the last trend value in the few days before the week (or the first one
    inside it) to the last trend value inside it. Older weigh-ins are not
    used as a baseline.

    Args:
        weight_series: Weigh-ins in any order
        nutrition_series: Daily nutrition totals in any order
        week_start: First day of the week
        current_targets: Targets the week is scored against
        energy: Energy rating 1-5
        hunger: Hunger rating 1-5
        performance: Training performance rating 1-5
        notes: Free-form notes
        settings: Policy constants (defaults to built-in values)

    Returns:
        WeeklyCheckIn without an adjustment
    """
    settings = settings or Settings()
    week_start = coerce_date("week_start", week_start)
    week_end = week_start + timedelta(days=DAYS_PER_WEEK - 1)

    points = [p for p in smooth_weights(weight_series, settings.smoothing.alpha) if p.date <= week_end]
    in_week = [p for p in points if p.date >= week_start]
    before = [p for p in points if p.date < week_start]

    average_weight = in_week[-1].trend_weight if in_week else None
    weight_change = None
    if in_week:
        # A weigh-in from long before the week would fold the gap into this week
        fresh = [p for p in before if (week_start - p.date).days <= BASELINE_SLACK_DAYS]
        baseline = fresh[-1] if fresh else in_week[0]
        if baseline.date != in_week[-1].date:
            weight_change = in_week[-1].trend_weight - baseline.trend_weight

    logs = [
        log
        for log in normalize_nutrition_series(nutrition_series)
        if week_start <= log.date <= week_end and log.is_logged
    ]

    return WeeklyCheckIn(
        week_start_date=week_start,
        average_weight=average_weight,
        average_macros=average_logged_macros(logs),
        adherence_percent=adherence_score(logs, current_targets.calories),
        energy_level=energy,
        hunger_level=hunger,
        training_performance=performance,
        weight_change_kg=weight_change,
        logging_days=len(logs),
        notes=notes,
    )
