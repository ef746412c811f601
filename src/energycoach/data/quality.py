"""Data quality detection for weight and nutrition logs.

Scores how much the TDEE estimate can be trusted, given how densely food
was logged, how often the user weighed in, and how noisy the weigh-ins are
around their smoothed trend. Also flags behavioural patterns that bias the
estimate and turns low scores into short, deterministic recommendations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional

import numpy as np

from energycoach.config.settings import Settings
from energycoach.errors import ValidationError
from energycoach.tracking.ema import smooth_weights
from energycoach.tracking.models import (
    ConfidenceLevel,
    NutritionLogDay,
    WeightEntry,
    normalize_nutrition_series,
    normalize_weight_series,
)

logger = logging.getLogger(__name__)

# Thresholds below which a recommendation is emitted
LOW_LOGGING_DENSITY = 0.7
LOW_WEIGHING_FREQUENCY = 0.7
LOW_STABILITY = 0.5

# Pattern thresholds
MIN_LOGS_FOR_PATTERNS = 14
WEEKEND_CALORIE_DEVIATION = 0.15
WEEKEND_LOGGING_GAP = 0.3
MEAL_SKIPPING_KCAL = 1000
MEAL_SKIPPING_FRACTION = 0.1
BINGE_RESTRICT_FRACTION = 0.3
STEADY_STABILITY = 0.7
WEIGH_IN_JUMP_PERCENT = 1.5
ERRATIC_WEIGH_IN_FRACTION = 0.2


class Impact(Enum):
    """Effect of a pattern on estimate accuracy."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class DataPattern:
    """A behavioural pattern detected in the logs."""

    kind: str  # "weekend_logging_dropoff", "weekend_deviation", "meal_skipping", ...
    description: str
    impact: Impact
    strength: float  # 0-1

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "description": self.description,
            "impact": self.impact.value,
            "strength": round(self.strength, 2),
        }


@dataclass(frozen=True)
class DataQualityReport:
    """Quality sub-scores (0-1) over a lookback window."""

    window_days: int
    overall_quality: float
    logging_density: float
    weighing_frequency: float
    data_stability: float
    stability_defined: bool
    patterns: tuple[DataPattern, ...] = field(default_factory=tuple)
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def level(self) -> ConfidenceLevel:
        return quality_level_for(self.overall_quality)

    def to_dict(self) -> dict:
        return {
            "window_days": self.window_days,
            "overall_quality": round(self.overall_quality, 3),
            "logging_density": round(self.logging_density, 3),
            "weighing_frequency": round(self.weighing_frequency, 3),
            "data_stability": round(self.data_stability, 3),
            "stability_defined": self.stability_defined,
            "level": self.level.value,
            "patterns": [p.to_dict() for p in self.patterns],
            "recommendations": list(self.recommendations),
        }


def quality_level_for(overall_quality: float) -> ConfidenceLevel:
    """Bucket a 0-1 quality score: low < 0.5, medium < 0.75, else high."""
    if overall_quality >= 0.75:
        return ConfidenceLevel.HIGH
    if overall_quality >= 0.5:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def calculate_weight_stability(
    weights: list[WeightEntry],
    noise_variance_kg2: float,
    smoothing: float,
) -> Optional[float]:
    """Score day-to-day weigh-in noise around the smoothed trend.

    stability = 1 / (1 + var(raw - trend) / noise_variance_kg2)

    Returns:
        Stability in (0, 1], or None with fewer than two weigh-ins
    """
    if len(weights) < 2:
        return None
    points = smooth_weights(weights, smoothing)
    residuals = np.array([p.residual for p in points])
    variance = float(np.var(residuals))
    return 1.0 / (1.0 + variance / noise_variance_kg2)


def calculate_calorie_stability(logs: list[NutritionLogDay]) -> float:
    """Score intake consistency from the coefficient of variation.

    A CV of 0.2 maps to 0.5; a CV of 0.4 or more maps to 0.
    """
    if len(logs) < 2:
        return 0.5
    calories = np.array([log.calories for log in logs])
    mean = float(calories.mean())
    if mean == 0:
        return 0.0
    cv = float(calories.std()) / mean
    return max(0.0, min(1.0, 1 - cv / 0.4))


def _is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def detect_weekend_logging_dropoff(
    logs: list[NutritionLogDay],
    window_start: date,
    window_days: int,
) -> Optional[DataPattern]:
    """Flag windows where weekends are logged much less often than weekdays."""
    if window_days < 14:
        return None
    days = [window_start + timedelta(days=i) for i in range(window_days)]
    logged = {log.date for log in logs}
    weekend_days = [d for d in days if _is_weekend(d)]
    weekday_days = [d for d in days if not _is_weekend(d)]
    if not weekend_days or not weekday_days:
        return None

    weekend_rate = sum(d in logged for d in weekend_days) / len(weekend_days)
    weekday_rate = sum(d in logged for d in weekday_days) / len(weekday_days)
    gap = weekday_rate - weekend_rate
    if weekday_rate > 0 and gap > WEEKEND_LOGGING_GAP:
        return DataPattern(
            kind="weekend_logging_dropoff",
            description=(
                f"Weekends logged {round(weekend_rate * 100)}% of the time "
                f"vs {round(weekday_rate * 100)}% on weekdays"
            ),
            impact=Impact.NEGATIVE,
            strength=min(gap / 0.6, 1.0),
        )
    return None


def detect_weekend_deviation(logs: list[NutritionLogDay]) -> Optional[DataPattern]:
    """Flag weekend intake that differs from weekday intake by more than 15%."""
    weekday = [log.calories for log in logs if not _is_weekend(log.date)]
    weekend = [log.calories for log in logs if _is_weekend(log.date)]
    if len(weekday) < 5 or len(weekend) < 2:
        return None

    weekday_avg = sum(weekday) / len(weekday)
    weekend_avg = sum(weekend) / len(weekend)
    deviation = abs(weekend_avg - weekday_avg) / weekday_avg
    if deviation <= WEEKEND_CALORIE_DEVIATION:
        return None

    higher = weekend_avg > weekday_avg
    return DataPattern(
        kind="weekend_deviation",
        description=(
            f"Weekend calories {round(deviation * 100)}% "
            f"{'higher' if higher else 'lower'} than weekdays"
        ),
        impact=Impact.NEGATIVE if higher else Impact.NEUTRAL,
        strength=min(deviation / 0.3, 1.0),
    )


def detect_meal_skipping(logs: list[NutritionLogDay]) -> Optional[DataPattern]:
    """Flag frequent logged days with very low intake (likely partial logs)."""
    low_days = sum(1 for log in logs if log.calories < MEAL_SKIPPING_KCAL)
    fraction = low_days / len(logs)
    if fraction <= MEAL_SKIPPING_FRACTION:
        return None
    return DataPattern(
        kind="meal_skipping",
        description=f"{round(fraction * 100)}% of logged days are under {MEAL_SKIPPING_KCAL} kcal",
        impact=Impact.NEGATIVE,
        strength=min(fraction / 0.3, 1.0),
    )


def detect_binge_restrict(logs: list[NutritionLogDay]) -> Optional[DataPattern]:
    """Flag alternating high (>120% of mean) and low (<80%) intake days."""
    calories = [log.calories for log in logs]
    mean = sum(calories) / len(calories)
    alternations = 0
    for prev, curr in zip(calories, calories[1:]):
        prev_high, curr_high = prev > mean * 1.2, curr > mean * 1.2
        prev_low, curr_low = prev < mean * 0.8, curr < mean * 0.8
        if (prev_high and curr_low) or (prev_low and curr_high):
            alternations += 1

    rate = alternations / (len(calories) - 1)
    if rate <= BINGE_RESTRICT_FRACTION:
        return None
    return DataPattern(
        kind="binge_restrict",
        description="Alternating high and low calorie days",
        impact=Impact.NEGATIVE,
        strength=min(rate / 0.5, 1.0),
    )


def detect_steady_intake(logs: list[NutritionLogDay]) -> Optional[DataPattern]:
    """Flag consistent daily intake, which makes the estimate more reliable."""
    stability = calculate_calorie_stability(logs)
    if stability <= STEADY_STABILITY:
        return None
    return DataPattern(
        kind="steady",
        description="Consistent daily calorie intake",
        impact=Impact.POSITIVE,
        strength=stability,
    )


def detect_erratic_weigh_ins(weights: list[WeightEntry]) -> Optional[DataPattern]:
    """Flag frequent large jumps between consecutive weigh-ins.

    A jump is a change of more than 1.5% body weight per elapsed day, which
    usually means inconsistent weighing conditions (time of day, clothing).
    """
    if len(weights) < 5:
        return None
    jumps = 0
    for prev, curr in zip(weights, weights[1:]):
        days = (curr.date - prev.date).days
        change_percent = abs(curr.weight - prev.weight) / prev.weight * 100
        if change_percent / days > WEIGH_IN_JUMP_PERCENT:
            jumps += 1

    fraction = jumps / (len(weights) - 1)
    if fraction <= ERRATIC_WEIGH_IN_FRACTION:
        return None
    return DataPattern(
        kind="erratic_weigh_ins",
        description=f"{round(fraction * 100)}% of weigh-ins jump more than {WEIGH_IN_JUMP_PERCENT}% from the previous one",
        impact=Impact.NEGATIVE,
        strength=min(fraction / 0.5, 1.0),
    )


def detect_patterns(
    logs: list[NutritionLogDay],
    weights: list[WeightEntry],
    window_start: date,
    window_days: int,
) -> list[DataPattern]:
    """Run all pattern detectors over the windowed, logged-only series."""
    patterns: list[DataPattern] = []

    dropoff = detect_weekend_logging_dropoff(logs, window_start, window_days)
    if dropoff:
        patterns.append(dropoff)

    if len(logs) >= MIN_LOGS_FOR_PATTERNS:
        for detector in (
            detect_weekend_deviation,
            detect_meal_skipping,
            detect_binge_restrict,
            detect_steady_intake,
        ):
            pattern = detector(logs)
            if pattern:
                patterns.append(pattern)

    erratic = detect_erratic_weigh_ins(weights)
    if erratic:
        patterns.append(erratic)

    return patterns


PATTERN_RECOMMENDATIONS = {
    "weekend_logging_dropoff": "Keep logging on weekends, even rough estimates",
    "weekend_deviation": "Plan weekend meals to match weekday consistency",
    "meal_skipping": "Log every meal of the day so partial days don't skew intake",
    "binge_restrict": "Aim for steady daily calories rather than alternating high/low days",
    "erratic_weigh_ins": "Weigh at the same time each morning, after the bathroom, before eating",
}


def build_recommendations(
    logging_density: float,
    weighing_frequency: float,
    data_stability: float,
    stability_defined: bool,
    patterns: list[DataPattern],
) -> list[str]:
    """Turn low sub-scores and negative patterns into recommendations."""
    recommendations: list[str] = []

    if logging_density < LOW_LOGGING_DENSITY:
        recommendations.append("Log meals more consistently - aim for at least 5 days per week")

    if not stability_defined:
        recommendations.append("Log weight at least twice to start measuring your trend")
    elif weighing_frequency < LOW_WEIGHING_FREQUENCY:
        recommendations.append("Log weight more consistently - aim for most mornings")

    if stability_defined and data_stability < LOW_STABILITY:
        recommendations.append("Weigh under the same conditions each day to reduce noise")

    for pattern in patterns:
        if pattern.impact == Impact.NEGATIVE and pattern.kind in PATTERN_RECOMMENDATIONS:
            recommendations.append(PATTERN_RECOMMENDATIONS[pattern.kind])

    return recommendations


def score_data_quality(
    nutrition_series: Iterable[NutritionLogDay],
    weight_series: Iterable[WeightEntry],
    window_days: Optional[int] = None,
    as_of: Optional[date] = None,
    settings: Optional[Settings] = None,
) -> DataQualityReport:
    """Score logging density, weighing frequency and weight stability.

    Args:
        nutrition_series: Daily nutrition totals (any order)
        weight_series: Weigh-ins (any order)
        window_days: Lookback window; defaults to settings (30 days)
        as_of: Last day of the window; defaults to the latest date in
               either series
        settings: Policy constants (defaults to built-in values)

    Returns:
        DataQualityReport; all-zero scores when there is no data at all
    """
    settings = settings or Settings()
    quality = settings.quality
    if window_days is None:
        window_days = quality.window_days
    if isinstance(window_days, bool) or not isinstance(window_days, int) or window_days < 1:
        raise ValidationError("window_days", f"must be a positive integer, got {window_days!r}")

    logs = normalize_nutrition_series(nutrition_series)
    weights = normalize_weight_series(weight_series)

    if as_of is None:
        last_dates = [series[-1].date for series in (logs, weights) if series]
        if not last_dates:
            logger.debug("No data to score")
            return DataQualityReport(
                window_days=window_days,
                overall_quality=0.0,
                logging_density=0.0,
                weighing_frequency=0.0,
                data_stability=0.0,
                stability_defined=False,
                recommendations=tuple(build_recommendations(0.0, 0.0, 0.0, False, [])),
            )
        as_of = max(last_dates)

    window_start = as_of - timedelta(days=window_days - 1)
    window_logs = [log for log in logs if window_start <= log.date <= as_of and log.is_logged]
    window_weights = [w for w in weights if window_start <= w.date <= as_of]

    logging_density = len(window_logs) / window_days
    weighing_frequency = len(window_weights) / window_days

    stability = calculate_weight_stability(
        window_weights, quality.noise_variance_kg2, settings.smoothing.alpha
    )
    stability_defined = stability is not None
    data_stability = stability if stability is not None else 0.0

    overall_quality = (
        logging_density * quality.logging_weight
        + weighing_frequency * quality.weighing_weight
        + data_stability * quality.stability_weight
    )

    patterns = detect_patterns(window_logs, window_weights, window_start, window_days)
    recommendations = build_recommendations(
        logging_density, weighing_frequency, data_stability, stability_defined, patterns
    )

    logger.debug(
        "Quality over %d days: density=%.2f weighing=%.2f stability=%.2f overall=%.2f",
        window_days,
        logging_density,
        weighing_frequency,
        data_stability,
        overall_quality,
    )

    return DataQualityReport(
        window_days=window_days,
        overall_quality=min(overall_quality, 1.0),
        logging_density=logging_density,
        weighing_frequency=weighing_frequency,
        data_stability=data_stability,
        stability_defined=stability_defined,
        patterns=tuple(patterns),
        recommendations=tuple(recommendations),
    )
