"""Adherence-neutral TDEE estimation.

TDEE is inferred from what actually happened to body weight, not from how
closely the user followed their target:

    TDEE = average_logged_intake - daily_trend_change × kcal_per_kg

Losing weight means intake was below expenditure, so TDEE ends up above
intake; gaining means it ends up below. Only days with a logged nutrition
total count toward the average. Adherence to the calorie target is scored
separately and never feeds back into the TDEE figure.

The intake average covers the same days as the weight change: from the
first weigh-in in the rate window to the last weigh-in. Logs after the last
weigh-in have no measured outcome yet and only count toward adherence.

Until there is a weight-trend signal and at least a week of logged intake
inside the rate window, the estimate falls back to the profile-based
component total and is tagged `initial`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional

import numpy as np
from scipy import stats

from energycoach.config.settings import Settings
from energycoach.data.quality import quality_level_for, score_data_quality
from energycoach.errors import ValidationError
from energycoach.profiles.body_calc import ActivityProfile, BiologicalProfile, decompose_energy
from energycoach.tracking.ema import WeightTrendAnalysis, analyze_weight_trend, smooth_weights
from energycoach.tracking.models import (
    Macros,
    Methodology,
    NutritionLogDay,
    TDEEEstimate,
    WeightEntry,
    WeightTrend,
    average_logged_macros,
    confidence_level_for,
    normalize_nutrition_series,
    normalize_weight_series,
)

logger = logging.getLogger(__name__)

DEFAULT_CALORIE_TOLERANCE = 0.05
PROTEIN_TOLERANCE = 0.10
IN_RANGE_SCORE = 90  # calorie and protein score for an on-target day
MIN_DAYS_FOR_ADHERENCE_TREND = 14
ADHERENCE_TREND_POINTS = 5
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# Period weighting
PERIOD_CONSISTENCY_WEIGHT = 0.4
PERIOD_STABILITY_WEIGHT = 0.4
PERIOD_RECENCY_WEIGHT = 0.2
RECENCY_DECAY_DAYS = 30
INTAKE_CV_LIMIT = 0.4  # calorie CV at which intake stability reaches 0


def calculate_adherence(actual: float, target: float, tolerance: float = DEFAULT_CALORIE_TOLERANCE) -> float:
    """Score how closely one day's intake matched a target.

    Inside the ±tolerance band the score is 100. Outside it, the distance
    past the band edge (as a fraction of target) decays exponentially:
    100 × exp(-3 × deviation).

    Example:
        >>> calculate_adherence(2050, 2000)
        100.0
        >>> round(calculate_adherence(2300, 2000), 1)
        74.1
    """
    if target <= 0:
        return 100.0
    lower = target * (1 - tolerance)
    upper = target * (1 + tolerance)
    if lower <= actual <= upper:
        return 100.0
    if actual < lower:
        deviation = (lower - actual) / target
    else:
        deviation = (actual - upper) / target
    return max(0.0, 100 * math.exp(-3 * deviation))


def adherence_score(
    logs: Iterable[NutritionLogDay],
    target_calories: float,
    tolerance: float = DEFAULT_CALORIE_TOLERANCE,
) -> int:
    """Mean calorie adherence over logged days (0 when nothing was logged)."""
    scores = [calculate_adherence(log.calories, target_calories, tolerance) for log in logs if log.is_logged]
    if not scores:
        return 0
    return round(sum(scores) / len(scores))


class AdherenceTrend(Enum):
    """Direction of adherence between the older and newer half of a period."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass(frozen=True)
class DailyAdherence:
    """Calorie and protein scores for one logged day.

    `protein` is None on calorie-only days.
    """

    date: date
    calories: float
    protein: Optional[float]

    @property
    def combined(self) -> float:
        if self.protein is None:
            return self.calories
        return (self.calories + self.protein) / 2

    @property
    def within_range(self) -> bool:
        return self.calories >= IN_RANGE_SCORE and (self.protein is None or self.protein >= IN_RANGE_SCORE)


@dataclass(frozen=True)
class AdherenceMetrics:
    """Adherence and consistency over a lookback period."""

    period_days: int
    logged_days: int
    days_in_range: int
    calorie_adherence: int
    protein_adherence: Optional[int]
    logging_consistency: int
    overall_score: int
    streak_days: int
    trend: AdherenceTrend
    best_day: Optional[str]
    worst_day: Optional[str]
    weekday_adherence: Optional[int]
    weekend_adherence: Optional[int]
    insights: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "period_days": self.period_days,
            "logged_days": self.logged_days,
            "days_in_range": self.days_in_range,
            "calorie_adherence": self.calorie_adherence,
            "protein_adherence": self.protein_adherence,
            "logging_consistency": self.logging_consistency,
            "overall_score": self.overall_score,
            "streak_days": self.streak_days,
            "trend": self.trend.value,
            "best_day": self.best_day,
            "worst_day": self.worst_day,
            "weekday_adherence": self.weekday_adherence,
            "weekend_adherence": self.weekend_adherence,
            "insights": list(self.insights),
        }


def daily_adherence(log: NutritionLogDay, targets: Macros) -> DailyAdherence:
    """Score one day against the calorie (±5%) and protein (±10%) targets."""
    protein = None
    if log.has_macros and targets.protein_g > 0:
        protein = calculate_adherence(log.protein_g, targets.protein_g, PROTEIN_TOLERANCE)
    return DailyAdherence(
        date=log.date,
        calories=calculate_adherence(log.calories, targets.calories),
        protein=protein,
    )


def _mean(values: list[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def _round_or_none(value: Optional[float]) -> Optional[int]:
    return round(value) if value is not None else None


def _adherence_streak(days: list[DailyAdherence]) -> int:
    """Consecutive in-range days ending at the latest logged day.

    An unlogged day breaks the streak.
    """
    streak = 0
    expected = days[-1].date if days else None
    for day in reversed(days):
        if day.date != expected or not day.within_range:
            break
        streak += 1
        expected = day.date - timedelta(days=1)
    return streak


def _adherence_trend(days: list[DailyAdherence]) -> AdherenceTrend:
    if len(days) < MIN_DAYS_FOR_ADHERENCE_TREND:
        return AdherenceTrend.STABLE
    midpoint = len(days) // 2
    older = _mean([d.combined for d in days[:midpoint]])
    newer = _mean([d.combined for d in days[midpoint:]])
    difference = newer - older
    if difference > ADHERENCE_TREND_POINTS:
        return AdherenceTrend.IMPROVING
    if difference < -ADHERENCE_TREND_POINTS:
        return AdherenceTrend.DECLINING
    return AdherenceTrend.STABLE


def _adherence_insights(
    metrics: dict,
    days: list[DailyAdherence],
    logs: list[NutritionLogDay],
    target: float,
) -> list[str]:
    insights = []
    if metrics["logging_consistency"] < 60:
        insights.append("Try to log meals more consistently - aim for at least 5 days per week")
    elif metrics["logging_consistency"] >= 90:
        insights.append("Excellent logging consistency")

    if metrics["calorie_adherence"] < 70:
        off = _mean([abs(log.calories - target) for log in logs])
        insights.append(f"Averaging {round(off)} kcal off target; small adjustments can help")
    if metrics["protein_adherence"] is not None and metrics["protein_adherence"] < 80:
        insights.append("Protein intake is inconsistent; consider protein-rich staples")

    if metrics["streak_days"] >= 7:
        insights.append(f"{metrics['streak_days']}-day streak on target")
    elif metrics["streak_days"] == 0 and days:
        insights.append("Get back on target today to start a new streak")

    if metrics["trend"] == AdherenceTrend.IMPROVING:
        insights.append("Adherence is improving")
    elif metrics["trend"] == AdherenceTrend.DECLINING:
        insights.append("Adherence has slipped recently; focus on one meal at a time")
    return insights


def calculate_adherence_metrics(
    nutrition_series: Iterable[NutritionLogDay],
    targets: Macros,
    period_days: int = 30,
    as_of: Optional[date] = None,
) -> AdherenceMetrics:
    """
    Summarize how closely the logs followed the targets.

    Calorie and protein adherence are averaged over logged days (protein
    only over days with a macro breakdown). The overall score weights
    calories 40%, protein 30% and logging consistency 30%; without any
    protein data the calorie and consistency weights are rescaled.

    Args:
        nutrition_series: Daily nutrition totals in any order
        targets: Targets the days are scored against
        period_days: Lookback window ending at `as_of`
        as_of: Last day of the window (default: latest log)

    Returns:
        AdherenceMetrics; all scores are 0 when nothing was logged
    """
    if period_days < 1:
        raise ValidationError("period_days", f"must be at least 1, got {period_days}")

    logs = normalize_nutrition_series(nutrition_series)
    if as_of is None and logs:
        as_of = logs[-1].date
    if as_of is not None:
        start = as_of - timedelta(days=period_days - 1)
        logs = [log for log in logs if start <= log.date <= as_of and log.is_logged]

    if not logs:
        return AdherenceMetrics(
            period_days=period_days,
            logged_days=0,
            days_in_range=0,
            calorie_adherence=0,
            protein_adherence=None,
            logging_consistency=0,
            overall_score=0,
            streak_days=0,
            trend=AdherenceTrend.STABLE,
            best_day=None,
            worst_day=None,
            weekday_adherence=None,
            weekend_adherence=None,
            insights=("Start logging meals to track adherence",),
        )

    days = [daily_adherence(log, targets) for log in logs]
    calorie = _mean([d.calories for d in days])
    protein = _mean([d.protein for d in days if d.protein is not None])
    consistency = min(len(days) / period_days, 1.0) * 100

    if protein is None:
        overall = (0.4 * calorie + 0.3 * consistency) / 0.7
    else:
        overall = 0.4 * calorie + 0.3 * protein + 0.3 * consistency

    by_weekday: dict[int, list[float]] = {}
    for day in days:
        by_weekday.setdefault(day.date.weekday(), []).append(day.combined)
    weekday_means = {wd: _mean(scores) for wd, scores in sorted(by_weekday.items())}
    best = max(weekday_means, key=weekday_means.get)
    worst = min(weekday_means, key=weekday_means.get)

    metrics = {
        "calorie_adherence": round(calorie),
        "protein_adherence": _round_or_none(protein),
        "logging_consistency": round(consistency),
        "overall_score": round(overall),
        "streak_days": _adherence_streak(days),
        "trend": _adherence_trend(days),
    }
    insights = _adherence_insights(metrics, days, logs, targets.calories)

    return AdherenceMetrics(
        period_days=period_days,
        logged_days=len(days),
        days_in_range=sum(1 for d in days if d.within_range),
        best_day=WEEKDAY_NAMES[best],
        worst_day=WEEKDAY_NAMES[worst],
        weekday_adherence=_round_or_none(_mean([d.calories for d in days if d.date.weekday() < 5])),
        weekend_adherence=_round_or_none(_mean([d.calories for d in days if d.date.weekday() >= 5])),
        insights=tuple(insights),
        **metrics,
    )


def trend_consistency(trend: WeightTrendAnalysis) -> float:
    """R² of a least-squares line through the trend points in the rate window.

    A maintaining trend is consistent by definition (a flat line explains
    nothing, but there is nothing to explain).
    """
    if not trend.has_rate:
        return 0.0
    if trend.direction == WeightTrend.MAINTAINING:
        return 1.0
    points = trend.window_points()
    if len(points) < 3:
        return 1.0
    x = [p.date.toordinal() for p in points]
    y = [p.trend_weight for p in points]
    result = stats.linregress(x, y)
    r_squared = result.rvalue ** 2
    if not math.isfinite(r_squared):
        return 0.0
    return float(r_squared)


def calculate_confidence(
    overall_quality: float,
    trend: WeightTrendAnalysis,
    settings: Settings,
) -> int:
    """Blend data quality with the strength of the weight-trend signal.

    confidence = 100 × (w × quality + (1 - w) × signal), where signal is
    the mean of window coverage (N / rate window) and trend consistency.
    Extreme weekly rates are penalized as likely water or logging noise.
    """
    est = settings.estimator
    coverage = min(trend.rate_window_days / settings.smoothing.rate_window_days, 1.0)
    signal = (coverage + trend_consistency(trend)) / 2

    confidence = 100 * (est.quality_weight * overall_quality + (1 - est.quality_weight) * signal)
    if abs(trend.weekly_change_rate_percent) > est.extreme_rate_percent:
        confidence *= est.extreme_rate_penalty
    return max(0, min(100, round(confidence)))


def _resolve_as_of(
    weights: list[WeightEntry],
    logs: list[NutritionLogDay],
    as_of: Optional[date],
) -> Optional[date]:
    if as_of is not None:
        return as_of
    last_dates = [series[-1].date for series in (weights, logs) if series]
    return max(last_dates) if last_dates else None


def _recent_window_start(as_of: Optional[date], settings: Settings) -> Optional[date]:
    if as_of is None:
        return None
    return as_of - timedelta(days=settings.smoothing.rate_window_days - 1)


def _logs_between(
    logs: list[NutritionLogDay],
    start: Optional[date],
    end: Optional[date],
) -> list[NutritionLogDay]:
    """Logged days in [start, end], both inclusive."""
    if start is None or end is None:
        return []
    return [log for log in logs if start <= log.date <= end and log.is_logged]


def estimate_tdee(
    weight_series: Iterable[WeightEntry],
    nutrition_series: Iterable[NutritionLogDay],
    current_targets: Macros,
    biological: BiologicalProfile,
    activity: ActivityProfile,
    as_of: Optional[date] = None,
    settings: Optional[Settings] = None,
) -> TDEEEstimate:
    """
    Estimate TDEE from the weight trend and logged intake.

    Args:
        weight_series: Weigh-ins in any order
        nutrition_series: Daily nutrition totals in any order
        current_targets: Current calorie/macro targets (adherence only)
        biological: Biological profile (for the component decomposition)
        activity: Activity profile
        as_of: Estimate date; entries after it are ignored. Defaults to
               the latest date in either series.
        settings: Policy constants (defaults to built-in values)

    Returns:
        TDEEEstimate. Never raises for short or empty series.
    """
    settings = settings or Settings()
    est = settings.estimator

    weights = normalize_weight_series(weight_series)
    logs = normalize_nutrition_series(nutrition_series)
    as_of = _resolve_as_of(weights, logs, as_of)
    if as_of is not None:
        weights = [w for w in weights if w.date <= as_of]
        logs = [log for log in logs if log.date <= as_of]

    trend = analyze_weight_trend(weights, settings)
    quality = score_data_quality(logs, weights, as_of=as_of, settings=settings)

    recent_logs = _logs_between(logs, _recent_window_start(as_of, settings), as_of)
    if trend.has_rate:
        # Intake must cover the same days as the measured weight change
        window_logs = _logs_between(logs, trend.window_points()[0].date, trend.latest_date)
    else:
        window_logs = recent_logs
    logged_days = len(window_logs)
    average = average_logged_macros(window_logs)
    average_intake = average.calories if average is not None else None

    warnings: list[str] = []
    confidence = calculate_confidence(quality.overall_quality, trend, settings)
    trend_weight = trend.trend_weight if trend.trend_weight is not None else biological.weight_kg

    stale_days = (as_of - trend.latest_date).days if trend.latest_date is not None else 0
    if trend.has_rate and stale_days > est.stale_weigh_in_days:
        confidence = round(confidence * est.stale_confidence_penalty)
        warnings.append(
            f"Last weigh-in was {stale_days} days before {as_of.isoformat()}; "
            f"estimate reflects the period ending {trend.latest_date.isoformat()}"
        )

    if not trend.has_rate or logged_days < est.min_logged_days:
        logger.debug(
            "Initial methodology: has_rate=%s, logged_days=%d (need %d)",
            trend.has_rate,
            logged_days,
            est.min_logged_days,
        )
        intake_for_tef = average_intake if average_intake is not None else current_targets.calories
        components = decompose_energy(biological, activity, intake_for_tef, macros=average)
        current_tdee = components.total
        methodology = Methodology.INITIAL
        confidence = min(confidence, est.initial_confidence_cap)
        if not trend.has_rate:
            warnings.append("Not enough weigh-ins to measure a weight trend")
        if logged_days < est.min_logged_days:
            warnings.append(
                f"Only {logged_days} logged days in the weight-trend window "
                f"(need {est.min_logged_days}); using profile-based estimate"
            )
    else:
        current_tdee = round(average_intake - trend.daily_change_rate * est.kcal_per_kg)
        methodology = Methodology.ADHERENCE_NEUTRAL
        if current_tdee > 0:
            components = decompose_energy(
                biological, activity, average_intake, actual_tdee=current_tdee, macros=average
            )
        else:
            components = None
        logger.debug(
            "Adherence-neutral TDEE: intake=%.0f rate=%.4f kg/day -> %d kcal",
            average_intake,
            trend.daily_change_rate,
            current_tdee,
        )

    if not est.plausible_min_kcal <= current_tdee <= est.plausible_max_kcal:
        warnings.append(
            f"Estimated TDEE of {current_tdee} kcal is outside the plausible range "
            f"({est.plausible_min_kcal}-{est.plausible_max_kcal}); check logs for missing entries"
        )
    if abs(trend.weekly_change_rate_percent) > est.extreme_rate_percent:
        warnings.append(
            f"Weight is changing {abs(trend.weekly_change_rate_percent):.1f}% per week; "
            "likely water shifts, confidence reduced"
        )

    for warning in warnings:
        logger.debug("Estimate warning: %s", warning)

    return TDEEEstimate(
        as_of=as_of,
        current_tdee=current_tdee,
        confidence_percent=confidence,
        confidence_level=confidence_level_for(confidence),
        trend_weight=trend_weight,
        daily_change_rate=trend.daily_change_rate,
        weekly_change_rate_percent=trend.weekly_change_rate_percent,
        weight_trend=trend.direction,
        adherence_score_percent=adherence_score(recent_logs, current_targets.calories),
        data_quality=quality_level_for(quality.overall_quality),
        methodology=methodology,
        average_intake=round(average_intake) if average_intake is not None else None,
        logged_days=logged_days,
        energy_components=components,
        quality_report=quality,
        warnings=tuple(warnings),
    )


@dataclass(frozen=True)
class DataPeriod:
    """A fixed-length slice of the logs and its weight in the blended TDEE.

    `tdee` is None when the period has no logged intake or fewer than two
    weigh-ins to measure a trend change.
    """

    start_date: date
    end_date: date
    logged_days: int
    weigh_ins: int
    consistency: float  # 0-1
    stability: float    # 0-1
    recency: float      # 0-1
    weight: float       # 0-1
    tdee: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "logged_days": self.logged_days,
            "weigh_ins": self.weigh_ins,
            "consistency": round(self.consistency, 3),
            "stability": round(self.stability, 3),
            "recency": round(self.recency, 3),
            "weight": round(self.weight, 3),
            "tdee": self.tdee,
        }


@dataclass(frozen=True)
class WeightedTDEE:
    """TDEE blended across periods by data quality and recency."""

    tdee: Optional[int]
    confidence: float  # 0-1, total weight of the usable periods
    periods: tuple[DataPeriod, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "tdee": self.tdee,
            "confidence": round(self.confidence, 3),
            "periods": [p.to_dict() for p in self.periods],
        }


def intake_stability(calories: list[float]) -> float:
    """1 - CV / 0.4, clamped to 0-1; 0.5 when there are fewer than two days."""
    if len(calories) < 2:
        return 0.5
    mean = float(np.mean(calories))
    if mean <= 0:
        return 0.0
    cv = float(np.std(calories)) / mean
    return max(0.0, min(1.0, 1 - cv / INTAKE_CV_LIMIT))


def analyze_data_periods(
    weight_series: Iterable[WeightEntry],
    nutrition_series: Iterable[NutritionLogDay],
    period_days: int = 7,
    settings: Optional[Settings] = None,
) -> list[DataPeriod]:
    """
    Split the logs into consecutive periods and weight each one.

    weight = 0.4 × consistency + 0.4 × intake stability + 0.2 × recency,
    where recency decays as exp(-days_before_end / 30). Periods with
    neither a log nor a weigh-in are skipped.

    Args:
        weight_series: Weigh-ins in any order
        nutrition_series: Daily nutrition totals in any order
        period_days: Length of each period
        settings: Policy constants (defaults to built-in values)

    Returns:
        Periods in date order; empty when either series has no data
    """
    if period_days < 1:
        raise ValidationError("period_days", f"must be at least 1, got {period_days}")
    settings = settings or Settings()

    weights = normalize_weight_series(weight_series)
    logs = [log for log in normalize_nutrition_series(nutrition_series) if log.is_logged]
    if not weights or not logs:
        return []

    points = smooth_weights(weights, settings.smoothing.alpha)
    first = min(weights[0].date, logs[0].date)
    last = max(weights[-1].date, logs[-1].date)

    periods: list[DataPeriod] = []
    start = first
    while start <= last:
        end = start + timedelta(days=period_days - 1)
        period_logs = [log for log in logs if start <= log.date <= end]
        period_points = [p for p in points if start <= p.date <= end]

        if period_logs or period_points:
            calories = [log.calories for log in period_logs]
            consistency = len(period_logs) / period_days
            stability = intake_stability(calories)
            recency = math.exp(-(last - start).days / RECENCY_DECAY_DAYS)

            tdee = None
            if period_logs and len(period_points) >= 2:
                span = (period_points[-1].date - period_points[0].date).days
                rate = (period_points[-1].trend_weight - period_points[0].trend_weight) / span
                tdee = round(sum(calories) / len(calories) - rate * settings.estimator.kcal_per_kg)

            periods.append(
                DataPeriod(
                    start_date=start,
                    end_date=end,
                    logged_days=len(period_logs),
                    weigh_ins=len(period_points),
                    consistency=consistency,
                    stability=stability,
                    recency=recency,
                    weight=(
                        PERIOD_CONSISTENCY_WEIGHT * consistency
                        + PERIOD_STABILITY_WEIGHT * stability
                        + PERIOD_RECENCY_WEIGHT * recency
                    ),
                    tdee=tdee,
                )
            )
        start += timedelta(days=period_days)

    return periods


def weighted_tdee(
    weight_series: Iterable[WeightEntry],
    nutrition_series: Iterable[NutritionLogDay],
    period_days: int = 7,
    settings: Optional[Settings] = None,
) -> WeightedTDEE:
    """Blend per-period TDEE figures by period weight.

    Confidence is the total weight of the periods that produced a figure,
    capped at 1.
    """
    periods = analyze_data_periods(weight_series, nutrition_series, period_days, settings)
    usable = [p for p in periods if p.tdee is not None]
    total_weight = sum(p.weight for p in usable)
    if total_weight <= 0:
        return WeightedTDEE(tdee=None, confidence=0.0, periods=tuple(periods))

    blended = sum(p.tdee * p.weight for p in usable) / total_weight
    logger.debug("Weighted TDEE from %d of %d periods: %.0f", len(usable), len(periods), blended)
    return WeightedTDEE(
        tdee=round(blended),
        confidence=min(total_weight, 1.0),
        periods=tuple(periods),
    )
