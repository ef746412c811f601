"""History rows and text reports for TDEE estimates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, Iterable, Optional, Union

from energycoach.profiles.body_calc import EnergyComponents, component_breakdown
from energycoach.tracking.ema import analyze_weight_trend
from energycoach.tracking.models import (
    NutritionLogDay,
    TDEEEstimate,
    WeightEntry,
    normalize_nutrition_series,
    normalize_weight_series,
)

if TYPE_CHECKING:
    from energycoach.coaching.adjuster import MacroAdjustment, NoAdjustment
    from energycoach.data.quality import DataQualityReport
    from energycoach.tracking.estimator import AdherenceMetrics, WeightedTDEE

ALGORITHM_VERSION = "v3.0"


@dataclass(frozen=True)
class ExpenditureRecord:
    """One history row per TDEE calculation.

    Display only: the estimator always recomputes from the raw series and
    never reads these rows back.
    """

    date: Optional[date]
    estimated_tdee: int
    confidence: int
    weight_kg: Optional[float]
    calories_consumed: Optional[float]
    weight_change_7d: float
    weight_change_14d: float
    trend: str
    calorie_average_7d: Optional[float]
    calorie_average_14d: Optional[float]
    algorithm_version: str = ALGORITHM_VERSION

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat() if self.date else None,
            "estimated_tdee": self.estimated_tdee,
            "confidence": self.confidence,
            "weight_kg": self.weight_kg,
            "calories_consumed": self.calories_consumed,
            "weight_change_7d": round(self.weight_change_7d, 2),
            "weight_change_14d": round(self.weight_change_14d, 2),
            "trend": self.trend,
            "calorie_average_7d": self.calorie_average_7d,
            "calorie_average_14d": self.calorie_average_14d,
            "algorithm_version": self.algorithm_version,
        }


def _calorie_average(logs: list[NutritionLogDay], as_of: date, days: int) -> Optional[float]:
    """Average calories over logged days in the `days` ending at `as_of`."""
    start = as_of - timedelta(days=days - 1)
    calories = [log.calories for log in logs if start <= log.date <= as_of and log.is_logged]
    if not calories:
        return None
    return round(sum(calories) / len(calories), 1)


def build_expenditure_record(
    estimate: TDEEEstimate,
    weight_series: Iterable[WeightEntry],
    nutrition_series: Iterable[NutritionLogDay],
) -> ExpenditureRecord:
    """
    Build the history row for a TDEE calculation.

    Args:
        estimate: The estimate being recorded
        weight_series: Weigh-ins the estimate was computed from
        nutrition_series: Nutrition logs the estimate was computed from

    Returns:
        ExpenditureRecord dated at the estimate's `as_of`
    """
    as_of = estimate.as_of
    weights = normalize_weight_series(weight_series)
    logs = normalize_nutrition_series(nutrition_series)
    if as_of is not None:
        weights = [w for w in weights if w.date <= as_of]
        logs = [log for log in logs if log.date <= as_of]

    analysis = analyze_weight_trend(weights)

    calories_consumed = None
    calorie_average_7d = None
    calorie_average_14d = None
    if as_of is not None:
        today = [log for log in logs if log.date == as_of and log.is_logged]
        calories_consumed = today[0].calories if today else None
        calorie_average_7d = _calorie_average(logs, as_of, 7)
        calorie_average_14d = _calorie_average(logs, as_of, 14)

    return ExpenditureRecord(
        date=as_of,
        estimated_tdee=estimate.current_tdee,
        confidence=estimate.confidence_percent,
        weight_kg=weights[-1].weight if weights else None,
        calories_consumed=calories_consumed,
        weight_change_7d=analysis.trend_change_over(7),
        weight_change_14d=analysis.trend_change_over(14),
        trend=estimate.weight_trend.value,
        calorie_average_7d=calorie_average_7d,
        calorie_average_14d=calorie_average_14d,
    )


def format_components(components: EnergyComponents) -> str:
    """Format an energy decomposition as text."""
    lines = [
        "Energy Expenditure Components",
        "=" * 45,
    ]
    for share in component_breakdown(components):
        lines.append(f"{share.label:<5} {share.value:>5} kcal  ({share.percentage:4.1f}%)  {share.description}")
    lines.append("-" * 45)
    lines.append(f"Total {components.total:>5} kcal/day")
    suffix = " (reconciled with observed TDEE)" if components.reconciled else ""
    lines.append(f"Confidence: {components.confidence * 100:.0f}%{suffix}")
    return "\n".join(lines)


def format_quality_report(report: DataQualityReport) -> str:
    """Format a data quality report as text."""
    stability = f"{report.data_stability:.0%}" if report.stability_defined else "n/a (need 2+ weigh-ins)"
    lines = [
        f"Data Quality (last {report.window_days} days): {report.level.value}",
        "=" * 45,
        f"Overall quality:    {report.overall_quality:.0%}",
        f"Logging density:    {report.logging_density:.0%}",
        f"Weighing frequency: {report.weighing_frequency:.0%}",
        f"Weight stability:   {stability}",
    ]

    if report.patterns:
        lines.append("")
        lines.append("Patterns:")
        for pattern in report.patterns:
            lines.append(f"  [{pattern.impact.value}] {pattern.description}")

    if report.recommendations:
        lines.append("")
        lines.append("Recommendations:")
        for rec in report.recommendations:
            lines.append(f"  - {rec}")

    return "\n".join(lines)


def format_adherence_metrics(metrics: AdherenceMetrics) -> str:
    """Format adherence metrics as text."""
    protein = f"{metrics.protein_adherence}%" if metrics.protein_adherence is not None else "n/a (no macro logs)"
    lines = [
        f"Adherence (last {metrics.period_days} days): {metrics.overall_score}%",
        "=" * 45,
        f"Calories on target: {metrics.calorie_adherence}%",
        f"Protein on target:  {protein}",
        f"Logging:            {metrics.logged_days} days ({metrics.logging_consistency}%)",
        f"Days in range:      {metrics.days_in_range}",
        f"Current streak:     {metrics.streak_days} days",
        f"Trend:              {metrics.trend.value}",
    ]
    if metrics.best_day is not None:
        lines.append(f"Best / worst day:   {metrics.best_day} / {metrics.worst_day}")
    if metrics.weekday_adherence is not None and metrics.weekend_adherence is not None:
        lines.append(f"Weekdays/weekends:  {metrics.weekday_adherence}% / {metrics.weekend_adherence}%")

    if metrics.insights:
        lines.append("")
        for insight in metrics.insights:
            lines.append(f"  - {insight}")
    return "\n".join(lines)


def format_weighted_tdee(result: WeightedTDEE) -> str:
    """Format a period-weighted TDEE as text."""
    if result.tdee is None:
        headline = "Weighted TDEE: not enough data (need logs and 2+ weigh-ins in a period)"
    else:
        headline = f"Weighted TDEE: {result.tdee} kcal/day ({result.confidence:.0%} confidence)"
    lines = [headline, "=" * 45]
    for period in result.periods:
        tdee = f"{period.tdee} kcal" if period.tdee is not None else "-"
        lines.append(
            f"{period.start_date} to {period.end_date}: {tdee:>10}  "
            f"weight {period.weight:.2f} ({period.logged_days} logs, {period.weigh_ins} weigh-ins)"
        )
    return "\n".join(lines)


def format_tdee_estimate(estimate: TDEEEstimate) -> str:
    """Format a TDEE estimate as text."""
    rate_dir = {"losing": "losing", "gaining": "gaining"}.get(estimate.weight_trend.value, "stable")
    lines = [
        "Total Daily Energy Expenditure (TDEE) Estimate",
        "=" * 50,
        f"Estimated TDEE:   {estimate.current_tdee} kcal/day",
        f"Confidence:       {estimate.confidence_percent}% ({estimate.confidence_level.value})",
        f"Methodology:      {estimate.methodology.value.replace('_', '-')}",
        f"Trend weight:     {estimate.trend_weight:.1f} kg",
        f"Rate:             {estimate.weekly_change_rate_percent:+.2f}% body weight/week ({rate_dir})",
    ]

    if estimate.average_intake is not None:
        lines.append(
            f"Average intake:   {estimate.average_intake} kcal/day over {estimate.logged_days} logged days"
        )
    lines.append(f"Target adherence: {estimate.adherence_score_percent}%")
    lines.append(f"Data quality:     {estimate.data_quality.value}")

    if estimate.warnings:
        lines.append("")
        lines.append("Notes:")
        for warning in estimate.warnings:
            lines.append(f"  - {warning}")

    return "\n".join(lines)


def format_adjustment(result: Union[MacroAdjustment, NoAdjustment]) -> str:
    """Format a weekly macro adjustment (or the reason there is none) as text."""
    if not hasattr(result, "proposed"):
        return f"No adjustment this week: {result.reason}"

    prev, new = result.previous, result.proposed
    lines = [
        f"Calorie adjustment: {result.calorie_delta:+.0f} kcal/day ({result.direction.value})",
        "=" * 45,
        f"Calories: {prev.calories:.0f} -> {new.calories:.0f}",
        f"Protein:  {prev.protein_g:.0f}g -> {new.protein_g:.0f}g",
        f"Carbs:    {prev.carbs_g:.0f}g -> {new.carbs_g:.0f}g",
        f"Fat:      {prev.fat_g:.0f}g -> {new.fat_g:.0f}g",
    ]
    if result.reasons:
        lines.append("")
        lines.append("Reasons:")
        for reason in result.reasons:
            lines.append(f"  - {reason}")
    return "\n".join(lines)
