"""Exponentially smoothed moving average for weight tracking.

The trend follows the classic recurrence:
    T_n = T_{n-1} + alpha × (W_n - T_{n-1})

The base smoothing factor is derived from a half-life rather than picked
directly:
    alpha = 1 - 2^(-1 / half_life_days)

With the default half-life of 10 days (alpha ~= 0.067), a single day of
water retention moves the trend by less than 7% of the spike, while a real
change in body mass is half reflected within about ten days.

For non-daily measurements, we use time-scaled smoothing:
    alpha_t = 1 - (1 - alpha)^t
where t is days since last measurement. Missing days are skipped rather
than interpolated, so a gap never masquerades as "no change".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from energycoach.config.settings import Settings
from energycoach.tracking.models import WeightEntry, WeightTrend, normalize_weight_series

logger = logging.getLogger(__name__)

DEFAULT_HALF_LIFE_DAYS = 10.0


def alpha_from_half_life(half_life_days: float) -> float:
    """
    Convert a half-life in days to a per-day smoothing factor.

    Example:
        >>> round(alpha_from_half_life(10), 4)
        0.067
        >>> round(alpha_from_half_life(7), 4)
        0.0943
    """
    if half_life_days <= 0:
        raise ValueError("half_life_days must be positive")
    return 1 - 2 ** (-1 / half_life_days)


DEFAULT_SMOOTHING = alpha_from_half_life(DEFAULT_HALF_LIFE_DAYS)


def time_scaled_alpha(base_alpha: float, days_elapsed: int) -> float:
    """
    Adjust smoothing factor for non-daily measurements.

    Args:
        base_alpha: Base per-day smoothing factor
        days_elapsed: Days since last measurement

    Returns:
        Adjusted smoothing factor

    Example:
        >>> round(time_scaled_alpha(0.1, 1), 3)  # Daily: unchanged
        0.1
        >>> round(time_scaled_alpha(0.1, 3), 3)  # 3 days: trust new measurement more
        0.271
    """
    if days_elapsed <= 0:
        days_elapsed = 1
    return 1 - (1 - base_alpha) ** days_elapsed


def update_trend(
    prev_trend: float,
    today_weight: float,
    smoothing: float = DEFAULT_SMOOTHING,
    days_elapsed: int = 1,
) -> float:
    """
    Calculate new trend value using exponentially smoothed moving average.

    Args:
        prev_trend: Previous trend value (T_{n-1})
        today_weight: Today's scale weight (W_n)
        smoothing: Base smoothing factor
                   Higher values = more responsive, more noise
                   Lower values = smoother, more lag
        days_elapsed: Days since last measurement (default 1)

    Returns:
        Today's trend value (T_n)
    """
    adjusted_alpha = time_scaled_alpha(smoothing, days_elapsed)
    return prev_trend + adjusted_alpha * (today_weight - prev_trend)


def calculate_trend_from_scratch(
    weights: list[float] | list[tuple[date, float]],
    smoothing: float = DEFAULT_SMOOTHING,
) -> list[float]:
    """
    Calculate trend values for a series of weights.

    The first weight is used as the initial trend value. If date/weight
    tuples are provided, gaps between measurements are detected and the
    smoothing factor is adjusted accordingly.

    Args:
        weights: Either:
            - List of weight measurements in chronological order (assumes daily)
            - List of (date, weight) tuples for gap-aware calculation
        smoothing: Base smoothing factor

    Returns:
        List of trend values, same length as weights
    """
    if not weights:
        return []

    first = weights[0]
    if isinstance(first, tuple):
        dated_weights: list[tuple[date, float]] = weights  # type: ignore
        trends = [dated_weights[0][1]]

        for i in range(1, len(dated_weights)):
            prev_date, _ = dated_weights[i - 1]
            curr_date, curr_weight = dated_weights[i]
            days_elapsed = (curr_date - prev_date).days
            trends.append(update_trend(trends[-1], curr_weight, smoothing, days_elapsed))
    else:
        weight_list: list[float] = weights  # type: ignore
        trends = [weight_list[0]]
        for weight in weight_list[1:]:
            trends.append(update_trend(trends[-1], weight, smoothing))

    return trends


@dataclass(frozen=True)
class TrendPoint:
    """Raw and smoothed weight on a weigh-in day."""

    date: date
    raw_weight: float
    trend_weight: float

    @property
    def residual(self) -> float:
        return self.raw_weight - self.trend_weight


@dataclass(frozen=True)
class WeightTrendAnalysis:
    """Smoothed trend aligned to the most recent weigh-in.

    `has_rate` is False when fewer than two distinct days exist in the rate
    window; the rates are then reported as 0 and callers should treat the
    trend signal as undefined.
    """

    trend_weight: Optional[float]
    daily_change_rate: float        # kg/day
    weekly_change_rate_percent: float
    direction: WeightTrend
    rate_window_days: int
    has_rate: bool
    points: tuple[TrendPoint, ...] = field(default_factory=tuple)

    @property
    def latest_date(self) -> Optional[date]:
        return self.points[-1].date if self.points else None

    def window_points(self) -> tuple[TrendPoint, ...]:
        """Trend points inside the rate window."""
        if not self.points:
            return ()
        start = self.points[-1].date.toordinal() - self.rate_window_days
        return tuple(p for p in self.points if p.date.toordinal() >= start)

    def trend_change_over(self, days: int) -> float:
        """Trend change over the last `days` (0 if no earlier point exists)."""
        if len(self.points) < 2:
            return 0.0
        latest = self.points[-1]
        start = latest.date.toordinal() - days
        earlier = [p for p in self.points if p.date.toordinal() >= start]
        return latest.trend_weight - earlier[0].trend_weight


def smooth_weights(
    entries: Iterable[WeightEntry],
    smoothing: float = DEFAULT_SMOOTHING,
) -> list[TrendPoint]:
    """Sort weigh-ins and attach the gap-aware trend to each one."""
    ordered = normalize_weight_series(entries)
    trends = calculate_trend_from_scratch([(e.date, e.weight) for e in ordered], smoothing)
    return [
        TrendPoint(date=e.date, raw_weight=e.weight, trend_weight=t)
        for e, t in zip(ordered, trends)
    ]


def classify_trend(weekly_change_rate_percent: float, threshold_percent: float) -> WeightTrend:
    """Classify a weekly % change; the threshold itself counts as maintaining."""
    if weekly_change_rate_percent > threshold_percent:
        return WeightTrend.GAINING
    if weekly_change_rate_percent < -threshold_percent:
        return WeightTrend.LOSING
    return WeightTrend.MAINTAINING


def analyze_weight_trend(
    entries: Iterable[WeightEntry],
    settings: Optional[Settings] = None,
) -> WeightTrendAnalysis:
    """
    Smooth a gap-ridden weight series and measure its short-term rate.

    The daily rate is (T_latest - T_earliest_in_window) / N, where N is the
    number of days between the earliest weigh-in at most
    `rate_window_days` (14) before the latest one and the latest one.

    Args:
        entries: Weigh-ins in any order
        settings: Policy constants (defaults to built-in values)

    Returns:
        WeightTrendAnalysis; never raises for short series
    """
    settings = settings or Settings()
    smoothing = settings.smoothing
    points = smooth_weights(entries, smoothing.alpha)

    if not points:
        return WeightTrendAnalysis(
            trend_weight=None,
            daily_change_rate=0.0,
            weekly_change_rate_percent=0.0,
            direction=WeightTrend.MAINTAINING,
            rate_window_days=0,
            has_rate=False,
        )

    latest = points[-1]
    earliest_allowed = latest.date.toordinal() - smoothing.rate_window_days
    window = [p for p in points if p.date.toordinal() >= earliest_allowed]
    span_days = (latest.date - window[0].date).days

    if span_days == 0:
        logger.debug("Only one weigh-in day in rate window; rate undefined")
        return WeightTrendAnalysis(
            trend_weight=latest.trend_weight,
            daily_change_rate=0.0,
            weekly_change_rate_percent=0.0,
            direction=WeightTrend.MAINTAINING,
            rate_window_days=0,
            has_rate=False,
            points=tuple(points),
        )

    daily_rate = (latest.trend_weight - window[0].trend_weight) / span_days
    weekly_percent = daily_rate * 7 / latest.trend_weight * 100

    return WeightTrendAnalysis(
        trend_weight=latest.trend_weight,
        daily_change_rate=daily_rate,
        weekly_change_rate_percent=weekly_percent,
        direction=classify_trend(weekly_percent, smoothing.trend_threshold_percent),
        rate_window_days=span_days,
        has_rate=True,
        points=tuple(points),
    )


def estimate_daily_energy_balance(daily_change_kg: float, kcal_per_kg: float = 7700.0) -> float:
    """
    Estimate daily calorie surplus/deficit from a daily trend change.

    Args:
        daily_change_kg: Trend change in kg/day (negative = loss)
        kcal_per_kg: Energy density of body mass change

    Returns:
        Daily calorie balance (negative = deficit, positive = surplus)
    """
    return daily_change_kg * kcal_per_kg
