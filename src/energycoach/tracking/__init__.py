"""Weight tracking and TDEE estimation.

This module smooths noisy, gap-ridden weigh-ins into a trend using a
half-life based exponentially smoothed moving average, and infers TDEE
from that trend and the logged intake (adherence-neutral energy balance).

Key components:
- EMA trend calculation (10 day half-life, gap-aware)
- Validated value objects for weigh-ins, nutrition logs and targets
- `energycoach.tracking.estimator.estimate_tdee` for the estimate itself
"""

from __future__ import annotations

from energycoach.tracking.ema import analyze_weight_trend, update_trend
from energycoach.tracking.models import (
    Macros,
    NutritionLogDay,
    TDEEEstimate,
    WeightEntry,
    WeightTrend,
)

__all__ = [
    "Macros",
    "NutritionLogDay",
    "TDEEEstimate",
    "WeightEntry",
    "WeightTrend",
    "analyze_weight_trend",
    "update_trend",
]
