"""Adaptive energy expenditure engine.

Estimates TDEE from noisy weight and intake logs, breaks it into
physiological components, scores how far the estimate can be trusted and
drives weekly calorie/macro adjustments.
"""

from __future__ import annotations

from energycoach.config import Settings
from energycoach.errors import ConfigError, EnergyCoachError, ValidationError
from energycoach.tracking.models import (
    Macros,
    NutritionLogDay,
    TDEEEstimate,
    WeightEntry,
)
from energycoach.profiles.body_calc import (
    ActivityProfile,
    BiologicalProfile,
    EnergyComponents,
    decompose_energy,
)
from energycoach.data.quality import DataQualityReport, score_data_quality
from energycoach.tracking.estimator import estimate_tdee
from energycoach.tracking.diagnostics import ExpenditureRecord, build_expenditure_record
from energycoach.coaching import (
    CoachingMode,
    GoalType,
    MacroAdjustment,
    NoAdjustment,
    WeeklyCheckIn,
    adjust_macros,
    run_weekly_check_in,
)

__version__ = "0.1.0"

__all__ = [
    "ActivityProfile",
    "BiologicalProfile",
    "CoachingMode",
    "ConfigError",
    "DataQualityReport",
    "EnergyCoachError",
    "EnergyComponents",
    "ExpenditureRecord",
    "GoalType",
    "MacroAdjustment",
    "Macros",
    "NoAdjustment",
    "NutritionLogDay",
    "Settings",
    "TDEEEstimate",
    "ValidationError",
    "WeeklyCheckIn",
    "WeightEntry",
    "adjust_macros",
    "build_expenditure_record",
    "decompose_energy",
    "estimate_tdee",
    "run_weekly_check_in",
    "score_data_quality",
]
