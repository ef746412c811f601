"""Weekly coaching: check-in summaries, macro adjustments and coaching modes."""

from __future__ import annotations

from energycoach.coaching.adjuster import (
    GoalType,
    MacroAdjustment,
    NoAdjustment,
    adjust_macros,
)
from energycoach.coaching.checkin import WeeklyCheckIn, summarize_week
from energycoach.coaching.policy import (
    CheckInAction,
    CheckInDecision,
    CoachingMode,
    confirm_proposal,
    run_weekly_check_in,
)

__all__ = [
    "CheckInAction",
    "CheckInDecision",
    "CoachingMode",
    "GoalType",
    "MacroAdjustment",
    "NoAdjustment",
    "WeeklyCheckIn",
    "adjust_macros",
    "confirm_proposal",
    "run_weekly_check_in",
    "summarize_week",
]
