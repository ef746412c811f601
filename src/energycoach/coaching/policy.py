"""Coaching-mode policy for the weekly check-in.

The only place that decides what happens to a computed adjustment:

- coached: the adjustment is applied automatically
- collaborative: the adjustment is proposed and needs `confirm_proposal`
- manual: the adjuster is never called; the user controls targets
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from energycoach.coaching.adjuster import (
    AdjustmentResult,
    GoalType,
    MacroAdjustment,
    NoAdjustment,
    adjust_macros,
)
from energycoach.coaching.checkin import WeeklyCheckIn
from energycoach.config.settings import Settings
from energycoach.errors import ProposalError
from energycoach.profiles.body_calc import Sex
from energycoach.tracking.models import Macros, coerce_enum

logger = logging.getLogger(__name__)


class CoachingMode(Enum):
    """Who controls the calorie targets."""
    COACHED = "coached"
    COLLABORATIVE = "collaborative"
    MANUAL = "manual"


class CheckInAction(Enum):
    """What the caller should do with the check-in result."""
    APPLY = "apply"
    PROPOSE = "propose"
    SUPPRESS = "suppress"


@dataclass(frozen=True)
class CheckInDecision:
    """Outcome of a weekly check-in.

    `new_targets` is set only when the action is APPLY; a PROPOSE decision
    carries the adjustment in `result` until it is confirmed.
    """

    mode: CoachingMode
    action: CheckInAction
    check_in: WeeklyCheckIn
    result: Optional[AdjustmentResult] = None
    new_targets: Optional[Macros] = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "action": self.action.value,
            "check_in": self.check_in.to_dict(),
            "result": self.result.to_dict() if self.result is not None else None,
            "new_targets": self.new_targets.to_dict() if self.new_targets else None,
            "message": self.message,
        }


Adjuster = Callable[..., AdjustmentResult]


def run_weekly_check_in(
    mode: Union[CoachingMode, str],
    check_in: WeeklyCheckIn,
    current_targets: Macros,
    goal_type: Union[GoalType, str],
    *,
    body_weight_kg: Optional[float] = None,
    bmr: Optional[float] = None,
    sex: Union[Sex, str, None] = None,
    protein_g_per_kg: Optional[float] = None,
    settings: Optional[Settings] = None,
    adjust: Adjuster = adjust_macros,
) -> CheckInDecision:
    """
    Decide whether a weekly adjustment is applied, proposed or suppressed.

    Args:
        mode: Coaching mode
        check_in: The week's summary and ratings
        current_targets: Current daily targets
        goal_type: Goal passed to the adjuster
        body_weight_kg: Current body weight, for the protein floor
        bmr: Estimated BMR, for the calorie floor
        sex: Biological sex, for the calorie floor
        protein_g_per_kg: Per-kilogram protein policy, if any
        settings: Policy constants (defaults to built-in values)
        adjust: Adjustment function (injected for testing)

    Returns:
        CheckInDecision
    """
    mode = coerce_enum(CoachingMode, "mode", mode)

    if mode == CoachingMode.MANUAL:
        logger.debug("Manual coaching: adjustment not computed")
        return CheckInDecision(
            mode=mode,
            action=CheckInAction.SUPPRESS,
            check_in=check_in,
            message="Manual mode: targets are unchanged",
        )

    result = adjust(
        current_targets,
        check_in.weight_change_kg,
        goal_type,
        check_in.energy_level,
        check_in.hunger_level,
        check_in.training_performance,
        body_weight_kg=body_weight_kg,
        bmr=bmr,
        sex=sex,
        logged_days=check_in.logging_days,
        protein_g_per_kg=protein_g_per_kg,
        settings=settings,
    )
    recorded = check_in.with_adjustment(result)

    if isinstance(result, NoAdjustment):
        return CheckInDecision(
            mode=mode,
            action=CheckInAction.SUPPRESS,
            check_in=recorded,
            result=result,
            message=result.reason,
        )

    if mode == CoachingMode.COACHED:
        return CheckInDecision(
            mode=mode,
            action=CheckInAction.APPLY,
            check_in=recorded,
            result=result,
            new_targets=result.proposed,
            message=f"Applied {result.calorie_delta:+d} kcal/day",
        )

    return CheckInDecision(
        mode=mode,
        action=CheckInAction.PROPOSE,
        check_in=recorded,
        result=result,
        message=f"Proposed {result.calorie_delta:+d} kcal/day; confirm to apply",
    )


def confirm_proposal(decision: CheckInDecision) -> Macros:
    """Accept a collaborative proposal and return the new targets.

    Raises:
        ProposalError: If the decision is not a pending proposal
    """
    if decision.action != CheckInAction.PROPOSE or not isinstance(decision.result, MacroAdjustment):
        raise ProposalError(f"Nothing to confirm: check-in action is '{decision.action.value}'")
    return decision.result.proposed
