"""Tests for the weekly check-in summary."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import SCENARIO_WEIGHTS, START, make_logs, make_weights
from energycoach.coaching.checkin import WeeklyCheckIn, summarize_week
from energycoach.errors import ValidationError
from energycoach.tracking.ema import calculate_trend_from_scratch
from energycoach.tracking.models import Macros, NutritionLogDay


def make_check_in(**overrides) -> WeeklyCheckIn:
    values = dict(
        week_start_date=START,
        average_weight=80.0,
        average_macros=None,
        adherence_percent=90,
        energy_level=3,
        hunger_level=3,
        training_performance=3,
        weight_change_kg=-0.4,
        logging_days=6,
    )
    values.update(overrides)
    return WeeklyCheckIn(**values)


class TestWeeklyCheckIn:
    """Tests for the check-in record."""

    def test_week_end(self) -> None:
        """A week covers seven days."""
        assert make_check_in().week_end_date == START + timedelta(days=6)

    def test_iso_week_start(self) -> None:
        """The start date may be given as an ISO string."""
        assert make_check_in(week_start_date="2025-01-06").week_start_date == START

    @pytest.mark.parametrize("field_name", ["energy_level", "hunger_level", "training_performance"])
    def test_rating_range(self, field_name: str) -> None:
        """Each rating must be 1-5."""
        with pytest.raises(ValidationError) as exc_info:
            make_check_in(**{field_name: 0})
        assert exc_info.value.field == field_name

    def test_logging_days_range(self) -> None:
        """A week has at most seven logged days."""
        with pytest.raises(ValidationError):
            make_check_in(logging_days=8)

    def test_with_adjustment_is_a_copy(self) -> None:
        """Attaching an adjustment leaves the original alone."""
        check_in = make_check_in()
        marker = object()
        updated = check_in.with_adjustment(marker)
        assert updated.macro_adjustment is marker
        assert check_in.macro_adjustment is None

    def test_to_dict(self) -> None:
        """Dates are ISO strings and missing values are None."""
        data = make_check_in(weight_change_kg=None).to_dict()
        assert data["week_start_date"] == "2025-01-06"
        assert data["weight_change_kg"] is None
        assert data["macro_adjustment"] is None


class TestSummarizeWeek:
    """Tests for summarize_week."""

    def test_scenario_week(self, targets: Macros) -> None:
        """Seven weigh-ins and seven logs at target."""
        trends = calculate_trend_from_scratch(SCENARIO_WEIGHTS)
        check_in = summarize_week(
            make_weights(SCENARIO_WEIGHTS), make_logs([2200] * 7), START, targets, 3, 3, 3
        )

        assert check_in.logging_days == 7
        assert check_in.adherence_percent == 100
        assert check_in.average_weight == pytest.approx(trends[-1])
        assert check_in.weight_change_kg == pytest.approx(trends[-1] - trends[0])
        assert check_in.weight_change_kg < 0
        assert check_in.average_macros.calories == 2200

    def test_change_measured_from_previous_week(self, targets: Macros) -> None:
        """With earlier weigh-ins, the baseline is the last trend before the week."""
        values = [80.0 - 0.1 * i for i in range(14)]
        trends = calculate_trend_from_scratch(values)
        check_in = summarize_week(
            make_weights(values), make_logs([2200] * 14), START + timedelta(days=7), targets, 3, 3, 3
        )
        assert check_in.weight_change_kg == pytest.approx(trends[13] - trends[6])

    def test_old_baseline_ignored(self, targets: Macros) -> None:
        """A weigh-in a month before the week does not count as this week's change."""
        week_start = START + timedelta(days=31)
        weights = make_weights([80.0]) + make_weights([78.0] * 7, start=week_start)
        logs = make_logs([2200] * 7, start=week_start)
        check_in = summarize_week(weights, logs, week_start, targets, 3, 3, 3)

        assert check_in.weight_change_kg is not None
        assert abs(check_in.weight_change_kg) < 0.5

    def test_recent_gap_still_uses_baseline(self, targets: Macros) -> None:
        """A baseline a few days before the week is still used."""
        week_start = START + timedelta(days=10)
        weights = make_weights([80.0] * 8)
        weights += make_weights([79.0, 79.0], start=week_start)
        trends = calculate_trend_from_scratch([(w.date, w.weight) for w in weights])
        check_in = summarize_week(weights, [], week_start, targets, 3, 3, 3)
        assert check_in.weight_change_kg == pytest.approx(trends[-1] - trends[7])

    def test_later_weigh_ins_ignored(self, targets: Macros) -> None:
        """Weigh-ins after the week do not leak into it."""
        values = [80.0 - 0.1 * i for i in range(14)]
        trends = calculate_trend_from_scratch(values)
        check_in = summarize_week(make_weights(values), [], START, targets, 3, 3, 3)
        assert check_in.average_weight == pytest.approx(trends[6])

    def test_single_weigh_in_has_no_change(self, targets: Macros) -> None:
        """One point cannot measure a change."""
        check_in = summarize_week(make_weights([80.0]), make_logs([2200] * 7), START, targets, 3, 3, 3)
        assert check_in.weight_change_kg is None
        assert check_in.average_weight == 80.0

    def test_no_weigh_ins(self, targets: Macros) -> None:
        """Without weigh-ins, weight fields are None."""
        check_in = summarize_week([], make_logs([2200] * 7), START, targets, 3, 3, 3)
        assert check_in.average_weight is None
        assert check_in.weight_change_kg is None

    def test_only_logged_days_in_week(self, targets: Macros) -> None:
        """Zero-calorie days and days outside the week are not counted."""
        logs = make_logs([2200, 0, 2100, 0, 2300, 2200, 0, 3000])
        check_in = summarize_week([], logs, START, targets, 3, 3, 3)
        assert check_in.logging_days == 4
        assert check_in.average_macros.calories == pytest.approx((2200 + 2100 + 2300 + 2200) / 4)

    def test_duplicate_log_last_wins(self, targets: Macros) -> None:
        """A day logged twice counts once, with the later total."""
        logs = [NutritionLogDay(date=START, calories=1500), NutritionLogDay(date=START, calories=2200)]
        check_in = summarize_week([], logs, START, targets, 3, 3, 3)
        assert check_in.logging_days == 1
        assert check_in.adherence_percent == 100

    def test_no_logs(self, targets: Macros) -> None:
        """An empty week scores zero adherence."""
        check_in = summarize_week([], [], START, targets, 3, 3, 3)
        assert check_in.logging_days == 0
        assert check_in.adherence_percent == 0
        assert check_in.average_macros is None

    def test_notes_and_ratings_kept(self, targets: Macros) -> None:
        """Ratings and notes are carried through."""
        check_in = summarize_week([], [], START, targets, 2, 4, 5, notes="Travel week")
        assert (check_in.energy_level, check_in.hunger_level, check_in.training_performance) == (2, 4, 5)
        assert check_in.notes == "Travel week"
