"""Tests for adherence-neutral TDEE estimation."""

from __future__ import annotations

import math
from datetime import timedelta

import pytest

from conftest import START, make_logs, make_weights
from energycoach.errors import ValidationError
from energycoach.profiles.body_calc import ActivityProfile, BiologicalProfile
from energycoach.config import Settings
from energycoach.tracking.ema import WeightTrendAnalysis, analyze_weight_trend
from energycoach.tracking.estimator import (
    AdherenceTrend,
    adherence_score,
    analyze_data_periods,
    calculate_adherence,
    calculate_adherence_metrics,
    calculate_confidence,
    estimate_tdee,
    intake_stability,
    weighted_tdee,
)
from energycoach.tracking.models import (
    ConfidenceLevel,
    Macros,
    Methodology,
    NutritionLogDay,
    WeightEntry,
    WeightTrend,
    confidence_level_for,
)


class TestCalculateAdherence:
    """Tests for per-day calorie adherence."""

    def test_within_tolerance(self) -> None:
        """Within ±5% of target scores 100."""
        assert calculate_adherence(2050, 2000) == 100
        assert calculate_adherence(1900, 2000) == 100

    def test_exponential_decay_outside_band(self) -> None:
        """Distance past the band edge decays as exp(-3 × deviation)."""
        assert calculate_adherence(2300, 2000) == pytest.approx(74.08, abs=0.01)
        assert calculate_adherence(1700, 2000) == pytest.approx(74.08, abs=0.01)

    def test_no_target(self) -> None:
        """A zero target cannot be missed."""
        assert calculate_adherence(2000, 0) == 100

    def test_score_ignores_unlogged_days(self) -> None:
        """Zero-calorie days are gaps, not misses."""
        logs = make_logs([2000, 0, 2000, 0])
        assert adherence_score(logs, 2000) == 100

    def test_score_without_logs(self) -> None:
        """No logged days scores 0 rather than dividing by zero."""
        assert adherence_score(make_logs([0, 0]), 2000) == 0


class TestConfidence:
    """Tests for the confidence blend."""

    @pytest.mark.parametrize(
        "percent, level",
        [(0, ConfidenceLevel.LOW), (59, ConfidenceLevel.LOW), (60, ConfidenceLevel.MEDIUM),
         (79, ConfidenceLevel.MEDIUM), (80, ConfidenceLevel.HIGH), (100, ConfidenceLevel.HIGH)],
    )
    def test_levels(self, percent: int, level: ConfidenceLevel) -> None:
        """low < 60, medium 60-79, high >= 80."""
        assert confidence_level_for(percent) == level

    def test_blend(self) -> None:
        """100 × (0.6 × quality + 0.4 × signal)."""
        trend = WeightTrendAnalysis(
            trend_weight=80.0,
            daily_change_rate=0.0,
            weekly_change_rate_percent=0.0,
            direction=WeightTrend.MAINTAINING,
            rate_window_days=14,
            has_rate=True,
        )
        assert calculate_confidence(0.5, trend, Settings()) == 70

    def test_extreme_rate_penalized(self) -> None:
        """Rates beyond 1.5 %/week are scaled by 0.8."""
        trend = WeightTrendAnalysis(
            trend_weight=80.0,
            daily_change_rate=0.25,
            weekly_change_rate_percent=2.2,
            direction=WeightTrend.GAINING,
            rate_window_days=14,
            has_rate=True,
        )
        assert calculate_confidence(0.5, trend, Settings()) == 56

    def test_no_signal(self) -> None:
        """Without a rate only data quality contributes."""
        trend = analyze_weight_trend([])
        assert calculate_confidence(1.0, trend, Settings()) == 60


class TestEstimateTDEE:
    """Tests for estimate_tdee."""

    def test_scenario_losing_means_tdee_above_intake(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """70.0 -> 69.4 kg at 2200 kcal: TDEE = 2200 - rate × 7700 ≈ 2326."""
        estimate = estimate_tdee(scenario_weights, scenario_logs, targets, male_profile, moderate_activity)
        rate = analyze_weight_trend(scenario_weights).daily_change_rate

        assert estimate.methodology == Methodology.ADHERENCE_NEUTRAL
        assert estimate.weight_trend == WeightTrend.LOSING
        assert estimate.average_intake == 2200
        assert estimate.logged_days == 7
        assert estimate.current_tdee == round(2200 - rate * 7700)
        assert estimate.current_tdee == pytest.approx(2326, abs=1)
        assert estimate.current_tdee > 2200

    def test_components_reconciled_to_estimate(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """The decomposition totals the estimate exactly."""
        estimate = estimate_tdee(scenario_weights, scenario_logs, targets, male_profile, moderate_activity)
        components = estimate.energy_components
        assert components is not None
        assert components.reconciled
        assert components.total == estimate.current_tdee

    def test_reorder_invariance(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """Sorting is the estimator's job."""
        forward = estimate_tdee(scenario_weights, scenario_logs, targets, male_profile, moderate_activity)
        shuffled = estimate_tdee(
            list(reversed(scenario_weights)),
            scenario_logs[3:] + scenario_logs[:3],
            targets,
            male_profile,
            moderate_activity,
        )
        assert shuffled == forward

    def test_idempotent(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """Identical inputs give identical outputs."""
        first = estimate_tdee(scenario_weights, scenario_logs, targets, male_profile, moderate_activity)
        second = estimate_tdee(scenario_weights, scenario_logs, targets, male_profile, moderate_activity)
        assert first.to_dict() == second.to_dict()

    def test_adherence_does_not_change_tdee(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """The target only affects the adherence score."""
        low = estimate_tdee(
            scenario_weights, scenario_logs, Macros(1500, 120, 150, 50), male_profile, moderate_activity
        )
        on_target = estimate_tdee(
            scenario_weights, scenario_logs, Macros(2200, 160, 220, 76), male_profile, moderate_activity
        )
        assert low.current_tdee == on_target.current_tdee
        assert on_target.adherence_score_percent == 100
        assert low.adherence_score_percent < 100

    def test_unlogged_days_excluded_from_average(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """Zero-calorie days do not drag the average intake down."""
        gaps = [NutritionLogDay(date=START - timedelta(days=i), calories=0) for i in range(1, 4)]
        baseline = estimate_tdee(scenario_weights, scenario_logs, targets, male_profile, moderate_activity)
        with_gaps = estimate_tdee(
            scenario_weights, gaps + scenario_logs, targets, male_profile, moderate_activity
        )
        assert with_gaps.average_intake == 2200
        assert with_gaps.current_tdee == baseline.current_tdee

    def test_entries_after_as_of_ignored(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """Future entries do not leak into an as-of estimate."""
        as_of = START + timedelta(days=6)
        future_weight = WeightEntry(date=as_of + timedelta(days=1), weight=75.0)
        future_log = NutritionLogDay(date=as_of + timedelta(days=1), calories=4000)

        baseline = estimate_tdee(
            scenario_weights, scenario_logs, targets, male_profile, moderate_activity, as_of=as_of
        )
        with_future = estimate_tdee(
            scenario_weights + [future_weight],
            scenario_logs + [future_log],
            targets,
            male_profile,
            moderate_activity,
            as_of=as_of,
        )
        assert with_future == baseline
        assert with_future.as_of == as_of

    def test_initial_methodology_with_few_logs(
        self,
        scenario_weights: list[WeightEntry],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """Under 7 logged days falls back to the profile estimate, capped at 40%."""
        estimate = estimate_tdee(
            scenario_weights, make_logs([2200] * 3), targets, male_profile, moderate_activity
        )
        assert estimate.methodology == Methodology.INITIAL
        assert estimate.current_tdee == 2829
        assert estimate.confidence_percent <= 40
        assert estimate.confidence_level == ConfidenceLevel.LOW
        assert estimate.warnings

    def test_single_weigh_in(
        self,
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """One weigh-in: rate undefined, initial methodology, no exception."""
        estimate = estimate_tdee(
            make_weights([80.0]), scenario_logs, targets, male_profile, moderate_activity
        )
        assert estimate.methodology == Methodology.INITIAL
        assert estimate.daily_change_rate == 0
        assert estimate.quality_report is not None
        assert not estimate.quality_report.stability_defined

    def test_empty_inputs(
        self, targets: Macros, male_profile: BiologicalProfile, moderate_activity: ActivityProfile
    ) -> None:
        """No data at all still produces a profile-based estimate."""
        estimate = estimate_tdee([], [], targets, male_profile, moderate_activity)
        assert estimate.as_of is None
        assert estimate.methodology == Methodology.INITIAL
        assert estimate.current_tdee == 2829
        assert estimate.trend_weight == 80.0
        assert estimate.confidence_percent == 0
        assert estimate.average_intake is None
        assert estimate.data_quality == ConfidenceLevel.LOW

    def test_constant_weight(
        self, targets: Macros, male_profile: BiologicalProfile, moderate_activity: ActivityProfile
    ) -> None:
        """Constant weight: TDEE equals average intake."""
        estimate = estimate_tdee(
            make_weights([80.0] * 14), make_logs([2400] * 14), targets, male_profile, moderate_activity
        )
        assert estimate.weight_trend == WeightTrend.MAINTAINING
        assert estimate.daily_change_rate == 0
        assert estimate.current_tdee == 2400

    def test_intake_after_last_weigh_in_excluded(
        self, targets: Macros, male_profile: BiologicalProfile, moderate_activity: ActivityProfile
    ) -> None:
        """Logs past the last weigh-in have no measured outcome and do not move TDEE."""
        weights = make_weights([80.0] * 21)
        logs = make_logs([2000] * 21 + [3000] * 10)
        estimate = estimate_tdee(weights, logs, targets, male_profile, moderate_activity)

        assert estimate.as_of == START + timedelta(days=30)
        assert estimate.methodology == Methodology.ADHERENCE_NEUTRAL
        assert estimate.average_intake == 2000
        assert estimate.logged_days == 15
        assert abs(estimate.current_tdee - 2000) < 100

    def test_stale_weigh_in_warns_and_lowers_confidence(
        self, targets: Macros, male_profile: BiologicalProfile, moderate_activity: ActivityProfile
    ) -> None:
        """An as-of date well past the last weigh-in is flagged."""
        weights = make_weights([80.0] * 21)
        logs = make_logs([2000] * 21 + [3000] * 10)
        estimate = estimate_tdee(weights, logs, targets, male_profile, moderate_activity)

        assert any("Last weigh-in was 10 days" in w for w in estimate.warnings)
        settings = Settings()
        settings.estimator.stale_confidence_penalty = 1.0
        unpenalized = estimate_tdee(weights, logs, targets, male_profile, moderate_activity, settings=settings)
        assert estimate.confidence_percent == round(unpenalized.confidence_percent * 0.7)
        assert estimate.confidence_percent < unpenalized.confidence_percent

    def test_recent_weigh_in_not_stale(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """A few unweighed days at the end are normal."""
        logs = scenario_logs + make_logs([2200] * 3, start=START + timedelta(days=7))
        estimate = estimate_tdee(scenario_weights, logs, targets, male_profile, moderate_activity)
        assert not any("Last weigh-in" in w for w in estimate.warnings)
        assert estimate.logged_days == 7

    def test_adherence_scored_on_recent_days(
        self, male_profile: BiologicalProfile, moderate_activity: ActivityProfile
    ) -> None:
        """Adherence follows the latest days even when they are not yet weighed."""
        weights = make_weights([80.0] * 21)
        logs = make_logs([2000] * 21 + [3000] * 10)
        estimate = estimate_tdee(weights, logs, Macros(2000, 150, 200, 70), male_profile, moderate_activity)
        assert estimate.adherence_score_percent < 100

    def test_partial_macro_logging_keeps_tef(
        self,
        scenario_weights: list[WeightEntry],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """Calorie-only days do not shrink the macro-based TEF."""
        full = make_logs([2200] * 7, protein_g=160, carbs_g=220, fat_g=76)
        partial = full[:4] + make_logs([2200] * 3, start=START + timedelta(days=4))

        with_macros = estimate_tdee(scenario_weights, full, targets, male_profile, moderate_activity)
        mixed = estimate_tdee(scenario_weights, partial, targets, male_profile, moderate_activity)
        assert mixed.energy_components.tef == with_macros.energy_components.tef

    def test_implausible_result_warns(
        self, targets: Macros, male_profile: BiologicalProfile, moderate_activity: ActivityProfile
    ) -> None:
        """Losing 3 kg a day implies an implausible TDEE and is flagged."""
        estimate = estimate_tdee(
            make_weights([80.0 - 3 * i for i in range(7)]),
            make_logs([2000] * 7),
            targets,
            male_profile,
            moderate_activity,
        )
        assert estimate.current_tdee > 6000
        assert any("plausible" in w for w in estimate.warnings)
        assert any("per week" in w for w in estimate.warnings)

    def test_rejects_raw_records(
        self, targets: Macros, male_profile: BiologicalProfile, moderate_activity: ActivityProfile
    ) -> None:
        """Untyped rows are rejected at the boundary."""
        with pytest.raises(ValidationError) as exc_info:
            estimate_tdee(
                [{"date": "2025-01-06", "weight": 80}],  # type: ignore[list-item]
                [],
                targets,
                male_profile,
                moderate_activity,
            )
        assert exc_info.value.field == "weight_series"

    def test_month_of_data_is_trusted(
        self,
        month_of_data: tuple[list[WeightEntry], list[NutritionLogDay]],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """Four weeks of daily data gives an adherence-neutral estimate."""
        weights, logs = month_of_data
        estimate = estimate_tdee(weights, logs, targets, male_profile, moderate_activity)
        assert estimate.methodology == Methodology.ADHERENCE_NEUTRAL
        assert estimate.weight_trend == WeightTrend.LOSING
        assert estimate.current_tdee > estimate.average_intake
        assert 0 <= estimate.confidence_percent <= 100
        assert estimate.confidence_level == confidence_level_for(estimate.confidence_percent)

    def test_to_dict(
        self,
        scenario_weights: list[WeightEntry],
        scenario_logs: list[NutritionLogDay],
        targets: Macros,
        male_profile: BiologicalProfile,
        moderate_activity: ActivityProfile,
    ) -> None:
        """JSON form uses enum values and ISO dates."""
        data = estimate_tdee(
            scenario_weights, scenario_logs, targets, male_profile, moderate_activity
        ).to_dict()
        assert data["methodology"] == "adherence_neutral"
        assert data["weight_trend"] == "losing"
        assert data["as_of"] == (START + timedelta(days=6)).isoformat()
        assert data["energy_components"]["total"] == data["current_tdee"]


class TestAdherenceMetrics:
    """Tests for calculate_adherence_metrics."""

    def test_no_logs(self, targets: Macros) -> None:
        """Nothing logged scores zero with a prompt to start."""
        metrics = calculate_adherence_metrics([], targets)
        assert metrics.logged_days == 0
        assert metrics.overall_score == 0
        assert metrics.protein_adherence is None
        assert metrics.best_day is None
        assert metrics.insights == ("Start logging meals to track adherence",)

    def test_perfect_month(self, targets: Macros) -> None:
        """Every day on target with full macros."""
        logs = make_logs([2200] * 30, protein_g=160, carbs_g=220, fat_g=76)
        metrics = calculate_adherence_metrics(logs, targets)
        assert metrics.calorie_adherence == 100
        assert metrics.protein_adherence == 100
        assert metrics.logging_consistency == 100
        assert metrics.overall_score == 100
        assert metrics.streak_days == 30
        assert metrics.days_in_range == 30
        assert metrics.trend == AdherenceTrend.STABLE
        assert "Excellent logging consistency" in metrics.insights

    def test_calorie_only_logs_rescale_weights(self, targets: Macros) -> None:
        """Without protein data, calories and consistency share the score."""
        metrics = calculate_adherence_metrics(make_logs([2200] * 14), targets, period_days=28)
        assert metrics.protein_adherence is None
        assert metrics.logging_consistency == 50
        assert metrics.overall_score == round((0.4 * 100 + 0.3 * 50) / 0.7)

    def test_protein_scored_on_macro_days_only(self, targets: Macros) -> None:
        """Calorie-only days do not count against protein."""
        logs = make_logs([2200] * 7, protein_g=160) + make_logs([2200] * 7, start=START + timedelta(days=7))
        metrics = calculate_adherence_metrics(logs, targets, period_days=14)
        assert metrics.protein_adherence == 100

    def test_low_protein_day_out_of_range(self, targets: Macros) -> None:
        """Protein more than 10% under target takes the day out of range."""
        logs = make_logs([2200] * 6, protein_g=160) + make_logs(
            [2200], start=START + timedelta(days=6), protein_g=100
        )
        metrics = calculate_adherence_metrics(logs, targets, period_days=7)
        assert metrics.days_in_range == 6
        assert metrics.streak_days == 0
        assert "Get back on target today to start a new streak" in metrics.insights

    def test_unlogged_day_breaks_streak(self, targets: Macros) -> None:
        """The streak counts back only over consecutive logged days."""
        logs = make_logs([2200, 2200, 2200, 2200, 2200, 0, 2200, 2200, 2200, 2200])
        metrics = calculate_adherence_metrics(logs, targets, period_days=10)
        assert metrics.logged_days == 9
        assert metrics.streak_days == 4

    def test_improving_trend(self, targets: Macros) -> None:
        """A better second half is an improving trend."""
        metrics = calculate_adherence_metrics(make_logs([3000] * 7 + [2200] * 7), targets, period_days=14)
        assert metrics.trend == AdherenceTrend.IMPROVING
        assert "Adherence is improving" in metrics.insights

    def test_declining_trend(self, targets: Macros) -> None:
        """A worse second half is a declining trend."""
        metrics = calculate_adherence_metrics(make_logs([2200] * 7 + [3000] * 7), targets, period_days=14)
        assert metrics.trend == AdherenceTrend.DECLINING

    def test_short_history_is_stable(self, targets: Macros) -> None:
        """Fewer than 14 logged days never report a trend."""
        metrics = calculate_adherence_metrics(make_logs([3000] * 6 + [2200] * 7), targets, period_days=13)
        assert metrics.trend == AdherenceTrend.STABLE

    def test_weekend_pattern(self, targets: Macros) -> None:
        """Overeating on Saturdays shows as the worst day and lower weekend adherence."""
        calories = [3000 if (START + timedelta(days=i)).weekday() == 5 else 2200 for i in range(14)]
        metrics = calculate_adherence_metrics(make_logs(calories), targets, period_days=14)
        assert metrics.worst_day == "Saturday"
        assert metrics.best_day == "Monday"
        assert metrics.weekday_adherence == 100
        assert metrics.weekend_adherence < metrics.weekday_adherence

    def test_window_ends_at_as_of(self, targets: Macros) -> None:
        """Only logs inside the window count."""
        logs = make_logs([2200] * 40)
        metrics = calculate_adherence_metrics(logs, targets, period_days=30, as_of=START + timedelta(days=29))
        assert metrics.logged_days == 30
        assert metrics.streak_days == 30

    def test_period_must_be_positive(self, targets: Macros) -> None:
        """A zero-day window is rejected."""
        with pytest.raises(ValidationError):
            calculate_adherence_metrics(make_logs([2200]), targets, period_days=0)

    def test_to_dict(self, targets: Macros) -> None:
        """JSON form uses the trend value and a list of insights."""
        data = calculate_adherence_metrics(make_logs([2200] * 7), targets, period_days=7).to_dict()
        assert data["trend"] == "stable"
        assert isinstance(data["insights"], list)


class TestWeightedTDEE:
    """Tests for period-weighted TDEE."""

    @pytest.mark.parametrize(
        "calories, expected",
        [([], 0.5), ([2000], 0.5), ([2000, 2000], 1.0), ([1000, 3000], 0.0), ([0, 0], 0.0)],
    )
    def test_intake_stability(self, calories: list[float], expected: float) -> None:
        """Steady intake is stable; a CV of 0.4 or more scores zero."""
        assert intake_stability(calories) == pytest.approx(expected)

    def test_flat_weight_gives_intake(self) -> None:
        """With no weight change, each period's TDEE is its intake."""
        result = weighted_tdee(make_weights([80.0] * 14), make_logs([2000] * 14))
        assert result.tdee == 2000
        assert [p.tdee for p in result.periods] == [2000, 2000]
        assert result.confidence == 1.0

    def test_recent_periods_count_more(self) -> None:
        """Recency decays with distance from the latest entry."""
        periods = analyze_data_periods(make_weights([80.0] * 21), make_logs([2000] * 21))
        assert len(periods) == 3
        assert periods[0].recency < periods[1].recency < periods[2].recency
        assert periods[2].recency == pytest.approx(math.exp(-6 / 30))

    def test_losing_weight_raises_tdee(self) -> None:
        """A falling trend puts expenditure above intake."""
        result = weighted_tdee(make_weights([80.0 - 0.1 * i for i in range(14)]), make_logs([2000] * 14))
        assert result.tdee > 2000

    def test_partial_period_confidence(self) -> None:
        """One sparsely logged period gives its own weight as confidence."""
        result = weighted_tdee(make_weights([80.0] * 7), make_logs([2000] * 3))
        expected = 0.4 * 3 / 7 + 0.4 * 1.0 + 0.2 * math.exp(-6 / 30)
        assert result.tdee == 2000
        assert result.confidence == pytest.approx(expected)

    def test_period_without_weigh_ins_has_no_tdee(self) -> None:
        """A period needs two weigh-ins to measure a change."""
        result = weighted_tdee(make_weights([80.0] * 7), make_logs([2000] * 7 + [2500] * 7))
        assert result.periods[1].weigh_ins == 0
        assert result.periods[1].tdee is None
        assert result.tdee == 2000

    def test_empty_series(self) -> None:
        """Without both series there is nothing to blend."""
        result = weighted_tdee([], make_logs([2000] * 7))
        assert result.tdee is None
        assert result.confidence == 0.0
        assert result.periods == ()

    def test_period_must_be_positive(self) -> None:
        """A zero-day period is rejected."""
        with pytest.raises(ValidationError):
            analyze_data_periods(make_weights([80.0] * 7), make_logs([2000] * 7), period_days=0)
