"""Pytest fixtures for energycoach tests."""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pytest

from energycoach.config import settings as settings_module
from energycoach.profiles.body_calc import ActivityProfile, BiologicalProfile
from energycoach.tracking.models import Macros, NutritionLogDay, WeightEntry

START = date(2025, 1, 6)  # a Monday

SCENARIO_WEIGHTS = [70.0, 70.0, 69.8, 69.9, 69.6, 69.7, 69.4]


def make_weights(values: list[float], start: date = START, step: int = 1) -> list[WeightEntry]:
    """Weigh-ins on consecutive days (or every `step` days)."""
    return [WeightEntry(date=start + timedelta(days=i * step), weight=w) for i, w in enumerate(values)]


def make_logs(calories: list[float], start: date = START, **macros: float) -> list[NutritionLogDay]:
    """Nutrition logs on consecutive days with the same macro split."""
    return [
        NutritionLogDay(date=start + timedelta(days=i), calories=c, **macros)
        for i, c in enumerate(calories)
    ]


@pytest.fixture(autouse=True)
def reset_settings():
    """Drop the cached CLI settings between tests."""
    settings_module._settings = None
    yield
    settings_module._settings = None


def _reset_package_logger() -> None:
    logger = logging.getLogger("energycoach")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture(autouse=True)
def reset_logging():
    """Leave the package logger as an unconfigured logger between tests."""
    _reset_package_logger()
    yield
    _reset_package_logger()


@pytest.fixture
def male_profile() -> BiologicalProfile:
    """30 year old male, 80 kg, 180 cm, no body fat data."""
    return BiologicalProfile(age=30, sex="male", weight_kg=80, height_cm=180)


@pytest.fixture
def female_profile() -> BiologicalProfile:
    """30 year old female, 60 kg, 165 cm, 25% body fat."""
    return BiologicalProfile(age=30, sex="female", weight_kg=60, height_cm=165, body_fat_percent=25)


@pytest.fixture
def moderate_activity() -> ActivityProfile:
    """Moderately active, 3 hours of moderate exercise per week."""
    return ActivityProfile(activity_level="moderate", exercise_minutes_per_week=180)


@pytest.fixture
def targets() -> Macros:
    """2200 kcal with 160g protein, 220g carbs, 76g fat."""
    return Macros(calories=2200, protein_g=160, carbs_g=220, fat_g=76)


@pytest.fixture
def scenario_weights() -> list[WeightEntry]:
    """Seven days trending down about 0.6 kg."""
    return make_weights(SCENARIO_WEIGHTS)


@pytest.fixture
def scenario_logs() -> list[NutritionLogDay]:
    """Seven days at 2200 kcal."""
    return make_logs([2200] * 7)


@pytest.fixture
def month_of_data() -> tuple[list[WeightEntry], list[NutritionLogDay]]:
    """28 days of daily weigh-ins losing ~0.1 kg every 2 days, and daily logs."""
    weights = make_weights([80.0 - 0.05 * i + (0.2 if i % 3 == 0 else -0.1) for i in range(28)])
    logs = make_logs([2000 + (50 if i % 2 else -50) for i in range(28)], protein_g=150, carbs_g=200, fat_g=65)
    return weights, logs
