"""Load weight logs, nutrition logs and user profiles from files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import yaml

from energycoach.coaching.adjuster import GoalType, ProteinPolicy, TrainingExperience
from energycoach.coaching.policy import CoachingMode
from energycoach.errors import ValidationError
from energycoach.profiles.body_calc import ActivityProfile, BiologicalProfile
from energycoach.tracking.models import Macros, NutritionLogDay, WeightEntry, coerce_enum

WEIGHT_COLUMNS = ["date", "weight"]
NUTRITION_COLUMNS = ["date", "calories"]
NUTRITION_OPTIONAL_COLUMNS = ["protein_g", "carbs_g", "fat_g", "fiber_g"]


@dataclass(frozen=True)
class UserProfile:
    """Everything the CLI needs to know about the user."""

    biological: BiologicalProfile
    activity: ActivityProfile
    targets: Macros
    goal: GoalType = GoalType.MAINTENANCE
    coaching_mode: CoachingMode = CoachingMode.COLLABORATIVE
    protein_policy: ProteinPolicy = ProteinPolicy.HOLD
    training_experience: TrainingExperience = TrainingExperience.INTERMEDIATE


def _read_csv(csv_path: Path, required: list[str]) -> pd.DataFrame:
    df = pd.read_csv(csv_path, dtype={"date": str})
    df.columns = [str(c).strip().lower() for c in df.columns]
    if "weight_kg" in df.columns and "weight" not in df.columns:
        df = df.rename(columns={"weight_kg": "weight"})

    missing = set(required) - set(df.columns)
    if missing:
        raise ValidationError(
            csv_path.name,
            f"missing required columns {sorted(missing)}; required columns are {required}",
        )
    return df


def _number(column: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(column, f"not a number: {value!r}") from exc


def load_weight_csv(csv_path: Path) -> list[WeightEntry]:
    """Load weigh-ins from a CSV file.

    CSV format:
        date,weight
        2025-01-06,82.4
        2025-01-07,82.1

    Rows with an empty weight are skipped (no weigh-in that day).

    Raises:
        ValidationError: If columns are missing or a row is malformed
    """
    df = _read_csv(csv_path, WEIGHT_COLUMNS)
    entries = []
    for row_number, row in enumerate(df.itertuples(index=False), start=2):
        if pd.isna(row.weight):
            continue
        try:
            entries.append(WeightEntry(date=row.date, weight=_number("weight", row.weight)))
        except ValidationError as exc:
            raise ValidationError(exc.field, f"{csv_path.name} line {row_number}: {exc.message}") from exc
    return entries


def load_nutrition_csv(csv_path: Path) -> list[NutritionLogDay]:
    """Load daily nutrition totals from a CSV file.

    CSV format:
        date,calories,protein_g,carbs_g,fat_g,fiber_g
        2025-01-06,2150,160,210,70,30

    Macro columns are optional. An empty or zero calorie cell is a day
    that was not logged.

    Raises:
        ValidationError: If columns are missing or a row is malformed
    """
    df = _read_csv(csv_path, NUTRITION_COLUMNS)
    for column in NUTRITION_OPTIONAL_COLUMNS:
        if column not in df.columns:
            df[column] = 0.0
    df[NUTRITION_COLUMNS[1:] + NUTRITION_OPTIONAL_COLUMNS] = df[
        NUTRITION_COLUMNS[1:] + NUTRITION_OPTIONAL_COLUMNS
    ].fillna(0.0)

    logs = []
    for row_number, row in enumerate(df.itertuples(index=False), start=2):
        try:
            logs.append(
                NutritionLogDay(
                    date=row.date,
                    calories=_number("calories", row.calories),
                    protein_g=_number("protein_g", row.protein_g),
                    carbs_g=_number("carbs_g", row.carbs_g),
                    fat_g=_number("fat_g", row.fat_g),
                    fiber_g=_number("fiber_g", row.fiber_g),
                )
            )
        except ValidationError as exc:
            raise ValidationError(exc.field, f"{csv_path.name} line {row_number}: {exc.message}") from exc
    return logs


def _require(data: dict[str, Any], key: str) -> Any:
    if data.get(key) is None:
        raise ValidationError(key, "is required in the profile")
    return data[key]


def load_profile(profile_path: Path) -> UserProfile:
    """Load a user profile from YAML.

    Example:
        age: 34
        sex: male
        weight_kg: 82
        height_cm: 180
        body_fat_percent: 18        # optional
        activity_level: moderate
        exercise_minutes_per_week: 180
        steps_per_day: 8000         # optional
        goal: cut
        coaching_mode: collaborative
        protein_policy: per_kg       # optional: hold (default) or per_kg
        training_experience: beginner  # optional, for gain rate limits
        targets:
          calories: 2200
          protein_g: 160
          carbs_g: 220
          fat_g: 70

    Raises:
        ValidationError: If a required field is missing or invalid
    """
    with open(profile_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValidationError(profile_path.name, "expected a mapping at top level")

    biological = BiologicalProfile(
        age=_require(data, "age"),
        sex=_require(data, "sex"),
        weight_kg=_require(data, "weight_kg"),
        height_cm=_require(data, "height_cm"),
        body_fat_percent=data.get("body_fat_percent"),
    )
    activity = ActivityProfile(
        activity_level=data.get("activity_level", "moderate"),
        exercise_minutes_per_week=data.get("exercise_minutes_per_week"),
        steps_per_day=data.get("steps_per_day"),
        exercise_intensity=data.get("exercise_intensity", "moderate"),
    )

    targets_data: Optional[dict] = _require(data, "targets")
    if not isinstance(targets_data, dict):
        raise ValidationError("targets", "expected a mapping of calories and macro grams")
    targets = Macros(
        calories=_require(targets_data, "calories"),
        protein_g=targets_data.get("protein_g", 0),
        carbs_g=targets_data.get("carbs_g", 0),
        fat_g=targets_data.get("fat_g", 0),
        fiber_g=targets_data.get("fiber_g"),
    )

    return UserProfile(
        biological=biological,
        activity=activity,
        targets=targets,
        goal=coerce_enum(GoalType, "goal", data.get("goal", "maintenance")),
        coaching_mode=coerce_enum(CoachingMode, "coaching_mode", data.get("coaching_mode", "collaborative")),
        protein_policy=coerce_enum(ProteinPolicy, "protein_policy", data.get("protein_policy", "hold")),
        training_experience=coerce_enum(
            TrainingExperience, "training_experience", data.get("training_experience", "intermediate")
        ),
    )
