"""Policy constants and their YAML-backed configuration."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from energycoach.errors import ConfigError


def _default_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".energycoach"


def default_config_path() -> Path:
    """Return the default settings file path."""
    return _default_config_dir() / "config.yaml"


def _coerce_value(name: str, current: object, value: object) -> object:
    """Convert a YAML value to the type of the default it replaces.

    Integer settings only accept whole numbers; booleans are never numbers.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"invalid value for '{name}': {value!r}")
    if isinstance(current, int):
        if isinstance(value, float) and not value.is_integer():
            raise ConfigError(f"invalid value for '{name}': {value!r} is not a whole number")
        return int(value)
    value = float(value)
    if not math.isfinite(value):
        raise ConfigError(f"invalid value for '{name}': {value!r}")
    return value


@dataclass
class SmoothingConfig:
    """Weight trend smoothing.

    The smoothing factor is derived from a half-life: after `half_life_days`
    of daily weigh-ins, an old measurement retains half of its influence on
    the trend. 10 days gives alpha ~= 0.067.
    """

    half_life_days: float = 10.0
    rate_window_days: int = 14
    trend_threshold_percent: float = 0.15  # % body weight / week

    @property
    def alpha(self) -> float:
        return 1 - 2 ** (-1 / self.half_life_days)


@dataclass
class EstimatorConfig:
    """Energy-balance inversion."""

    kcal_per_kg: float = 7700.0
    min_logged_days: int = 7
    initial_confidence_cap: int = 40
    quality_weight: float = 0.6  # signal weight is the remainder
    extreme_rate_percent: float = 1.5
    extreme_rate_penalty: float = 0.8
    plausible_min_kcal: int = 1000
    plausible_max_kcal: int = 6000
    stale_weigh_in_days: int = 7  # as-of date this far past the last weigh-in
    stale_confidence_penalty: float = 0.7


@dataclass
class QualityConfig:
    """Data quality scoring."""

    window_days: int = 30
    logging_weight: float = 0.4
    weighing_weight: float = 0.3
    stability_weight: float = 0.3
    noise_variance_kg2: float = 0.25  # residual variance at which stability = 0.5


@dataclass
class AdjustmentConfig:
    """Weekly macro adjustment bounds."""

    max_step_fraction: float = 0.10
    correction_gain: float = 0.5
    nudge_kcal: int = 50
    amplify_kcal: int = 25
    max_nudge_kcal: int = 100
    min_checkin_days: int = 4
    min_calories_male: int = 1500
    min_calories_female: int = 1200
    min_calories_default: int = 1200
    protein_floor_g_per_kg: float = 1.2


@dataclass
class Settings:
    """Main engine settings."""

    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    adjustment: AdjustmentConfig = field(default_factory=AdjustmentConfig)

    def validate(self) -> None:
        """Check cross-field invariants of the policy constants.

        Raises:
            ConfigError: If a value is out of range
        """
        q = self.quality
        total = q.logging_weight + q.weighing_weight + q.stability_weight
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ConfigError(f"quality weights must sum to 1, got {total:.3f}")
        if self.smoothing.half_life_days <= 0:
            raise ConfigError("smoothing.half_life_days must be positive")
        if not 1 <= self.smoothing.rate_window_days <= 60:
            raise ConfigError("smoothing.rate_window_days must be within 1-60")
        if not 0 < self.adjustment.max_step_fraction <= 0.25:
            raise ConfigError("adjustment.max_step_fraction must be within (0, 0.25]")
        if not 0 <= self.estimator.quality_weight <= 1:
            raise ConfigError("estimator.quality_weight must be within [0, 1]")
        if q.window_days < 7:
            raise ConfigError("quality.window_days must be at least 7")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file or return defaults.

        Unknown keys are rejected so that typos do not silently fall back
        to defaults.

        Args:
            config_path: Path to config.yaml. If None, uses ~/.energycoach/config.yaml

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigError(f"{config_path}: expected a mapping at top level")

        settings = cls()
        for section_name, section_data in data.items():
            section = getattr(settings, section_name, None)
            if section is None or not isinstance(section_data, dict):
                raise ConfigError(f"unknown settings section '{section_name}'")
            for key, value in section_data.items():
                if not hasattr(section, key) or key == "alpha":
                    raise ConfigError(f"unknown setting '{section_name}.{key}'")
                current = getattr(section, key)
                setattr(section, key, _coerce_value(f"{section_name}.{key}", current, value))

        settings.validate()
        return settings

    def to_dict(self) -> dict:
        """Return settings as a nested plain dict."""
        return {
            "smoothing": {
                "half_life_days": self.smoothing.half_life_days,
                "rate_window_days": self.smoothing.rate_window_days,
                "trend_threshold_percent": self.smoothing.trend_threshold_percent,
            },
            "estimator": vars(self.estimator).copy(),
            "quality": vars(self.quality).copy(),
            "adjustment": vars(self.adjustment).copy(),
        }

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save current settings to YAML file.

        Args:
            config_path: Path to save config.yaml. If None, uses ~/.energycoach/config.yaml
        """
        if config_path is None:
            config_path = default_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


# Global settings instance for the CLI (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading from disk if needed."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    """Force reload settings from disk."""
    global _settings
    _settings = Settings.load(config_path)
    return _settings
