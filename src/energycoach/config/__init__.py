"""Configuration of engine policy constants."""

from __future__ import annotations

from energycoach.config.settings import (
    AdjustmentConfig,
    EstimatorConfig,
    QualityConfig,
    Settings,
    SmoothingConfig,
    get_settings,
    reload_settings,
)

__all__ = [
    "AdjustmentConfig",
    "EstimatorConfig",
    "QualityConfig",
    "Settings",
    "SmoothingConfig",
    "get_settings",
    "reload_settings",
]
