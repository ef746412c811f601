"""Data quality scoring for weight and nutrition logs."""

from __future__ import annotations

from energycoach.data.quality import DataPattern, DataQualityReport, score_data_quality

__all__ = ["DataPattern", "DataQualityReport", "score_data_quality"]
