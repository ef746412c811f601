"""Biological and activity profiles and the energy component decomposition."""

from __future__ import annotations

from energycoach.profiles.body_calc import (
    ActivityLevel,
    ActivityProfile,
    BiologicalProfile,
    EnergyComponents,
    ExerciseIntensity,
    Sex,
    decompose_energy,
    reconcile_components,
)

__all__ = [
    "ActivityLevel",
    "ActivityProfile",
    "BiologicalProfile",
    "EnergyComponents",
    "ExerciseIntensity",
    "Sex",
    "decompose_energy",
    "reconcile_components",
]
