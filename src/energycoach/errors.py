"""Exceptions raised at the engine boundary."""

from __future__ import annotations


class EnergyCoachError(Exception):
    """Base exception for energycoach errors."""

    pass


class ValidationError(EnergyCoachError, ValueError):
    """Raised when an input record or profile is malformed.

    Attributes:
        field: Name of the offending field (e.g. "weight", "age")
    """

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class ConfigError(EnergyCoachError):
    """Raised when a settings file holds invalid policy values."""

    pass


class ProposalError(EnergyCoachError):
    """Raised when a check-in decision cannot be confirmed."""

    pass
