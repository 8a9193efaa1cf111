"""
Exception types raised by the access analyzer.

Every failure that can end or degrade a satellite run maps to one of
these classes so the task boundary can log it with satellite context.
"""

from datetime import datetime
from typing import Optional


class AccessAnalyzerError(Exception):
    """Base class for all access analyzer errors."""


class ConfigurationError(AccessAnalyzerError, ValueError):
    """Scenario, station or satellite configuration is missing or invalid."""


class TrajectoryError(AccessAnalyzerError):
    """
    The trajectory source could not produce a state.

    Args:
        message: Description of the failure
        satellite_id: Satellite whose trajectory failed
        timestamp: Requested UTC timestamp
    """

    def __init__(
        self,
        message: str,
        satellite_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        self.satellite_id = satellite_id
        self.timestamp = timestamp
        context = []
        if satellite_id is not None:
            context.append(f"satellite={satellite_id}")
        if timestamp is not None:
            context.append(f"time={timestamp.isoformat()}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class GeometryError(AccessAnalyzerError, ValueError):
    """Angle computation received a vector it cannot resolve (e.g. NaN)."""


class OutputError(AccessAnalyzerError, OSError):
    """An output sink could not be opened, written or closed."""
