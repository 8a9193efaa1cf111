"""
Ground station definitions and management.

This module provides the ground station model used for access analysis:
its geodetic location, its topocentric frame and the parameters of its
elevation detector.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional
import logging

from .errors import ConfigurationError
from .frames import TopocentricFrame, topocentric_frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroundStation:
    """
    Represents a ground station for satellite access analysis.

    Stations are immutable once created; the topocentric frame is derived
    from the location at construction time.
    """

    name: str
    latitude: float  # degrees, -90 to +90
    longitude: float  # degrees, -180 to +180
    altitude: float = 0.0  # meters above the WGS84 ellipsoid
    elevation_threshold_deg: float = 10.0  # minimum elevation for access
    max_check_seconds: float = 60.0  # maximum spacing between elevation checks
    root_tolerance_seconds: float = 0.001  # precision of crossing times
    frame: TopocentricFrame = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate station parameters and derive the topocentric frame."""
        self._validate_name()
        self._validate_coordinates()
        self._validate_detector_parameters()
        object.__setattr__(self, "frame", topocentric_frame(self.latitude, self.longitude, self.altitude))

    def _validate_name(self) -> None:
        if not self.name or "/" in self.name or "\\" in self.name:
            raise ConfigurationError(f"Invalid station name: {self.name!r}")

    def _validate_coordinates(self) -> None:
        """Validate latitude and longitude values."""
        if not -90 <= self.latitude <= 90:
            raise ConfigurationError(
                f"Station {self.name}: invalid latitude {self.latitude}. Must be between -90 and 90 degrees."
            )

        if not -180 <= self.longitude <= 180:
            raise ConfigurationError(
                f"Station {self.name}: invalid longitude {self.longitude}. Must be between -180 and 180 degrees."
            )

    def _validate_detector_parameters(self) -> None:
        if not -90 <= self.elevation_threshold_deg <= 90:
            raise ConfigurationError(
                f"Station {self.name}: invalid elevation threshold {self.elevation_threshold_deg}. "
                f"Must be between -90 and 90 degrees."
            )
        if self.max_check_seconds <= 0:
            raise ConfigurationError(
                f"Station {self.name}: max_check_seconds must be > 0, got {self.max_check_seconds}"
            )
        if self.root_tolerance_seconds <= 0:
            raise ConfigurationError(
                f"Station {self.name}: root_tolerance_seconds must be > 0, got {self.root_tolerance_seconds}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert station to dictionary representation."""
        return {
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "elevation_threshold_deg": self.elevation_threshold_deg,
            "max_check_seconds": self.max_check_seconds,
            "root_tolerance_seconds": self.root_tolerance_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroundStation":
        """Create GroundStation from dictionary."""
        known = set(cls.__dataclass_fields__) - {"frame"}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(
                f"Station {data.get('name', '?')}: unknown keys {sorted(unknown)}"
            )
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Station {data.get('name', '?')}: {e}") from e

    def __str__(self) -> str:
        """String representation of the station."""
        return f"{self.name} ({self.latitude:.4f}°, {self.longitude:.4f}°)"


class StationManager:
    """
    Read-only collection of ground stations keyed by name.

    Built once at configuration time and shared by every satellite task.
    """

    def __init__(self, stations: Optional[List[GroundStation]] = None) -> None:
        self._stations: Dict[str, GroundStation] = {}
        for station in stations or []:
            if station.name in self._stations:
                raise ConfigurationError(f"Duplicate station name: {station.name}")
            self._stations[station.name] = station
        logger.info(f"Initialized StationManager with {len(self._stations)} stations")

    def get(self, name: str) -> Optional[GroundStation]:
        """Get a station by name, or None."""
        return self._stations.get(name)

    def select(self, names: Optional[List[str]]) -> List[GroundStation]:
        """
        Resolve station names, keeping their order.

        Args:
            names: Station names, or None for all stations

        Raises:
            ConfigurationError: If a name is unknown
        """
        if names is None:
            return list(self._stations.values())
        missing = [name for name in names if name not in self._stations]
        if missing:
            raise ConfigurationError(f"Unknown stations: {missing}")
        return [self._stations[name] for name in names]

    def names(self) -> List[str]:
        return list(self._stations)

    def __contains__(self, name: str) -> bool:
        return name in self._stations

    def __len__(self) -> int:
        """Return number of stations."""
        return len(self._stations)

    def __iter__(self) -> Iterator[GroundStation]:
        return iter(self._stations.values())

    def __repr__(self) -> str:
        return f"StationManager({len(self._stations)} stations)"
