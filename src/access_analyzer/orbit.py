"""
Satellite trajectory sources.

This module defines the inertial state vector handed to the analysis core,
the trajectory-source interface, and an implementation backed by the
orbit-predictor library (TLE/SGP4 or Keplerian propagation).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union
import logging

import numpy as np
from orbit_predictor.predictors.keplerian import KeplerianPredictor
from orbit_predictor.sources import get_predictor_from_tle_lines

from .errors import ConfigurationError, TrajectoryError

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6378.14  # Equatorial radius used for altitude -> semi-major axis


@dataclass(frozen=True)
class StateVector:
    """Inertial (ECI) state of a satellite at one instant."""

    timestamp: datetime
    position: np.ndarray  # km
    velocity: np.ndarray  # km/s


class TrajectorySource(Protocol):
    """Anything that can resolve a satellite state at a timestamp."""

    def state(self, satellite_id: str, timestamp: datetime) -> StateVector:
        """
        Return the ECI state of a satellite.

        Raises:
            TrajectoryError: If no state can be produced for the timestamp
        """
        ...


class SatelliteOrbit:
    """
    Represents a satellite orbit with TLE or Keplerian propagation.

    Instances are picklable: only the defining TLE lines or Keplerian
    elements are serialized and the predictor is rebuilt on unpickling, so
    orbits can be shipped to worker processes.
    """

    def __init__(
        self,
        satellite_name: str,
        tle_lines: Optional[List[str]] = None,
        elements: Optional[Dict[str, Any]] = None,
        valid_span: Optional[Tuple[datetime, datetime]] = None,
    ) -> None:
        """
        Initialize a satellite orbit.

        Args:
            satellite_name: Name of the satellite
            tle_lines: TLE as [line1, line2] or [name, line1, line2]
            elements: Keplerian elements, see from_keplerian()
            valid_span: Optional (start, end) outside which states are refused

        Raises:
            ConfigurationError: If neither or both definitions are given, or
                the definition cannot be turned into a predictor
        """
        if (tle_lines is None) == (elements is None):
            raise ConfigurationError(
                f"Satellite {satellite_name}: exactly one of TLE lines or Keplerian elements is required"
            )

        self.satellite_name = satellite_name
        self.tle_lines = list(tle_lines) if tle_lines is not None else None
        self.elements = dict(elements) if elements is not None else None
        self.valid_span = valid_span
        self.predictor = self._build_predictor()

    def _build_predictor(self) -> Any:
        try:
            if self.tle_lines is not None:
                # Only line1 and line2 go to the predictor, not the name
                predictor_lines = self.tle_lines[-2:]
                predictor = get_predictor_from_tle_lines(predictor_lines)
                logger.info(f"Loaded TLE orbit for satellite: {self.satellite_name}")
            else:
                e = self.elements
                predictor = KeplerianPredictor(
                    e["sma_km"],
                    e["eccentricity"],
                    e["inclination_deg"],
                    e["raan_deg"],
                    e["arg_perigee_deg"],
                    e["true_anomaly_deg"],
                    e["epoch"],
                )
                logger.info(f"Loaded Keplerian orbit for satellite: {self.satellite_name}")
            return predictor
        except Exception as e:
            logger.error(f"Failed to initialize satellite orbit: {e}")
            raise ConfigurationError(
                f"Invalid orbit definition for satellite {self.satellite_name}: {e}"
            ) from e

    @classmethod
    def from_tle_lines(cls, tle_lines: List[str], satellite_name: str) -> "SatelliteOrbit":
        """Create a SatelliteOrbit from TLE lines."""
        if len(tle_lines) not in (2, 3):
            raise ConfigurationError(
                f"Satellite {satellite_name}: TLE must have 2 or 3 lines, got {len(tle_lines)}"
            )
        return cls(satellite_name, tle_lines=tle_lines)

    @classmethod
    def from_tle_file(
        cls, tle_file_path: Union[str, Path], satellite_name: str, catalog_name: Optional[str] = None
    ) -> "SatelliteOrbit":
        """
        Create SatelliteOrbit instance from TLE file.

        Args:
            tle_file_path: Path to a 3-line TLE file
            satellite_name: Name of the satellite
            catalog_name: Name to look up in the TLE file (default: satellite_name)

        Returns:
            SatelliteOrbit instance

        Raises:
            ConfigurationError: If the file is missing or the satellite is not in it
        """
        tle_path = Path(tle_file_path)
        if not tle_path.exists():
            raise ConfigurationError(f"TLE file not found: {tle_file_path}")

        with open(tle_path, "r") as f:
            lines = [line.strip() for line in f.readlines() if line.strip()]

        wanted = (catalog_name or satellite_name).upper()

        # Parse TLE file to find the specified satellite
        for i in range(0, len(lines) - 2, 3):
            name_line = lines[i]
            if wanted in name_line.upper():
                return cls(satellite_name, tle_lines=[lines[i], lines[i + 1], lines[i + 2]])

        raise ConfigurationError(f"Satellite '{catalog_name or satellite_name}' not found in TLE file {tle_file_path}")

    @classmethod
    def from_keplerian(
        cls,
        satellite_name: str,
        epoch: datetime,
        inclination_deg: float,
        raan_deg: float = 0.0,
        arg_perigee_deg: float = 0.0,
        true_anomaly_deg: float = 0.0,
        eccentricity: float = 0.0,
        sma_km: Optional[float] = None,
        altitude_km: Optional[float] = None,
    ) -> "SatelliteOrbit":
        """
        Create a SatelliteOrbit from classical orbital elements.

        Exactly one of sma_km or altitude_km must be given; altitude is
        measured from the equatorial radius (circular-orbit convention).
        """
        if (sma_km is None) == (altitude_km is None):
            raise ConfigurationError(
                f"Satellite {satellite_name}: give exactly one of sma_km or altitude_km"
            )
        if sma_km is None:
            sma_km = EARTH_RADIUS_KM + altitude_km
        if not 0.0 <= eccentricity < 1.0:
            raise ConfigurationError(
                f"Satellite {satellite_name}: eccentricity must be in [0, 1), got {eccentricity}"
            )
        if sma_km * (1.0 - eccentricity) <= EARTH_RADIUS_KM:
            raise ConfigurationError(
                f"Satellite {satellite_name}: perigee is below the Earth's surface"
            )

        elements = {
            "sma_km": float(sma_km),
            "eccentricity": float(eccentricity),
            "inclination_deg": float(inclination_deg),
            "raan_deg": float(raan_deg),
            "arg_perigee_deg": float(arg_perigee_deg),
            "true_anomaly_deg": float(true_anomaly_deg),
            "epoch": epoch,
        }
        return cls(satellite_name, elements=elements)

    def __getstate__(self) -> Dict[str, Any]:
        return {
            "satellite_name": self.satellite_name,
            "tle_lines": self.tle_lines,
            "elements": self.elements,
            "valid_span": self.valid_span,
        }

    def __setstate__(self, state: Dict[str, Any]) -> None:
        self.__dict__.update(state)
        self.predictor = self._build_predictor()

    def get_state(self, timestamp: datetime) -> StateVector:
        """
        Propagate the orbit to a timestamp.

        Args:
            timestamp: UTC datetime

        Returns:
            ECI StateVector

        Raises:
            TrajectoryError: If the timestamp is outside the valid span or
                propagation fails
        """
        if self.valid_span is not None:
            span_start, span_end = self.valid_span
            if not span_start <= timestamp <= span_end:
                raise TrajectoryError(
                    "Timestamp outside trajectory span", self.satellite_name, timestamp
                )

        try:
            position, velocity = self.predictor.propagate_eci(timestamp)
        except Exception as e:
            raise TrajectoryError(
                f"Propagation failed: {e}", self.satellite_name, timestamp
            ) from e

        position = np.asarray(position, dtype=float)
        velocity = np.asarray(velocity, dtype=float)
        if not (np.all(np.isfinite(position)) and np.all(np.isfinite(velocity))):
            raise TrajectoryError("Propagation returned non-finite state", self.satellite_name, timestamp)

        return StateVector(timestamp=timestamp, position=position, velocity=velocity)

    def state(self, satellite_id: str, timestamp: datetime) -> StateVector:
        """TrajectorySource interface; the orbit only knows its own satellite."""
        if satellite_id != self.satellite_name:
            raise TrajectoryError(
                f"Orbit of {self.satellite_name} cannot serve another satellite",
                satellite_id,
                timestamp,
            )
        return self.get_state(timestamp)

    def get_orbital_period(self) -> timedelta:
        """
        Calculate orbital period of the satellite.

        Returns:
            Orbital period as timedelta
        """
        # period is a property in minutes, not a method
        return timedelta(minutes=self.predictor.period)

    def __repr__(self) -> str:
        """String representation of the satellite orbit."""
        kind = "TLE" if self.tle_lines is not None else "Keplerian"
        return f"SatelliteOrbit(name='{self.satellite_name}', source={kind})"


class OrbitCatalog:
    """
    TrajectorySource serving several satellites by name.

    The catalog is filled at configuration time and only read afterwards.
    """

    def __init__(self, orbits: Optional[List[SatelliteOrbit]] = None) -> None:
        self._orbits: Dict[str, SatelliteOrbit] = {}
        for orbit in orbits or []:
            self.add(orbit)

    def add(self, orbit: SatelliteOrbit) -> None:
        if orbit.satellite_name in self._orbits:
            raise ConfigurationError(f"Duplicate satellite in catalog: {orbit.satellite_name}")
        self._orbits[orbit.satellite_name] = orbit

    def get(self, satellite_id: str) -> SatelliteOrbit:
        try:
            return self._orbits[satellite_id]
        except KeyError:
            raise TrajectoryError("Unknown satellite", satellite_id) from None

    def state(self, satellite_id: str, timestamp: datetime) -> StateVector:
        return self.get(satellite_id).get_state(timestamp)

    def __contains__(self, satellite_id: str) -> bool:
        return satellite_id in self._orbits

    def __len__(self) -> int:
        return len(self._orbits)
