"""
Sun and Earth angles in the satellite's local orbital frame.

For every sampled state the satellite-centered VVLH frame is built and the
directions to the Sun and to the Earth's center are expressed as an
azimuth/elevation pair:

- azimuth is measured in the frame's X/Y plane from +X (along-track)
  towards +Y, normalized to [0, 360)
- elevation is the angle between the vector and that plane, positive
  towards +Z (nadir), in [-90, 90]

The subsolar angle is the Earth-centered angle between the Sun and the
satellite, in [0, 180].
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple

import numpy as np

from .errors import GeometryError
from .frames import local_orbital_frame
from .orbit import StateVector
from .sunlight import sun_position_eci


# In-plane components below this fraction of the vector norm count as zero
DEGENERATE_TOLERANCE = 1e-9


@dataclass(frozen=True)
class AngleSample:
    """Azimuth/elevation of a body seen from the satellite at one instant."""

    timestamp: datetime
    azimuth_deg: float
    elevation_deg: float


@dataclass(frozen=True)
class SunAngleSample(AngleSample):
    """Sun azimuth/elevation plus the subsolar angle."""

    subsolar_deg: float = 0.0


def normalize_azimuth(azimuth_deg: float) -> float:
    """Wrap an azimuth into [0, 360)."""
    azimuth_deg = azimuth_deg % 360.0
    # -1e-15 % 360.0 rounds to 360.0
    return 0.0 if azimuth_deg >= 360.0 else azimuth_deg


def horizontal_angles(vector: np.ndarray) -> Tuple[float, float]:
    """
    Azimuth and elevation of a vector given in local orbital frame axes.

    When both in-plane components vanish the azimuth is undefined; it is
    then reported as 0 and the elevation as +90 or -90 following the sign of
    the Z component.

    Args:
        vector: (x, y, z) in the local orbital frame

    Returns:
        Tuple of (azimuth_deg, elevation_deg)

    Raises:
        GeometryError: If the vector is not finite or is zero
    """
    vector = np.asarray(vector, dtype=float)
    if vector.shape != (3,) or not np.all(np.isfinite(vector)):
        raise GeometryError(f"Cannot compute angles of non-finite vector {vector}")

    x, y, z = (float(c) for c in vector)
    norm = math.sqrt(x * x + y * y + z * z)
    if norm == 0.0:
        raise GeometryError("Cannot compute angles of a zero vector")

    horizontal = math.hypot(x, y)
    if horizontal <= DEGENERATE_TOLERANCE * norm:
        return 0.0, 90.0 if z > 0 else -90.0

    azimuth = normalize_azimuth(math.degrees(math.atan2(y, x)))
    elevation = math.degrees(math.atan2(z, horizontal))
    return azimuth, max(-90.0, min(90.0, elevation))


def vector_angle_deg(a: np.ndarray, b: np.ndarray) -> float:
    """Angle between two vectors in degrees, in [0, 180]."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    norms = np.linalg.norm(a) * np.linalg.norm(b)
    if not np.isfinite(norms) or norms == 0.0:
        raise GeometryError("Angle undefined for zero or non-finite vectors")
    cos_angle = float(np.dot(a, b)) / norms
    return math.degrees(math.acos(max(-1.0, min(1.0, cos_angle))))


class AngleComputer:
    """
    Pure converter from satellite states to Sun and Earth angle samples.

    Args:
        sun_position_fn: Sun ECI position (km) as a function of UTC time
    """

    def __init__(self, sun_position_fn: Callable[[datetime], np.ndarray] = sun_position_eci) -> None:
        self.sun_position_fn = sun_position_fn

    def frame(self, state: StateVector) -> np.ndarray:
        """Rotation from ECI into the satellite's local orbital frame."""
        if not (np.all(np.isfinite(state.position)) and np.all(np.isfinite(state.velocity))):
            raise GeometryError(f"Non-finite state at {state.timestamp}")
        try:
            return local_orbital_frame(state.position, state.velocity)
        except ValueError as e:
            raise GeometryError(f"{e} at {state.timestamp}") from e

    def sun_angles(self, state: StateVector, frame: Optional[np.ndarray] = None) -> SunAngleSample:
        """
        Sun direction seen from the satellite.

        Args:
            state: Satellite ECI state
            frame: Precomputed local orbital frame for this state

        Returns:
            SunAngleSample for the state's timestamp
        """
        if frame is None:
            frame = self.frame(state)

        sun_from_earth = np.asarray(self.sun_position_fn(state.timestamp), dtype=float)
        sun_from_satellite = frame @ (sun_from_earth - state.position)

        azimuth, elevation = horizontal_angles(sun_from_satellite)
        subsolar = vector_angle_deg(sun_from_earth, state.position)

        return SunAngleSample(
            timestamp=state.timestamp,
            azimuth_deg=azimuth,
            elevation_deg=elevation,
            subsolar_deg=subsolar,
        )

    def earth_angles(self, state: StateVector, frame: Optional[np.ndarray] = None) -> AngleSample:
        """Direction to the Earth's center seen from the satellite."""
        if frame is None:
            frame = self.frame(state)

        earth_from_satellite = frame @ (-np.asarray(state.position, dtype=float))
        azimuth, elevation = horizontal_angles(earth_from_satellite)

        return AngleSample(timestamp=state.timestamp, azimuth_deg=azimuth, elevation_deg=elevation)
