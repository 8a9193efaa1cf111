"""
Reference frame helpers.

Frames used by the analyzer:
    ECI  - Earth-Centered Inertial, the frame trajectory states are given in
    ECEF - Earth-Centered Earth-Fixed, rotated from ECI by GMST
    Topocentric - station-centered East/North/Up frame on the WGS84 ellipsoid
    Local orbital frame - satellite-centered VVLH frame

All distances are in kilometers.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple

import numpy as np

from .sunlight import calculate_gmst

# WGS84 ellipsoid
WGS84_EQUATORIAL_RADIUS_KM = 6378.137
WGS84_FLATTENING = 1.0 / 298.257223563
WGS84_E_SQUARED = WGS84_FLATTENING * (2.0 - WGS84_FLATTENING)

EARTH_ROTATION_RATE_RAD_S = 7.2921150e-5
_EARTH_OMEGA = np.array([0.0, 0.0, EARTH_ROTATION_RATE_RAD_S])


def geodetic_to_ecef(lat_deg: float, lon_deg: float, alt_m: float) -> np.ndarray:
    """
    Convert geodetic coordinates to an ECEF position on the WGS84 ellipsoid.

    Args:
        lat_deg: Geodetic latitude in degrees
        lon_deg: Longitude in degrees
        alt_m: Altitude above the ellipsoid in meters

    Returns:
        ECEF position (x, y, z) in kilometers
    """
    lat_rad = math.radians(lat_deg)
    lon_rad = math.radians(lon_deg)
    alt_km = alt_m / 1000.0

    sin_lat = math.sin(lat_rad)
    cos_lat = math.cos(lat_rad)
    n = WGS84_EQUATORIAL_RADIUS_KM / math.sqrt(1.0 - WGS84_E_SQUARED * sin_lat**2)

    return np.array([
        (n + alt_km) * cos_lat * math.cos(lon_rad),
        (n + alt_km) * cos_lat * math.sin(lon_rad),
        (n * (1.0 - WGS84_E_SQUARED) + alt_km) * sin_lat,
    ])


def _rotation_eci_to_ecef(timestamp: datetime) -> np.ndarray:
    theta = math.radians(calculate_gmst(timestamp))
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    return np.array([
        [cos_t, sin_t, 0.0],
        [-sin_t, cos_t, 0.0],
        [0.0, 0.0, 1.0],
    ])


def eci_to_ecef(position: np.ndarray, timestamp: datetime) -> np.ndarray:
    """Rotate an ECI position into ECEF at the given UTC time."""
    return _rotation_eci_to_ecef(timestamp) @ np.asarray(position, dtype=float)


def ecef_to_eci(
    position: np.ndarray, velocity: np.ndarray, timestamp: datetime
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert an ECEF state to ECI, including the Earth rotation term.

    Args:
        position: ECEF position (km)
        velocity: ECEF velocity, relative to the rotating Earth (km/s)
        timestamp: UTC datetime

    Returns:
        Tuple of (position_eci, velocity_eci)
    """
    rotation = _rotation_eci_to_ecef(timestamp).T
    position = np.asarray(position, dtype=float)
    velocity = np.asarray(velocity, dtype=float)
    return rotation @ position, rotation @ (velocity + np.cross(_EARTH_OMEGA, position))


@dataclass(frozen=True)
class TopocentricFrame:
    """
    East/North/Up frame attached to a point on the WGS84 ellipsoid.

    Elevation is measured from the local horizontal plane (the plane normal
    to the geodetic up direction), azimuth clockwise from north.
    """

    latitude: float
    longitude: float
    altitude: float
    origin: np.ndarray = field(init=False, repr=False, compare=False)
    rotation: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        lat_rad = math.radians(self.latitude)
        lon_rad = math.radians(self.longitude)
        sin_lat, cos_lat = math.sin(lat_rad), math.cos(lat_rad)
        sin_lon, cos_lon = math.sin(lon_rad), math.cos(lon_rad)

        # frozen dataclass: derived fields are set through object.__setattr__
        object.__setattr__(
            self, "origin", geodetic_to_ecef(self.latitude, self.longitude, self.altitude)
        )
        object.__setattr__(self, "rotation", np.array([
            [-sin_lon, cos_lon, 0.0],
            [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
            [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
        ]))

    def to_enu(self, position_ecef: np.ndarray) -> np.ndarray:
        """Express an ECEF position (km) in this frame's East/North/Up axes."""
        return self.rotation @ (np.asarray(position_ecef, dtype=float) - self.origin)

    def elevation_deg(self, position_ecef: np.ndarray) -> float:
        """Elevation of an ECEF position above the local horizontal plane."""
        east, north, up = self.to_enu(position_ecef)
        return math.degrees(math.atan2(up, math.hypot(east, north)))

    def azimuth_deg(self, position_ecef: np.ndarray) -> float:
        """Azimuth of an ECEF position, clockwise from north in [0, 360)."""
        east, north, _ = self.to_enu(position_ecef)
        azimuth = math.degrees(math.atan2(east, north)) % 360.0
        return 0.0 if azimuth >= 360.0 else azimuth


def topocentric_frame(latitude: float, longitude: float, altitude: float) -> TopocentricFrame:
    """
    Build the topocentric frame of a ground station.

    Args:
        latitude: Geodetic latitude in degrees
        longitude: Longitude in degrees
        altitude: Altitude above the ellipsoid in meters

    Returns:
        TopocentricFrame for the station
    """
    return TopocentricFrame(latitude, longitude, altitude)


def local_orbital_frame(position: np.ndarray, velocity: np.ndarray) -> np.ndarray:
    """
    Build the satellite-centered VVLH frame.

    Rows of the returned matrix are the frame axes expressed in the input
    frame:
        Z - nadir, along -position
        Y - negative orbit normal, along -(position x velocity)
        X - Y x Z, along the velocity component orthogonal to nadir

    Args:
        position: Satellite position (km)
        velocity: Satellite velocity (km/s)

    Returns:
        3x3 rotation matrix from the input frame to the local orbital frame

    Raises:
        ValueError: If position is zero or parallel to velocity
    """
    position = np.asarray(position, dtype=float)
    velocity = np.asarray(velocity, dtype=float)

    r_norm = np.linalg.norm(position)
    momentum = np.cross(position, velocity)
    h_norm = np.linalg.norm(momentum)
    if r_norm == 0.0 or h_norm <= 1e-12 * r_norm * max(np.linalg.norm(velocity), 1.0):
        raise ValueError("Local orbital frame undefined for zero or radial-only state")

    z_axis = -position / r_norm
    y_axis = -momentum / h_norm
    x_axis = np.cross(y_axis, z_axis)

    return np.vstack([x_axis, y_axis, z_axis])
