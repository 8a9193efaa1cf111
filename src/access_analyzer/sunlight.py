"""
Sun ephemeris and sidereal time.

This module provides the low-precision solar ephemeris used for the
satellite sun angles, and the Greenwich Mean Sidereal Time used to rotate
between Earth-fixed and inertial coordinates.
"""

import math
from datetime import datetime
from typing import Tuple

import numpy as np

# Constants
AU_KM = 149597870.7  # Astronomical Unit in kilometers
J2000 = datetime(2000, 1, 1, 12, 0, 0)


def _days_since_j2000(timestamp: datetime) -> float:
    # Make timestamp timezone-naive for calculation
    if timestamp.tzinfo is not None:
        timestamp = timestamp.replace(tzinfo=None)
    return (timestamp - J2000).total_seconds() / 86400.0


def calculate_sun_position(timestamp: datetime) -> Tuple[float, float, float]:
    """
    Calculate the sun's position in Earth-Centered Inertial (ECI) coordinates.

    Uses the Astronomical Almanac low-precision formulae (about 0.01 degree
    accuracy between 1950 and 2050), including the Earth-Sun distance.

    Args:
        timestamp: UTC datetime

    Returns:
        Tuple of (x, y, z) coordinates in kilometers
    """
    days = _days_since_j2000(timestamp)

    # Mean anomaly
    M = math.radians(357.52911 + 0.98560028 * days) % (2 * math.pi)

    # Equation of center
    C = math.radians(1.914602 * math.sin(M) + 0.019993 * math.sin(2 * M))

    # Ecliptic longitude
    lambda_sun = math.radians(280.46646 + 0.98564736 * days) + C

    # Obliquity of ecliptic
    epsilon = math.radians(23.439291 - 0.0000004 * days)

    # Earth-Sun distance in AU
    distance = AU_KM * (1.00014 - 0.01671 * math.cos(M) - 0.00014 * math.cos(2 * M))

    # Convert to equatorial coordinates
    x = distance * math.cos(lambda_sun)
    y = distance * math.sin(lambda_sun) * math.cos(epsilon)
    z = distance * math.sin(lambda_sun) * math.sin(epsilon)

    return x, y, z


def sun_position_eci(timestamp: datetime) -> np.ndarray:
    """Sun position in ECI as a numpy vector (km)."""
    return np.array(calculate_sun_position(timestamp), dtype=float)


def calculate_gmst(timestamp: datetime) -> float:
    """
    Calculate Greenwich Mean Sidereal Time (GMST) in degrees.

    Args:
        timestamp: UTC datetime

    Returns:
        GMST in degrees, in [0, 360)
    """
    days = _days_since_j2000(timestamp)

    # GMST calculation
    T = days / 36525.0  # Julian centuries
    gmst = 280.46061837 + 360.98564736629 * days + 0.000387933 * T * T - T**3 / 38710000.0

    return gmst % 360.0
