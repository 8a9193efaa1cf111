"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides:
- Custom markers for test categorization
- Shared fixtures for common test setup
- A synthetic circular-orbit trajectory source with no propagator behind it
"""

import math
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Tuple

import numpy as np
import pytest
from _pytest.config import Config
from _pytest.python import Function

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from access_analyzer.errors import TrajectoryError  # noqa: E402
from access_analyzer.orbit import StateVector  # noqa: E402

EARTH_MU = 398600.4418  # km^3/s^2


# =============================================================================
# COLLECTION HOOKS
# =============================================================================


def pytest_collection_modifyitems(config: Config, items: List[Function]) -> None:
    """Auto-mark tests under tests/integration."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks integration tests")


# =============================================================================
# SYNTHETIC TRAJECTORIES
# =============================================================================


class CircularOrbitSource:
    """
    Analytic two-body circular orbit in ECI.

    Good enough to drive the analysis end to end without orbit-predictor;
    `fail_after` makes every state after that time raise TrajectoryError.
    """

    def __init__(
        self,
        satellite_id: str,
        epoch: datetime,
        altitude_km: float = 700.0,
        inclination_deg: float = 98.0,
        raan_deg: float = 0.0,
        fail_after: datetime = None,
    ) -> None:
        self.satellite_id = satellite_id
        self.epoch = epoch
        self.radius = 6378.137 + altitude_km
        self.mean_motion = math.sqrt(EARTH_MU / self.radius**3)
        self.inclination = math.radians(inclination_deg)
        self.raan = math.radians(raan_deg)
        self.fail_after = fail_after
        self.calls = 0

    def state(self, satellite_id: str, timestamp: datetime) -> StateVector:
        self.calls += 1
        if satellite_id != self.satellite_id:
            raise TrajectoryError("Unknown satellite", satellite_id, timestamp)
        if self.fail_after is not None and timestamp > self.fail_after:
            raise TrajectoryError("Ephemeris exhausted", satellite_id, timestamp)

        u = self.mean_motion * (timestamp - self.epoch).total_seconds()
        # Perifocal position/velocity rotated by inclination then RAAN
        p = np.array([math.cos(u), math.sin(u), 0.0]) * self.radius
        v = np.array([-math.sin(u), math.cos(u), 0.0]) * self.radius * self.mean_motion

        ci, si = math.cos(self.inclination), math.sin(self.inclination)
        co, so = math.cos(self.raan), math.sin(self.raan)
        rotation = np.array([
            [co, -so * ci, so * si],
            [so, co * ci, -co * si],
            [0.0, si, ci],
        ])
        return StateVector(timestamp=timestamp, position=rotation @ p, velocity=rotation @ v)


# =============================================================================
# FIXTURES - Common test setup
# =============================================================================


@pytest.fixture
def sample_tle_lines() -> Tuple[str, str]:
    """Sample TLE data for ICEYE-X44."""
    return (
        "1 62707U 25009DC  25306.22031033  .00004207  00000+0  39848-3 0  9995",
        "2 62707  97.7269  23.9854 0002193 135.9671 224.1724 14.94137357 66022",
    )


@pytest.fixture
def base_datetime() -> datetime:
    """Standard base datetime for tests (example scenario epoch)."""
    return datetime(2021, 1, 1, 0, 0, 0)


@pytest.fixture
def time_range(base_datetime: datetime) -> Tuple[datetime, datetime]:
    """Standard 24-hour time range for tests."""
    return base_datetime, base_datetime + timedelta(hours=24)


@pytest.fixture
def circular_trajectory(base_datetime: datetime) -> CircularOrbitSource:
    """700 km circular polar-ish orbit for satellite 'SYNTH-1'."""
    return CircularOrbitSource("SYNTH-1", base_datetime)


@pytest.fixture
def freiburg_station():
    """Ground station of the example scenario."""
    from access_analyzer.stations import GroundStation

    return GroundStation(
        name="Freiburg",
        latitude=47.6652,
        longitude=7.84965,
        altitude=325.036,
        elevation_threshold_deg=10.0,
        max_check_seconds=60.0,
        root_tolerance_seconds=0.001,
    )


@pytest.fixture
def station_manager(freiburg_station):
    """Freiburg plus a high-latitude station."""
    from access_analyzer.stations import GroundStation, StationManager

    svalbard = GroundStation(name="Svalbard", latitude=78.2297, longitude=15.4078, altitude=500.0)
    return StationManager([freiburg_station, svalbard])


@pytest.fixture
def run_context(station_manager, tmp_path: Path):
    """Run context writing under a temporary output folder."""
    from access_analyzer.task import RunContext

    return RunContext(stations=station_manager, output_folder=tmp_path / "output")
