"""
Tests for satellite trajectory sources.

Predictors are mocked where the test is about the wrapper; Keplerian
orbits use the real orbit-predictor library.
"""

import pickle
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from access_analyzer.errors import ConfigurationError, TrajectoryError
from access_analyzer.orbit import EARTH_RADIUS_KM, OrbitCatalog, SatelliteOrbit, StateVector

EPOCH = datetime(2021, 1, 1)


@pytest.fixture
def ernst() -> SatelliteOrbit:
    """The example scenario's 700 km sun-synchronous orbit."""
    return SatelliteOrbit.from_keplerian(
        "ERNST", EPOCH, inclination_deg=98.1929, raan_deg=10.5834, altitude_km=700.0
    )


@pytest.fixture
def mock_predictor():
    predictor = MagicMock()
    predictor.propagate_eci.return_value = ((7000.0, 0.0, 0.0), (0.0, 7.5, 0.0))
    predictor.period = 98.8
    return predictor


class TestSatelliteOrbitTle:
    """Tests for TLE-based orbits with a mocked predictor."""

    def test_uses_last_two_lines(self, sample_tle_lines, mock_predictor) -> None:
        with patch("access_analyzer.orbit.get_predictor_from_tle_lines", return_value=mock_predictor) as factory:
            SatelliteOrbit.from_tle_lines(["ICEYE-X44", *sample_tle_lines], "ICEYE-X44")

        factory.assert_called_once_with(list(sample_tle_lines))

    def test_get_state(self, sample_tle_lines, mock_predictor) -> None:
        with patch("access_analyzer.orbit.get_predictor_from_tle_lines", return_value=mock_predictor):
            orbit = SatelliteOrbit.from_tle_lines(list(sample_tle_lines), "ICEYE-X44")

        state = orbit.get_state(EPOCH)

        assert isinstance(state, StateVector)
        np.testing.assert_array_equal(state.position, [7000.0, 0.0, 0.0])
        np.testing.assert_array_equal(state.velocity, [0.0, 7.5, 0.0])
        mock_predictor.propagate_eci.assert_called_once_with(EPOCH)

    def test_propagation_failure(self, sample_tle_lines, mock_predictor) -> None:
        mock_predictor.propagate_eci.side_effect = RuntimeError("decayed")
        with patch("access_analyzer.orbit.get_predictor_from_tle_lines", return_value=mock_predictor):
            orbit = SatelliteOrbit.from_tle_lines(list(sample_tle_lines), "ICEYE-X44")

        with pytest.raises(TrajectoryError, match="decayed") as exc_info:
            orbit.get_state(EPOCH)
        assert exc_info.value.satellite_id == "ICEYE-X44"

    def test_non_finite_state(self, sample_tle_lines, mock_predictor) -> None:
        mock_predictor.propagate_eci.return_value = ((np.nan, 0.0, 0.0), (0.0, 7.5, 0.0))
        with patch("access_analyzer.orbit.get_predictor_from_tle_lines", return_value=mock_predictor):
            orbit = SatelliteOrbit.from_tle_lines(list(sample_tle_lines), "ICEYE-X44")

        with pytest.raises(TrajectoryError):
            orbit.get_state(EPOCH)

    def test_invalid_tle_is_configuration_error(self) -> None:
        with patch("access_analyzer.orbit.get_predictor_from_tle_lines", side_effect=ValueError("bad checksum")):
            with pytest.raises(ConfigurationError, match="bad checksum"):
                SatelliteOrbit.from_tle_lines(["1 bad", "2 bad"], "BAD")

    def test_wrong_line_count(self) -> None:
        with pytest.raises(ConfigurationError):
            SatelliteOrbit.from_tle_lines(["only one line"], "BAD")

    def test_from_tle_file(self, tmp_path, sample_tle_lines, mock_predictor) -> None:
        tle_file = tmp_path / "sats.tle"
        tle_file.write_text(f"OTHER SAT\n{sample_tle_lines[0]}\n{sample_tle_lines[1]}\n"
                            f"ICEYE-X44\n{sample_tle_lines[0]}\n{sample_tle_lines[1]}\n")

        with patch("access_analyzer.orbit.get_predictor_from_tle_lines", return_value=mock_predictor):
            orbit = SatelliteOrbit.from_tle_file(tle_file, "SAR-1", catalog_name="iceye-x44")

        assert orbit.satellite_name == "SAR-1"
        assert orbit.tle_lines[0] == "ICEYE-X44"

    def test_from_tle_file_missing_satellite(self, tmp_path, sample_tle_lines) -> None:
        tle_file = tmp_path / "sats.tle"
        tle_file.write_text(f"OTHER SAT\n{sample_tle_lines[0]}\n{sample_tle_lines[1]}\n")

        with pytest.raises(ConfigurationError, match="not found"):
            SatelliteOrbit.from_tle_file(tle_file, "ICEYE-X44")

    def test_from_tle_file_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError):
            SatelliteOrbit.from_tle_file(tmp_path / "missing.tle", "ICEYE-X44")


class TestSatelliteOrbitKeplerian:
    """Tests for Keplerian orbits."""

    def test_circular_radius(self, ernst) -> None:
        state = ernst.get_state(EPOCH + timedelta(minutes=37))
        assert np.linalg.norm(state.position) == pytest.approx(EARTH_RADIUS_KM + 700.0, abs=1e-3)

    def test_circular_speed(self, ernst) -> None:
        state = ernst.get_state(EPOCH)
        # sqrt(mu / a) for a = 7078.14 km
        assert np.linalg.norm(state.velocity) == pytest.approx(7.504, abs=0.01)

    def test_period(self, ernst) -> None:
        assert ernst.get_orbital_period().total_seconds() == pytest.approx(98.8 * 60, rel=0.01)

    def test_sma_or_altitude_required(self) -> None:
        with pytest.raises(ConfigurationError):
            SatelliteOrbit.from_keplerian("X", EPOCH, 98.0)
        with pytest.raises(ConfigurationError):
            SatelliteOrbit.from_keplerian("X", EPOCH, 98.0, sma_km=7000.0, altitude_km=600.0)

    def test_perigee_below_surface(self) -> None:
        with pytest.raises(ConfigurationError):
            SatelliteOrbit.from_keplerian("X", EPOCH, 98.0, sma_km=7000.0, eccentricity=0.2)

    def test_invalid_eccentricity(self) -> None:
        with pytest.raises(ConfigurationError):
            SatelliteOrbit.from_keplerian("X", EPOCH, 98.0, sma_km=9000.0, eccentricity=1.0)

    def test_pickle_rebuilds_predictor(self, ernst) -> None:
        clone = pickle.loads(pickle.dumps(ernst))
        when = EPOCH + timedelta(hours=3)

        np.testing.assert_allclose(clone.get_state(when).position, ernst.get_state(when).position)

    def test_valid_span(self) -> None:
        orbit = SatelliteOrbit(
            "SPAN",
            elements=SatelliteOrbit.from_keplerian("SPAN", EPOCH, 98.0, altitude_km=700.0).elements,
            valid_span=(EPOCH, EPOCH + timedelta(hours=1)),
        )

        orbit.get_state(EPOCH + timedelta(minutes=30))
        with pytest.raises(TrajectoryError, match="outside"):
            orbit.get_state(EPOCH + timedelta(hours=2))

    def test_state_checks_satellite_id(self, ernst) -> None:
        assert ernst.state("ERNST", EPOCH).timestamp == EPOCH
        with pytest.raises(TrajectoryError):
            ernst.state("OTHER", EPOCH)

    def test_exactly_one_definition(self) -> None:
        with pytest.raises(ConfigurationError):
            SatelliteOrbit("X")


class TestOrbitCatalog:
    """Tests for OrbitCatalog."""

    def test_serves_by_name(self, ernst) -> None:
        other = SatelliteOrbit.from_keplerian("OTHER", EPOCH, 51.6, altitude_km=420.0)
        catalog = OrbitCatalog([ernst, other])

        assert len(catalog) == 2
        assert "OTHER" in catalog
        assert np.linalg.norm(catalog.state("OTHER", EPOCH).position) == pytest.approx(
            EARTH_RADIUS_KM + 420.0, abs=1e-3
        )

    def test_unknown_satellite(self, ernst) -> None:
        with pytest.raises(TrajectoryError):
            OrbitCatalog([ernst]).state("GHOST", EPOCH)

    def test_duplicate(self, ernst) -> None:
        with pytest.raises(ConfigurationError):
            OrbitCatalog([ernst, ernst])
