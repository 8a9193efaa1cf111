"""
Tests for the fixed-step state sampler.
"""

from datetime import timedelta

import pytest

from access_analyzer.errors import ConfigurationError, TrajectoryError
from access_analyzer.sampling import StateSampler
from conftest import CircularOrbitSource


class TestStateSampler:
    """Tests for StateSampler."""

    def test_includes_end_when_aligned(self, circular_trajectory, base_datetime) -> None:
        end = base_datetime + timedelta(minutes=10)
        sampler = StateSampler(circular_trajectory, "SYNTH-1", base_datetime, end, 60)

        timestamps = list(sampler.timestamps())

        assert len(sampler) == 11
        assert timestamps[0] == base_datetime
        assert timestamps[-1] == end

    def test_stops_before_end_when_not_aligned(self, circular_trajectory, base_datetime) -> None:
        end = base_datetime + timedelta(seconds=150)
        sampler = StateSampler(circular_trajectory, "SYNTH-1", base_datetime, end, 60)

        assert [(t - base_datetime).total_seconds() for t in sampler.timestamps()] == [0.0, 60.0, 120.0]

    def test_single_sample_when_start_equals_end(self, circular_trajectory, base_datetime) -> None:
        sampler = StateSampler(circular_trajectory, "SYNTH-1", base_datetime, base_datetime, 60)
        assert len(list(sampler)) == 1

    def test_no_drift_over_long_runs(self, circular_trajectory, base_datetime) -> None:
        end = base_datetime + timedelta(days=1)
        sampler = StateSampler(circular_trajectory, "SYNTH-1", base_datetime, end, 0.1)

        count = 0
        last = None
        for last in sampler.timestamps():
            count += 1

        assert count == len(sampler) == 86400 * 10 + 1
        assert last == end

    def test_yields_states_in_order(self, circular_trajectory, base_datetime) -> None:
        end = base_datetime + timedelta(minutes=5)
        states = list(StateSampler(circular_trajectory, "SYNTH-1", base_datetime, end, 60))

        assert [s.timestamp for s in states] == sorted(s.timestamp for s in states)
        assert all(s.position.shape == (3,) for s in states)

    def test_restartable(self, circular_trajectory, base_datetime) -> None:
        end = base_datetime + timedelta(minutes=5)
        sampler = StateSampler(circular_trajectory, "SYNTH-1", base_datetime, end, 60)

        first = [s.timestamp for s in sampler]
        second = [s.timestamp for s in sampler]

        assert first == second

    def test_lazy(self, circular_trajectory, base_datetime) -> None:
        sampler = StateSampler(circular_trajectory, "SYNTH-1", base_datetime, base_datetime + timedelta(hours=1), 60)
        iterator = iter(sampler)
        assert circular_trajectory.calls == 0

        next(iterator)
        assert circular_trajectory.calls == 1

    @pytest.mark.parametrize("step", [0, -60, None, 1e-7])
    def test_invalid_step(self, circular_trajectory, base_datetime, step) -> None:
        with pytest.raises(ConfigurationError):
            StateSampler(circular_trajectory, "SYNTH-1", base_datetime, base_datetime + timedelta(hours=1), step)

    def test_end_before_start(self, circular_trajectory, base_datetime) -> None:
        with pytest.raises(ConfigurationError):
            StateSampler(circular_trajectory, "SYNTH-1", base_datetime, base_datetime - timedelta(seconds=1), 60)

    def test_trajectory_failure_carries_context(self, base_datetime) -> None:
        failing = CircularOrbitSource("SYNTH-1", base_datetime, fail_after=base_datetime + timedelta(minutes=2))
        sampler = StateSampler(failing, "SYNTH-1", base_datetime, base_datetime + timedelta(minutes=10), 60)

        with pytest.raises(TrajectoryError) as exc_info:
            list(sampler)

        assert exc_info.value.satellite_id == "SYNTH-1"
        assert exc_info.value.timestamp == base_datetime + timedelta(minutes=3)
        assert "SYNTH-1" in str(exc_info.value)
