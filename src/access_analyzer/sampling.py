"""
Fixed-step state sampling.

The sampler walks a satellite's analysis window at a constant step and
pulls one inertial state per timestamp from a trajectory source.
"""

from datetime import datetime, timedelta
from typing import Iterator
import logging

from .errors import ConfigurationError
from .orbit import StateVector, TrajectorySource

logger = logging.getLogger(__name__)

MIN_STEP_SECONDS = 1e-6  # datetime resolution


class StateSampler:
    """
    Lazy, finite, restartable sequence of states over [start, end].

    Timestamps are start + i * step for every i with t <= end, computed from
    the index so long runs do not accumulate rounding drift. Each call to
    iter() starts again from the first sample.
    """

    def __init__(
        self,
        trajectory: TrajectorySource,
        satellite_id: str,
        start: datetime,
        end: datetime,
        step_seconds: float,
    ) -> None:
        if step_seconds is None or step_seconds < MIN_STEP_SECONDS:
            raise ConfigurationError(
                f"Satellite {satellite_id}: step must be at least {MIN_STEP_SECONDS}s, got {step_seconds}"
            )
        if end < start:
            raise ConfigurationError(f"Satellite {satellite_id}: end {end} is before start {start}")

        self.trajectory = trajectory
        self.satellite_id = satellite_id
        self.start = start
        self.end = end
        self.step = timedelta(seconds=step_seconds)

        logger.debug(f"Sampler for {satellite_id}: {len(self)} samples every {step_seconds}s from {start}")

    def __len__(self) -> int:
        return int((self.end - self.start) / self.step) + 1

    def timestamps(self) -> Iterator[datetime]:
        """Yield the sample timestamps without touching the trajectory."""
        for i in range(len(self)):
            timestamp = self.start + i * self.step
            if timestamp > self.end:
                break
            yield timestamp

    def __iter__(self) -> Iterator[StateVector]:
        """
        Yield one state per timestamp.

        Raises:
            TrajectoryError: Propagated from the trajectory source; ends the
                iteration for this satellite
        """
        for timestamp in self.timestamps():
            yield self.trajectory.state(self.satellite_id, timestamp)
