"""
Per-satellite analysis task.

A SatelliteTask walks one satellite's analysis window at a fixed step,
writes Sun/Earth angle rows per sample and tracks access windows over
every selected ground station. Tasks share nothing mutable: the RunContext
is read-only and every task owns its trackers and output files.
"""

from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import logging
import threading
import time

import numpy as np

from .angles import AngleComputer
from .errors import AccessAnalyzerError, ConfigurationError, GeometryError
from .orbit import StateVector, TrajectorySource
from .output import AccessWindowWriter, EarthAngleWriter, OutputLayout, SunAngleWriter
from .sampling import MIN_STEP_SECONDS, StateSampler
from .stations import GroundStation, StationManager
from .sunlight import sun_position_eci
from .visibility import (
    AccessWindow,
    EndOfRunPolicy,
    StartPolicy,
    VisibilityTracker,
    station_elevation_function,
)

logger = logging.getLogger(__name__)

STATE_CACHE_SIZE = 4096  # LRU cache size for trajectory states within one run


class TaskStatus(Enum):
    """Outcome of one satellite run."""

    COMPLETED = "completed"
    REFUSED = "refused"  # configuration incomplete, nothing written
    FAILED = "failed"  # aborted by an error, files closed
    CANCELLED = "cancelled"


@dataclass
class SatelliteConfig:
    """
    Everything needed to analyze one satellite.

    Trajectory, window and step may be left unset while a scenario is being
    assembled; validate() is called before the run and refuses incomplete
    configurations.
    """

    name: str
    trajectory: Optional[TrajectorySource] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    step_seconds: Optional[float] = None
    sun_angles: bool = True
    earth_angles: bool = True
    access_windows: bool = True
    stations: Optional[List[str]] = None  # None = every station in the run

    def validate(self, stations: Optional[StationManager] = None) -> None:
        """
        Check the configuration is complete and consistent.

        Args:
            stations: Stations known to the run, to resolve station names

        Raises:
            ConfigurationError: Naming the first problem found
        """
        if not self.name:
            raise ConfigurationError("Satellite name is required")
        if self.trajectory is None:
            raise ConfigurationError(f"Satellite {self.name}: no trajectory source configured")
        if self.start is None or self.end is None:
            raise ConfigurationError(f"Satellite {self.name}: analysis window (start/end) not configured")
        if self.end < self.start:
            raise ConfigurationError(f"Satellite {self.name}: end {self.end} is before start {self.start}")
        if self.step_seconds is None or self.step_seconds < MIN_STEP_SECONDS:
            raise ConfigurationError(
                f"Satellite {self.name}: step must be at least {MIN_STEP_SECONDS}s, got {self.step_seconds}"
            )
        if not (self.sun_angles or self.earth_angles or self.access_windows):
            raise ConfigurationError(f"Satellite {self.name}: all outputs are disabled")
        if self.access_windows and stations is not None:
            stations.select(self.stations)


@dataclass(frozen=True)
class RunContext:
    """Read-only configuration shared by every task of a batch."""

    stations: StationManager
    output_folder: Path
    start_policy: StartPolicy = StartPolicy.OPEN_AT_START
    end_policy: EndOfRunPolicy = EndOfRunPolicy.DROP
    sun_position_fn: Callable[[datetime], np.ndarray] = sun_position_eci

    @property
    def layout(self) -> OutputLayout:
        return OutputLayout(self.output_folder)


@dataclass
class TaskResult:
    """Summary of one satellite run."""

    satellite_name: str
    status: TaskStatus
    windows: Dict[str, List[AccessWindow]] = field(default_factory=dict)
    samples: int = 0
    error: Optional[str] = None
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def window_count(self) -> int:
        return sum(len(windows) for windows in self.windows.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary representation."""
        return {
            "satellite_name": self.satellite_name,
            "status": self.status.value,
            "samples": self.samples,
            "windows": {name: [w.to_dict() for w in windows] for name, windows in self.windows.items()},
            "error": self.error,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


class CachedTrajectory:
    """
    Memoizes states of one trajectory source.

    Every station detector of a task evaluates the same check times, so
    each state is propagated once.
    """

    def __init__(self, trajectory: TrajectorySource, maxsize: int = STATE_CACHE_SIZE) -> None:
        self.trajectory = trajectory
        self._state = lru_cache(maxsize=maxsize)(self._state_impl)

    def _state_impl(self, satellite_id: str, timestamp: datetime) -> StateVector:
        return self.trajectory.state(satellite_id, timestamp)

    def state(self, satellite_id: str, timestamp: datetime) -> StateVector:
        return self._state(satellite_id, timestamp)

    def cache_info(self):
        return self._state.cache_info()


class SatelliteTask:
    """
    Runs the analysis of one satellite.

    Args:
        config: The satellite's configuration
        context: Shared read-only run configuration
    """

    def __init__(self, config: SatelliteConfig, context: RunContext) -> None:
        self.config = config
        self.context = context

    @property
    def satellite_name(self) -> str:
        return self.config.name

    def run(self, cancel_event: Optional[threading.Event] = None) -> TaskResult:
        """
        Execute the task. Never raises; failures are reported in the result.

        Args:
            cancel_event: Checked once per time step; when set the run stops

        Returns:
            TaskResult with status and the windows found
        """
        name = self.config.name
        started = time.perf_counter()

        try:
            self.config.validate(self.context.stations)
        except ConfigurationError as e:
            logger.error(f"Satellite {name} refused: {e}")
            return TaskResult(name, TaskStatus.REFUSED, error=str(e))

        result = TaskResult(name, TaskStatus.COMPLETED)
        try:
            self._execute(result, cancel_event)
        except AccessAnalyzerError as e:
            logger.error(f"Satellite {name} failed: {e}")
            result.status = TaskStatus.FAILED
            result.error = str(e)
        except Exception as e:
            logger.exception(f"Satellite {name} failed with unexpected error: {e}")
            result.status = TaskStatus.FAILED
            result.error = f"{type(e).__name__}: {e}"

        result.elapsed_seconds = time.perf_counter() - started
        logger.info(
            f"Satellite {name} {result.status.value}: {result.samples} samples, "
            f"{result.window_count} access windows in {result.elapsed_seconds:.2f}s"
        )
        return result

    def _build_trackers(
        self, trajectory: TrajectorySource, stations: List[GroundStation]
    ) -> Dict[str, VisibilityTracker]:
        trackers = {}
        for station in stations:
            elevation_fn = station_elevation_function(trajectory, self.config.name, station.frame)
            trackers[station.name] = VisibilityTracker(
                self.config.name,
                station,
                elevation_fn,
                start_policy=self.context.start_policy,
                end_policy=self.context.end_policy,
            )
        return trackers

    def _execute(self, result: TaskResult, cancel_event: Optional[threading.Event]) -> None:
        config = self.config
        layout = self.context.layout
        trajectory = CachedTrajectory(config.trajectory)
        sampler = StateSampler(trajectory, config.name, config.start, config.end, config.step_seconds)
        angle_computer = AngleComputer(self.context.sun_position_fn)

        stations = self.context.stations.select(config.stations) if config.access_windows else []
        if config.access_windows and not stations:
            logger.warning(f"Satellite {config.name}: access windows enabled but no stations configured")
        trackers = self._build_trackers(trajectory, stations)

        logger.info(
            f"Satellite {config.name}: {len(sampler)} samples every {config.step_seconds}s "
            f"from {config.start} to {config.end}, {len(trackers)} stations"
        )

        with ExitStack() as stack:
            sun_writer = (
                stack.enter_context(SunAngleWriter(layout.sun_angles_path(config.name)))
                if config.sun_angles
                else None
            )
            earth_writer = (
                stack.enter_context(EarthAngleWriter(layout.earth_angles_path(config.name)))
                if config.earth_angles
                else None
            )
            access_writers = {
                station_name: stack.enter_context(
                    AccessWindowWriter(layout.access_path(config.name, station_name))
                )
                for station_name in trackers
            }
            for station_name in trackers:
                result.windows[station_name] = []

            last_timestamp = None
            for state in sampler:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning(f"Satellite {config.name} cancelled at {state.timestamp}")
                    result.status = TaskStatus.CANCELLED
                    return

                if sun_writer is not None or earth_writer is not None:
                    self._write_angles(angle_computer, state, sun_writer, earth_writer)

                for station_name, tracker in trackers.items():
                    if last_timestamp is None:
                        tracker.start(state.timestamp)
                        continue
                    for window in tracker.step(state.timestamp):
                        access_writers[station_name].write(window)
                        result.windows[station_name].append(window)

                last_timestamp = state.timestamp
                result.samples += 1

            for station_name, tracker in trackers.items():
                for window in tracker.finish(last_timestamp):
                    access_writers[station_name].write(window)
                    result.windows[station_name].append(window)

        logger.debug(f"Satellite {config.name} state cache: {trajectory.cache_info()}")

    def _write_angles(
        self,
        angle_computer: AngleComputer,
        state: StateVector,
        sun_writer: Optional[SunAngleWriter],
        earth_writer: Optional[EarthAngleWriter],
    ) -> None:
        """
        Write the angle rows of one sample.

        A geometry error skips only the row it affects; a bad state skips both.
        """
        try:
            frame = angle_computer.frame(state)
        except GeometryError as e:
            logger.warning(f"Satellite {self.config.name}: skipping angles at {state.timestamp}: {e}")
            return

        if sun_writer is not None:
            try:
                sun_writer.write(angle_computer.sun_angles(state, frame))
            except GeometryError as e:
                logger.warning(f"Satellite {self.config.name}: skipping sun angles at {state.timestamp}: {e}")

        if earth_writer is not None:
            try:
                earth_writer.write(angle_computer.earth_angles(state, frame))
            except GeometryError as e:
                logger.warning(f"Satellite {self.config.name}: skipping earth angles at {state.timestamp}: {e}")
