"""
Satellite visibility event detection and access windows.

This module turns the elevation of a satellite seen from a ground station
into access windows:

- ElevationEventDetector checks the sign of g(t) = elevation(t) - threshold
  at most max_check seconds apart and refines every sign change by
  bisection to within the root tolerance (ENTER on rising, EXIT on falling).
- AccessWindowAccumulator pairs ENTER/EXIT events into numbered windows.
- VisibilityTracker runs one detector/accumulator pair for one
  (satellite, station) and applies the start and end-of-run policies.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

from .frames import TopocentricFrame, eci_to_ecef
from .orbit import TrajectorySource
from .stations import GroundStation

logger = logging.getLogger(__name__)

ElevationFunction = Callable[[datetime], float]


class VisibilityPhase(Enum):
    """Whether the satellite is below or at/above the threshold."""

    BELOW = "below"
    ABOVE = "above"


class EventKind(Enum):
    """Threshold crossing direction."""

    ENTER = "enter"
    EXIT = "exit"


class StartPolicy(Enum):
    """How a pass already in progress at the first sample is handled."""

    OPEN_AT_START = "open_at_start"  # window starts at the first sample
    SKIP_PARTIAL = "skip_partial"  # the partial pass is not reported

    @classmethod
    def from_string(cls, value: str) -> "StartPolicy":
        """Create StartPolicy from string (case-insensitive)."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(
                f"Invalid start policy: {value}. Valid policies: {[p.value for p in cls]}"
            )


class EndOfRunPolicy(Enum):
    """How a window still open when the run ends is handled."""

    DROP = "drop"  # the open window is discarded
    TRUNCATE = "truncate"  # the window is closed at the run end and flagged

    @classmethod
    def from_string(cls, value: str) -> "EndOfRunPolicy":
        """Create EndOfRunPolicy from string (case-insensitive)."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(
                f"Invalid end-of-run policy: {value}. Valid policies: {[p.value for p in cls]}"
            )


@dataclass(frozen=True)
class VisibilityEvent:
    """A refined threshold crossing."""

    kind: EventKind
    timestamp: datetime


@dataclass(frozen=True)
class VisibilityState:
    """Snapshot of one (satellite, station) visibility bookkeeping."""

    phase: VisibilityPhase
    window_start: Optional[datetime]
    next_sequence: int


@dataclass(frozen=True)
class AccessWindow:
    """A closed interval during which a station sees a satellite."""

    satellite_name: str
    station_name: str
    sequence: int
    start: datetime
    end: datetime
    truncated: bool = False

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Access window ends before it starts: {self.start} > {self.end}")
        if self.sequence < 1:
            raise ValueError(f"Access window sequence must start at 1, got {self.sequence}")

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert window to dictionary representation."""
        return {
            "satellite_name": self.satellite_name,
            "station_name": self.station_name,
            "sequence": self.sequence,
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
            "duration_s": round(self.duration_seconds, 3),
            "truncated": self.truncated,
        }

    def __str__(self) -> str:
        return (
            f"Access #{self.sequence} {self.satellite_name} -> {self.station_name}: "
            f"{self.start.strftime('%Y-%m-%d %H:%M:%S')} - {self.end.strftime('%H:%M:%S')} UTC "
            f"({self.duration_seconds:.1f}s)"
        )


class ElevationEventDetector:
    """
    Detects crossings of an elevation threshold.

    The elevation function must be deterministic; the detector keeps the
    last evaluated time and value so every interval is bracketed from the
    previous check.
    """

    # Caps bisection when the tolerance is below datetime resolution (1 us)
    MAX_REFINEMENT_ITERS = 64

    def __init__(
        self,
        elevation_fn: ElevationFunction,
        threshold_deg: float,
        max_check_seconds: float,
        root_tolerance_seconds: float,
    ) -> None:
        """
        Initialize the detector.

        Args:
            elevation_fn: Elevation in degrees as a function of UTC time
            threshold_deg: Elevation threshold in degrees
            max_check_seconds: Maximum spacing between sign checks
            root_tolerance_seconds: Bracket width at which refinement stops
        """
        if max_check_seconds <= 0:
            raise ValueError(f"max_check_seconds must be > 0, got {max_check_seconds}")
        if root_tolerance_seconds <= 0:
            raise ValueError(f"root_tolerance_seconds must be > 0, got {root_tolerance_seconds}")

        self.elevation_fn = elevation_fn
        self.threshold_deg = threshold_deg
        self.max_check_seconds = max_check_seconds
        self.root_tolerance_seconds = root_tolerance_seconds

        self.phase: Optional[VisibilityPhase] = None
        self._last_time: Optional[datetime] = None

    def g(self, timestamp: datetime) -> float:
        """Event function: positive or zero when at/above the threshold."""
        return self.elevation_fn(timestamp) - self.threshold_deg

    @staticmethod
    def _phase_of(g_value: float) -> VisibilityPhase:
        return VisibilityPhase.ABOVE if g_value >= 0 else VisibilityPhase.BELOW

    def start(self, timestamp: datetime) -> VisibilityPhase:
        """
        Set the initial phase from the first sample.

        Args:
            timestamp: First sample time (t0)

        Returns:
            Initial phase
        """
        self.phase = self._phase_of(self.g(timestamp))
        self._last_time = timestamp
        return self.phase

    def advance(self, timestamp: datetime) -> List[VisibilityEvent]:
        """
        Check the interval from the last evaluated time up to timestamp.

        The interval is split into the smallest number of equal sub-intervals
        no longer than max_check; every sign change between consecutive
        checks yields one refined event.

        Args:
            timestamp: Next sample time, after the previous one

        Returns:
            Events in chronological order
        """
        if self._last_time is None or self.phase is None:
            raise RuntimeError("ElevationEventDetector.start() must be called first")
        if timestamp <= self._last_time:
            raise ValueError(f"Samples must be strictly increasing: {timestamp} <= {self._last_time}")

        interval = timestamp - self._last_time
        checks = max(1, math.ceil(interval.total_seconds() / self.max_check_seconds))

        events: List[VisibilityEvent] = []
        t_left = self._last_time
        for k in range(1, checks + 1):
            t_right = timestamp if k == checks else self._last_time + interval * k / checks
            g_right = self.g(t_right)
            phase_right = self._phase_of(g_right)

            if phase_right != self.phase:
                edge_time = self._refine_edge_time(t_left, t_right)
                kind = EventKind.ENTER if phase_right == VisibilityPhase.ABOVE else EventKind.EXIT
                events.append(VisibilityEvent(kind, edge_time))
                self.phase = phase_right

            t_left = t_right

        self._last_time = timestamp
        return events

    def _refine_edge_time(self, t_before: datetime, t_after: datetime) -> datetime:
        """
        Refine edge time using bisection root-finding.

        The phase at t_before is the detector's current phase and the phase
        at t_after is the opposite one.

        Returns:
            Midpoint of the final bracket, within root_tolerance/2 of the
            crossing
        """
        before_phase = self.phase
        t_left, t_right = t_before, t_after

        for _ in range(self.MAX_REFINEMENT_ITERS):
            if (t_right - t_left).total_seconds() <= self.root_tolerance_seconds:
                break

            t_mid = t_left + (t_right - t_left) / 2
            if t_mid <= t_left or t_mid >= t_right:
                break

            if self._phase_of(self.g(t_mid)) == before_phase:
                # Crossing is in right half
                t_left = t_mid
            else:
                # Crossing is in left half
                t_right = t_mid

        return t_left + (t_right - t_left) / 2


class AccessWindowAccumulator:
    """
    Pairs ENTER/EXIT events of one (satellite, station) into windows.

    Each accumulator owns its sequence counter; it starts at 1 and increases
    by one per emitted window.
    """

    def __init__(self, satellite_name: str, station_name: str) -> None:
        self.satellite_name = satellite_name
        self.station_name = station_name
        self.window_start: Optional[datetime] = None
        self.next_sequence = 1

    @property
    def is_open(self) -> bool:
        return self.window_start is not None

    def open(self, timestamp: datetime) -> None:
        """Record the start of a window (ENTER)."""
        if self.window_start is not None:
            logger.warning(
                f"{self.satellite_name}/{self.station_name}: ENTER at {timestamp} while a window "
                f"opened at {self.window_start} is still open; keeping the earlier start"
            )
            return
        self.window_start = timestamp

    def close(self, timestamp: datetime, truncated: bool = False) -> Optional[AccessWindow]:
        """
        Close the open window (EXIT).

        Returns:
            The new AccessWindow, or None when no window was open
        """
        if self.window_start is None:
            return None

        window = AccessWindow(
            satellite_name=self.satellite_name,
            station_name=self.station_name,
            sequence=self.next_sequence,
            start=self.window_start,
            end=timestamp,
            truncated=truncated,
        )
        self.next_sequence += 1
        self.window_start = None
        return window

    def finish(self, run_end: datetime, policy: EndOfRunPolicy = EndOfRunPolicy.DROP) -> Optional[AccessWindow]:
        """
        Apply the end-of-run policy to a window that is still open.

        Returns:
            A truncated window under TRUNCATE, otherwise None
        """
        if self.window_start is None:
            return None

        if policy == EndOfRunPolicy.TRUNCATE:
            return self.close(run_end, truncated=True)

        logger.debug(
            f"{self.satellite_name}/{self.station_name}: dropping window open since "
            f"{self.window_start} at run end"
        )
        self.window_start = None
        return None


def station_elevation_function(
    trajectory: TrajectorySource, satellite_id: str, frame: TopocentricFrame
) -> ElevationFunction:
    """
    Build e(t): elevation of a satellite above a station's horizontal plane.

    Args:
        trajectory: Source of ECI states
        satellite_id: Satellite to track
        frame: Station topocentric frame

    Returns:
        Function of UTC time returning elevation in degrees
    """

    def elevation(timestamp: datetime) -> float:
        state = trajectory.state(satellite_id, timestamp)
        return frame.elevation_deg(eci_to_ecef(state.position, timestamp))

    return elevation


class VisibilityTracker:
    """
    Visibility bookkeeping for one satellite seen from one station.

    Args:
        satellite_name: Satellite identifier
        station: Ground station (threshold and detector parameters)
        elevation_fn: Elevation of the satellite from the station over time
        start_policy: Handling of a pass in progress at the first sample
        end_policy: Handling of a window still open at the run end
    """

    def __init__(
        self,
        satellite_name: str,
        station: GroundStation,
        elevation_fn: ElevationFunction,
        start_policy: StartPolicy = StartPolicy.OPEN_AT_START,
        end_policy: EndOfRunPolicy = EndOfRunPolicy.DROP,
    ) -> None:
        self.satellite_name = satellite_name
        self.station = station
        self.start_policy = start_policy
        self.end_policy = end_policy
        self.detector = ElevationEventDetector(
            elevation_fn,
            station.elevation_threshold_deg,
            station.max_check_seconds,
            station.root_tolerance_seconds,
        )
        self.accumulator = AccessWindowAccumulator(satellite_name, station.name)

    @property
    def state(self) -> VisibilityState:
        return VisibilityState(
            phase=self.detector.phase or VisibilityPhase.BELOW,
            window_start=self.accumulator.window_start,
            next_sequence=self.accumulator.next_sequence,
        )

    def start(self, timestamp: datetime) -> None:
        """Evaluate the first sample and apply the start policy."""
        phase = self.detector.start(timestamp)
        if phase == VisibilityPhase.ABOVE:
            if self.start_policy == StartPolicy.OPEN_AT_START:
                self.accumulator.open(timestamp)
                logger.debug(f"{self.satellite_name}/{self.station.name}: window open at run start {timestamp}")
            else:
                logger.debug(f"{self.satellite_name}/{self.station.name}: skipping pass in progress at {timestamp}")

    def step(self, timestamp: datetime) -> List[AccessWindow]:
        """
        Advance to the next sample.

        Returns:
            Windows closed during the step, in order
        """
        windows = []
        for event in self.detector.advance(timestamp):
            if event.kind == EventKind.ENTER:
                self.accumulator.open(event.timestamp)
            else:
                window = self.accumulator.close(event.timestamp)
                if window is not None:
                    logger.debug(str(window))
                    windows.append(window)
        return windows

    def finish(self, run_end: datetime) -> List[AccessWindow]:
        """Apply the end-of-run policy; returns a truncated window if one is emitted."""
        window = self.accumulator.finish(run_end, self.end_policy)
        return [window] if window is not None else []
