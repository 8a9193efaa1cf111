"""
Satellite Access Analyzer

An offline batch tool that predicts ground-station access windows for
one or more satellites and computes Sun and Earth angles in each
satellite's local orbital frame.
"""

from .angles import AngleComputer, AngleSample, SunAngleSample
from .config import Scenario, load_scenario
from .errors import (
    AccessAnalyzerError,
    ConfigurationError,
    GeometryError,
    OutputError,
    TrajectoryError,
)
from .orbit import OrbitCatalog, SatelliteOrbit, StateVector
from .parallel import BatchRunner
from .stations import GroundStation, StationManager
from .task import RunContext, SatelliteConfig, SatelliteTask, TaskResult, TaskStatus
from .visibility import AccessWindow, EndOfRunPolicy, StartPolicy

__version__ = "0.1.0"
__author__ = "Access Analyzer Team"

__all__ = [
    "AccessAnalyzerError",
    "AccessWindow",
    "AngleComputer",
    "AngleSample",
    "BatchRunner",
    "ConfigurationError",
    "EndOfRunPolicy",
    "GeometryError",
    "GroundStation",
    "OrbitCatalog",
    "OutputError",
    "RunContext",
    "SatelliteConfig",
    "SatelliteOrbit",
    "SatelliteTask",
    "Scenario",
    "StartPolicy",
    "StateVector",
    "StationManager",
    "SunAngleSample",
    "TaskResult",
    "TaskStatus",
    "TrajectoryError",
    "load_scenario",
]
