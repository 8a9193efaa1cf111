"""
Scenario configuration.

Scenarios are YAML files describing the ground stations, the satellites
and their analysis windows, and the run-wide options:

    output_folder: output
    workers: 4
    start_policy: open_at_start      # or skip_partial
    end_of_run_policy: drop          # or truncate
    defaults: {step_seconds: 60, duration_hours: 168}
    stations:
      - {name: Freiburg, latitude: 47.6652, longitude: 7.84965, altitude: 325.036}
    satellites:
      - name: ERNST
        keplerian: {altitude_km: 700, inclination_deg: 98.1929, raan_deg: 10.5834}
        start: "2021-01-01 00:00:00"

A satellite takes its orbit from `keplerian` elements, inline `tle` lines
or a `tle_file` plus `tle_name`. Keys missing from a satellite are taken
from `defaults`.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import yaml  # type: ignore[import-untyped]

from .errors import ConfigurationError
from .orbit import SatelliteOrbit
from .stations import GroundStation, StationManager
from .task import RunContext, SatelliteConfig
from .utils import parse_datetime
from .visibility import EndOfRunPolicy, StartPolicy

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_FOLDER = "output"

SCENARIO_KEYS = {
    "output_folder",
    "workers",
    "start_policy",
    "end_of_run_policy",
    "defaults",
    "stations",
    "satellites",
}

SATELLITE_KEYS = {
    "name",
    "keplerian",
    "tle",
    "tle_file",
    "tle_name",
    "start",
    "end",
    "duration_hours",
    "step_seconds",
    "sun_angles",
    "earth_angles",
    "access_windows",
    "stations",
}

KEPLERIAN_KEYS = {
    "sma_km",
    "altitude_km",
    "eccentricity",
    "inclination_deg",
    "raan_deg",
    "arg_perigee_deg",
    "true_anomaly_deg",
    "epoch",
}

EXAMPLE_SCENARIO: Dict[str, Any] = {
    "output_folder": "output",
    "workers": 2,
    "start_policy": StartPolicy.OPEN_AT_START.value,
    "end_of_run_policy": EndOfRunPolicy.DROP.value,
    "defaults": {
        "start": "2021-01-01 00:00:00",
        "duration_hours": 168,
        "step_seconds": 60,
    },
    "stations": [
        {
            "name": "Freiburg",
            "latitude": 47.6652,
            "longitude": 7.84965,
            "altitude": 325.036,
            "elevation_threshold_deg": 10.0,
            "max_check_seconds": 60.0,
            "root_tolerance_seconds": 0.001,
        }
    ],
    "satellites": [
        {
            "name": "ERNST",
            "keplerian": {
                "altitude_km": 700.0,
                "eccentricity": 0.0,
                "inclination_deg": 98.1929,
                "raan_deg": 10.5834,
                "arg_perigee_deg": 0.0,
                "true_anomaly_deg": 0.0,
                "epoch": "2021-01-01 00:00:00",
            },
            "sun_angles": True,
            "earth_angles": True,
            "access_windows": True,
            "stations": ["Freiburg"],
        }
    ],
}


@dataclass
class Scenario:
    """A loaded scenario: stations, satellites and run options."""

    stations: StationManager
    satellites: List[SatelliteConfig]
    context: RunContext
    workers: Optional[int] = None
    source: Optional[Path] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert scenario back to its YAML dictionary form."""
        return {
            "output_folder": str(self.context.output_folder),
            "workers": self.workers,
            "start_policy": self.context.start_policy.value,
            "end_of_run_policy": self.context.end_policy.value,
            "stations": [station.to_dict() for station in self.stations],
            "satellites": [_satellite_to_dict(config) for config in self.satellites],
        }


def _satellite_to_dict(config: SatelliteConfig) -> Dict[str, Any]:
    data: Dict[str, Any] = {"name": config.name}

    orbit = config.trajectory
    if isinstance(orbit, SatelliteOrbit):
        if orbit.tle_lines is not None:
            data["tle"] = list(orbit.tle_lines)
        else:
            elements = dict(orbit.elements)
            elements["epoch"] = elements["epoch"].strftime("%Y-%m-%d %H:%M:%S")
            data["keplerian"] = elements

    if config.start is not None:
        data["start"] = config.start.strftime("%Y-%m-%d %H:%M:%S")
    if config.end is not None:
        data["end"] = config.end.strftime("%Y-%m-%d %H:%M:%S")
    if config.step_seconds is not None:
        data["step_seconds"] = config.step_seconds

    data["sun_angles"] = config.sun_angles
    data["earth_angles"] = config.earth_angles
    data["access_windows"] = config.access_windows
    if config.stations is not None:
        data["stations"] = list(config.stations)
    return data


def _check_keys(data: Dict[str, Any], allowed: set, where: str) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ConfigurationError(f"{where}: unknown keys {sorted(unknown)}")


def _parse_number(value: Any, where: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{where}: expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{where}: expected a number, got {value!r}") from e


def _parse_flag(value: Any, where: str) -> bool:
    # YAML booleans only; bool("false") is True
    if not isinstance(value, bool):
        raise ConfigurationError(f"{where}: expected true or false, got {value!r}")
    return value


def _parse_time(value: Any, where: str):
    try:
        return parse_datetime(value)
    except ValueError as e:
        raise ConfigurationError(f"{where}: {e}") from e


def _parse_orbit(name: str, data: Dict[str, Any], base_dir: Path) -> Optional[SatelliteOrbit]:
    """
    Build the orbit of a satellite entry.

    Returns:
        The orbit, or None when the entry defines none
    """
    sources = [key for key in ("keplerian", "tle", "tle_file") if data.get(key) is not None]
    if not sources:
        return None
    if len(sources) > 1:
        raise ConfigurationError(f"Satellite {name}: define only one of {sources}")

    source = sources[0]
    if source == "tle":
        lines = data["tle"]
        if not isinstance(lines, list):
            raise ConfigurationError(f"Satellite {name}: 'tle' must be a list of lines")
        return SatelliteOrbit.from_tle_lines([str(line) for line in lines], name)

    if source == "tle_file":
        tle_path = Path(data["tle_file"])
        if not tle_path.is_absolute():
            tle_path = base_dir / tle_path
        return SatelliteOrbit.from_tle_file(tle_path, name, data.get("tle_name"))

    elements = dict(data["keplerian"])
    _check_keys(elements, KEPLERIAN_KEYS, f"Satellite {name} keplerian")
    if "inclination_deg" not in elements:
        raise ConfigurationError(f"Satellite {name}: keplerian elements need inclination_deg")

    epoch_value = elements.pop("epoch", data.get("start"))
    if epoch_value is None:
        raise ConfigurationError(f"Satellite {name}: keplerian elements need an epoch or a start time")
    epoch = _parse_time(epoch_value, f"Satellite {name} epoch")

    elements = {key: _parse_number(value, f"Satellite {name} {key}") for key, value in elements.items()}
    try:
        return SatelliteOrbit.from_keplerian(name, epoch, **elements)
    except TypeError as e:
        raise ConfigurationError(f"Satellite {name}: {e}") from e


def _parse_satellite(
    data: Dict[str, Any], defaults: Dict[str, Any], base_dir: Path
) -> SatelliteConfig:
    """
    Parse one satellite entry.

    A missing orbit, window or step is left unset so that the task is
    refused at run time while the rest of the batch runs; invalid values
    raise ConfigurationError here.
    """
    if not isinstance(data, dict) or not data.get("name"):
        raise ConfigurationError(f"Satellite entry without a name: {data!r}")
    name = str(data["name"])
    if "/" in name or "\\" in name:
        raise ConfigurationError(f"Invalid satellite name: {name!r}")

    merged = {**defaults, **data}
    _check_keys(merged, SATELLITE_KEYS, f"Satellite {name}")

    start = _parse_time(merged["start"], f"Satellite {name} start") if merged.get("start") is not None else None

    if data.get("end") is not None and data.get("duration_hours") is not None:
        raise ConfigurationError(f"Satellite {name}: give either end or duration_hours, not both")

    end = None
    if merged.get("end") is not None and data.get("duration_hours") is None:
        end = _parse_time(merged["end"], f"Satellite {name} end")
    elif merged.get("duration_hours") is not None and start is not None:
        end = start + timedelta(hours=_parse_number(merged["duration_hours"], f"Satellite {name} duration_hours"))

    step = merged.get("step_seconds")
    stations = merged.get("stations")
    if stations is not None and not isinstance(stations, list):
        raise ConfigurationError(f"Satellite {name}: 'stations' must be a list of station names")

    return SatelliteConfig(
        name=name,
        trajectory=_parse_orbit(name, merged, base_dir),
        start=start,
        end=end,
        step_seconds=_parse_number(step, f"Satellite {name} step_seconds") if step is not None else None,
        sun_angles=_parse_flag(merged.get("sun_angles", True), f"Satellite {name} sun_angles"),
        earth_angles=_parse_flag(merged.get("earth_angles", True), f"Satellite {name} earth_angles"),
        access_windows=_parse_flag(merged.get("access_windows", True), f"Satellite {name} access_windows"),
        stations=[str(s) for s in stations] if stations is not None else None,
    )


def scenario_from_dict(
    data: Dict[str, Any],
    base_dir: Union[str, Path] = ".",
    output_folder: Optional[Union[str, Path]] = None,
) -> Scenario:
    """
    Build a Scenario from its dictionary form.

    Args:
        data: Parsed scenario
        base_dir: Directory relative TLE file paths are resolved against
        output_folder: Overrides the scenario's output folder

    Raises:
        ConfigurationError: Naming the offending entry
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Scenario must be a mapping")
    _check_keys(data, SCENARIO_KEYS, "Scenario")

    stations_data = data.get("stations") or []
    if not all(isinstance(entry, dict) for entry in stations_data):
        raise ConfigurationError("Every station entry must be a mapping")
    stations = StationManager([GroundStation.from_dict(dict(entry)) for entry in stations_data])

    defaults = data.get("defaults") or {}
    _check_keys(defaults, SATELLITE_KEYS - {"name"}, "Scenario defaults")

    satellites = [_parse_satellite(entry, defaults, Path(base_dir)) for entry in data.get("satellites") or []]
    names = [s.name for s in satellites]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate satellite names: {duplicates}")

    try:
        start_policy = StartPolicy.from_string(data.get("start_policy", StartPolicy.OPEN_AT_START.value))
        end_policy = EndOfRunPolicy.from_string(data.get("end_of_run_policy", EndOfRunPolicy.DROP.value))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    workers = data.get("workers")
    if workers is not None and (not isinstance(workers, int) or workers < 1):
        raise ConfigurationError(f"workers must be a positive integer, got {workers!r}")

    context = RunContext(
        stations=stations,
        output_folder=Path(output_folder or data.get("output_folder") or DEFAULT_OUTPUT_FOLDER),
        start_policy=start_policy,
        end_policy=end_policy,
    )
    return Scenario(stations=stations, satellites=satellites, context=context, workers=workers)


def load_scenario(path: Union[str, Path], output_folder: Optional[Union[str, Path]] = None) -> Scenario:
    """
    Load a scenario YAML file.

    Args:
        path: Scenario file
        output_folder: Overrides the scenario's output folder

    Returns:
        Scenario

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    scenario_path = Path(path)
    try:
        with open(scenario_path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read scenario file {scenario_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in scenario file {scenario_path}: {e}") from e

    scenario = scenario_from_dict(data or {}, scenario_path.parent, output_folder)
    scenario.source = scenario_path
    logger.info(
        f"Loaded scenario from {scenario_path}: {len(scenario.stations)} stations, "
        f"{len(scenario.satellites)} satellites"
    )
    return scenario


def write_example_scenario(path: Union[str, Path]) -> Path:
    """Write the example scenario (Freiburg station, one 700 km SSO satellite)."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.safe_dump(EXAMPLE_SCENARIO, f, sort_keys=False)
    logger.info(f"Example scenario written to {output_path}")
    return output_path
