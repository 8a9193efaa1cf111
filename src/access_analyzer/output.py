"""
CSV output for access windows and angle series.

Files are laid out under one output folder:

    <output>/AccessTimes/<station>/<satellite>.csv
    <output>/SunAngles/<satellite>.csv
    <output>/EarthAngles/<satellite>.csv

Each file has one header row and is flushed after every record so a run
that stops early leaves whole rows only.
"""

import csv
from datetime import datetime, timedelta
from pathlib import Path
from typing import IO, List, Optional, Union
import logging

from .angles import AngleSample, SunAngleSample
from .errors import OutputError
from .visibility import AccessWindow

logger = logging.getLogger(__name__)

ACCESS_HEADER = ["Access", "StartTimeUTC", "StopTimeUTC", "DurationSeconds"]
SUN_ANGLES_HEADER = ["TimeUTC", "Azimuth(deg)", "Elevation(deg)", "Subsolar(deg)"]
EARTH_ANGLES_HEADER = ["TimeUTC", "Azimuth(deg)", "Elevation(deg)"]

# Fixed English abbreviations; strftime('%b') follows the process locale
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def format_utc(timestamp: datetime) -> str:
    """
    Format a UTC time as 'D Mon YYYY HH:MM:SS.mmm'.

    The time is rounded to the millisecond before formatting, so
    59.9996 s carries into the next minute instead of printing 60.000.

    Example:
        >>> format_utc(datetime(2021, 1, 1, 0, 5, 7, 250000))
        '1 Jan 2021 00:05:07.250'
    """
    rounded = timestamp + timedelta(microseconds=500)
    rounded = rounded.replace(microsecond=(rounded.microsecond // 1000) * 1000)
    seconds = rounded.second + rounded.microsecond / 1e6
    return (
        f"{rounded.day} {MONTH_ABBREVIATIONS[rounded.month - 1]} {rounded.year} "
        f"{rounded.hour:02d}:{rounded.minute:02d}:{seconds:06.3f}"
    )


def format_value(value: float) -> str:
    """Zero-padded 3-decimal rendering used for angles and durations."""
    return f"{value:07.3f}"


def format_azimuth(azimuth_deg: float) -> str:
    """Like format_value, with azimuths that round up to 360 wrapped to 0."""
    text = format_value(azimuth_deg)
    return format_value(0.0) if text == "360.000" else text


class OutputLayout:
    """Resolves output file paths for one output folder."""

    ACCESS_DIR = "AccessTimes"
    SUN_DIR = "SunAngles"
    EARTH_DIR = "EarthAngles"

    def __init__(self, output_folder: Union[str, Path]) -> None:
        self.output_folder = Path(output_folder)

    def access_path(self, satellite_name: str, station_name: str) -> Path:
        return self.output_folder / self.ACCESS_DIR / station_name / f"{satellite_name}.csv"

    def sun_angles_path(self, satellite_name: str) -> Path:
        return self.output_folder / self.SUN_DIR / f"{satellite_name}.csv"

    def earth_angles_path(self, satellite_name: str) -> Path:
        return self.output_folder / self.EARTH_DIR / f"{satellite_name}.csv"

    def __repr__(self) -> str:
        return f"OutputLayout('{self.output_folder}')"


class CsvSink:
    """
    One CSV file with a header row, written row by row.

    Usable as a context manager; OSErrors are raised as OutputError.
    """

    header: List[str] = []

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._file: Optional[IO[str]] = None
        self._writer = None
        self.rows_written = 0

    def open(self) -> "CsvSink":
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "w", newline="", encoding="utf-8")
            self._writer = csv.writer(self._file, lineterminator="\n")
            self._writer.writerow(self.header)
            self._file.flush()
        except OSError as e:
            self.close()
            raise OutputError(f"Cannot open output file {self.path}: {e}") from e
        logger.debug(f"Opened {self.path}")
        return self

    def write_row(self, row: List[str]) -> None:
        if self._writer is None:
            raise OutputError(f"Output file {self.path} is not open")
        try:
            self._writer.writerow(row)
            self._file.flush()
        except OSError as e:
            raise OutputError(f"Cannot write to {self.path}: {e}") from e
        self.rows_written += 1

    def close(self) -> None:
        if self._file is None:
            return
        try:
            self._file.close()
        except OSError as e:
            raise OutputError(f"Cannot close output file {self.path}: {e}") from e
        finally:
            self._file = None
            self._writer = None

    @property
    def closed(self) -> bool:
        return self._file is None

    def __enter__(self) -> "CsvSink":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class AccessWindowWriter(CsvSink):
    """Access windows of one satellite over one station."""

    header = ACCESS_HEADER

    def write(self, window: AccessWindow) -> None:
        self.write_row(
            [
                str(window.sequence),
                format_utc(window.start),
                format_utc(window.end),
                format_value(window.duration_seconds),
            ]
        )


class SunAngleWriter(CsvSink):
    """Sun azimuth, elevation and subsolar angle per sample."""

    header = SUN_ANGLES_HEADER

    def write(self, sample: SunAngleSample) -> None:
        self.write_row(
            [
                format_utc(sample.timestamp),
                format_azimuth(sample.azimuth_deg),
                format_value(sample.elevation_deg),
                format_value(sample.subsolar_deg),
            ]
        )


class EarthAngleWriter(CsvSink):
    """Earth-center azimuth and elevation per sample."""

    header = EARTH_ANGLES_HEADER

    def write(self, sample: AngleSample) -> None:
        self.write_row(
            [
                format_utc(sample.timestamp),
                format_azimuth(sample.azimuth_deg),
                format_value(sample.elevation_deg),
            ]
        )
