"""
Utility functions for the access analyzer.

This module provides logging setup, datetime parsing and TLE download
helpers used by the configuration layer and the CLI.
"""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union
import logging
import os

import requests

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV_VAR = "ACCESS_ANALYZER_LOG_LEVEL"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path

    Environment Variables:
        ACCESS_ANALYZER_LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_level = os.environ.get(LOG_LEVEL_ENV_VAR)
    if env_level:
        level = env_level
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger.info(f"Logging configured at {level} level")


def parse_datetime(value: Union[str, date, datetime]) -> datetime:
    """
    Parse datetime string in various formats.

    YAML may already deliver date or datetime objects; those are
    normalized the same way.

    Args:
        value: Date string or datetime

    Returns:
        Naive datetime in UTC

    Raises:
        ValueError: If date string cannot be parsed
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    formats = [
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d %H:%M:%S.%f",
        "%Y-%m-%d %H:%M",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%SZ",
        "%Y-%m-%dT%H:%M:%S.%fZ",
        "%Y-%m-%d",
    ]

    for fmt in formats:
        try:
            # Strings carry no zone; they are read as UTC
            return datetime.strptime(str(value), fmt)
        except ValueError:
            continue

    raise ValueError(f"Could not parse datetime string: {value}")


def download_tle_file(url: str, output_file: Union[str, Path]) -> bool:
    """
    Download TLE file from URL.

    Args:
        url: URL to download TLE data from
        output_file: Local file path to save TLE data

    Returns:
        True if successful, False otherwise
    """
    try:
        logger.info(f"Downloading TLE data from {url}")

        response = requests.get(url, timeout=30)
        response.raise_for_status()

        output_path = ensure_directory_exists(Path(output_file).parent) / Path(output_file).name
        with open(output_path, "w") as f:
            f.write(response.text)

        logger.info(f"TLE data saved to {output_path}")
        return True

    except (requests.RequestException, OSError) as e:
        logger.error(f"Error downloading TLE file: {e}")
        return False


def get_common_tle_sources() -> Dict[str, str]:
    """
    Get dictionary of common TLE data sources.

    Returns:
        Dictionary mapping source names to URLs
    """
    base = "https://celestrak.org/NORAD/elements/gp.php?GROUP={group}&FORMAT=tle"
    groups = {
        "celestrak_active": "active",
        "celestrak_stations": "stations",
        "celestrak_weather": "weather",
        "celestrak_noaa": "noaa",
        "celestrak_resource": "resource",
        "celestrak_cubesat": "cubesat",
        "celestrak_amateur": "amateur",
    }
    return {name: base.format(group=group) for name, group in groups.items()}


def ensure_directory_exists(directory: Union[str, Path]) -> Path:
    """
    Ensure directory exists, create if it doesn't.

    Returns:
        Path object for the directory
    """
    dir_path = Path(directory)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    else:
        return f"{seconds / 3600:.1f}h"
