"""
Command-line interface for the access analyzer.

This module provides a CLI for running access analysis scenarios and
fetching TLE data from the command line.
"""

from pathlib import Path
from typing import List, Optional
import logging
import sys
import time

import click

from .config import load_scenario, write_example_scenario
from .errors import ConfigurationError
from .parallel import BatchRunner
from .task import TaskResult, TaskStatus
from .utils import download_tle_file, format_duration, get_common_tle_sources, setup_logging

logger = logging.getLogger(__name__)


@click.group()
@click.option('--log-level', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set logging level')
@click.option('--log-file', type=click.Path(), help='Log file path')
def main(log_level: str, log_file: Optional[str]) -> None:
    """Satellite Access Analyzer - access windows and Sun/Earth angles for satellites."""
    setup_logging(log_level, log_file)
    logger.info("Starting Access Analyzer CLI")


def _print_summary(results: List[TaskResult], elapsed: float) -> None:
    click.echo("\n=== Access Analysis Summary ===")
    for result in results:
        line = f"{result.satellite_name:<20} {result.status.value:<10} {result.samples:>7} samples"
        if result.windows:
            per_station = ", ".join(f"{name}: {len(windows)}" for name, windows in result.windows.items())
            line += f"  windows [{per_station}]"
        if result.error:
            line += f"  ({result.error})"
        click.echo(line)

    completed = sum(1 for r in results if r.status == TaskStatus.COMPLETED)
    click.echo(f"\nCompleted: {completed}/{len(results)} satellites")
    click.echo(f"Elapsed time: {elapsed:.3f}s ({format_duration(elapsed)})")


@main.command()
@click.option('--config', 'config_file', required=True, type=click.Path(exists=True),
              help='Scenario YAML file')
@click.option('--output', type=click.Path(),
              help='Output folder (overrides the scenario)')
@click.option('--workers', type=click.IntRange(min=1),
              help='Number of parallel workers (default: scenario or auto)')
@click.option('--threads', is_flag=True,
              help='Use threads instead of worker processes')
@click.option('--strict', is_flag=True,
              help='Exit with status 1 if any satellite did not complete')
def run(config_file: str, output: Optional[str], workers: Optional[int], threads: bool, strict: bool) -> None:
    """Run an access analysis scenario.

    Example:
    run --config scenario.yaml --output results --workers 4
    """
    try:
        scenario = load_scenario(config_file, output_folder=output)
    except ConfigurationError as e:
        logger.error(f"Scenario loading failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not scenario.satellites:
        click.echo("No satellites in scenario, nothing to do")
        return

    click.echo(
        f"Analyzing {len(scenario.satellites)} satellites over {len(scenario.stations)} stations, "
        f"output to {scenario.context.output_folder}"
    )

    started = time.perf_counter()
    runner = BatchRunner(max_workers=workers or scenario.workers, use_processes=not threads)
    results = runner.run(scenario.satellites, scenario.context)
    elapsed = time.perf_counter() - started

    logger.info(f"Elapsed time: {elapsed:.3f}s")
    _print_summary(results, elapsed)

    if strict and any(r.status != TaskStatus.COMPLETED for r in results):
        sys.exit(1)


@main.command()
@click.option('--output', required=True, type=click.Path(),
              help='Output scenario file path')
def create_example(output: str) -> None:
    """Create the example scenario (Freiburg station, 700 km sun-synchronous satellite)."""
    try:
        path = write_example_scenario(output)
        click.echo(f"Example scenario created: {path}")
        click.echo(f"Run it with: access-analyzer run --config {path}")
    except OSError as e:
        logger.error(f"Example scenario creation failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.option('--source', default='celestrak_active',
              help='TLE source (use "list-sources" to see available)')
@click.option('--output', required=True, type=click.Path(),
              help='Output TLE file path')
@click.option('--url', type=str,
              help='Custom URL for TLE data')
def download_tle(source: str, output: str, url: Optional[str]) -> None:
    """Download TLE data from online sources."""
    if url:
        download_url = url
    else:
        sources = get_common_tle_sources()
        if source not in sources:
            click.echo(f"Unknown source: {source}")
            click.echo("Available sources:")
            for name in sources.keys():
                click.echo(f"  {name}")
            sys.exit(1)
        download_url = sources[source]

    click.echo(f"Downloading TLE data from {download_url}")

    if download_tle_file(download_url, Path(output)):
        click.echo(f"TLE data saved to: {output}")
    else:
        click.echo("Download failed", err=True)
        sys.exit(1)


@main.command()
def list_sources() -> None:
    """List available TLE data sources."""
    sources = get_common_tle_sources()

    click.echo("Available TLE sources:")
    for name, url in sources.items():
        click.echo(f"  {name:<20} {url}")


if __name__ == '__main__':
    main()
