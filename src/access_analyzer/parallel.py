"""
Parallel execution of satellite tasks.

Each satellite is analyzed by one SatelliteTask on a concurrent.futures
pool. Tasks are independent, so satellites run concurrently while the time
stepping inside a task stays sequential.
"""

from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, wait, ALL_COMPLETED
from typing import Any, Dict, List, Optional, Sequence
import logging
import multiprocessing as mp
import os
import threading
import time

from .task import RunContext, SatelliteConfig, SatelliteTask, TaskResult, TaskStatus

logger = logging.getLogger(__name__)


def get_optimal_workers(max_workers: Optional[int] = None, num_tasks: int = 0) -> int:
    """
    Determine optimal number of workers.

    Args:
        max_workers: Maximum number of workers (None = auto-detect)
        num_tasks: Number of satellites to process

    Returns:
        Number of workers, at least 1
    """
    cpu_count = os.cpu_count() or 4

    if max_workers is not None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        return min(max_workers, cpu_count)

    # Don't spawn more workers than satellites
    if num_tasks > 0:
        return max(1, min(num_tasks, cpu_count))

    return cpu_count


def _get_mp_context() -> Optional[Any]:
    # 'fork' gives faster worker startup; not available on Windows
    try:
        context = mp.get_context("fork")
        logger.debug("Using 'fork' context for faster worker startup")
        return context
    except ValueError:
        logger.debug("'fork' context not available, using default")
        return None


def _run_satellite_task(
    config: SatelliteConfig, context: RunContext, cancel_event: Optional[Any] = None
) -> TaskResult:
    """
    Worker function running one satellite.

    Module level so it can be pickled into worker processes; the orbit is
    rebuilt there from its TLE lines or elements.
    """
    return SatelliteTask(config, context).run(cancel_event)


class BatchRunner:
    """
    Runs a batch of satellite tasks and waits for all of them.

    A task that fails never aborts its siblings; its failure is logged
    with the satellite name and reported as a FAILED result.
    """

    def __init__(self, max_workers: Optional[int] = None, use_processes: bool = True) -> None:
        """
        Initialize the batch runner.

        Args:
            max_workers: Maximum workers (None = auto-detect)
            use_processes: Use a process pool; a thread pool otherwise
        """
        self.max_workers = max_workers
        self.use_processes = use_processes
        self._mp_context = _get_mp_context() if use_processes else None
        self._manager = None

        mode = "processes" if use_processes else "threads"
        cpu_count = os.cpu_count() or 4
        max_display = self.max_workers if self.max_workers else cpu_count
        logger.info(f"Initialized BatchRunner (max {max_display} workers, {mode})")

    def create_cancel_event(self) -> Any:
        """
        Create an event that cancels a running batch when set.

        Worker processes cannot share a threading.Event, so in process mode
        the event is served by a multiprocessing manager.
        """
        if not self.use_processes:
            return threading.Event()
        if self._manager is None:
            self._manager = (self._mp_context or mp).Manager()
        return self._manager.Event()

    def shutdown(self) -> None:
        """Stop the cancel-event manager, if one was started."""
        if self._manager is not None:
            self._manager.shutdown()
            self._manager = None

    def _create_executor(self, workers: int) -> Executor:
        if self.use_processes:
            return ProcessPoolExecutor(max_workers=workers, mp_context=self._mp_context)
        return ThreadPoolExecutor(max_workers=workers, thread_name_prefix="satellite")

    def run(
        self,
        configs: Sequence[SatelliteConfig],
        context: RunContext,
        cancel_event: Optional[Any] = None,
    ) -> List[TaskResult]:
        """
        Run one task per satellite and block until every task has finished.

        Args:
            configs: Satellite configurations
            context: Shared read-only run configuration
            cancel_event: Optional event from create_cancel_event()

        Returns:
            One TaskResult per configuration, in submission order
        """
        if not configs:
            return []
        if self.use_processes and isinstance(cancel_event, threading.Event):
            raise ValueError("Process mode needs a cancel event from BatchRunner.create_cancel_event()")

        names = [config.name for config in configs]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate satellite names in batch: {names}")

        workers = get_optimal_workers(self.max_workers, len(configs))
        logger.info(f"Running {len(configs)} satellites using {workers} workers")
        started = time.perf_counter()

        with self._create_executor(workers) as executor:
            futures: Dict[Future, SatelliteConfig] = {
                executor.submit(_run_satellite_task, config, context, cancel_event): config
                for config in configs
            }
            wait(futures, return_when=ALL_COMPLETED)

        results_by_name = {}
        for future, config in futures.items():
            try:
                result = future.result()
            except Exception as e:
                # Raised outside the task itself (pickling, broken pool)
                logger.error(f"Satellite {config.name} failed: {e}")
                result = TaskResult(config.name, TaskStatus.FAILED, error=f"{type(e).__name__}: {e}")
            results_by_name[config.name] = result

        results = [results_by_name[name] for name in names]
        elapsed = time.perf_counter() - started

        completed = sum(1 for r in results if r.succeeded)
        total_windows = sum(r.window_count for r in results)
        logger.info(
            f"Batch complete: {completed}/{len(results)} satellites completed, "
            f"{total_windows} access windows, elapsed time {elapsed:.2f}s"
        )
        return results
