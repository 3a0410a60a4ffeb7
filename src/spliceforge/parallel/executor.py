"""Local parallel execution of per-event work.

Each regulated event is processed on its own, so the pipeline maps one
function over the event ids. A failing event becomes a failed
TaskResult instead of an exception that would abort the remaining
events.

Example:
    >>> from spliceforge.parallel.executor import ParallelExecutor
    >>> executor = ParallelExecutor(n_workers=8, backend="processes")
    >>> results, stats = executor.map_items(process_event, event_ids, key=str)
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from enum import Enum
from typing import Any, Callable, Iterator, Sequence

import attrs

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class ExecutorBackend(Enum):
    """Where tasks run."""

    SERIAL = "serial"
    THREADS = "threads"
    PROCESSES = "processes"


class TaskFailedError(RuntimeError):
    """A task failed while the executor was told to stop on errors."""


# =============================================================================
# Results
# =============================================================================


@attrs.define(slots=True)
class TaskResult:
    """Outcome of one mapped call.

    Attributes:
        task_id: Identifier derived from the item.
        success: Whether the call returned normally.
        result: Return value on success.
        error: Exception message on failure.
        error_type: Exception class name on failure.
        duration_seconds: Wall time of the call.
    """

    task_id: str
    success: bool
    result: Any | None = None
    error: str | None = None
    error_type: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        """Serializable view without the return value."""
        return {
            "task_id": self.task_id,
            "success": self.success,
            "error": self.error,
            "error_type": self.error_type,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@attrs.define(slots=True)
class ExecutionStats:
    """Tallies over one map_items call."""

    total_tasks: int = 0
    successful: int = 0
    failed: int = 0
    total_duration: float = 0.0
    mean_task_duration: float = 0.0
    max_task_duration: float = 0.0

    @classmethod
    def from_results(cls, results: Sequence[TaskResult], total_duration: float) -> ExecutionStats:
        durations = [r.duration_seconds for r in results]
        successful = sum(r.success for r in results)
        return cls(
            total_tasks=len(results),
            successful=successful,
            failed=len(results) - successful,
            total_duration=total_duration,
            mean_task_duration=sum(durations) / len(durations) if durations else 0.0,
            max_task_duration=max(durations, default=0.0),
        )

    def to_dict(self) -> dict:
        return {
            "total_tasks": self.total_tasks,
            "successful": self.successful,
            "failed": self.failed,
            "total_duration": round(self.total_duration, 3),
            "mean_task_duration": round(self.mean_task_duration, 3),
            "max_task_duration": round(self.max_task_duration, 3),
        }


def _call(func: Callable[[Any], Any], task_id: str, item: Any) -> TaskResult:
    # Module-level so the process backend can pickle it.
    started = time.perf_counter()
    try:
        value = func(item)
    except Exception as e:
        return TaskResult(
            task_id,
            False,
            error=str(e),
            error_type=type(e).__name__,
            duration_seconds=time.perf_counter() - started,
        )
    return TaskResult(task_id, True, result=value, duration_seconds=time.perf_counter() - started)


# =============================================================================
# Executor
# =============================================================================


class ParallelExecutor:
    """Map a function over independent items on a local backend.

    With one worker the serial backend is always used. On the process
    backend the function and the items must be picklable.

    Args:
        n_workers: Number of workers.
        backend: Backend name or ExecutorBackend.
        progress_callback: Called with (completed, total, task_id) after
            each task finishes.
    """

    def __init__(
        self,
        n_workers: int = 1,
        backend: ExecutorBackend | str = ExecutorBackend.PROCESSES,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.n_workers = max(1, n_workers)
        self.backend = ExecutorBackend(backend)
        if self.n_workers == 1:
            self.backend = ExecutorBackend.SERIAL
        self.progress_callback = progress_callback

    def map_items(
        self,
        func: Callable[[Any], Any],
        items: Sequence[Any],
        key: Callable[[Any], str] | None = None,
        continue_on_error: bool = True,
        initializer: Callable[..., None] | None = None,
        initargs: tuple = (),
    ) -> tuple[list[TaskResult], ExecutionStats]:
        """Apply ``func`` to every item.

        Args:
            func: Function of one item.
            items: Items to process.
            key: Task id of an item. Defaults to its zero-padded position.
            continue_on_error: If False, the first failure raises.
            initializer: Called with ``initargs`` once in every worker before
                its first task, or once in this process on the serial
                backend. Lets process workers receive large shared state
                once instead of with every task.
            initargs: Arguments for ``initializer``.

        Returns:
            Results sorted by task id, and execution stats.

        Raises:
            TaskFailedError: On the first failure when ``continue_on_error``
                is False.
        """
        tasks = [
            (key(item) if key is not None else f"item_{i:06d}", item)
            for i, item in enumerate(items)
        ]
        if not tasks:
            return [], ExecutionStats()

        logger.info(
            f"Running {len(tasks)} tasks on {self.n_workers} worker(s), "
            f"backend={self.backend.value}"
        )
        started = time.perf_counter()

        results = []
        for done, task_result in enumerate(
            self._iter_results(func, tasks, initializer, initargs), start=1
        ):
            results.append(task_result)
            if self.progress_callback is not None:
                self.progress_callback(done, len(tasks), task_result.task_id)
            if not task_result.success and not continue_on_error:
                message = f"Task {task_result.task_id} failed: {task_result.error}"
                logger.error(message)
                raise TaskFailedError(message)

        # Completion order varies between runs on the pool backends.
        results.sort(key=lambda r: r.task_id)
        stats = ExecutionStats.from_results(results, time.perf_counter() - started)
        logger.info(
            f"Finished {stats.successful}/{stats.total_tasks} tasks "
            f"in {stats.total_duration:.1f}s"
        )
        return results, stats

    def _iter_results(
        self,
        func: Callable[[Any], Any],
        tasks: list[tuple[str, Any]],
        initializer: Callable[..., None] | None,
        initargs: tuple,
    ) -> Iterator[TaskResult]:
        """Yield task results in completion order."""
        if self.backend is ExecutorBackend.SERIAL:
            if initializer is not None:
                initializer(*initargs)
            for task_id, item in tasks:
                yield _call(func, task_id, item)
            return

        pool_class = (
            ThreadPoolExecutor if self.backend is ExecutorBackend.THREADS else ProcessPoolExecutor
        )
        with pool_class(
            max_workers=self.n_workers, initializer=initializer, initargs=initargs
        ) as pool:
            futures = [pool.submit(_call, func, task_id, item) for task_id, item in tasks]
            try:
                for future in as_completed(futures):
                    yield future.result()
            finally:
                for future in futures:
                    future.cancel()


def get_optimal_workers(max_workers: int | None = None) -> int:
    """Worker count capped at the CPU count; ``None`` or <= 0 means all CPUs."""
    cpu_count = os.cpu_count() or 1
    if max_workers is None or max_workers <= 0:
        return cpu_count
    return min(max_workers, cpu_count)
