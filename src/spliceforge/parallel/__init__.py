"""Parallelization utilities for SpliceForge.

Example:
    >>> from spliceforge.parallel import ParallelExecutor
    >>> executor = ParallelExecutor(n_workers=4, backend="processes")
    >>> results, stats = executor.map_items(process_event, event_ids, key=str)
"""

from spliceforge.parallel.executor import (
    ExecutionStats,
    ExecutorBackend,
    ParallelExecutor,
    TaskFailedError,
    TaskResult,
    get_optimal_workers,
)

__all__: list[str] = [
    "ExecutionStats",
    "ExecutorBackend",
    "ParallelExecutor",
    "TaskFailedError",
    "TaskResult",
    "get_optimal_workers",
]
