"""Logging setup for SpliceForge.

All package loggers live under the ``spliceforge`` logger, which gets a
rich console handler and, when requested, a plain file handler that
always records debug messages.

Example:
    >>> import logging
    >>> from spliceforge.utils.logging import setup_logging
    >>> setup_logging(verbosity=2)
    >>> logging.getLogger("spliceforge.core").info("Processing started")
"""

import logging
import time
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

PACKAGE_LOGGER = "spliceforge"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# verbosity -> console level; anything above 2 is debug
LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def setup_logging(
    verbosity: int = 1,
    log_file: Path | str | None = None,
    use_rich: bool = True,
) -> logging.Logger:
    """Attach handlers to the package logger, replacing earlier ones.

    Args:
        verbosity: 0 for warnings, 1 for info, 2 for debug.
        log_file: Optional path that receives every message at debug level.
        use_rich: Render console messages with rich.

    Returns:
        The ``spliceforge`` logger.
    """
    console_level = LEVELS[min(max(verbosity, 0), len(LEVELS) - 1)]

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if use_rich:
        console: logging.Handler = RichHandler(
            rich_tracebacks=True, show_time=False, show_path=False
        )
        console.setFormatter(logging.Formatter("%(message)s"))
    else:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(FILE_FORMAT))
    console.setLevel(console_level)
    package_logger.addHandler(console)

    if log_file is None:
        package_logger.setLevel(console_level)
    else:
        to_file = logging.FileHandler(log_file)
        to_file.setFormatter(logging.Formatter(FILE_FORMAT))
        to_file.setLevel(logging.DEBUG)
        package_logger.addHandler(to_file)
        package_logger.setLevel(logging.DEBUG)

    return package_logger


class ProgressLogger:
    """Logs ``done/total`` every ``interval`` items and at the last one.

    Instances can also be passed directly as an executor progress
    callback.

    Example:
        >>> progress = ProgressLogger(logger, total=len(event_ids), description="Events")
        >>> executor = ParallelExecutor(n_workers=4, progress_callback=progress)
    """

    def __init__(
        self,
        logger: logging.Logger,
        total: int,
        interval: int = 100,
        description: str = "Processing",
    ) -> None:
        self.logger = logger
        self.total = total
        self.interval = max(1, interval)
        self.description = description
        self.count = 0

    def update(self, n: int = 1) -> None:
        self.count += n
        if self.count % self.interval and self.count != self.total:
            return
        pct = 100 * self.count / self.total if self.total > 0 else 100.0
        self.logger.info(f"{self.description}: {self.count}/{self.total} ({pct:.1f}%)")

    def __call__(self, completed: int, total: int, task_id: str) -> None:
        self.update(completed - self.count)


class Timer:
    """Context manager that logs how long its block took.

    Example:
        >>> with Timer("A5SS pipeline"):
        ...     pipeline.run(records)
    """

    def __init__(self, description: str, logger: logging.Logger | None = None) -> None:
        self.description = description
        self.logger = logger or logging.getLogger(PACKAGE_LOGGER)
        self.elapsed = 0.0
        self._started = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.elapsed = time.perf_counter() - self._started
        self.logger.info(f"{self.description} completed in {self.elapsed:.2f}s")
