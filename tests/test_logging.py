"""Tests for logging helpers."""

import logging

from rich.logging import RichHandler

from spliceforge.utils.logging import ProgressLogger, Timer, setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_rich_handler(self):
        logger = setup_logging(verbosity=1)
        assert logger.name == "spliceforge"
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.handlers[0].level == logging.INFO

    def test_plain_handler(self):
        logger = setup_logging(verbosity=0, use_rich=False)
        assert not isinstance(logger.handlers[0], RichHandler)
        assert logger.level == logging.WARNING

    def test_repeated_setup_replaces_handlers(self):
        setup_logging(verbosity=1)
        logger = setup_logging(verbosity=2)
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "run.log"
        logger = setup_logging(verbosity=0, log_file=log_file)
        logging.getLogger("spliceforge.core.phase").debug("written to file only")
        for handler in logger.handlers:
            handler.flush()

        assert "written to file only" in log_file.read_text()
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()


class TestProgressLogger:
    """Tests for ProgressLogger."""

    def test_logs_at_interval_and_end(self, caplog):
        logger = logging.getLogger("spliceforge.test.progress")
        progress = ProgressLogger(logger, total=5, interval=2, description="Events")

        with caplog.at_level(logging.INFO, logger="spliceforge.test.progress"):
            for _ in range(5):
                progress.update()

        messages = [r.getMessage() for r in caplog.records]
        assert messages == [
            "Events: 2/5 (40.0%)",
            "Events: 4/5 (80.0%)",
            "Events: 5/5 (100.0%)",
        ]

    def test_as_executor_callback(self, caplog):
        """Called with the executor's running total, not an increment."""
        logger = logging.getLogger("spliceforge.test.callback")
        progress = ProgressLogger(logger, total=3, interval=10, description="Events")

        with caplog.at_level(logging.INFO, logger="spliceforge.test.callback"):
            for completed in (1, 2, 3):
                progress(completed, 3, f"ev{completed}")

        assert progress.count == 3
        assert [r.getMessage() for r in caplog.records] == ["Events: 3/3 (100.0%)"]


class TestTimer:
    """Tests for Timer."""

    def test_elapsed(self, caplog):
        logger = logging.getLogger("spliceforge.test.timer")
        with caplog.at_level(logging.INFO, logger="spliceforge.test.timer"):
            with Timer("Step", logger) as timer:
                pass

        assert timer.elapsed >= 0
        assert "Step completed in" in caplog.text
