# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import unittest

from src.config.logging_config import ROOT_LOGGER_NAME, setup_logging


def _detach_handlers() -> None:
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()


class TestLoggingConfig(unittest.TestCase):
    """Handler wiring of the catalog_assistant logger."""

    def setUp(self) -> None:
        _detach_handlers()

    def tearDown(self) -> None:
        _detach_handlers()

    def test_creates_run_log_in_logs_dir(self) -> None:
        log_path = setup_logging()
        self.assertTrue(log_path.exists())
        self.assertEqual(log_path.parent.name, "logs")
        self.assertRegex(log_path.name, r"^run_\d{8}_\d{6}\.log$")

    def test_file_debug_console_warning(self) -> None:
        setup_logging()
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.assertEqual(root_logger.level, logging.DEBUG)
        levels = {
            type(h).__name__: h.level for h in root_logger.handlers
        }
        self.assertEqual(levels["FileHandler"], logging.DEBUG)
        self.assertEqual(levels["StreamHandler"], logging.WARNING)

    def test_reentry_returns_the_open_log_file(self) -> None:
        """A second call reuses the handlers and reports their file."""
        first = setup_logging()
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        handlers = list(root_logger.handlers)

        second = setup_logging()
        self.assertEqual(second.resolve(), first.resolve())
        self.assertTrue(second.exists())
        self.assertEqual(root_logger.handlers, handlers)

    def test_foreign_handler_left_alone(self) -> None:
        """Handlers installed elsewhere are kept and nothing is added."""
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        own = logging.NullHandler()
        root_logger.addHandler(own)

        setup_logging()
        self.assertEqual(root_logger.handlers, [own])

    def test_module_loggers_reach_the_run_log(self) -> None:
        """Component loggers such as ``.validator`` write to the file."""
        log_path = setup_logging()
        logging.getLogger(f"{ROOT_LOGGER_NAME}.validator").debug(
            "Price corrected for '%s'", "rtx 4060"
        )
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.flush()
        content = log_path.read_text(encoding="utf-8")
        self.assertIn("catalog_assistant.validator", content)
        self.assertIn("Price corrected for 'rtx 4060'", content)


if __name__ == "__main__":
    unittest.main()
