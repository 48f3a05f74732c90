"""Tests for configure_logging."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from hotforge.log import configure_logging


class TestConfigureLogging:
    def test_installs_rich_handler_on_package_logger(self):
        logger = configure_logging("info")
        assert logger.name == "hotforge"
        assert logger.level == logging.INFO
        assert logger.propagate is False
        assert any(isinstance(h, RichHandler) for h in logger.handlers)

    def test_log_file_receives_module_records(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "hotforge.log"
        configure_logging("DEBUG", log_file)
        logging.getLogger("hotforge.core.orchestrator").debug("idle -> building (startup)")
        for handler in logging.getLogger("hotforge").handlers:
            handler.flush()
        text = log_file.read_text()
        assert "DEBUG" in text
        assert "[hotforge.core.orchestrator] idle -> building (startup)" in text

    def test_repeat_call_replaces_handlers(self, tmp_path: Path):
        configure_logging("INFO", tmp_path / "a.log")
        logger = configure_logging("WARNING")
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_level_filters_records(self, tmp_path: Path):
        log_file = tmp_path / "hotforge.log"
        configure_logging("WARNING", log_file)
        logging.getLogger("hotforge.core.watcher").info("Watching /srv")
        logging.getLogger("hotforge.core.supervisor").warning("pid 12 did not exit")
        for handler in logging.getLogger("hotforge").handlers:
            handler.flush()
        text = log_file.read_text()
        assert "Watching /srv" not in text
        assert "pid 12 did not exit" in text
