# tests/test_logging_config.py
"""
Tests for the cogcycle.logging_config module.

Tests the UnifiedLoggingManager singleton, the display filter,
console/file handlers, runtime levels and component log levels.
"""

import logging

import pytest

from cogcycle.logging_config import (
    DEFAULT_LOGGING_CONFIG,
    DisplayFilter,
    UnifiedLoggingManager,
    configure_logging,
    enable_console_logging,
    get_log_file_path,
    log_display,
)


def _reset():
    UnifiedLoggingManager._instance = None
    UnifiedLoggingManager._configured = False
    UnifiedLoggingManager._log_file_path = None
    UnifiedLoggingManager._console_handler = None
    UnifiedLoggingManager._file_handler = None
    UnifiedLoggingManager._display_filter = None

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


@pytest.fixture
def reset_logging_manager():
    """Reset the logging manager singleton between tests."""
    _reset()
    yield
    _reset()


def _record(level=logging.INFO, display=None):
    record = logging.LogRecord("cogcycle.test", level, __file__, 1, "msg", (), None)
    if display is not None:
        record.display = display
    return record


class TestDefaultLoggingConfig:
    """Tests for default logging configuration."""

    def test_console_quiet_by_default(self):
        """The console only shows display records unless enabled."""
        assert DEFAULT_LOGGING_CONFIG["console_enabled"] is False

    def test_file_enabled_by_default(self):
        assert DEFAULT_LOGGING_CONFIG["file_enabled"] is True

    def test_default_directory(self):
        assert DEFAULT_LOGGING_CONFIG["file_directory"] == "~/.local/share/cogcycle/logs"

    def test_component_defaults(self):
        assert DEFAULT_LOGGING_CONFIG["components"]["cogcycle"] == "INFO"


class TestDisplayFilter:
    """Tests for the console display gate."""

    def test_quiet_blocks_plain_records(self):
        assert DisplayFilter().filter(_record()) is False

    def test_quiet_passes_display_records(self):
        assert DisplayFilter().filter(_record(display=True)) is True

    def test_display_min_level(self):
        f = DisplayFilter(display_min_level=logging.WARNING)
        assert f.filter(_record(logging.INFO, display=True)) is False
        assert f.filter(_record(logging.ERROR, display=True)) is True

    def test_verbose_passes_everything(self):
        assert DisplayFilter(console_globally_enabled=True).filter(_record()) is True


class TestConfigureLogging:
    """Tests for configure_logging and the singleton."""

    def test_singleton(self, reset_logging_manager):
        assert UnifiedLoggingManager() is UnifiedLoggingManager.get_instance()

    def test_file_logging(self, reset_logging_manager, tmp_path):
        path = configure_logging(
            app_name="cogcycle-test",
            config={"file_directory": str(tmp_path)},
        )
        assert path == tmp_path / "cogcycle-test.log"
        assert get_log_file_path() == path
        assert UnifiedLoggingManager.is_configured()

        logging.getLogger("cogcycle.test").info("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "written to file" in path.read_text()

    def test_per_run_files(self, reset_logging_manager, tmp_path):
        path = configure_logging(
            app_name="run",
            config={"file_directory": str(tmp_path), "file_mode": "per_run"},
        )
        assert path.parent == tmp_path
        assert path.name.startswith("run_")

    def test_file_disabled(self, reset_logging_manager):
        assert configure_logging(config={"file_enabled": False}) is None
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)

    def test_configured_once(self, reset_logging_manager, tmp_path):
        """A second call is a no-op unless forced."""
        first = configure_logging(config={"file_directory": str(tmp_path / "a")})
        second = configure_logging(config={"file_directory": str(tmp_path / "b")})
        assert second == first

        forced = configure_logging(
            config={"file_directory": str(tmp_path / "b")}, force_reconfigure=True
        )
        assert forced == tmp_path / "b" / "cogcycle.log"

    def test_component_levels(self, reset_logging_manager):
        configure_logging(config={"file_enabled": False, "components": {"cogcycle.noisy": "ERROR"}})
        assert logging.getLogger("cogcycle.noisy").level == logging.ERROR

    def test_unwritable_directory(self, reset_logging_manager, tmp_path):
        """A directory that cannot be created disables file logging."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        assert configure_logging(config={"file_directory": str(blocker / "logs")}) is None


class TestRuntimeAdjustment:
    """Tests for verbose mode and runtime level changes."""

    def test_enable_console(self, reset_logging_manager):
        configure_logging(config={"file_enabled": False})
        enable_console_logging("DEBUG")

        [handler] = logging.getLogger().handlers
        assert handler.level == logging.DEBUG
        assert handler.filters[0].console_globally_enabled is True

    def test_set_component_level(self, reset_logging_manager):
        configure_logging(config={"file_enabled": False})
        UnifiedLoggingManager.get_instance().set_component_level("cogcycle.x", "warning")
        assert logging.getLogger("cogcycle.x").level == logging.WARNING

    def test_log_display_marks_record(self):
        logger = logging.getLogger("cogcycle.display-test")
        captured = []

        class Capture(logging.Handler):
            def emit(self, record):
                captured.append(record)

        handler = Capture()
        logger.addHandler(handler)
        try:
            log_display(logger, logging.WARNING, "Cycle %s done", "cycle-1", extra={"k": 1})
        finally:
            logger.removeHandler(handler)

        [record] = captured
        assert record.display is True
        assert record.k == 1
        assert record.getMessage() == "Cycle cycle-1 done"
