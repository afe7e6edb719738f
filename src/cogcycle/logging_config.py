# src/cogcycle/logging_config.py
"""
Process-wide logging setup for cogcycle.

The wake loop, the CLI and any host application embedding the scheduler
share one set of root handlers, installed once by ``configure_logging``.
Settings come from the ``[cogcycle.logging]`` table; any key left out
falls back to ``DEFAULT_LOGGING_CONFIG``.

Two handlers are installed:

    **Console** (stderr): quiet by default.  Only records logged through
    ``log_display`` (or with ``extra={"display": True}``) get through, so a
    long-running ``cogcycle run`` prints one line per cycle while per-goal
    and per-task detail stays in the log file.  ``-v`` opens it up fully.

    **File**: either one rotating ``{app}.log`` (``file_mode="single"``,
    the default for a daemon-like loop) or a fresh timestamped file per
    invocation (``file_mode="per_run"``).

Usage:
    from cogcycle.logging_config import configure_logging, log_display

    configure_logging(app_name="cogcycle", config=config.logging)
    log_display(logger, logging.INFO, "Cycle %s finished", cycle_id)
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_LOGGING_CONFIG: dict[str, Any] = {
    "console_enabled": False,
    "console_level": "WARNING",
    "console_format": "%(levelname)s - %(message)s",
    "file_enabled": True,
    "file_level": "DEBUG",
    "file_directory": "~/.local/share/cogcycle/logs",
    "file_mode": "single",
    "file_name_pattern": "{app}_{timestamp:%Y%m%d_%H%M%S}.log",
    "file_single_name": "{app}.log",
    "file_format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    "rotation_max_bytes": 5 * 1024 * 1024,
    "rotation_backup_count": 5,
    "display_min_level": "INFO",
    "components": {
        "cogcycle": "INFO",
        "asyncio": "WARNING",
    },
}


def _to_level(value: str | int | None, fallback: int) -> int:
    """Map ``"debug"``/``"INFO"``/``10`` to a logging level; unknown names give *fallback*."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        resolved = logging.getLevelName(value.upper())
        if isinstance(resolved, int):
            return resolved
    return fallback


def _log_file_name(settings: dict[str, Any], app_name: str) -> str:
    """Render the configured file name, falling back to a plain pattern on bad templates."""
    now = datetime.now()
    if settings["file_mode"] == "single":
        template, fallback = settings["file_single_name"], f"{app_name}.log"
    else:
        template = settings["file_name_pattern"]
        fallback = f"{app_name}_{now:%Y%m%d_%H%M%S}.log"
    try:
        return template.format(app=app_name, timestamp=now)
    except (KeyError, ValueError):
        return fallback


# ---------------------------------------------------------------------------
# Console gate
# ---------------------------------------------------------------------------


class DisplayFilter(logging.Filter):
    """Decides what reaches the console handler.

    ============  ================  ==================
    verbose       display=True      everything else
    ============  ================  ==================
    on (``-v``)   pass              pass
    off           pass if >= min    drop
    ============  ================  ==================
    """

    def __init__(
        self,
        console_globally_enabled: bool = False,
        display_min_level: int = logging.INFO,
    ) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True
        return bool(getattr(record, "display", False)) and record.levelno >= self.display_min_level


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class UnifiedLoggingManager:
    """
    Owns the root handlers for the whole process.

    A singleton: the first ``configure()`` wins and later calls return the
    existing log path unless ``force_reconfigure`` is set.
    """

    _instance: Optional["UnifiedLoggingManager"] = None
    _configured: bool = False
    _log_file_path: Path | None = None
    _console_handler: logging.Handler | None = None
    _file_handler: logging.Handler | None = None
    _display_filter: DisplayFilter | None = None

    def __new__(cls) -> "UnifiedLoggingManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def get_instance(cls) -> "UnifiedLoggingManager":
        return cls()

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def get_log_file_path(cls) -> Path | None:
        return cls._log_file_path

    def configure(
        self,
        app_name: str = "cogcycle",
        config: dict[str, Any] | None = None,
        force_reconfigure: bool = False,
    ) -> Path | None:
        """
        Install console and file handlers on the root logger.

        Args:
            app_name: Used to name the log file
            config: The ``[cogcycle.logging]`` table, possibly partial
            force_reconfigure: Replace handlers even if already configured

        Returns:
            The log file path, or None when file logging is disabled or
            the file could not be opened
        """
        cls = type(self)
        if cls._configured and not force_reconfigure:
            return cls._log_file_path

        settings = {**DEFAULT_LOGGING_CONFIG, **(config or {})}
        root = logging.getLogger()
        for old in root.handlers[:]:
            root.removeHandler(old)
            old.close()
        root.setLevel(logging.DEBUG)

        verbose = bool(settings["console_enabled"])
        console = self._console(settings["console_level"], settings["console_format"])
        if not verbose:
            # Quiet mode: the display filter alone decides.
            console.setLevel(logging.DEBUG)
        cls._display_filter = DisplayFilter(
            console_globally_enabled=verbose,
            display_min_level=_to_level(settings["display_min_level"], logging.INFO),
        )
        console.addFilter(cls._display_filter)
        root.addHandler(console)
        cls._console_handler = console

        cls._file_handler, cls._log_file_path = None, None
        if settings["file_enabled"]:
            cls._file_handler, cls._log_file_path = self._open_file(settings, app_name)
            if cls._file_handler is not None:
                root.addHandler(cls._file_handler)

        for name, level in settings["components"].items():
            logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

        cls._configured = True
        logging.getLogger(__name__).debug(
            "Logging configured (verbose=%s, file=%s)", verbose, cls._log_file_path
        )
        return cls._log_file_path

    @staticmethod
    def _console(level: str | int, fmt: str) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(_to_level(level, logging.WARNING))
        handler.setFormatter(logging.Formatter(fmt))
        return handler

    @staticmethod
    def _open_file(
        settings: dict[str, Any], app_name: str
    ) -> tuple[logging.Handler | None, Path | None]:
        """Open the log file; problems are reported on stderr and disable file logging."""
        directory = Path(os.path.expanduser(settings["file_directory"]))
        path = directory / _log_file_name(settings, app_name)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            if settings["file_mode"] == "single":
                handler: logging.Handler = RotatingFileHandler(
                    path,
                    maxBytes=settings["rotation_max_bytes"],
                    backupCount=settings["rotation_backup_count"],
                    encoding="utf-8",
                )
            else:
                handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as e:
            sys.stderr.write(f"cogcycle: file logging disabled, cannot open {path}: {e}\n")
            return None, None

        handler.setLevel(_to_level(settings["file_level"], logging.DEBUG))
        handler.setFormatter(logging.Formatter(settings["file_format"]))
        return handler, path

    def set_component_level(self, component: str, level: str | int) -> None:
        target = logging.getLogger(component)
        target.setLevel(_to_level(level, target.level))

    def enable_console(self, level: str = "INFO") -> None:
        """Switch to verbose mode: every record at *level* or above is printed."""
        cls = type(self)
        root = logging.getLogger()
        if cls._console_handler is not None:
            root.removeHandler(cls._console_handler)

        cls._display_filter = DisplayFilter(
            console_globally_enabled=True, display_min_level=logging.DEBUG
        )
        cls._console_handler = self._console(level, DEFAULT_LOGGING_CONFIG["console_format"])
        cls._console_handler.addFilter(cls._display_filter)
        root.addHandler(cls._console_handler)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def configure_logging(
    app_name: str = "cogcycle",
    config: dict[str, Any] | None = None,
    force_reconfigure: bool = False,
) -> Path | None:
    """Configure process-wide logging; see ``UnifiedLoggingManager.configure``."""
    return UnifiedLoggingManager.get_instance().configure(
        app_name=app_name, config=config, force_reconfigure=force_reconfigure
    )


def log_display(
    logger: logging.Logger,
    level: int,
    msg: str,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Log *msg* so it is shown on the console even in quiet mode.

    ``display_min_level`` still applies.
    """
    extra = dict(kwargs.pop("extra", None) or {})
    extra["display"] = True
    logger.log(level, msg, *args, extra=extra, **kwargs)


def get_log_file_path() -> Path | None:
    return UnifiedLoggingManager.get_log_file_path()


def enable_console_logging(level: str = "INFO") -> None:
    """Switch the console to verbose mode."""
    UnifiedLoggingManager.get_instance().enable_console(level)
