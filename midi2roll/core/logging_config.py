"""
Centralized logging configuration for midi2roll.

This module provides a unified logging setup shared by the command line
entry points and the library modules. Resolver diagnostics are emitted as
WARNING records, so the default level keeps them visible.
"""
import logging
import os
import datetime
import sys
from pathlib import Path
from typing import Optional, Dict

from midi2roll.app_config import APP_NAME, LOG_DIR, LOG_FORMAT


def _default_log_dir() -> str:
    override = os.getenv("MIDI2ROLL_LOG_DIR")
    if override:
        return override

    # Prefer a project-local logs directory when running from a checkout.
    here = Path(__file__).resolve()
    for parent in here.parents:
        if (parent / ".git").exists() or (parent / "pyproject.toml").exists():
            return str(parent / LOG_DIR)

    # Fallback to a per-user directory if we can't locate a project root.
    if sys.platform == "win32":
        base = Path(os.getenv("LOCALAPPDATA") or (Path.home() / "AppData" / "Local")) / APP_NAME
        return str(base / LOG_DIR)
    if sys.platform == "darwin":
        return str(Path.home() / "Library" / "Logs" / APP_NAME)
    return str(Path.home() / f".{APP_NAME}" / LOG_DIR)


class LoggingConfig:
    """Centralized logging configuration manager."""

    DEFAULT_LEVEL = logging.WARNING

    LOG_FORMAT = LOG_FORMAT
    CONSOLE_FORMAT = '%(levelname)s: %(message)s'

    # Module-specific log levels can be configured here
    MODULE_LEVELS: Dict[str, int] = {
        # Third-party libraries - suppress most of their logs
        'mido': logging.ERROR,
        'midiutil': logging.ERROR,
    }

    _configured = False
    _log_filename = ""
    _log_dir = ""

    @classmethod
    def setup_logging(cls,
                      log_to_file: bool = False,
                      log_to_console: bool = True,
                      log_level: Optional[int] = None,
                      log_dir: Optional[str] = None) -> str:
        """
        Setup centralized logging configuration.

        Args:
            log_to_file: Whether to log to a per-run file
            log_to_console: Whether to log to the console (stderr)
            log_level: Override default log level
            log_dir: Override default log directory

        Returns:
            Path to log file if logging to file, empty string otherwise
        """
        root_level = log_level or cls.DEFAULT_LEVEL

        handlers = []
        log_filename = ""

        if log_to_file:
            log_dir = log_dir or _default_log_dir()
            os.makedirs(log_dir, exist_ok=True)
            log_filename = os.path.join(
                log_dir,
                f"run_{datetime.datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
            )
            file_handler = logging.FileHandler(log_filename, mode='w', encoding='utf-8')
            file_handler.setFormatter(logging.Formatter(cls.LOG_FORMAT))
            handlers.append(file_handler)

        if log_to_console:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(cls.CONSOLE_FORMAT))
            handlers.append(console_handler)

        if not handlers:
            handlers.append(logging.NullHandler())

        logging.basicConfig(
            level=root_level,
            format=cls.LOG_FORMAT,
            handlers=handlers,
            force=True  # Force reconfiguration if already configured
        )

        logging.getLogger(APP_NAME).setLevel(root_level)
        for module_name, level in cls.MODULE_LEVELS.items():
            logging.getLogger(module_name).setLevel(level)

        logger = logging.getLogger(__name__)
        logger.debug(f"Logging configured: level={logging.getLevelName(root_level)}, "
                     f"file={'yes' if log_to_file else 'no'}, "
                     f"console={'yes' if log_to_console else 'no'}")
        if log_to_file:
            logger.info(f"Log file: {log_filename}")

        cls._configured = True
        cls._log_filename = log_filename
        cls._log_dir = log_dir or ""
        return log_filename
