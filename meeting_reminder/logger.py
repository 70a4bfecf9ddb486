"""
Logging System

Centralized logging for the meeting reminder with console and file output.

Every module asks for its logger with the loaded Config so the
``logging.level`` / ``logging.file`` / ``logging.console`` keys apply to
the scheduler, the calendar source and the alert device threads alike.
The first call for a name configures it; later calls reuse it.

The --debug flag calls set_debug(), which lowers every logger (already
handed out or not) to DEBUG. MEETING_REMINDER_LOG_FILE_ONLY keeps stdout
clean when the daemon runs under a supervisor.
"""

import logging
import os
import sys
from pathlib import Path


class Logger:
    """Centralized logger for the meeting reminder"""

    _loggers = {}
    _debug = False

    @classmethod
    def get_logger(cls, name: str, config=None) -> logging.Logger:
        """
        Get or create a logger instance

        Args:
            name: Logger name (usually __name__)
            config: Configuration object (optional)

        Returns:
            Configured logger instance
        """
        if name in cls._loggers:
            return cls._loggers[name]

        logger = logging.getLogger(name)

        # Only configure if not already configured
        if not logger.handlers:
            cls._configure_logger(logger, config)

        cls._loggers[name] = logger
        return logger

    @classmethod
    def set_debug(cls, enabled: bool = True) -> None:
        """Force DEBUG level on every logger handed out so far and from now on."""
        cls._debug = enabled
        for logger in cls._loggers.values():
            level = logging.DEBUG if enabled else logging.INFO
            logger.setLevel(level)
            for handler in logger.handlers:
                handler.setLevel(level)

    @classmethod
    def _configure_logger(cls, logger: logging.Logger, config) -> None:
        """Configure logger with handlers and formatting"""

        if config:
            level_str = config.get("logging.level", "INFO")
            log_file = config.get("logging.file")
            console_enabled = config.get("logging.console", True)
        else:
            level_str = "INFO"
            log_file = None
            console_enabled = True

        # Daemon mode under a supervisor: keep stdout clean, log to file only.
        if os.environ.get("MEETING_REMINDER_LOG_FILE_ONLY"):
            console_enabled = False
            log_file = log_file or str(Path(__file__).parent.parent / "logs" / "meeting_reminder.log")

        if cls._debug:
            level = logging.DEBUG
        else:
            level = getattr(logging, str(level_str).upper(), logging.INFO)
        logger.setLevel(level)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        if console_enabled:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        # Prevent propagation to root logger
        logger.propagate = False


def get_logger(name: str, config=None) -> logging.Logger:
    """
    Convenience function to get a logger

    Args:
        name: Logger name (usually __name__)
        config: Configuration object (optional)

    Returns:
        Configured logger instance
    """
    return Logger.get_logger(name, config)


def set_debug(enabled: bool = True) -> None:
    """Switch all project loggers to DEBUG (the --debug flag)."""
    Logger.set_debug(enabled)
