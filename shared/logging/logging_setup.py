"""Logging for the CV tracker: a coloured console plus a plain log file, both stamped in ``TIMEZONE``."""

import logging
import logging.config
import os
from datetime import datetime
from logging import Logger

from pytz import timezone

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOGGER_NAME = "cv_tracker"

_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "magenta": "\033[35m",
    "blue": "\033[34m",
    "white": "\033[37m",
}
_LEVEL_PREFIX = {logging.WARNING: "⚠️ ", logging.ERROR: "⛔ ", logging.CRITICAL: "⛔ "}

# third party loggers that only speak up in debug mode
_CHATTY_LOGGERS = ("httpx", "httpcore", "multipart")


def is_debug_mode() -> bool:
    return os.getenv("LOG_LEVEL", "info").strip().lower() == "debug"


class CustomFormatter(logging.Formatter):
    """Formats timestamps in a pytz zone and prefixes warnings and errors with a marker."""

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, self.tz)
        return stamp.strftime(datefmt) if datefmt else stamp.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # broken %-args from a third party logger, keep the template
            message = str(record.msg)
        # work on a copy, the same record is formatted once per handler
        record = logging.makeLogRecord(record.__dict__)
        record.msg = _LEVEL_PREFIX.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ColoredFormatter(CustomFormatter):
    """Console variant: wraps the line in the ANSI color passed as ``color=`` to :class:`ColorLogger`."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "", "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Wraps a :class:`logging.Logger` and adds an optional ``color=`` keyword to the log methods.

    Usage::

        logger.info("Reindex finished: %d record(s) created.", 3, color="green")

    Only the console handler renders the color. Everything else is delegated
    to the wrapped logger.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    @staticmethod
    def _with_color(kwargs: dict, color: str | None) -> dict:
        if color is None:
            return kwargs
        return {**kwargs, "extra": {**(kwargs.get("extra") or {}), "color": color}}

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.debug(msg, *args, **self._with_color(kwargs, color))

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.info(msg, *args, **self._with_color(kwargs, color))

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.warning(msg, *args, **self._with_color(kwargs, color))

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.error(msg, *args, **self._with_color(kwargs, color))

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.critical(msg, *args, **self._with_color(kwargs, color))

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.exception(msg, *args, **self._with_color(kwargs, color))

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        self._logger.log(level, msg, *args, **self._with_color(kwargs, color))

    def __getattr__(self, name):
        return getattr(self._logger, name)


def build_logging_config(log_file: str, tz_name: str, level: int) -> dict:
    """dictConfig for the console and file handlers."""
    formatter_args = {"format": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"()": CustomFormatter, **formatter_args},
            "colored": {"()": ColoredFormatter, **formatter_args},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "level": level,
                "filename": log_file,
                "encoding": "utf-8",
            },
        },
        "root": {"handlers": ["console", "file"], "level": level},
    }


def setup_logging() -> ColorLogger:
    """Configure logging once per process and return the application logger.

    Log files go to ``<ROOT_DIR>/logs/app.log``. ``LOG_LEVEL=debug`` lowers
    every handler to DEBUG and unmutes the HTTP client loggers.
    """
    debug = is_debug_mode()
    level = logging.DEBUG if debug else logging.INFO
    log_dir = os.path.join(os.getenv("ROOT_DIR") or os.getcwd(), "logs")
    os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(
            log_file=os.path.join(log_dir, "app.log"),
            tz_name=os.getenv("TIMEZONE", "Europe/Berlin"),
            level=level,
        )
    )
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    return ColorLogger(logging.getLogger(LOGGER_NAME))
