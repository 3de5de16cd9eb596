"""
Logging setup shared by every scanview module.

Console output goes through Rich. Commands that run unattended (`import`,
`collect`) also append JSON lines to `{cwd}/{command}.log`. The level comes
from the caller, else from `SCANVIEW_LOG_LEVEL`, else INFO.
"""

import json
import logging
import os
import sys
from pathlib import Path

from rich.logging import RichHandler

FILE_LOGGED_COMMANDS = ("import", "collect")
LEVEL_ENV = "SCANVIEW_LOG_LEVEL"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record, with the traceback when there is one.
    """
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _command() -> str | None:
    return sys.argv[1] if len(sys.argv) > 1 else None


def get_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """
    Return the logger for `name`, attaching handlers on first use.

    Parameters
    ----------
    name
        Logger name (typically __name__).
    level
        Log level (int or string). Defaults to $SCANVIEW_LOG_LEVEL or INFO.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    if level is None:
        level = os.environ.get(LEVEL_ENV, "INFO").upper()
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        console = RichHandler(rich_tracebacks=True, show_path=False)
        console.setLevel(level)
        logger.addHandler(console)

        command = _command()
        if command in FILE_LOGGED_COMMANDS:
            sink = logging.FileHandler(Path.cwd() / f"{command}.log", mode="a", encoding="utf-8")
            sink.setLevel(level)
            sink.setFormatter(JSONFormatter())
            logger.addHandler(sink)

    return logger
