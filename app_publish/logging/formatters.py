"""
Log formatters for app_publish.

Both formatters understand the dispatch fields adapters attach to their
records (``backend_id``, ``context``, ``attempt``) and render a failing
NormalizedError through its structured payload rather than only its text.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..exceptions import NormalizedError

DISPATCH_FIELDS = ("backend_id", "context", "attempt")

_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


def _component(logger_name: str) -> str:
    # app_publish.adapters.vivo -> adapters.vivo
    root, _, rest = logger_name.partition(".")
    return rest if root == "app_publish" and rest else logger_name


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, suitable for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": _component(record.name),
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            error = record.exc_info[1]
            if isinstance(error, NormalizedError):
                entry["error"] = error.to_dict()
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and key not in entry:
                entry[key] = value

        return json.dumps(entry, default=str, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """
    Console formatter that colors the level name and tags the backend.

    A record carrying ``backend_id`` gets a ``[backend_id]`` prefix on its
    message, so interleaved output from several stores stays readable.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: Optional[bool] = None,
    ):
        """
        Args:
            fmt: Log format string
            datefmt: Date format string
            use_colors: Whether to use colors (auto-detect on stderr if None)
        """
        super().__init__(fmt, datefmt)

        if use_colors is None:
            # Console handlers write to stderr
            use_colors = sys.stderr.isatty() and sys.platform != "win32"
        self.use_colors = use_colors

    def formatMessage(self, record: logging.LogRecord) -> str:
        backend_id = getattr(record, "backend_id", None)
        if backend_id and not record.message.startswith(f"[{backend_id}]"):
            record.message = f"[{backend_id}] {record.message}"
        formatted = super().formatMessage(record)

        color = self.COLORS.get(record.levelname) if self.use_colors else None
        if color:
            level_colored = f"{color}{self.BOLD}{record.levelname}{self.RESET}"
            formatted = formatted.replace(record.levelname, level_colored, 1)
        return formatted
