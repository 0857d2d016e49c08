"""
Handler installation for the ``app_publish`` logger hierarchy.

Every module logs through ``logging.getLogger(__name__)``. Handlers are
installed on the package logger only, so a host application's root logger
configuration is left alone.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from ..config.models import LoggingConfig, LogLevel
from .filters import ComponentFilter, SensitiveDataFilter
from .formatters import ColoredFormatter, StructuredFormatter

PACKAGE_LOGGER = "app_publish"


def _level(level: LogLevel) -> int:
    return getattr(logging, level.value)


class LoggingManager:
    """Installs and removes the package's log handlers."""

    def __init__(self, logger_name: str = PACKAGE_LOGGER) -> None:
        self.logger_name = logger_name
        self._handlers: Dict[str, logging.Handler] = {}
        self._configured = False

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(self.logger_name)

    def setup_logging(self, config: LoggingConfig) -> None:
        """
        Install handlers described by ``config``, replacing earlier ones.

        Console output goes to stderr. The file handler rotates at
        ``max_file_size`` bytes. With ``mask_credentials`` set, every handler
        masks tokens, signatures and keys before formatting.
        """
        if self._configured:
            self.cleanup()

        self.logger.setLevel(_level(config.level))
        self.logger.propagate = False

        for name, handler in self._build_handlers(config):
            handler.setLevel(_level(config.level))
            if config.mask_credentials:
                handler.addFilter(SensitiveDataFilter())
            self.logger.addHandler(handler)
            self._handlers[name] = handler

        for component, level in config.component_levels.items():
            self._component_logger(component).setLevel(_level(level))

        self._configured = True
        self.logger.debug("Installed log handlers: %s", ", ".join(self._handlers) or "none")

    def _build_handlers(self, config: LoggingConfig) -> Iterator[Tuple[str, logging.Handler]]:
        if config.enable_console:
            console = logging.StreamHandler(sys.stderr)
            console.setFormatter(
                StructuredFormatter() if config.enable_structured else ColoredFormatter(config.format)
            )
            yield "console", console

        if config.enable_file and config.file_path:
            log_path = Path(str(config.file_path)).expanduser()
            log_path.parent.mkdir(parents=True, exist_ok=True)
            rotating = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=config.max_file_size,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
            rotating.setFormatter(
                StructuredFormatter()
                if config.enable_structured
                else ColoredFormatter(config.format, use_colors=False)
            )
            yield "file", rotating

    def _component_logger(self, component: str) -> logging.Logger:
        # "auth" and "app_publish.auth" name the same logger
        if component.startswith(self.logger_name):
            return logging.getLogger(component)
        return logging.getLogger(f"{self.logger_name}.{component}")

    def set_level(self, level: LogLevel, component: Optional[str] = None) -> None:
        """
        Change the level of the package logger and its handlers, or of one
        component logger.
        """
        if component:
            self._component_logger(component).setLevel(_level(level))
            return
        self.logger.setLevel(_level(level))
        for handler in self._handlers.values():
            handler.setLevel(_level(level))

    def restrict_to(self, component: str) -> None:
        """Only emit records from ``component`` on the installed handlers."""
        component_filter = ComponentFilter(self._component_logger(component).name)
        for handler in self._handlers.values():
            handler.addFilter(component_filter)

    def cleanup(self) -> None:
        """Remove and close the installed handlers."""
        for handler in self._handlers.values():
            self.logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self.logger.propagate = True
        self._configured = False

    def is_configured(self) -> bool:
        return self._configured


_logging_manager = LoggingManager()


def setup_logging(config: Optional[LoggingConfig] = None) -> LoggingManager:
    """
    Configure package logging.

    Args:
        config: Logging configuration (defaults if omitted)

    Returns:
        The package logging manager
    """
    _logging_manager.setup_logging(config or LoggingConfig())
    return _logging_manager


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def cleanup_logging() -> None:
    """Remove the handlers installed by :func:`setup_logging`."""
    _logging_manager.cleanup()
