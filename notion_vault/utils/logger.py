"""
Logging for the credential vault.

Messages are written as ``message | key=value | ...`` so structured fields
stay visible under any formatter, and the same fields are attached to the
record for handlers that read attributes. WorkspaceContextFilter stamps the
active app and workspace on every record passing through a configured handler.
"""

import logging
import sys
from typing import Any, Dict, Optional, Union

from ..config import get_config

_function_logger: Optional["ContextAwareLogger"] = None

LevelLike = Union[int, str, None]


def _resolve_level(level: LevelLike) -> int:
    if level is None:
        level = get_config().logging.level
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


class ContextAwareLogger:
    """
    Wraps a ``logging.Logger`` and renders ``extra`` into the message text.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    @staticmethod
    def render(msg: str, extra: Optional[Dict[str, Any]] = None) -> str:
        if not extra:
            return msg
        return " | ".join([msg, *(f"{key}={value}" for key, value in extra.items())])

    def log(
        self,
        level: int,
        msg: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False,
    ) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self.render(msg, extra), extra=extra, exc_info=exc_info)

    def debug(self, msg: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.DEBUG, msg, extra)

    def info(self, msg: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.INFO, msg, extra)

    def warning(self, msg: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.WARNING, msg, extra)

    def error(self, msg: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.ERROR, msg, extra)

    def exception(self, msg: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """ERROR with the active exception's traceback."""
        self.log(logging.ERROR, msg, extra, exc_info=True)


class WorkspaceContextFilter(logging.Filter):
    """Adds ``app_name`` and ``workspace_id`` from the active workspace context."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Lazy import to avoid circular dependency
        from ..context.workspace_context import WorkspaceContext

        app_name, workspace_id = WorkspaceContext.get_current()
        if app_name:
            record.app_name = app_name
        if workspace_id:
            record.workspace_id = workspace_id
        return True


def configure_logging(name: str, log_level: LevelLike = None) -> ContextAwareLogger:
    """
    Send ``notion_vault.<name>`` to stdout and make it the package logger.

    Any handlers previously attached to that logger are replaced.

    Args:
        name: Component name, appended to the ``notion_vault`` logger name
        log_level: Level name or number (default: config.logging.level)
    """
    global _function_logger

    level = _resolve_level(log_level)
    logger = logging.getLogger(f"notion_vault.{name}")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(get_config().logging.format))
    handler.addFilter(WorkspaceContextFilter())
    logger.addHandler(handler)

    _function_logger = ContextAwareLogger(logger)
    _function_logger.debug("Logger configured", extra={"logger_name": logger.name})
    return _function_logger


def get_logger(log_level: LevelLike = None) -> ContextAwareLogger:
    """The logger set up by ``configure_logging``, else the bare package logger."""
    if _function_logger is not None:
        return _function_logger

    logger = logging.getLogger("notion_vault")
    logger.setLevel(_resolve_level(log_level))
    return ContextAwareLogger(logger)
