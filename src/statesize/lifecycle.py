"""Log the size breakdown of state rendered into FastAPI responses."""

from __future__ import annotations

import logging
import threading
from collections.abc import MutableMapping
from typing import Any, Protocol

import msgspec
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .config import StateSizeSettings
from .core import LoggingSink, LogSink, breakdown_report, measure
from .exceptions import StateSizeError
from .serializers import Sizer, json_size

# Configure logging
logger = logging.getLogger(__name__)

# ============================================================================
# Formatters and Loggers
# ============================================================================


class Formatter(Protocol):
    """Turns a piece of rendered state into a log message."""

    def format(self, source: str, state: Any) -> str: ...


class Logger(Protocol):
    """Writes a formatted message somewhere."""

    def log(self, message: str) -> None: ...


class DefaultFormatter:
    """Prefix the breakdown report with the name of what rendered the state.

    Sizes are JSON by default, the same encoding StateSizeLogger checks
    its threshold against.
    """

    def __init__(self, depth: int = -1, sizer: Sizer | None = None) -> None:
        self.depth = depth
        self.sizer = sizer or json_size

    def format(self, source: str, state: Any) -> str:
        return f"{source} rendered: " + breakdown_report(state, self.depth, sizer=self.sizer)


class LoggingLogger:
    """Write messages to a sink at a fixed priority and tag."""

    def __init__(
        self,
        priority: int = logging.DEBUG,
        tag: str = "statesize",
        sink: LogSink | None = None,
    ) -> None:
        self.priority = priority
        self.tag = tag
        self.sink = sink or LoggingSink()

    def log(self, message: str) -> None:
        self.sink.log(self.priority, self.tag, message)


class StateSizeLogger:
    """Breaks down and logs each piece of state it is handed while logging is on."""

    def __init__(
        self,
        formatter: Formatter,
        logger: Logger,
        threshold_bytes: int = 0,
        sizer: Sizer | None = None,
    ) -> None:
        self.formatter = formatter
        self.logger = logger
        self.threshold_bytes = threshold_bytes
        self.sizer = sizer or json_size
        self._logging = False

    @property
    def is_logging(self) -> bool:
        return self._logging

    def start_logging(self) -> None:
        self._logging = True

    def stop_logging(self) -> None:
        self._logging = False

    def on_state(self, source: str, state: Any) -> None:
        """
        Log the breakdown of ``state`` if logging is on and it is large enough.

        Diagnostic failures are logged as warnings and never reach the caller,
        so a broken measurement cannot break the response being rendered.
        """
        if not self._logging:
            return
        try:
            total = measure(state, 0, sizer=self.sizer).size_bytes
            if total < self.threshold_bytes:
                return
            self.logger.log(self.formatter.format(source, state))
        except StateSizeError as e:
            logger.warning(f"Could not break down state rendered by {source}: {e}")


# ============================================================================
# Response Classes
# ============================================================================

# One monitor per process, created under the lock on first start
_MONITOR: StateSizeLogger | None = None
_MONITOR_LOCK = threading.Lock()

# Attribute on app.state holding the response class to restore on stop
_PREVIOUS_RESPONSE_CLASS = "statesize_previous_response_class"


class StateSizeJSONResponse(JSONResponse):
    """msgspec JSON response that reports the size breakdown of its content.

    Once logging stops it renders like any msgspec JSON response.
    """

    def render(self, content: Any) -> bytes:
        source = type(content).__name__
        if hasattr(content, "model_dump"):
            content = content.model_dump()

        # to_builtins builds fresh containers, so measuring them cannot race
        state = msgspec.to_builtins(content)

        monitor = _MONITOR
        if monitor is not None and isinstance(state, MutableMapping):
            monitor.on_state(source, state)

        return msgspec.json.encode(state)


# ============================================================================
# FastAPI Setup
# ============================================================================


def start_logging_with(
    app: FastAPI,
    formatter: Formatter,
    message_logger: Logger,
    threshold_bytes: int = 0,
    sizer: Sizer | None = None,
) -> StateSizeLogger:
    """
    Start logging the state rendered by ``app``'s responses.

    Routes pick up their response class when they are declared, so call
    this before adding routes. Calling it while logging is already on
    returns the running monitor unchanged.

    Args:
        app: The FastAPI application.
        formatter: Builds the message for each response.
        message_logger: Receives each message.
        threshold_bytes: Skip responses whose state is smaller than this.
        sizer: Size primitive, defaults to JSON since that is what gets sent.

    Returns:
        The active StateSizeLogger.
    """
    global _MONITOR

    with _MONITOR_LOCK:
        if _MONITOR is None or not _MONITOR.is_logging:
            _MONITOR = StateSizeLogger(formatter, message_logger, threshold_bytes, sizer)
            _MONITOR.start_logging()
            status = "started"
        else:
            status = "already running"
        monitor = _MONITOR

    if app.router.default_response_class is not StateSizeJSONResponse:
        setattr(app.state, _PREVIOUS_RESPONSE_CLASS, app.router.default_response_class)
    app.router.default_response_class = StateSizeJSONResponse  # type: ignore[assignment]
    logger.debug(f"State size logging {status} for {app.title}")
    return monitor


def start_logging(app: FastAPI, settings: StateSizeSettings | None = None) -> StateSizeLogger:
    """Start logging with a DefaultFormatter and LoggingLogger built from settings."""
    settings = settings or StateSizeSettings()
    sizer = settings.sizer()
    return start_logging_with(
        app,
        DefaultFormatter(settings.depth, sizer),
        LoggingLogger(settings.priority, settings.tag),
        threshold_bytes=settings.threshold_bytes,
        sizer=sizer,
    )


def stop_logging(app: FastAPI) -> None:
    """Stop logging and give the app back the default response class it had."""
    with _MONITOR_LOCK:
        monitor = _MONITOR
    if monitor is None or not monitor.is_logging:
        return

    monitor.stop_logging()
    previous = getattr(app.state, _PREVIOUS_RESPONSE_CLASS, None)
    if previous is not None:
        app.router.default_response_class = previous
    logger.debug(f"State size logging stopped for {app.title}")


def is_logging() -> bool:
    """Whether state size logging is currently on."""
    monitor = _MONITOR
    return monitor is not None and monitor.is_logging
