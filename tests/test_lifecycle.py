"""Tests for saved-state logging on FastAPI responses."""

import logging
from typing import Any

import msgspec
import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from statesize import StateSizeSettings, msgpack_size
from statesize.lifecycle import (
    DefaultFormatter,
    LoggingLogger,
    StateSizeJSONResponse,
    StateSizeLogger,
    is_logging,
    start_logging,
    start_logging_with,
    stop_logging,
)

TAG = "statesize.test"

PAYLOAD = {"user": {"name": "ada", "roles": ["admin", "ops"]}, "page": 1}


class Profile(msgspec.Struct):
    """Response struct rendered directly."""

    name: str
    tags: list[str]


class ListLogger:
    """Keeps every message in memory."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def app():
    app = FastAPI(title="state-app")
    yield app
    stop_logging(app)


def add_state_route(app: FastAPI) -> None:
    @app.get("/state")
    async def get_state() -> dict[str, Any]:
        return PAYLOAD


def tagged(caplog) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.name == TAG]


def test_start_logging_reports_response_state(app, caplog):
    caplog.set_level(logging.DEBUG, logger=TAG)
    start_logging(app, StateSizeSettings(tag=TAG))
    add_state_route(app)

    response = TestClient(app).get("/state")

    assert response.status_code == 200
    assert response.json() == PAYLOAD
    (record,) = tagged(caplog)
    message = record.getMessage()
    assert message.startswith("dict rendered: dict")
    assert "contains 2 keys" in message
    assert "* user =" in message
    assert "* page =" in message
    assert "contains 2 keys and measures" in message.split("* user =")[1]


def test_threshold_skips_small_state(app, caplog):
    caplog.set_level(logging.DEBUG, logger=TAG)
    start_logging(app, StateSizeSettings(tag=TAG, threshold_bytes=10_000))
    add_state_route(app)

    response = TestClient(app).get("/state")

    assert response.json() == PAYLOAD
    assert tagged(caplog) == []


def test_stop_logging(app, caplog):
    caplog.set_level(logging.DEBUG, logger=TAG)
    default = app.router.default_response_class
    start_logging(app, StateSizeSettings(tag=TAG))
    add_state_route(app)
    assert is_logging()

    stop_logging(app)
    response = TestClient(app).get("/state")

    assert not is_logging()
    assert response.json() == PAYLOAD
    assert tagged(caplog) == []
    assert app.router.default_response_class is default


def test_start_logging_is_idempotent(app):
    first = start_logging(app)
    second = start_logging(app, StateSizeSettings(threshold_bytes=5))

    assert second is first
    assert first.threshold_bytes == 0
    assert app.router.default_response_class is StateSizeJSONResponse


def test_start_logging_with_custom_formatter_and_logger(app):
    messages = ListLogger()
    start_logging_with(app, DefaultFormatter(depth=0, sizer=msgpack_size), messages)

    response = StateSizeJSONResponse(content=Profile(name="ada", tags=["x"]))

    assert response.body == msgspec.json.encode(Profile(name="ada", tags=["x"]))
    (message,) = messages.messages
    assert message.startswith("Profile rendered: dict")
    assert "contains 0 keys" in message


def test_non_mapping_content_is_not_reported(app):
    messages = ListLogger()
    start_logging_with(app, DefaultFormatter(), messages)

    response = StateSizeJSONResponse(content=[1, 2, 3])

    assert response.body == b"[1,2,3]"
    assert messages.messages == []


def test_logging_logger_writes_through_sink():
    entries = []

    class Sink:
        def log(self, priority: int, tag: str, message: str) -> None:
            entries.append((priority, tag, message))

    LoggingLogger(logging.INFO, "tag", Sink()).log("hello")

    assert entries == [(logging.INFO, "tag", "hello")]


def test_monitor_failure_is_logged_not_raised(caplog):
    def broken(container: Any) -> int:
        raise ValueError("cannot encode")

    messages = ListLogger()
    monitor = StateSizeLogger(DefaultFormatter(), messages, sizer=broken)
    monitor.start_logging()

    monitor.on_state("Source", {"a": 1})

    assert messages.messages == []
    warnings = [r for r in caplog.records if r.name == "statesize.lifecycle"]
    assert warnings and warnings[0].levelno == logging.WARNING
    assert "Source" in warnings[0].getMessage()


def test_monitor_ignores_state_when_stopped():
    messages = ListLogger()
    monitor = StateSizeLogger(DefaultFormatter(), messages)

    monitor.on_state("Source", {"a": 1})

    assert not monitor.is_logging
    assert messages.messages == []


def test_stop_restores_custom_default_response_class():
    """Restarting while running must not lose the app's own default."""

    class PlainResponse(JSONResponse):
        pass

    app = FastAPI(default_response_class=PlainResponse)
    start_logging(app)
    start_logging(app)

    stop_logging(app)

    assert app.router.default_response_class is PlainResponse


def test_threshold_and_report_use_the_same_encoding():
    """A state of exactly threshold JSON bytes is logged and reported in JSON."""
    state = {f"k{i}": i for i in range(100)}
    json_total = len(msgspec.json.encode(state))
    assert json_total == 881

    at_threshold = ListLogger()
    monitor = StateSizeLogger(DefaultFormatter(depth=0), at_threshold, threshold_bytes=881)
    monitor.start_logging()
    monitor.on_state("Source", state)

    above_threshold = ListLogger()
    monitor = StateSizeLogger(DefaultFormatter(depth=0), above_threshold, threshold_bytes=882)
    monitor.start_logging()
    monitor.on_state("Source", state)

    (message,) = at_threshold.messages
    assert "measures 0.9 KB" in message
    assert above_threshold.messages == []
