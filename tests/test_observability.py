from __future__ import annotations

import io
import itertools
import json
import logging

import pytest

from portmapper.observability import (
    AttemptOutcome,
    LoggingEventSink,
    LogContext,
    RegistryEvent,
    get_logger,
)

_LOGGER_COUNTER = itertools.count()


@pytest.fixture()
def logger_name():
    name = f"portmapper.test.{next(_LOGGER_COUNTER)}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _last_json(stream: io.StringIO) -> dict:
    lines = [line for line in stream.getvalue().splitlines() if line.strip()]
    assert lines
    return json.loads(lines[-1])


def test_json_logger_includes_context_and_extras(logger_name):
    stream = io.StringIO()
    logger = get_logger(logger_name, log_format="json", stream=stream)
    with LogContext(operation="register", service_name="web", port=8080):
        logger.info("registered", extra={"path": "/registry/web:8080"})
    payload = _last_json(stream)
    assert payload["message"] == "registered"
    assert payload["operation"] == "register"
    assert payload["service_name"] == "web"
    assert payload["port"] == 8080
    assert payload["path"] == "/registry/web:8080"


def test_context_is_restored_on_exit(logger_name):
    with LogContext(operation="list"):
        with LogContext(service_name="web"):
            assert LogContext.snapshot()["operation"] == "list"
        assert LogContext.snapshot()["service_name"] is None
    assert LogContext.snapshot()["operation"] is None


def test_get_logger_adds_a_single_handler(logger_name):
    stream = io.StringIO()
    logger = get_logger(logger_name, log_format="console", stream=stream)
    get_logger(logger_name, log_format="console", stream=stream)
    assert len(logger.handlers) == 1
    logger.warning("hello")
    assert "hello" in stream.getvalue()


def test_log_format_env(monkeypatch, logger_name):
    monkeypatch.setenv("PORTMAPPER_LOG_FORMAT", "console")
    stream = io.StringIO()
    get_logger(logger_name, stream=stream).info("plain")
    assert not stream.getvalue().startswith("{")


@pytest.mark.asyncio
async def test_logging_sink_levels_and_counts(caplog):
    sink = LoggingEventSink(logging.getLogger("portmapper.events.test"))
    with caplog.at_level(logging.DEBUG, logger="portmapper.events.test"):
        await sink.emit(RegistryEvent("register", "web", 80, 1, AttemptOutcome.RETRY, "timeout"))
        await sink.emit(RegistryEvent("register", "web", 80, 2, AttemptOutcome.SUCCESS))
        await sink.emit(RegistryEvent("list", None, None, 1, AttemptOutcome.FAILED, "boom"))

    levels = [r.levelno for r in caplog.records]
    assert levels == [logging.WARNING, logging.INFO, logging.ERROR]
    assert caplog.records[0].attempt == 1
    assert caplog.records[0].outcome == "retry"
    assert "boom" in caplog.records[2].getMessage()
    assert sink.metrics.count("register", "retry") == 1
    assert sink.metrics.count("register", "success") == 1
    assert sink.metrics.count("list", "failed") == 1
