"""Tests for logging setup."""

from __future__ import annotations

import asyncio
import io
import json
import logging

import pytest

from primeforge._internal.logging import _JsonFormatter, _TaskNameFilter, get_logger, setup_logging


def _record(msg: str = "wrote %d primes", args: tuple[object, ...] = (8,)) -> logging.LogRecord:
    return logging.LogRecord(
        name="primeforge.engine.writer",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )


class TestSetupLogging:
    def test_returns_namespace_logger(self) -> None:
        logger = setup_logging()
        assert logger.name == "primeforge"
        assert logger.level == logging.INFO
        assert logger.propagate is False

    def test_repeat_call_replaces_handler(self) -> None:
        setup_logging()
        logger = setup_logging(level=logging.DEBUG, json_format=True)
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.DEBUG
        assert isinstance(logger.handlers[0].formatter, _JsonFormatter)

    def test_binds_to_current_stderr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        buffer = io.StringIO()
        monkeypatch.setattr("sys.stderr", buffer)
        setup_logging()

        get_logger("engine.worker").warning("Error parsing range %s: %s", "x", "invalid range format")

        line = buffer.getvalue()
        assert "[main] primeforge.engine.worker: Error parsing range x: invalid range format" in line


class TestGetLogger:
    def test_child_of_namespace(self) -> None:
        assert get_logger("engine.worker").name == "primeforge.engine.worker"


class TestTaskNameFilter:
    def test_outside_event_loop(self) -> None:
        record = _record()
        assert _TaskNameFilter().filter(record)
        assert record.task == "main"  # type: ignore[attr-defined]

    async def test_inside_named_task(self) -> None:
        record = _record()

        async def _stamp() -> None:
            _TaskNameFilter().filter(record)

        await asyncio.create_task(_stamp(), name="range-worker-2")
        assert record.task == "range-worker-2"  # type: ignore[attr-defined]


class TestJsonFormatter:
    def test_one_line_json(self) -> None:
        line = _JsonFormatter().format(_record())
        assert "\n" not in line
        payload = json.loads(line)
        assert payload["level"] == "warning"
        assert payload["logger"] == "primeforge.engine.writer"
        assert payload["message"] == "wrote 8 primes"
        assert payload["task"] == "main"
        assert "time" in payload
        assert "range" not in payload

    def test_carries_task_and_range(self, monkeypatch: pytest.MonkeyPatch) -> None:
        buffer = io.StringIO()
        monkeypatch.setattr("sys.stderr", buffer)
        setup_logging(json_format=True)

        async def _log() -> None:
            get_logger("engine.worker").warning("Error parsing range %s", "5:3", extra={"range": "5:3"})

        async def _main() -> None:
            await asyncio.create_task(_log(), name="range-worker-0")

        asyncio.run(_main())

        payload = json.loads(buffer.getvalue())
        assert payload["task"] == "range-worker-0"
        assert payload["range"] == "5:3"
        assert payload["message"] == "Error parsing range 5:3"
