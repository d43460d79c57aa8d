"""
Tests for the shared logging, event and serialization helpers.
"""

import datetime
import json
import logging

import pytest

from quizportal import config
from quizportal.common.events import (
    TEST_COMPLETED,
    EventPublisher,
    InMemoryEventPublisher,
    publish_safely,
)
from quizportal.common.exceptions import ConflictError, NotFoundError
from quizportal.common.logger import JsonFormatter, LoggerAdapter, log_execution_time
from quizportal.common.serialization import serialize
from quizportal.config import get_settings
from quizportal.scripts import run_server


class BrokenPublisher(EventPublisher):
    async def publish(self, event_type, payload):
        raise RuntimeError("broker unreachable")


class TestPublishSafely:

    @pytest.mark.asyncio
    async def test_payload_serialized(self):
        publisher = InMemoryEventPublisher()
        when = datetime.datetime(2024, 3, 1, tzinfo=datetime.timezone.utc)

        delivered = await publish_safely(publisher, TEST_COMPLETED, {"at": when, "ids": frozenset({"b", "a"})})

        assert delivered
        assert publisher.events[0].payload == {"at": "2024-03-01T00:00:00+00:00", "ids": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_failure_logged_not_raised(self, caplog):
        with caplog.at_level(logging.ERROR, logger="quizportal"):
            delivered = await publish_safely(BrokenPublisher(), TEST_COMPLETED, {"result_id": "r1"})

        assert delivered is False
        assert "Failed to publish test.completed event" in caplog.text


class TestLogging:

    def test_json_formatter_merges_context(self):
        record = logging.LogRecord("quizportal.test", logging.INFO, __file__, 10, "graded %s", ("r1",), None)
        record.data = {"user_id": "s1"}

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "graded r1"
        assert payload["level"] == "INFO"
        assert payload["user_id"] == "s1"

    def test_adapter_context_accumulates(self):
        adapter = LoggerAdapter(logging.getLogger("quizportal.test"), {"user_id": "s1"})

        _, kwargs = adapter.with_context(assignment_id="a1").process("msg", {})

        assert kwargs["extra"]["data"] == {"user_id": "s1", "assignment_id": "a1"}

    @pytest.mark.asyncio
    async def test_execution_time_logged_for_failures(self, caplog):
        logger = logging.getLogger("quizportal.test")

        @log_execution_time(logger)
        async def failing():
            raise NotFoundError("Test", "t1")

        with caplog.at_level(logging.WARNING, logger="quizportal"):
            with pytest.raises(NotFoundError):
                await failing()

        assert "failed after" in caplog.text
        assert "NotFoundError" in caplog.text

    def test_execution_time_wraps_sync_functions(self):
        @log_execution_time()
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"


def test_error_body():
    error = ConflictError("Maximum attempts reached for this test", details={"max_attempts": 2})

    assert error.status_code == 409
    assert error.to_dict() == {
        "status": "error",
        "message": "Maximum attempts reached for this test",
        "code": "conflict_error",
        "details": {"max_attempts": 2},
    }


def test_serialize_nested_structures():
    assert serialize({"when": datetime.date(2024, 1, 2), "items": (1, {"x": None})}) == {
        "when": "2024-01-02",
        "items": [1, {"x": None}],
    }


def test_server_arguments(monkeypatch):
    monkeypatch.setenv("PORT", "9000")

    args = run_server.parse_args(["--host", "127.0.0.1", "--init-db"])

    assert (args.host, args.port, args.reload, args.init_db) == ("127.0.0.1", 9000, False, True)


def test_settings_read_on_first_use(monkeypatch):
    get_settings.cache_clear()
    monkeypatch.setenv("PASS_PERCENTAGE", "75")
    try:
        assert not hasattr(config, "settings")
        assert get_settings().PASS_PERCENTAGE == 75.0
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
