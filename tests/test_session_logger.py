"""
Tests for session logging
"""
import json
from unittest.mock import Mock

import pytest
from langchain_core.messages import AIMessage

from coach_logging import SessionLogger, clear_logger, get_logger, set_logger
from core.errors import InputInvalid
from core.invoker import ChatModelInvoker
from voice.capture import InterviewCapture
from tests.test_capture import FakeSpeechBackend


@pytest.fixture
def session_logger(tmp_path):
    logger = SessionLogger("test", log_dir=str(tmp_path), console=False)
    set_logger(logger)
    yield logger
    clear_logger()


class TestSessionLogger:
    """Event recording and persistence."""

    def test_files_are_created(self, tmp_path):
        logger = SessionLogger("s1", log_dir=str(tmp_path / "nested"), console=False)
        logger.save()
        logger.close()

        data = json.loads(logger.log_file.read_text(encoding="utf-8"))
        assert data["session_id"] == "s1"
        assert data["end_time"] is not None
        assert logger.text_log_file.exists()

    def test_global_logger(self, session_logger):
        assert get_logger() is session_logger

    def test_clear_logger_saves(self, session_logger):
        session_logger.log_event("custom", {"x": 1})
        clear_logger()

        assert get_logger() is None
        data = json.loads(session_logger.log_file.read_text(encoding="utf-8"))
        assert data["events"][-1]["event_type"] == "custom"

    def test_events_filter(self, session_logger):
        session_logger.log_event("a", {})
        session_logger.log_event("b", {})
        assert [e["event_type"] for e in session_logger.events("b")] == ["b"]


class TestComponentLogging:
    """Executor, invoker and capture report to the current session logger."""

    def test_flow_success_is_logged(self, session_logger, executor, invoker):
        invoker.queue({"prompt": "Describe a challenge."})
        executor.run("getOralFluencyPrompt", {})

        assert session_logger.log_data["flow_calls"] == 1
        assert session_logger.events("flow_start")[0]["data"]["flow"] == "getOralFluencyPrompt"
        assert session_logger.events("flow_end")[0]["data"]["output_fields"] == ["prompt"]

    def test_flow_failure_is_logged(self, session_logger, executor):
        with pytest.raises(InputInvalid):
            executor.run("analyzeSkillGaps", {"targetRole": "Dev"})

        failure = session_logger.events("flow_failure")[0]["data"]
        assert session_logger.log_data["flow_failures"] == 1
        assert failure["error_type"] == "InputInvalid"
        assert failure["issues"] == ["digitalTwin: required field is missing"]

    def test_llm_traffic_and_retries_are_logged(self, session_logger, catalog):
        model = Mock()
        model.invoke.side_effect = [
            TimeoutError("timed out"),
            AIMessage(content='{"prompt": "Why?"}', usage_metadata={
                "input_tokens": 10, "output_tokens": 5, "total_tokens": 15,
            }),
        ]
        invoker = ChatModelInvoker(model, timeout_seconds=None, retry_backoff_seconds=0)

        invoker.invoke("ask", catalog.get("getOralFluencyPrompt").output_schema)

        requests = session_logger.events("llm_request")
        assert [r["data"]["attempt"] for r in requests] == [1, 2]
        assert session_logger.events("llm_retry")[0]["data"]["kind"] == "timeout"
        assert session_logger.events("llm_response")[0]["data"]["tokens"] == 15

    def test_capture_events_are_logged(self, session_logger):
        capture = InterviewCapture(FakeSpeechBackend(), prompt="p", auto_tick=False)
        capture.mount()
        capture.start()
        capture.stop()

        actions = [e["data"]["action"] for e in session_logger.events("capture")]
        assert actions == ["mount", "start", "stop"]
