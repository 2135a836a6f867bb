"""
Tests for the chat model invoker: parsing, error classification and retries
"""
import asyncio
import time
from unittest.mock import AsyncMock, Mock, patch

import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from core.errors import ModelError, ModelErrorKind
from core.invoker import (
    ChatModelInvoker, ModelInvoker, build_messages, classify_exception,
    parse_structured_response
)
from core.schema import Schema


class RateLimitError(Exception):
    """Stand-in for a provider's rate limit exception."""


class ServiceUnavailableError(Exception):
    """Stand-in for a provider outage."""


@pytest.fixture
def prompt_schema():
    return Schema.from_mapping({"prompt": {"kind": "string", "description": "A short question"}})


def _invoker(model, **kwargs):
    kwargs.setdefault("timeout_seconds", None)
    kwargs.setdefault("retry_backoff_seconds", 0)
    return ChatModelInvoker(model, **kwargs)


class TestBuildMessages:
    """Prompt packaging."""

    def test_system_and_human_messages(self, prompt_schema):
        messages = build_messages("Ask me something", prompt_schema)

        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)
        assert messages[1].content == "Ask me something"
        assert "# RESPONSE FORMAT" in messages[0].content
        assert '"prompt"' in messages[0].content


class TestParseStructuredResponse:
    """Reply -> validated dict."""

    def test_plain_json(self, prompt_schema):
        reply = AIMessage(content='{"prompt": "What motivates you?"}')
        assert parse_structured_response(reply, prompt_schema) == {"prompt": "What motivates you?"}

    def test_fenced_json(self, prompt_schema):
        reply = AIMessage(content='Here you go:\n```json\n{"prompt": "Describe a challenge."}\n```')
        assert parse_structured_response(reply, prompt_schema) == {"prompt": "Describe a challenge."}

    def test_not_json_is_malformed(self, prompt_schema):
        with pytest.raises(ModelError) as exc_info:
            parse_structured_response(AIMessage(content="Sure! Describe a challenge."), prompt_schema)
        assert exc_info.value.kind is ModelErrorKind.MALFORMED_OUTPUT

    def test_empty_reply_is_malformed(self, prompt_schema):
        with pytest.raises(ModelError) as exc_info:
            parse_structured_response(AIMessage(content="   "), prompt_schema)
        assert exc_info.value.kind is ModelErrorKind.MALFORMED_OUTPUT

    def test_array_is_malformed(self, prompt_schema):
        with pytest.raises(ModelError) as exc_info:
            parse_structured_response(AIMessage(content='["a", "b"]'), prompt_schema)
        assert exc_info.value.kind is ModelErrorKind.MALFORMED_OUTPUT

    def test_schema_mismatch_is_malformed_with_issues(self, prompt_schema):
        with pytest.raises(ModelError) as exc_info:
            parse_structured_response(AIMessage(content='{"question": "x"}'), prompt_schema)

        assert exc_info.value.kind is ModelErrorKind.MALFORMED_OUTPUT
        assert [issue.path for issue in exc_info.value.issues] == ["prompt"]

    def test_refusal(self, prompt_schema):
        reply = AIMessage(content="", additional_kwargs={"refusal": "I can't help with that."})

        with pytest.raises(ModelError) as exc_info:
            parse_structured_response(reply, prompt_schema)
        assert exc_info.value.kind is ModelErrorKind.REFUSED

    def test_content_filter_finish_reason(self, prompt_schema):
        reply = AIMessage(content="", response_metadata={"finish_reason": "content_filter"})

        with pytest.raises(ModelError) as exc_info:
            parse_structured_response(reply, prompt_schema)
        assert exc_info.value.kind is ModelErrorKind.REFUSED


class TestClassifyException:
    """Backend exception -> error kind."""

    def test_timeout(self):
        assert classify_exception(TimeoutError()) is ModelErrorKind.TIMEOUT

    def test_rate_limit_by_name(self):
        assert classify_exception(RateLimitError("slow down")) is ModelErrorKind.RATE_LIMITED

    def test_rate_limit_by_status(self):
        error = Exception("too many requests")
        error.status_code = 429
        assert classify_exception(error) is ModelErrorKind.RATE_LIMITED

    def test_refusal_message(self):
        error = ValueError("The response was filtered due to the content management policy")
        assert classify_exception(error) is ModelErrorKind.REFUSED

    def test_anything_else_is_unavailable(self):
        assert classify_exception(ServiceUnavailableError("503")) is ModelErrorKind.UNAVAILABLE


class TestChatModelInvoker:
    """Retry policy and timeouts."""

    def test_satisfies_protocol(self):
        assert isinstance(_invoker(Mock()), ModelInvoker)

    def test_fake_chat_model(self, prompt_schema):
        model = FakeListChatModel(responses=['```json\n{"prompt": "What is a book that influenced you?"}\n```'])
        invoker = ChatModelInvoker(model, timeout_seconds=5, retry_backoff_seconds=0)

        assert invoker.invoke("ask", prompt_schema) == {"prompt": "What is a book that influenced you?"}

    def test_rate_limited_then_success(self, prompt_schema):
        model = Mock()
        model.invoke.side_effect = [
            RateLimitError("429 Too Many Requests"),
            AIMessage(content='{"prompt": "Explain a topic you know well."}'),
        ]

        result = _invoker(model).invoke("ask", prompt_schema)

        assert result == {"prompt": "Explain a topic you know well."}
        assert model.invoke.call_count == 2

    def test_timeout_twice_surfaces_timeout(self, prompt_schema):
        model = Mock()
        model.invoke.side_effect = TimeoutError("read timed out")

        with pytest.raises(ModelError) as exc_info:
            _invoker(model).invoke("ask", prompt_schema)

        assert exc_info.value.kind is ModelErrorKind.TIMEOUT
        assert model.invoke.call_count == 2

    def test_backend_exception_is_chained(self, prompt_schema):
        model = Mock()
        model.invoke.side_effect = ServiceUnavailableError("503 Service Unavailable")

        with pytest.raises(ModelError) as exc_info:
            _invoker(model).invoke("ask", prompt_schema)

        assert exc_info.value.kind is ModelErrorKind.UNAVAILABLE
        assert isinstance(exc_info.value.__cause__, ServiceUnavailableError)

    def test_refusal_is_not_retried(self, prompt_schema):
        model = Mock()
        model.invoke.return_value = AIMessage(content="", additional_kwargs={"refusal": "No."})

        with pytest.raises(ModelError) as exc_info:
            _invoker(model).invoke("ask", prompt_schema)

        assert exc_info.value.kind is ModelErrorKind.REFUSED
        assert model.invoke.call_count == 1

    def test_malformed_output_is_not_retried(self, prompt_schema):
        model = Mock()
        model.invoke.return_value = AIMessage(content="no json here")

        with pytest.raises(ModelError) as exc_info:
            _invoker(model).invoke("ask", prompt_schema)

        assert exc_info.value.kind is ModelErrorKind.MALFORMED_OUTPUT
        assert model.invoke.call_count == 1

    def test_slow_model_times_out(self, prompt_schema):
        model = Mock()
        model.invoke.side_effect = lambda messages: time.sleep(0.5)

        started = time.perf_counter()
        with pytest.raises(ModelError) as exc_info:
            _invoker(model, timeout_seconds=0.05).invoke("ask", prompt_schema)

        assert exc_info.value.kind is ModelErrorKind.TIMEOUT
        assert model.invoke.call_count == 2
        assert time.perf_counter() - started < 0.5

    def test_backoff_between_attempts(self, prompt_schema):
        model = Mock()
        model.invoke.side_effect = [
            RateLimitError("slow down"),
            AIMessage(content='{"prompt": "Why this job?"}'),
        ]

        with patch("core.invoker.time.sleep") as mock_sleep:
            _invoker(model, retry_backoff_seconds=1.5).invoke("ask", prompt_schema)

        mock_sleep.assert_called_once_with(1.5)

    def test_no_retries_when_disabled(self, prompt_schema):
        model = Mock()
        model.invoke.side_effect = RateLimitError("slow down")

        with pytest.raises(ModelError):
            _invoker(model, max_retries=0).invoke("ask", prompt_schema)
        assert model.invoke.call_count == 1

    def test_rate_limited_twice_surfaces_rate_limited(self, prompt_schema):
        model = Mock()
        model.invoke.side_effect = [
            RateLimitError("429 Too Many Requests"),
            RateLimitError("429 Too Many Requests"),
            AIMessage(content='{"prompt": "Never reached"}'),
        ]

        with pytest.raises(ModelError) as exc_info:
            _invoker(model).invoke("ask", prompt_schema)

        assert exc_info.value.kind is ModelErrorKind.RATE_LIMITED
        assert model.invoke.call_count == 2


async def _slow_reply(messages):
    await asyncio.sleep(0.05)
    return AIMessage(content='{"prompt": "Walk me through your last project."}')


class TestChatModelInvokerAsync:
    """ainvoke(): same policy on the event loop."""

    def test_rate_limited_then_success(self, prompt_schema):
        model = Mock()
        model.ainvoke = AsyncMock(side_effect=[
            RateLimitError("slow down"),
            AIMessage(content='{"prompt": "Why this job?"}'),
        ])

        result = asyncio.run(_invoker(model).ainvoke("ask", prompt_schema))

        assert result == {"prompt": "Why this job?"}
        assert model.ainvoke.await_count == 2

    def test_rate_limited_twice_surfaces_rate_limited(self, prompt_schema):
        model = Mock()
        model.ainvoke = AsyncMock(side_effect=RateLimitError("slow down"))

        with pytest.raises(ModelError) as exc_info:
            asyncio.run(_invoker(model).ainvoke("ask", prompt_schema))

        assert exc_info.value.kind is ModelErrorKind.RATE_LIMITED
        assert model.ainvoke.await_count == 2

    def test_slow_model_times_out(self, prompt_schema):
        model = Mock()
        model.ainvoke = AsyncMock(side_effect=_slow_reply)

        with pytest.raises(ModelError) as exc_info:
            asyncio.run(_invoker(model, timeout_seconds=0.01).ainvoke("ask", prompt_schema))

        assert exc_info.value.kind is ModelErrorKind.TIMEOUT
        assert model.ainvoke.await_count == 2

    def test_refusal_is_not_retried(self, prompt_schema):
        model = Mock()
        model.ainvoke = AsyncMock(return_value=AIMessage(content="", additional_kwargs={"refusal": "No."}))

        with pytest.raises(ModelError) as exc_info:
            asyncio.run(_invoker(model).ainvoke("ask", prompt_schema))

        assert exc_info.value.kind is ModelErrorKind.REFUSED
        assert model.ainvoke.await_count == 1

    def test_cancelling_one_call_leaves_others_running(self, prompt_schema):
        model = Mock()
        model.ainvoke = AsyncMock(side_effect=_slow_reply)
        invoker = _invoker(model, timeout_seconds=5)

        async def two_callers():
            first = asyncio.ensure_future(invoker.ainvoke("first", prompt_schema))
            second = asyncio.ensure_future(invoker.ainvoke("second", prompt_schema))
            await asyncio.sleep(0.01)
            first.cancel()
            result = await second
            with pytest.raises(asyncio.CancelledError):
                await first
            return result

        assert asyncio.run(two_callers()) == {"prompt": "Walk me through your last project."}
        assert model.ainvoke.await_count == 2
