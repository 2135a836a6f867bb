"""
Model invoker - sends a rendered prompt to a chat model and returns structured output

The invoker asks the model for a JSON object matching the flow's output schema,
then validates what comes back. A reply that cannot be parsed or does not match
the schema is reported as MALFORMED_OUTPUT; it is never patched up.
"""
import asyncio
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_core.utils.json import parse_json_markdown

from coach_logging.session_logger import get_logger
from .errors import ModelError, ModelErrorKind, SchemaValidationError
from .schema import Schema

logger = logging.getLogger(__name__)

SYSTEM_ROLE = (
    "You are the structured-output engine of a career coaching assistant. "
    "Follow the instructions in the user message exactly."
)

_REFUSAL_FINISH_REASONS = {"content_filter", "safety", "prohibited_content", "blocklist", "spii", "recitation"}
_REFUSAL_MARKERS = ("content_filter", "content management policy", "safety", "refus", "blocked")


@runtime_checkable
class ModelInvoker(Protocol):
    """Anything that turns (prompt, output schema) into a dict matching that schema"""

    def invoke(self, prompt: str, output_schema: Schema) -> Dict[str, Any]:
        ...

    async def ainvoke(self, prompt: str, output_schema: Schema) -> Dict[str, Any]:
        ...


def classify_exception(exc: BaseException) -> ModelErrorKind:
    """Map a backend exception onto the model error taxonomy"""
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return ModelErrorKind.TIMEOUT

    name = type(exc).__name__.lower()
    message = str(exc).lower()
    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)

    if "timeout" in name or "deadlineexceeded" in name or "timed out" in message:
        return ModelErrorKind.TIMEOUT
    if (
        status == 429
        or "ratelimit" in name
        or "resourceexhausted" in name
        or "429" in message
        or "rate limit" in message
        or "resource_exhausted" in message
    ):
        return ModelErrorKind.RATE_LIMITED
    if any(marker in message for marker in _REFUSAL_MARKERS):
        return ModelErrorKind.REFUSED
    return ModelErrorKind.UNAVAILABLE


def build_messages(prompt: str, output_schema: Schema) -> List[BaseMessage]:
    """System message carries the response format, human message the rendered prompt"""
    schema_json = json.dumps(output_schema.to_json_schema(), indent=2, ensure_ascii=False)
    system_sections = [
        f"# YOUR ROLE\n{SYSTEM_ROLE}\n",
        "# RESPONSE FORMAT\n"
        "Respond with a single JSON object that conforms to this JSON Schema:\n"
        f"```json\n{schema_json}\n```\n"
        "Omit optional properties you have no value for. Do not write anything outside the JSON object.",
    ]
    return [SystemMessage(content="\n".join(system_sections)), HumanMessage(content=prompt)]


def _content_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)


def _refusal_reason(response: Any) -> Optional[str]:
    extra = getattr(response, "additional_kwargs", None) or {}
    if extra.get("refusal"):
        return str(extra["refusal"])
    metadata = getattr(response, "response_metadata", None) or {}
    finish_reason = str(metadata.get("finish_reason") or "").lower()
    if finish_reason in _REFUSAL_FINISH_REASONS:
        return f"generation stopped ({finish_reason})"
    return None


def _token_count(response: Any, text: str) -> int:
    usage = getattr(response, "usage_metadata", None) or {}
    tokens = usage.get("total_tokens", 0) if isinstance(usage, dict) else 0
    if not tokens:
        # Fallback: estimate from content
        tokens = len(text) // 4
    return tokens


def parse_structured_response(response: Any, output_schema: Schema) -> Dict[str, Any]:
    """Extract and validate the JSON object in a chat model reply"""
    refusal = _refusal_reason(response)
    if refusal:
        raise ModelError(ModelErrorKind.REFUSED, refusal)

    text = _content_text(response)
    if not text.strip():
        raise ModelError(ModelErrorKind.MALFORMED_OUTPUT, "empty response")

    try:
        payload = parse_json_markdown(text, parser=json.loads)
    except ValueError as exc:
        raise ModelError(ModelErrorKind.MALFORMED_OUTPUT, f"response is not valid JSON ({exc})") from exc

    if not isinstance(payload, dict):
        raise ModelError(ModelErrorKind.MALFORMED_OUTPUT,
                         f"expected a JSON object, got {type(payload).__name__}")

    try:
        return output_schema.validate(payload)
    except SchemaValidationError as exc:
        raise ModelError(ModelErrorKind.MALFORMED_OUTPUT,
                         "response does not match the output schema", exc.issues) from exc


class ChatModelInvoker:
    """ModelInvoker backed by a langchain chat model

    Each attempt is bounded by `timeout_seconds`. TIMEOUT, RATE_LIMITED and
    UNAVAILABLE get `max_retries` further attempts after a fixed
    `retry_backoff_seconds` pause; REFUSED and MALFORMED_OUTPUT fail at once.
    """

    def __init__(
        self,
        model: BaseChatModel,
        timeout_seconds: Optional[float] = 30.0,
        retry_backoff_seconds: float = 1.0,
        max_retries: int = 1,
    ):
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.retry_backoff_seconds = retry_backoff_seconds
        self.max_retries = max_retries

    @property
    def session_logger(self):
        """Get logger dynamically to handle late initialization"""
        return get_logger()

    @property
    def model_name(self) -> str:
        for attr in ("model_name", "model", "deployment_name"):
            value = getattr(self.model, attr, None)
            if isinstance(value, str) and value:
                return value
        return type(self.model).__name__

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def invoke(self, prompt: str, output_schema: Schema) -> Dict[str, Any]:
        messages = build_messages(prompt, output_schema)
        attempt = 1
        while True:
            self._log_request(prompt, attempt)
            try:
                response = self._call_model(messages)
            except ModelError as error:
                delay = self._retry_delay(error, attempt)
                if delay is None:
                    raise
                time.sleep(delay)
                attempt += 1
                continue
            return self._handle_response(response, output_schema)

    def _call_model(self, messages: List[BaseMessage]) -> Any:
        if not self.timeout_seconds:
            return self._guarded(self.model.invoke, messages)

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="flow-invoke")
        try:
            future = pool.submit(self._guarded, self.model.invoke, messages)
            try:
                return future.result(timeout=self.timeout_seconds)
            except FutureTimeout as exc:
                future.cancel()
                raise ModelError(ModelErrorKind.TIMEOUT,
                                 f"no response within {self.timeout_seconds:g}s") from exc
        finally:
            pool.shutdown(wait=False)

    @staticmethod
    def _guarded(call, messages):
        try:
            return call(messages)
        except ModelError:
            raise
        except Exception as exc:
            raise ModelError(classify_exception(exc), str(exc) or type(exc).__name__) from exc

    # ------------------------------------------------------------------
    # Async
    # ------------------------------------------------------------------

    async def ainvoke(self, prompt: str, output_schema: Schema) -> Dict[str, Any]:
        messages = build_messages(prompt, output_schema)
        attempt = 1
        while True:
            self._log_request(prompt, attempt)
            try:
                response = await self._acall_model(messages)
            except ModelError as error:
                delay = self._retry_delay(error, attempt)
                if delay is None:
                    raise
                await asyncio.sleep(delay)
                attempt += 1
                continue
            return self._handle_response(response, output_schema)

    async def _acall_model(self, messages: List[BaseMessage]) -> Any:
        try:
            if self.timeout_seconds:
                return await asyncio.wait_for(self.model.ainvoke(messages), self.timeout_seconds)
            return await self.model.ainvoke(messages)
        except asyncio.TimeoutError as exc:
            raise ModelError(ModelErrorKind.TIMEOUT,
                             f"no response within {self.timeout_seconds:g}s") from exc
        except Exception as exc:
            raise ModelError(classify_exception(exc), str(exc) or type(exc).__name__) from exc

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def _retry_delay(self, error: ModelError, attempt: int) -> Optional[float]:
        if not error.kind.retryable or attempt > self.max_retries:
            logger.warning("Model call failed (%s) on attempt %d, giving up", error.kind.value, attempt)
            return None
        logger.info("Model call failed (%s) on attempt %d, retrying in %.1fs",
                    error.kind.value, attempt, self.retry_backoff_seconds)
        if self.session_logger:
            self.session_logger.log_retry(error.kind.value, attempt, self.retry_backoff_seconds)
        return self.retry_backoff_seconds

    def _log_request(self, prompt: str, attempt: int):
        if self.session_logger:
            self.session_logger.log_llm_request(prompt, self.model_name, attempt)

    def _handle_response(self, response: Any, output_schema: Schema) -> Dict[str, Any]:
        if self.session_logger:
            text = _content_text(response)
            self.session_logger.log_llm_response(
                text.strip(),
                _token_count(response, text),
                getattr(response, "response_metadata", None)
            )
        return parse_structured_response(response, output_schema)
