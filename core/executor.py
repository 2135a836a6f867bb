"""
Flow executor - runs a registered flow end to end

    lookup -> validate input -> render prompt -> invoke model -> validate output

Invalid input short-circuits before the model is called. Every failure is
raised as a FlowError subclass; nothing is swallowed and no partial output is
ever returned.
"""
import logging
import time
from typing import Any, Dict, Mapping, Optional

from coach_logging.session_logger import get_logger
from .errors import FlowError, InputInvalid, OutputInvalid, SchemaValidationError
from .invoker import ModelInvoker
from .registry import FlowDefinition, FlowRegistry

logger = logging.getLogger(__name__)


class FlowExecutor:
    def __init__(self, registry: FlowRegistry, invoker: ModelInvoker):
        if not isinstance(invoker, ModelInvoker):
            raise TypeError(f"{type(invoker).__name__} does not provide invoke() and ainvoke()")
        self.registry = registry
        self.invoker = invoker

    @property
    def session_logger(self):
        """Get logger dynamically to handle late initialization"""
        return get_logger()

    def prepare(self, name: str, flow_input: Optional[Mapping[str, Any]] = None):
        """Look up the flow, validate the input and render the prompt

        Returns (definition, rendered_prompt). Used by run()/arun() and handy
        for inspecting exactly what would be sent to the model.
        """
        definition = self.registry.get(name)
        try:
            typed_input = definition.input_schema.validate({} if flow_input is None else flow_input)
        except SchemaValidationError as exc:
            raise InputInvalid(name, exc.issues) from exc
        return definition, definition.render(typed_input)

    def run(self, name: str, flow_input: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        started = time.perf_counter()
        self._log_start(name, flow_input)
        try:
            definition, prompt = self.prepare(name, flow_input)
            raw = self.invoker.invoke(prompt, definition.output_schema)
            output = self._validate_output(definition, raw)
        except FlowError as error:
            self._log_failure(name, error, started)
            raise
        self._log_end(name, output, started)
        return output

    async def arun(self, name: str, flow_input: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Async twin of run()"""
        started = time.perf_counter()
        self._log_start(name, flow_input)
        try:
            definition, prompt = self.prepare(name, flow_input)
            raw = await self.invoker.ainvoke(prompt, definition.output_schema)
            output = self._validate_output(definition, raw)
        except FlowError as error:
            self._log_failure(name, error, started)
            raise
        self._log_end(name, output, started)
        return output

    @staticmethod
    def _validate_output(definition: FlowDefinition, raw: Any) -> Dict[str, Any]:
        try:
            return definition.output_schema.validate(raw)
        except SchemaValidationError as exc:
            raise OutputInvalid(definition.name, exc.issues) from exc

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def _log_start(self, name: str, flow_input: Optional[Mapping[str, Any]]):
        fields = list(flow_input) if isinstance(flow_input, Mapping) else []
        logger.debug("Running flow %s with fields %s", name, fields)
        if self.session_logger:
            self.session_logger.log_flow_start(name, fields)

    def _log_end(self, name: str, output: Dict[str, Any], started: float):
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info("Flow %s completed in %.0fms", name, duration_ms)
        if self.session_logger:
            self.session_logger.log_flow_end(name, duration_ms, list(output))

    def _log_failure(self, name: str, error: FlowError, started: float):
        duration_ms = (time.perf_counter() - started) * 1000
        logger.warning("Flow %s failed: %s", name, error)
        if self.session_logger:
            self.session_logger.log_flow_failure(name, error, duration_ms)
