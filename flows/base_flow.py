"""
Base flow with common functionality for the typed entry points
"""
from typing import Any, Dict

from core.executor import FlowExecutor


class BaseFlow:
    """Base class for all typed flow entry points

    Subclasses turn Python arguments into the flow input dict and hand it to
    the executor they are given; they hold no model or executor themselves.
    """

    def __init__(self, flow_name: str):
        self.flow_name = flow_name

    @staticmethod
    def _payload(flow_input: Dict[str, Any]) -> Dict[str, Any]:
        # None means "not provided"
        return {key: value for key, value in flow_input.items() if value is not None}

    def run(self, executor: FlowExecutor, **flow_input: Any) -> Dict[str, Any]:
        return executor.run(self.flow_name, self._payload(flow_input))

    async def arun(self, executor: FlowExecutor, **flow_input: Any) -> Dict[str, Any]:
        return await executor.arun(self.flow_name, self._payload(flow_input))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.flow_name!r})"
