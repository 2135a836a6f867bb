"""
AI Guidance flow - answers free-form career questions
"""
from typing import Optional

from core.executor import FlowExecutor
from .base_flow import BaseFlow


class GuidanceFlowImpl(BaseFlow):
    def __init__(self):
        super().__init__("getAIGuidance")

    def __call__(self, executor: FlowExecutor, query: str, digital_twin: Optional[str] = None) -> str:
        result = self.run(executor, query=query, digitalTwin=digital_twin)
        return result["response"]


# Create singleton instance
_guidance_instance = GuidanceFlowImpl()


def get_ai_guidance(executor: FlowExecutor, query: str, digital_twin: Optional[str] = None) -> str:
    """AI Guidance entry point; personalised only when a digital twin is given"""
    return _guidance_instance(executor, query, digital_twin)
