"""
Oral Fluency flow - short open-ended question for speaking practice
"""
from core.executor import FlowExecutor
from .base_flow import BaseFlow


class OralFluencyFlowImpl(BaseFlow):
    def __init__(self):
        super().__init__("getOralFluencyPrompt")

    def __call__(self, executor: FlowExecutor) -> str:
        return self.run(executor)["prompt"]


# Create singleton instance
_oral_fluency_instance = OralFluencyFlowImpl()


def get_oral_fluency_prompt(executor: FlowExecutor) -> str:
    """Oral Fluency entry point"""
    return _oral_fluency_instance(executor)
