"""
Digital Twin flow - structured summary of a user's professional profile
"""
from typing import Union

from core.executor import FlowExecutor
from .base_flow import BaseFlow
from .profile import UserProfile


class DigitalTwinFlowImpl(BaseFlow):
    def __init__(self):
        super().__init__("generateDigitalTwin")

    def __call__(self, executor: FlowExecutor, skills: str, career_status: str, user_id: str) -> str:
        result = self.run(executor, skills=skills, careerStatus=career_status, userId=user_id)
        return result["digitalTwinDescription"]

    def for_profile(self, executor: FlowExecutor, profile: UserProfile) -> str:
        return self(executor, profile.skills_text(), profile.career_status(), profile.user_id)


# Create singleton instance
_digital_twin_instance = DigitalTwinFlowImpl()


def generate_digital_twin(
    executor: FlowExecutor,
    skills: Union[str, list],
    career_status: str,
    user_id: str,
) -> str:
    """Digital Twin entry point

    Args:
        skills: Comma-separated skills (a list is joined with ", ")
        career_status: "Education: ... . Job Preferences: ... ."

    Returns:
        The digital twin description (markdown)
    """
    if isinstance(skills, (list, tuple)):
        skills = ", ".join(skills)
    return _digital_twin_instance(executor, skills, career_status, user_id)


def generate_digital_twin_for_profile(executor: FlowExecutor, profile: UserProfile) -> str:
    return _digital_twin_instance.for_profile(executor, profile)
