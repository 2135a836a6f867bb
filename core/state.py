"""
State definition for the career plan graph
"""
from typing import Optional, TypedDict


class CareerPlanState(TypedDict, total=False):
    """State shared across the nodes of the career plan workflow"""

    # Inputs
    profile: dict
    target_role: str
    user_preferences: Optional[str]

    # Flow outputs
    digital_twin: str
    skill_gaps: str
    gap_recommendations: str
    learning_recommendations: list[str]

    # Which flows ran, in order
    completed_steps: list[str]
