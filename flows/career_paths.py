"""
Career Path flow - suggests roles and simulates career paths
"""
from dataclasses import dataclass
from typing import List, Union

from core.executor import FlowExecutor
from .base_flow import BaseFlow
from .profile import split_skills


@dataclass(frozen=True)
class CareerPathSimulation:
    suggested_roles: List[str]
    career_path_simulations: List[str]


class CareerPathFlowImpl(BaseFlow):
    def __init__(self):
        super().__init__("simulateCareerPaths")

    def __call__(self, executor: FlowExecutor, user_skills: List[str], career_goals: str) -> CareerPathSimulation:
        result = self.run(executor, userSkills=list(user_skills), careerGoals=career_goals)
        return CareerPathSimulation(
            suggested_roles=result["suggestedRoles"],
            career_path_simulations=result["careerPathSimulations"],
        )


# Create singleton instance
_career_path_instance = CareerPathFlowImpl()


def simulate_career_paths(
    executor: FlowExecutor,
    user_skills: Union[str, List[str]],
    career_goals: str,
) -> CareerPathSimulation:
    """Career Path entry point; a comma-separated skills string is split first"""
    if isinstance(user_skills, str):
        user_skills = split_skills(user_skills)
    return _career_path_instance(executor, user_skills, career_goals)
