"""
Learning Recommendations flow - turns skill gaps into a learning plan
"""
from typing import List, Optional

from core.executor import FlowExecutor
from .base_flow import BaseFlow


class LearningRecommendationsFlowImpl(BaseFlow):
    def __init__(self):
        super().__init__("getPersonalizedLearningRecommendations")

    def __call__(
        self,
        executor: FlowExecutor,
        skill_gaps: str,
        career_path_simulations: str,
        user_preferences: Optional[str] = None,
    ) -> List[str]:
        result = self.run(
            executor,
            skillGaps=skill_gaps,
            careerPathSimulations=career_path_simulations,
            userPreferences=user_preferences,
        )
        return result["recommendations"]


# Create singleton instance
_learning_recommendations_instance = LearningRecommendationsFlowImpl()


def get_personalized_learning_recommendations(
    executor: FlowExecutor,
    skill_gaps: str,
    career_path_simulations: str,
    user_preferences: Optional[str] = None,
) -> List[str]:
    """Learning Recommendations entry point

    `career_path_simulations` is usually the `recommendations` text of a
    skill gap analysis. Without `user_preferences` the preferences section
    is left out of the prompt entirely.
    """
    return _learning_recommendations_instance(executor, skill_gaps, career_path_simulations, user_preferences)
