"""
Typed entry points for the career coaching flows
"""
from .profile import UserProfile, split_skills
from .digital_twin import generate_digital_twin, generate_digital_twin_for_profile
from .skill_gaps import SkillGapAnalysis, analyze_skill_gaps
from .learning_recommendations import get_personalized_learning_recommendations
from .career_paths import CareerPathSimulation, simulate_career_paths
from .guidance import get_ai_guidance
from .oral_fluency import get_oral_fluency_prompt
from .interview import (
    QuestionRequest, EvaluationRequest, InterviewEvaluation,
    ask_question, evaluate_answer, simulate_interview
)

__all__ = [
    'UserProfile',
    'split_skills',
    'generate_digital_twin',
    'generate_digital_twin_for_profile',
    'SkillGapAnalysis',
    'analyze_skill_gaps',
    'get_personalized_learning_recommendations',
    'CareerPathSimulation',
    'simulate_career_paths',
    'get_ai_guidance',
    'get_oral_fluency_prompt',
    'QuestionRequest',
    'EvaluationRequest',
    'InterviewEvaluation',
    'ask_question',
    'evaluate_answer',
    'simulate_interview'
]
