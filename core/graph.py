"""
Graph construction and routing logic for the career plan
"""
from typing import Any, Dict, Literal, Mapping, Optional, Union

from langgraph.graph import StateGraph, END, START

from coach_logging.session_logger import get_logger
from flows.digital_twin import generate_digital_twin_for_profile
from flows.learning_recommendations import get_personalized_learning_recommendations
from flows.profile import UserProfile
from flows.skill_gaps import analyze_skill_gaps
from .executor import FlowExecutor
from .state import CareerPlanState


# ============================================================================
# ROUTING FUNCTIONS
# ============================================================================

def route_after_profile(state: CareerPlanState) -> Literal["generate_twin", "analyze_gaps"]:
    """Generate a digital twin only when the profile does not carry one"""
    result = "analyze_gaps" if state.get("digital_twin") else "generate_twin"

    logger = get_logger()
    if logger:
        logger.log_event("routing_decision", {
            "from": "load_profile",
            "to": result,
            "reason": "Profile has a digital twin" if result == "analyze_gaps" else "No digital twin yet",
        })

    return result


# ============================================================================
# GRAPH CONSTRUCTION
# ============================================================================

def create_career_plan_graph(executor: FlowExecutor):
    """Construct the career plan workflow graph

    Graph Flow:
    START
      └→ load_profile
           ├─ No twin  → generate_twin → analyze_gaps
           └─ Has twin → analyze_gaps
                           └→ recommend_learning → END

    Flow errors raised inside a node propagate out of invoke() unchanged.
    """

    def load_profile(state: CareerPlanState) -> Dict[str, Any]:
        profile = UserProfile.from_dict(state["profile"])
        update: Dict[str, Any] = {"completed_steps": []}
        if profile.has_digital_twin:
            update["digital_twin"] = profile.digital_twin_description
        return update

    def generate_twin(state: CareerPlanState) -> Dict[str, Any]:
        profile = UserProfile.from_dict(state["profile"])
        description = generate_digital_twin_for_profile(executor, profile)
        return {
            "digital_twin": description,
            "completed_steps": state["completed_steps"] + ["generateDigitalTwin"],
        }

    def analyze_gaps(state: CareerPlanState) -> Dict[str, Any]:
        analysis = analyze_skill_gaps(executor, state["digital_twin"], state["target_role"])
        return {
            "skill_gaps": analysis.skill_gaps,
            "gap_recommendations": analysis.recommendations,
            "completed_steps": state["completed_steps"] + ["analyzeSkillGaps"],
        }

    def recommend_learning(state: CareerPlanState) -> Dict[str, Any]:
        recommendations = get_personalized_learning_recommendations(
            executor,
            state["skill_gaps"],
            state["gap_recommendations"],
            state.get("user_preferences"),
        )
        return {
            "learning_recommendations": recommendations,
            "completed_steps": state["completed_steps"] + ["getPersonalizedLearningRecommendations"],
        }

    workflow = StateGraph(CareerPlanState)

    workflow.add_node("load_profile", load_profile)
    workflow.add_node("generate_twin", generate_twin)
    workflow.add_node("analyze_gaps", analyze_gaps)
    workflow.add_node("recommend_learning", recommend_learning)

    workflow.add_edge(START, "load_profile")

    workflow.add_conditional_edges(
        "load_profile",
        route_after_profile,
        {
            "generate_twin": "generate_twin",
            "analyze_gaps": "analyze_gaps"
        }
    )

    workflow.add_edge("generate_twin", "analyze_gaps")
    workflow.add_edge("analyze_gaps", "recommend_learning")
    workflow.add_edge("recommend_learning", END)

    return workflow.compile()


def run_career_plan(
    executor: FlowExecutor,
    profile: Union[UserProfile, Mapping[str, Any]],
    target_role: str,
    user_preferences: Optional[str] = None,
) -> CareerPlanState:
    """Run the whole career plan for one profile and return the final state"""
    if isinstance(profile, UserProfile):
        profile = profile.to_dict()
    graph = create_career_plan_graph(executor)
    initial_state: CareerPlanState = {
        "profile": dict(profile),
        "target_role": target_role,
        "user_preferences": user_preferences,
    }
    return graph.invoke(initial_state)
