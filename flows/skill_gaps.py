"""
Skill Gap flow - compares the digital twin with a target role
"""
from dataclasses import dataclass

from core.executor import FlowExecutor
from .base_flow import BaseFlow


@dataclass(frozen=True)
class SkillGapAnalysis:
    skill_gaps: str
    recommendations: str


class SkillGapFlowImpl(BaseFlow):
    def __init__(self):
        super().__init__("analyzeSkillGaps")

    def __call__(self, executor: FlowExecutor, digital_twin: str, target_role: str) -> SkillGapAnalysis:
        result = self.run(executor, digitalTwin=digital_twin, targetRole=target_role)
        return SkillGapAnalysis(
            skill_gaps=result["skillGaps"],
            recommendations=result["recommendations"],
        )


# Create singleton instance
_skill_gap_instance = SkillGapFlowImpl()


def analyze_skill_gaps(executor: FlowExecutor, digital_twin: str, target_role: str) -> SkillGapAnalysis:
    """Skill Gap entry point"""
    return _skill_gap_instance(executor, digital_twin, target_role)
