"""
Interview flow - oral interview practice

The same flow runs in two modes, chosen by whether an answer is supplied:
QuestionRequest asks for a new question, EvaluationRequest has the model
evaluate the spoken answer to a question asked earlier.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from core.errors import FieldIssue, OutputInvalid
from core.executor import FlowExecutor
from .base_flow import BaseFlow
from .profile import UserProfile


@dataclass(frozen=True)
class QuestionRequest:
    digital_twin: str
    target_job: str
    skill: str

    @classmethod
    def for_profile(cls, profile: UserProfile, target_job: str, skill: str) -> "QuestionRequest":
        return cls(profile.to_digital_twin_json(), target_job, skill)

    def to_input(self) -> Dict[str, Any]:
        return {"digitalTwin": self.digital_twin, "targetJob": self.target_job, "skill": self.skill}


@dataclass(frozen=True)
class EvaluationRequest:
    digital_twin: str
    target_job: str
    skill: str
    question: str
    answer: str

    @classmethod
    def follow_up(cls, request: QuestionRequest, question: str, answer: str) -> "EvaluationRequest":
        """Evaluate `answer` to a question produced for `request`"""
        return cls(request.digital_twin, request.target_job, request.skill, question, answer)

    def to_input(self) -> Dict[str, Any]:
        return {
            "digitalTwin": self.digital_twin,
            "targetJob": self.target_job,
            "skill": self.skill,
            "question": self.question,
            "answer": self.answer,
        }


@dataclass(frozen=True)
class InterviewEvaluation:
    question: str
    evaluation: str


class InterviewFlowImpl(BaseFlow):
    def __init__(self):
        super().__init__("simulateInterview")

    def __call__(self, executor: FlowExecutor, request: Union[QuestionRequest, EvaluationRequest]) -> Dict[str, Any]:
        return self.run(executor, **request.to_input())

    def ask(self, executor: FlowExecutor, request: QuestionRequest) -> str:
        return self(executor, request)["question"]

    def evaluate(self, executor: FlowExecutor, request: EvaluationRequest) -> InterviewEvaluation:
        result = self(executor, request)
        if "evaluation" not in result:
            raise OutputInvalid(self.flow_name, [FieldIssue("evaluation", "missing although an answer was given")])
        return InterviewEvaluation(question=result["question"], evaluation=result["evaluation"])


# Create singleton instance
_interview_instance = InterviewFlowImpl()


def ask_question(executor: FlowExecutor, request: QuestionRequest) -> str:
    """Question mode: returns the generated interview question"""
    return _interview_instance.ask(executor, request)


def evaluate_answer(executor: FlowExecutor, request: EvaluationRequest) -> InterviewEvaluation:
    """Evaluation mode: returns the question together with the feedback"""
    return _interview_instance.evaluate(executor, request)


def simulate_interview(
    executor: FlowExecutor,
    digital_twin: str,
    target_job: str,
    skill: str,
    question: Optional[str] = None,
    answer: Optional[str] = None,
) -> Dict[str, Any]:
    """Untyped entry point mirroring the registered flow

    Returns {"question"} without an answer and {"question", "evaluation"}
    with one. An answer without a question is rejected as InputInvalid.
    """
    return _interview_instance.run(
        executor,
        digitalTwin=digital_twin,
        targetJob=target_job,
        skill=skill,
        question=question,
        answer=answer,
    )
