"""
Error taxonomy for flow execution
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class FieldIssue:
    """A single validation problem located at a field path (e.g. "userSkills[2]")"""
    path: str
    reason: str

    def __str__(self):
        return f"{self.path or '<root>'}: {self.reason}"

    def to_dict(self) -> dict:
        return {"field": self.path, "reason": self.reason}


def _format_issues(issues: Sequence[FieldIssue]) -> str:
    return "; ".join(str(issue) for issue in issues)


class SchemaValidationError(ValueError):
    """Raised by Schema.validate with every issue found"""

    def __init__(self, issues: Sequence[FieldIssue]):
        self.issues: List[FieldIssue] = list(issues)
        super().__init__(_format_issues(self.issues))


class FlowError(Exception):
    """Base class for everything a flow invocation can fail with"""


class DuplicateFlowName(FlowError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Flow '{name}' is already registered")


class FlowNotFound(FlowError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Flow '{name}' is not registered")


class InputInvalid(FlowError):
    """Caller supplied input that does not match the flow's input schema"""

    def __init__(self, flow: str, issues: Sequence[FieldIssue]):
        self.flow = flow
        self.issues: List[FieldIssue] = list(issues)
        super().__init__(f"Invalid input for '{flow}': {_format_issues(self.issues)}")


class OutputInvalid(FlowError):
    """Model result did not match the flow's output schema"""

    def __init__(self, flow: str, issues: Sequence[FieldIssue]):
        self.flow = flow
        self.issues: List[FieldIssue] = list(issues)
        super().__init__(f"Invalid output from '{flow}': {_format_issues(self.issues)}")


class ModelErrorKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    REFUSED = "refused"
    MALFORMED_OUTPUT = "malformed_output"
    UNAVAILABLE = "unavailable"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE


_RETRYABLE = frozenset({ModelErrorKind.TIMEOUT, ModelErrorKind.RATE_LIMITED, ModelErrorKind.UNAVAILABLE})


class ModelError(FlowError):
    """Language-model backend failure"""

    def __init__(self, kind: ModelErrorKind, detail: str = "",
                 issues: Optional[Sequence[FieldIssue]] = None):
        self.kind = ModelErrorKind(kind)
        self.detail = detail
        self.issues: List[FieldIssue] = list(issues or [])
        message = f"Model error ({self.kind.value})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
