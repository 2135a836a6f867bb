"""
Shared fixtures: a scripted model invoker and executors over the real catalog
"""
from typing import Any, Dict, List

import pytest

from coach_logging.session_logger import clear_logger
from core.executor import FlowExecutor
from core.schema import Schema
from management.catalog import FlowCatalog


class StubInvoker:
    """ModelInvoker that replays scripted results and records every prompt

    A scripted item that is an exception instance is raised instead of returned.
    """

    def __init__(self, *responses: Any):
        self.responses: List[Any] = list(responses)
        self.prompts: List[str] = []
        self.schemas: List[Schema] = []

    def queue(self, *responses: Any):
        self.responses.extend(responses)

    def invoke(self, prompt: str, output_schema: Schema) -> Dict[str, Any]:
        self.prompts.append(prompt)
        self.schemas.append(output_schema)
        if not self.responses:
            raise AssertionError("StubInvoker called more often than scripted")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def ainvoke(self, prompt: str, output_schema: Schema) -> Dict[str, Any]:
        return self.invoke(prompt, output_schema)

    @property
    def calls(self) -> int:
        return len(self.prompts)

    @property
    def last_prompt(self) -> str:
        return self.prompts[-1]


@pytest.fixture(autouse=True)
def no_session_logger():
    """Make sure no session logger leaks between tests."""
    clear_logger()
    yield
    clear_logger()


@pytest.fixture(scope="session")
def catalog():
    return FlowCatalog()


@pytest.fixture
def invoker():
    return StubInvoker()


@pytest.fixture
def executor(catalog, invoker):
    return FlowExecutor(catalog.build_registry(), invoker)


@pytest.fixture
def profile_data():
    return {
        "id": "user-42",
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "education": "BSc Mathematics",
        "jobPreferences": "Remote data roles",
        "skills": ["Python", "SQL", "Statistics"],
    }
