"""
Flow definitions and the registry that holds them
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .errors import DuplicateFlowName, FlowNotFound
from .schema import Schema
from .template import Template


@dataclass(frozen=True)
class FlowDefinition:
    """A named flow: input schema, output schema and prompt template

    The template is parsed once here, so syntax errors surface at registration
    time and every invocation reuses the same parsed tree.
    """
    name: str
    input_schema: Schema
    output_schema: Schema
    template: str
    description: str = ""
    compiled: Template = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Flow name must not be empty")
        object.__setattr__(self, "compiled", Template(self.template))

    def render(self, context: Mapping[str, Any]) -> str:
        return self.compiled.render(context)

    def undeclared_variables(self) -> List[str]:
        """Template variables whose first path segment is not an input field"""
        return sorted(
            path for path in self.compiled.variables
            if path.split(".")[0] not in self.input_schema
        )


class FlowRegistry:
    """Name -> FlowDefinition. Definitions are immutable once registered."""

    def __init__(self, definitions: Optional[List[FlowDefinition]] = None):
        self._flows: Dict[str, FlowDefinition] = {}
        for definition in definitions or []:
            self.register(definition)

    def register(self, definition: FlowDefinition) -> FlowDefinition:
        if definition.name in self._flows:
            raise DuplicateFlowName(definition.name)
        self._flows[definition.name] = definition
        return definition

    def get(self, name: str) -> FlowDefinition:
        try:
            return self._flows[name]
        except KeyError:
            raise FlowNotFound(name) from None

    def names(self) -> List[str]:
        return list(self._flows)

    def __contains__(self, name: str) -> bool:
        return name in self._flows

    def __iter__(self) -> Iterator[FlowDefinition]:
        return iter(list(self._flows.values()))

    def __len__(self) -> int:
        return len(self._flows)
