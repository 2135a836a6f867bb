"""
Flow Catalog - loads flow declarations (schemas + prompt templates) from YAML
"""
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.config import DEFAULT_CATALOG_PATH
from core.registry import FlowDefinition, FlowRegistry
from core.schema import Schema


class FlowCatalog:
    """Read-only set of flow definitions declared in a YAML file

    Each top-level key (except `memo`) is a flow name mapping to
    `description`, `input_schema`, `output_schema` and `template`.
    Definitions are built once at load time and never mutated afterwards.
    """

    def __init__(self, config_path: str = str(DEFAULT_CATALOG_PATH)):
        self.config_path = Path(config_path)
        declarations = self._load_declarations()
        self.memo = declarations.pop('memo', '')
        self._definitions = tuple(
            self._build_definition(name, declaration)
            for name, declaration in declarations.items()
        )

    def _load_declarations(self) -> Dict[str, Any]:
        """Load flow declarations from YAML file"""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Flow catalog not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Flow catalog must be a mapping: {self.config_path}")
        return data

    @staticmethod
    def _build_definition(name: str, declaration: Any) -> FlowDefinition:
        if not isinstance(declaration, dict):
            raise ValueError(f"Flow '{name}' must be a mapping")
        if 'template' not in declaration:
            raise ValueError(f"Flow '{name}' has no template")
        return FlowDefinition(
            name=name,
            input_schema=Schema.from_mapping(declaration.get('input_schema')),
            output_schema=Schema.from_mapping(declaration.get('output_schema')),
            template=declaration['template'],
            description=str(declaration.get('description', '')).strip(),
        )

    @property
    def definitions(self) -> tuple:
        return self._definitions

    def list_flows(self) -> List[str]:
        """List all declared flow names"""
        return [definition.name for definition in self._definitions]

    def get(self, name: str) -> Optional[FlowDefinition]:
        for definition in self._definitions:
            if definition.name == name:
                return definition
        return None

    def build_registry(self) -> FlowRegistry:
        """Register every declared flow into a fresh registry"""
        return FlowRegistry(list(self._definitions))

    def get_flow_info(self, name: str) -> Dict[str, Any]:
        """Get flow metadata: description, fields and template variables"""
        definition = self.get(name)
        if definition is None:
            return {}
        return {
            'name': definition.name,
            'description': definition.description,
            'required_inputs': definition.input_schema.required_fields(),
            'optional_inputs': [
                field for field, spec in definition.input_schema.fields.items() if spec.optional
            ],
            'outputs': list(definition.output_schema.fields),
            'variables': sorted(definition.compiled.variables),
        }

    def validate_flow(self, name: str) -> Dict[str, Any]:
        """Validate a flow declaration

        Returns:
            Validation results with issues (undeclared template variables)
            and warnings (inputs the template never uses, empty output schema)
        """
        definition = self.get(name)
        if definition is None:
            return {'flow': name, 'is_valid': False, 'issues': [f"Unknown flow '{name}'"], 'warnings': []}

        issues = []
        warnings = []

        undeclared = definition.undeclared_variables()
        if undeclared:
            issues.append(f"Template uses undeclared variables: {', '.join(undeclared)}")

        used_roots = {path.split('.')[0] for path in definition.compiled.variables}
        unused = [field for field in definition.input_schema if field not in used_roots]
        if unused:
            warnings.append(f"Inputs never used by the template: {', '.join(unused)}")

        if not len(definition.output_schema):
            warnings.append("Output schema declares no fields")

        return {
            'flow': name,
            'is_valid': len(issues) == 0,
            'issues': issues,
            'warnings': warnings,
        }

    def check(self) -> Dict[str, Dict[str, Any]]:
        """Validate every flow; only flows with issues or warnings are returned"""
        results = {}
        for flow_name in self.list_flows():
            result = self.validate_flow(flow_name)
            if result['issues'] or result['warnings']:
                results[flow_name] = result
        return results

