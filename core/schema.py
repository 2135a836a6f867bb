"""
Schema descriptors and validation for flow inputs and outputs

A Schema is an immutable tree of FieldSpec descriptors built once (usually from
the YAML flow catalog) and shared read-only by every invocation. Validation is
pure: it never mutates the value it is given and always returns a fresh dict.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import FieldIssue, SchemaValidationError

STRING = "string"
STRING_LIST = "string_list"
ENUM = "enum"
OBJECT = "object"

KINDS = (STRING, STRING_LIST, ENUM, OBJECT)


@dataclass(frozen=True)
class FieldSpec:
    """Descriptor for one field. `description` is guidance for the model only."""
    kind: str
    description: str = ""
    optional: bool = False
    choices: Tuple[str, ...] = ()
    schema: Optional["Schema"] = None
    requires: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"Unknown field kind '{self.kind}'. Must be one of: {', '.join(KINDS)}")
        if self.kind == ENUM and not self.choices:
            raise ValueError("Enum fields need at least one choice")
        if self.kind == OBJECT and self.schema is None:
            raise ValueError("Object fields need a nested schema")


class Schema:
    """Ordered, read-only mapping of field name -> FieldSpec"""

    def __init__(self, fields: Optional[Mapping[str, FieldSpec]] = None):
        self._fields = MappingProxyType(dict(fields or {}))
        for name, spec in self._fields.items():
            for other in spec.requires:
                if other not in self._fields:
                    raise ValueError(f"Field '{name}' requires unknown field '{other}'")

    @property
    def fields(self) -> Mapping[str, FieldSpec]:
        return self._fields

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def __iter__(self):
        return iter(self._fields)

    def __len__(self):
        return len(self._fields)

    def __repr__(self):
        return f"Schema({', '.join(self._fields)})"

    def required_fields(self) -> List[str]:
        return [name for name, spec in self._fields.items() if not spec.optional]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, value: Any) -> Dict[str, Any]:
        """Return the typed value or raise SchemaValidationError listing every issue"""
        issues: List[FieldIssue] = []
        result = _validate_object(self, value, "", issues)
        if issues:
            raise SchemaValidationError(issues)
        return result

    def check(self, value: Any) -> List[FieldIssue]:
        """Like validate() but returns the issues instead of raising"""
        issues: List[FieldIssue] = []
        _validate_object(self, value, "", issues)
        return issues

    # ------------------------------------------------------------------
    # Construction / export
    # ------------------------------------------------------------------

    @classmethod
    def from_mapping(cls, declaration: Optional[Mapping[str, Any]]) -> "Schema":
        """Build a schema from a catalog declaration

        Example:
            {"question": {"kind": "string", "optional": True,
                          "description": "..."},
             "mode": {"kind": "enum", "choices": ["a", "b"]}}
        """
        fields = {}
        for name, item in (declaration or {}).items():
            if isinstance(item, str):
                item = {"kind": item}
            if not isinstance(item, Mapping):
                raise ValueError(f"Field '{name}' must be a mapping or a kind name")
            nested = None
            if item.get("kind") == OBJECT:
                nested = cls.from_mapping(item.get("fields", {}))
            fields[name] = FieldSpec(
                kind=item.get("kind", STRING),
                description=str(item.get("description", "")).strip(),
                optional=bool(item.get("optional", False)),
                choices=tuple(item.get("choices", ())),
                schema=nested,
                requires=tuple(item.get("requires", ())),
            )
        return cls(fields)

    def to_json_schema(self) -> Dict[str, Any]:
        """JSON Schema for the model's response format instructions"""
        properties = {}
        for name, spec in self._fields.items():
            if spec.kind == STRING:
                prop: Dict[str, Any] = {"type": "string"}
            elif spec.kind == STRING_LIST:
                prop = {"type": "array", "items": {"type": "string"}}
            elif spec.kind == ENUM:
                prop = {"type": "string", "enum": list(spec.choices)}
            else:
                prop = spec.schema.to_json_schema()
            if spec.description:
                prop["description"] = spec.description
            properties[name] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": self.required_fields(),
        }


def _join(base: str, name: str) -> str:
    return f"{base}.{name}" if base else name


def _is_absent(value: Any) -> bool:
    return value is None


def _validate_object(schema: Schema, value: Any, path: str, issues: List[FieldIssue]) -> Dict[str, Any]:
    if not isinstance(value, Mapping):
        issues.append(FieldIssue(path, f"expected an object, got {type(value).__name__}"))
        return {}

    result: Dict[str, Any] = {}
    for name, spec in schema.fields.items():
        field_path = _join(path, name)
        raw = value.get(name)

        if _is_absent(raw):
            if not spec.optional:
                issues.append(FieldIssue(field_path, "required field is missing"))
            continue

        typed = _validate_field(spec, raw, field_path, issues)
        if typed is not None:
            result[name] = typed

    for name, spec in schema.fields.items():
        if spec.requires and not _is_absent(value.get(name)):
            for other in spec.requires:
                if _is_absent(value.get(other)):
                    issues.append(FieldIssue(_join(path, other), f"required when '{name}' is provided"))

    return result


def _validate_field(spec: FieldSpec, raw: Any, path: str, issues: List[FieldIssue]) -> Any:
    if spec.kind == STRING:
        if not isinstance(raw, str):
            issues.append(FieldIssue(path, f"expected a string, got {type(raw).__name__}"))
            return None
        if not raw.strip():
            issues.append(FieldIssue(path, "must not be empty"))
            return None
        return raw

    if spec.kind == ENUM:
        if not isinstance(raw, str) or raw not in spec.choices:
            issues.append(FieldIssue(path, f"must be one of: {', '.join(spec.choices)}"))
            return None
        return raw

    if spec.kind == STRING_LIST:
        if not isinstance(raw, (list, tuple)):
            issues.append(FieldIssue(path, f"expected a list of strings, got {type(raw).__name__}"))
            return None
        bad = _non_string_items(raw)
        for index in bad:
            issues.append(FieldIssue(f"{path}[{index}]", f"expected a string, got {type(raw[index]).__name__}"))
        return None if bad else list(raw)

    # OBJECT
    before = len(issues)
    typed = _validate_object(spec.schema, raw, path, issues)
    return typed if len(issues) == before else None


def _non_string_items(items: Iterable[Any]) -> List[int]:
    return [index for index, item in enumerate(items) if not isinstance(item, str)]
