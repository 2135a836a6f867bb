"""
Prompt template rendering

Supported syntax:
    {{field}}                 interpolate, HTML-escaped
    {{{field}}}               interpolate as-is, except that "{{" runs are encoded
    {{profile.name}}          dotted paths walk nested mappings
    {{#if field}}...{{/if}}   include the body only when field is truthy
    {{#if field}}...{{else}}...{{/if}}

Templates are parsed once into a small node tree and rendered many times.
Unknown variables render as an empty string. Interpolated values never
introduce tags, so rendered output renders to itself with an empty context.
"""
import json
import re
from typing import Any, List, Mapping, Optional, Sequence, Set

_TAG_RE = re.compile(r"\{\{\{\s*(?P<raw>[^{}]*?)\s*\}\}\}|\{\{(?P<tag>[^{}]*)\}\}")
_PATH_RE = re.compile(r"^[A-Za-z_][\w]*(\.[A-Za-z_][\w]*)*$")

_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "`": "&#x60;",
    "=": "&#x3D;",
    "{": "&#x7B;",
    "}": "&#x7D;",
}
_ESCAPE_RE = re.compile("[" + re.escape("".join(_ESCAPES)) + "]")
_TAG_OPEN_RE = re.compile(r"\{\{+")


class TemplateSyntaxError(ValueError):
    pass


def escape(text: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], text)


def neutralize_tags(text: str) -> str:
    """Encode runs of two or more opening braces so the text can never form a tag"""
    return _TAG_OPEN_RE.sub(lambda m: "&#x7B;" * len(m.group(0)), text)


def lookup(context: Any, path: str) -> Any:
    """Get value from nested dict/object using dot notation"""
    value = context
    for key in path.split("."):
        if isinstance(value, Mapping):
            value = value.get(key)
        else:
            value = getattr(value, key, None)
        if value is None:
            return None
    return value


def stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value) > 0
    return bool(value)


# ============================================================================
# NODES
# ============================================================================

class Text:
    __slots__ = ("text",)

    def __init__(self, text: str):
        self.text = text

    def render(self, context: Any, out: List[str]):
        out.append(self.text)


class Variable:
    __slots__ = ("path", "escaped")

    def __init__(self, path: str, escaped: bool = True):
        self.path = path
        self.escaped = escaped

    def render(self, context: Any, out: List[str]):
        text = stringify(lookup(context, self.path))
        out.append(escape(text) if self.escaped else neutralize_tags(text))


class Conditional:
    __slots__ = ("path", "then", "otherwise")

    def __init__(self, path: str, then: Sequence, otherwise: Sequence = ()):
        self.path = path
        self.then = tuple(then)
        self.otherwise = tuple(otherwise)

    def render(self, context: Any, out: List[str]):
        branch = self.then if is_truthy(lookup(context, self.path)) else self.otherwise
        for node in branch:
            node.render(context, out)


# ============================================================================
# PARSER
# ============================================================================

class _Frame:
    def __init__(self, path: Optional[str]):
        self.path = path
        self.then: List = []
        self.otherwise: List = []
        self.in_else = False

    @property
    def target(self) -> List:
        return self.otherwise if self.in_else else self.then


def _standalone_span(source: str, start: int, end: int, pos: int):
    """Return (line_start, line_end) when the tag sits alone on its line"""
    line_start = source.rfind("\n", 0, start) + 1
    if line_start < pos or source[line_start:start].strip():
        return None
    newline = source.find("\n", end)
    line_end = len(source) if newline == -1 else newline + 1
    if source[end:line_end].strip():
        return None
    return line_start, line_end


def parse(source: str) -> tuple:
    stack = [_Frame(None)]
    pos = 0

    for match in _TAG_RE.finditer(source):
        start, end = match.span()
        raw = match.group("raw")
        tag = (match.group("tag") or "").strip()

        if raw is not None:
            kind, path = "var", raw.strip()
        elif tag.startswith("#"):
            parts = tag[1:].split()
            if len(parts) != 2 or parts[0] != "if":
                raise TemplateSyntaxError(f"Unsupported block '{{{{{tag}}}}}'")
            kind, path = "open", parts[1]
        elif tag == "else":
            kind, path = "else", None
        elif tag.startswith("/"):
            if tag[1:].strip() != "if":
                raise TemplateSyntaxError(f"Unsupported closing tag '{{{{{tag}}}}}'")
            kind, path = "close", None
        else:
            kind, path = "var", tag

        if path is not None and not _PATH_RE.match(path):
            raise TemplateSyntaxError(f"Invalid variable reference '{match.group(0)}'")

        text_end = start
        next_pos = end
        if kind != "var":
            span = _standalone_span(source, start, end, pos)
            if span:
                text_end, next_pos = span
        if text_end > pos:
            stack[-1].target.append(Text(source[pos:text_end]))
        pos = next_pos

        if kind == "var":
            stack[-1].target.append(Variable(path, escaped=raw is None))
        elif kind == "open":
            stack.append(_Frame(path))
        elif kind == "else":
            frame = stack[-1]
            if frame.path is None:
                raise TemplateSyntaxError("{{else}} outside of {{#if}}")
            if frame.in_else:
                raise TemplateSyntaxError(f"Duplicate {{{{else}}}} in {{{{#if {frame.path}}}}}")
            frame.in_else = True
        else:
            if len(stack) == 1:
                raise TemplateSyntaxError("{{/if}} without matching {{#if}}")
            frame = stack.pop()
            stack[-1].target.append(Conditional(frame.path, frame.then, frame.otherwise))

    if len(stack) > 1:
        raise TemplateSyntaxError(f"Unclosed {{{{#if {stack[-1].path}}}}}")
    if pos < len(source):
        stack[0].target.append(Text(source[pos:]))
    return tuple(stack[0].then)


def _collect(nodes: Sequence, found: Set[str]):
    for node in nodes:
        if isinstance(node, Variable):
            found.add(node.path)
        elif isinstance(node, Conditional):
            found.add(node.path)
            _collect(node.then, found)
            _collect(node.otherwise, found)


class Template:
    """A parsed prompt template; safe to share between threads"""

    def __init__(self, source: str):
        self.source = source
        self.nodes = parse(source)

    @property
    def variables(self) -> Set[str]:
        """Every path referenced by interpolations and conditionals"""
        found: Set[str] = set()
        _collect(self.nodes, found)
        return found

    def render(self, context: Optional[Mapping[str, Any]] = None) -> str:
        out: List[str] = []
        for node in self.nodes:
            node.render(context or {}, out)
        return "".join(out)

    def __repr__(self):
        return f"Template({self.source[:40]!r})"


def render(source: str, context: Optional[Mapping[str, Any]] = None) -> str:
    return Template(source).render(context)
