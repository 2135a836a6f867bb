"""
Tests for prompt template parsing and rendering
"""
import pytest

from core.template import Template, TemplateSyntaxError, escape, render


class TestInterpolation:
    """Escaped and raw variables."""

    def test_escaped_variable(self):
        assert render("Hi {{name}}!", {"name": "<b>Ada</b>"}) == "Hi &lt;b&gt;Ada&lt;/b&gt;!"

    def test_raw_variable(self):
        assert render("Hi {{{name}}}!", {"name": "<b>Ada</b>"}) == "Hi <b>Ada</b>!"

    def test_escape_quotes_and_braces(self):
        assert escape('{"a": 1}') == "&#x7B;&quot;a&quot;: 1&#x7D;"

    def test_missing_variable_renders_empty(self):
        assert render("[{{missing}}]", {}) == "[]"

    def test_dotted_path(self):
        assert render("{{{user.name}}}", {"user": {"name": "Ada"}}) == "Ada"

    def test_list_is_joined(self):
        assert render("{{{skills}}}", {"skills": ["Python", "SQL"]}) == "Python, SQL"

    def test_whitespace_inside_tags(self):
        assert render("{{ name }} / {{{ name }}}", {"name": "x"}) == "x / x"


class TestConditionals:
    """{{#if}} / {{else}} sections."""

    SOURCE = "A\n{{#if extra}}\nExtra: {{{extra}}}\n{{/if}}\nC\n"

    def test_section_omitted_when_absent(self):
        assert render(self.SOURCE, {}) == "A\nC\n"

    def test_section_omitted_when_empty(self):
        assert render(self.SOURCE, {"extra": ""}) == "A\nC\n"

    def test_section_included_when_present(self):
        assert render(self.SOURCE, {"extra": "yes"}) == "A\nExtra: yes\nC\n"

    def test_else_branch(self):
        source = "{{#if answer}}\nEvaluate {{answer}}\n{{else}}\nAsk a question\n{{/if}}\n"

        assert render(source, {"answer": "42"}) == "Evaluate 42\n"
        assert render(source, {}) == "Ask a question\n"

    def test_inline_conditional(self):
        source = "x{{#if a}}y{{/if}}z"

        assert render(source, {}) == "xz"
        assert render(source, {"a": True}) == "xyz"

    def test_nested_conditionals(self):
        source = "{{#if a}}A{{#if b}}B{{/if}}{{/if}}"

        assert render(source, {"a": 1}) == "A"
        assert render(source, {"a": 1, "b": 1}) == "AB"
        assert render(source, {"b": 1}) == ""

    def test_empty_list_is_falsy(self):
        assert render("{{#if items}}has{{else}}none{{/if}}", {"items": []}) == "none"


class TestTemplateObject:
    """Parsed templates."""

    def test_render_is_idempotent(self):
        template = Template("Skills: {{{skills}}}{{#if goal}} Goal: {{goal}}{{/if}}")
        context = {"skills": ["Python"], "goal": "Lead"}

        first = template.render(context)
        second = template.render(context)

        assert first == second == "Skills: Python Goal: Lead"

    def test_render_does_not_mutate_context(self):
        context = {"skills": ["Python"]}
        Template("{{skills}}").render(context)
        assert context == {"skills": ["Python"]}

    def test_variables(self):
        template = Template("{{a}} {{{b.c}}} {{#if d}}{{e}}{{else}}{{f}}{{/if}}")
        assert template.variables == {"a", "b.c", "d", "e", "f"}


class TestSyntaxErrors:
    """Malformed templates fail at parse time."""

    def test_unclosed_if(self):
        with pytest.raises(TemplateSyntaxError, match="Unclosed"):
            Template("{{#if a}}text")

    def test_stray_close(self):
        with pytest.raises(TemplateSyntaxError, match="without matching"):
            Template("text{{/if}}")

    def test_else_outside_if(self):
        with pytest.raises(TemplateSyntaxError, match="outside"):
            Template("{{else}}")

    def test_duplicate_else(self):
        with pytest.raises(TemplateSyntaxError, match="Duplicate"):
            Template("{{#if a}}x{{else}}y{{else}}z{{/if}}")

    def test_unsupported_block(self):
        with pytest.raises(TemplateSyntaxError, match="Unsupported block"):
            Template("{{#each items}}x{{/each}}")

    def test_invalid_reference(self):
        with pytest.raises(TemplateSyntaxError, match="Invalid variable"):
            Template("{{not a path}}")


class TestRerender:
    """Rendered output renders to itself with an empty context."""

    @pytest.mark.parametrize("source", [
        "Answer: {{answer}}",
        "Answer: {{{answer}}}",
        "{{#if answer}}\nANSWER: {{answer}}\n{{else}}\nnone\n{{/if}}\n",
    ])
    @pytest.mark.parametrize("answer", [
        "I use {{name}} placeholders",
        "Mustache blocks like {{#if x}} need closing",
        "Triple {{{braces}}} and a lone } or {",
        '{"nested": {"json": [1, 2]}}',
    ])
    def test_rendered_output_is_stable(self, source, answer):
        rendered = render(source, {"answer": answer})

        assert render(rendered, {}) == rendered

    def test_tag_syntax_in_values_is_encoded(self):
        assert render("Q: {{q}}", {"q": "{{x}}"}) == "Q: &#x7B;&#x7B;x&#x7D;&#x7D;"
        assert render("Q: {{{q}}}", {"q": "{{x}}"}) == "Q: &#x7B;&#x7B;x}}"

    def test_raw_json_keeps_single_braces(self):
        assert render("{{{twin}}}", {"twin": {"skills": {"python": 3}}}) == '{"skills": {"python": 3}}'
