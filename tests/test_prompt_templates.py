"""Tests for prompt template substitution."""

from securecode_mcp.prompts.prompt_templates import (
    ANALYSIS_PROMPT,
    SECURITY_REVIEW_PROMPT,
    render_template,
)


def test_render_analysis_prompt():
    prompt = render_template(ANALYSIS_PROMPT, code="eval(x);", language="javascript")
    assert "eval(x);" in prompt
    assert "Analyze this javascript code" in prompt
    assert "{{" not in prompt
    assert '"vulnerabilities"' in prompt


def test_render_review_prompt_includes_findings():
    prompt = render_template(
        SECURITY_REVIEW_PROMPT, code="x", language="typescript", findings="No findings."
    )
    assert "**Language:** typescript" in prompt
    assert "No findings." in prompt


def test_placeholder_whitespace_and_unknown_names():
    result = render_template("{{ code }} {{other}}", code="A", language="js")
    assert result == "A {{other}}"


def test_substituted_values_not_rescanned():
    """Code containing placeholders is inserted verbatim."""
    result = render_template("{{code}}|{{language}}", code="{{language}}", language="js")
    assert result == "{{language}}|js"
