"""Tests for finding normalization."""

import pytest

from securecode_mcp.models import AICandidate, RawMatch
from securecode_mcp.normalizer import (
    category_to_type,
    classify_ai_severity,
    classify_ai_type,
    generate_finding_id,
    normalize_ai_candidate,
    normalize_rule_match,
    rule_severity_to_severity,
)


@pytest.mark.parametrize(
    "category, expected",
    [
        ("XSS", "xss"),
        ("Injection", "injection"),
        ("Secrets", "secrets"),
        ("Authentication", "xss"),
        ("CSRF", "xss"),
        ("Other", "xss"),
    ],
)
def test_category_to_type(category, expected):
    assert category_to_type(category) == expected


@pytest.mark.parametrize(
    "severity, expected",
    [("critical", "critique"), ("high", "eleve"), ("medium", "moyen"), ("low", "faible")],
)
def test_rule_severity_to_severity(severity, expected):
    assert rule_severity_to_severity(severity) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("XSS", "xss"),
        ("Reflected xss", "xss"),
        ("SQL Injection", "injection"),
        ("Hardcoded Password", "secrets"),
        ("API key leak", "secrets"),
        ("secrets", "secrets"),
        ("path traversal", "xss"),
        ("", "xss"),
    ],
)
def test_classify_ai_type(value, expected):
    assert classify_ai_type(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Critical", "critique"),
        ("critique", "critique"),
        ("HIGH", "eleve"),
        ("eleve", "eleve"),
        ("medium", "moyen"),
        ("moyen", "moyen"),
        ("low", "faible"),
        ("faible", "faible"),
        ("unknown", "moyen"),
    ],
)
def test_classify_ai_severity(value, expected):
    assert classify_ai_severity(value) == expected


def test_generate_finding_id_unique():
    """Ids stay distinct even when generated back to back."""
    ids = {generate_finding_id("xss", 1) for _ in range(100)}
    assert len(ids) == 100
    assert all(i.startswith("xss-1-") for i in ids)


def test_normalize_rule_match_custom_message(rule_factory):
    rule = rule_factory(custom_message="User data is inserted as HTML")
    finding = normalize_rule_match(
        RawMatch(rule=rule, line=3, snippet="el.innerHTML = x;", language_matched="javascript")
    )

    assert finding.type == "xss"
    assert finding.severity == "eleve"
    assert finding.line == 3
    assert finding.description == "User data is inserted as HTML"
    assert finding.code_snippet == "el.innerHTML = x;"
    assert finding.fix == "Use textContent instead of innerHTML"
    assert finding.confidence == 100
    assert finding.source == "rule"
    assert finding.rule_id == "xss-innerhtml"


def test_normalize_rule_match_description_fallback(rule_factory):
    """Without a custom message the description is built from name and description."""
    rule = rule_factory(name="eval call", description="Runs arbitrary code", category="Injection")
    finding = normalize_rule_match(
        RawMatch(rule=rule, line=1, snippet="eval(x)", language_matched="javascript")
    )
    assert finding.description == "eval call: Runs arbitrary code"
    assert finding.type == "injection"


def test_normalize_ai_candidate():
    candidate = AICandidate.model_validate({
        "type": "Stored XSS",
        "severity": "High",
        "line": 4,
        "description": "Unescaped output",
        "codeSnippet": "div.innerHTML = data",
        "fix": "Escape output",
        "confidence": 72,
    })
    finding = normalize_ai_candidate(candidate)

    assert finding.type == "xss"
    assert finding.severity == "eleve"
    assert finding.line == 4
    assert finding.code_snippet == "div.innerHTML = data"
    assert finding.confidence == 72
    assert finding.source == "ai"
    assert finding.rule_id is None


def test_normalize_ai_candidate_clamps_confidence():
    finding = normalize_ai_candidate(AICandidate(type="xss", confidence=250))
    assert finding.confidence == 100
    finding = normalize_ai_candidate(AICandidate(type="xss", confidence=-3))
    assert finding.confidence == 0


def test_ai_candidate_lenient_parsing():
    """Bad line numbers become 1 and null text fields become empty strings."""
    candidate = AICandidate.model_validate({"type": None, "line": "abc", "confidence": "n/a"})
    assert candidate.line == 1
    assert candidate.type == ""
    assert candidate.confidence is None
    assert AICandidate.model_validate({"line": 0}).line == 1
    assert AICandidate.model_validate({"line": "7"}).line == 7
