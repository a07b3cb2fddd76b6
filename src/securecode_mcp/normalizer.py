"""
Finding normalizer.

Converts raw detector output into canonical Findings. Both detectors feed
the same closed vocabulary: three finding types (xss, injection, secrets) and
four severities (critique, eleve, moyen, faible). Anything outside the known
buckets falls back to xss for types and moyen for AI severities.
"""

from __future__ import annotations

import time
import uuid

from securecode_mcp.models import (
    AICandidate,
    Finding,
    FindingSource,
    FindingType,
    RawMatch,
    RuleCategory,
    RuleSeverity,
    Severity,
)

_CATEGORY_TO_TYPE: dict[str, FindingType] = {
    RuleCategory.XSS.value: FindingType.XSS,
    RuleCategory.INJECTION.value: FindingType.INJECTION,
    RuleCategory.SECRETS.value: FindingType.SECRETS,
}

_RULE_SEVERITY_TO_SEVERITY: dict[str, Severity] = {
    RuleSeverity.CRITICAL.value: Severity.CRITIQUE,
    RuleSeverity.HIGH.value: Severity.ELEVE,
    RuleSeverity.MEDIUM.value: Severity.MOYEN,
    RuleSeverity.LOW.value: Severity.FAIBLE,
}

# Checked in order; first substring hit wins.
_AI_TYPE_KEYWORDS: list[tuple[tuple[str, ...], FindingType]] = [
    (("xss",), FindingType.XSS),
    (("inject",), FindingType.INJECTION),
    (("secret", "password", "key"), FindingType.SECRETS),
]

_AI_SEVERITY_KEYWORDS: list[tuple[tuple[str, ...], Severity]] = [
    (("crit",), Severity.CRITIQUE),
    (("high", "elev"), Severity.ELEVE),
    (("med", "moy"), Severity.MOYEN),
    (("low", "faib"), Severity.FAIBLE),
]


def generate_finding_id(finding_type: str, line: int) -> str:
    """
    Build a finding id from type, line, a millisecond timestamp and a random
    suffix, so ids stay unique inside one run even when generated in the same
    millisecond.
    """
    return f"{finding_type}-{line}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def category_to_type(category: str) -> FindingType:
    """Map a rule category to a finding type; unknown categories become xss."""
    return _CATEGORY_TO_TYPE.get(category, FindingType.XSS)


def rule_severity_to_severity(severity: str) -> Severity:
    return _RULE_SEVERITY_TO_SEVERITY.get(severity, Severity.MOYEN)


def classify_ai_type(value: str) -> FindingType:
    """Case-insensitive substring classification of a provider's type string."""
    lowered = (value or "").lower()
    for keywords, finding_type in _AI_TYPE_KEYWORDS:
        if any(k in lowered for k in keywords):
            return finding_type
    return FindingType.XSS


def classify_ai_severity(value: str) -> Severity:
    """Case-insensitive substring classification of a provider's severity."""
    lowered = (value or "").lower()
    for keywords, severity in _AI_SEVERITY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return severity
    return Severity.MOYEN


def _rule_description(match: RawMatch) -> str:
    rule = match.rule
    if rule.custom_message:
        return rule.custom_message
    if rule.description:
        return f"{rule.name}: {rule.description}"
    return rule.name


def normalize_rule_match(match: RawMatch) -> Finding:
    """Convert a pattern-rule hit into a Finding with confidence 100."""
    finding_type = category_to_type(match.rule.category)
    return Finding(
        id=generate_finding_id(finding_type.value, match.line),
        type=finding_type,
        severity=rule_severity_to_severity(match.rule.severity),
        line=match.line,
        description=_rule_description(match),
        code_snippet=match.snippet,
        fix=match.rule.fix_suggestion,
        confidence=100.0,
        source=FindingSource.RULE,
        rule_id=match.rule.id,
    )


def normalize_ai_candidate(candidate: AICandidate) -> Finding:
    """
    Convert an AI candidate into a Finding.

    The provider's confidence is kept (clamped to 0-100) when present.
    Missing or non-finite values count as 100.
    """
    finding_type = classify_ai_type(candidate.type)
    confidence = 100.0 if candidate.confidence is None else min(max(candidate.confidence, 0.0), 100.0)
    return Finding(
        id=generate_finding_id(finding_type.value, candidate.line),
        type=finding_type,
        severity=classify_ai_severity(candidate.severity),
        line=candidate.line,
        description=candidate.description,
        code_snippet=candidate.code_snippet,
        fix=candidate.fix,
        confidence=confidence,
        source=FindingSource.AI,
    )
