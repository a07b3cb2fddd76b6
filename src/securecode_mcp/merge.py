"""Merge of rule-based and AI findings."""

from __future__ import annotations

import logging
from typing import Iterable

from securecode_mcp.models import Finding

logger = logging.getLogger(__name__)


def dedup_key(finding: Finding) -> tuple[str, int]:
    """Identity used for de-duplication: (type, line). Description text is ignored."""
    return (finding.type, finding.line)


def merge_findings(
    rule_findings: Iterable[Finding],
    ai_findings: Iterable[Finding],
) -> list[Finding]:
    """
    Combine rule and AI findings, keeping the first finding per (type, line).

    Rule findings come first, so a rule finding always wins over an AI
    finding reported for the same type and line. Later duplicates are
    dropped whatever their source, description or confidence.

    Args:
        rule_findings: Normalized findings from the pattern matcher.
        ai_findings: Normalized findings from the AI detector.

    Returns:
        De-duplicated findings in rule-then-AI order.
    """
    seen: set[tuple[str, int]] = set()
    merged: list[Finding] = []
    dropped = 0

    for finding in [*rule_findings, *ai_findings]:
        key = dedup_key(finding)
        if key in seen:
            dropped += 1
            continue
        seen.add(key)
        merged.append(finding)

    if dropped:
        logger.debug(f"Dropped {dropped} duplicate findings during merge")
    return merged
