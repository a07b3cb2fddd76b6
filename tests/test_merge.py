"""Tests for merging and de-duplicating findings."""

from securecode_mcp.merge import dedup_key, merge_findings
from securecode_mcp.models import Finding


def _finding(finding_id, type_="xss", line=1, source="rule", description="d"):
    return Finding(
        id=finding_id,
        type=type_,
        severity="eleve",
        line=line,
        description=description,
        source=source,
    )


def test_dedup_key_ignores_description():
    a = _finding("a", description="one")
    b = _finding("b", description="two")
    assert dedup_key(a) == dedup_key(b) == ("xss", 1)


def test_rule_finding_wins_over_ai():
    """The first finding in rule-then-AI order is kept."""
    rule = _finding("rule", source="rule")
    ai = _finding("ai", source="ai", description="different text")
    merged = merge_findings([rule], [ai])
    assert [f.id for f in merged] == ["rule"]


def test_same_line_different_type_kept():
    merged = merge_findings(
        [_finding("x", type_="xss", line=2)],
        [_finding("i", type_="injection", line=2, source="ai")],
    )
    assert [f.id for f in merged] == ["x", "i"]


def test_duplicates_within_rule_findings_collapse():
    """Two XSS rules firing on line 3 give one (xss, 3) finding."""
    merged = merge_findings(
        [_finding("first", line=3), _finding("second", line=3)],
        [],
    )
    assert [f.id for f in merged] == ["first"]


def test_order_preserved():
    merged = merge_findings(
        [_finding("r1", line=5), _finding("r2", type_="secrets", line=1)],
        [_finding("a1", type_="injection", line=9, source="ai"), _finding("a2", line=5, source="ai")],
    )
    assert [f.id for f in merged] == ["r1", "r2", "a1"]


def test_merge_idempotent():
    """Merging an already merged list with nothing changes nothing."""
    rule = [_finding("r1", line=1), _finding("r2", line=1), _finding("r3", type_="secrets", line=2)]
    ai = [_finding("a1", line=2, source="ai"), _finding("a2", type_="secrets", line=2, source="ai")]
    once = merge_findings(rule, ai)
    assert merge_findings(once, []) == once


def test_merge_empty():
    assert merge_findings([], []) == []
