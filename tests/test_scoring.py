"""Tests for score formulas."""

import pytest

from securecode_mcp.models import Finding
from securecode_mcp.scoring import (
    aggregate_score,
    analysis_score,
    severity_weighted_score,
    user_level,
    user_score_update,
)


@pytest.mark.parametrize("count, expected", [(0, 100), (1, 90), (2, 80), (10, 0), (25, 0)])
def test_analysis_score(count, expected):
    assert analysis_score(count) == expected


def test_analysis_score_monotonic():
    scores = [analysis_score(n) for n in range(15)]
    assert scores == sorted(scores, reverse=True)
    assert all(0 <= s <= 100 for s in scores)


def test_aggregate_score_empty_history_defaults():
    assert aggregate_score([]) == 85
    assert aggregate_score([], default=70) == 70


def test_aggregate_score_rounds_half_up():
    assert aggregate_score([90, 80]) == 85
    assert aggregate_score([90, 81]) == 86
    assert aggregate_score([100, 90, 80]) == 90


def test_user_score_update():
    update = user_score_update(3)
    assert update.points_gained == 25
    assert update.new_security_score == 91

    assert user_score_update(0).points_gained == 10
    assert user_score_update(40).new_security_score == 0


def _finding(severity, line):
    return Finding(id=f"f{line}", type="xss", severity=severity, line=line, source="rule")


def test_severity_weighted_score():
    findings = [_finding("critique", 1), _finding("eleve", 2), _finding("faible", 3)]
    assert severity_weighted_score(findings) == 55
    assert severity_weighted_score([]) == 100
    assert severity_weighted_score([_finding("critique", i) for i in range(1, 6)]) == 0


@pytest.mark.parametrize(
    "points, level, next_level, progression",
    [
        (0, "Débutant", "Intermédiaire", 0.0),
        (25, "Débutant", "Intermédiaire", 50.0),
        (50, "Intermédiaire", "Avancé", 0.0),
        (125, "Intermédiaire", "Avancé", 50.0),
        (200, "Avancé", "Expert", 0.0),
        (1500, "Expert", "Maître", 100.0),
    ],
)
def test_user_level(points, level, next_level, progression):
    result = user_level(points)
    assert result.level == level
    assert result.next_level == next_level
    assert result.progression == progression
