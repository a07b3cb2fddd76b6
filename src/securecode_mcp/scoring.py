"""
Security score formulas.

Several scores coexist because they answer different questions in different
displays, and each is kept as its own function:

- analysis_score: how clean is this one submission.
- aggregate_score: how has this user done on average across their history.
- user_score_update: the point and score change applied to a user profile
  after an analysis.
- severity_weighted_score: a severity-aware view of one submission.

All scores are clamped to [0, 100].
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Sequence

from securecode_mcp.models import Finding, Severity, UserLevel, UserScoreUpdate

DEFAULT_AGGREGATE_SCORE = 85

# Penalty per finding for severity_weighted_score
SEVERITY_PENALTIES: dict[str, int] = {
    Severity.CRITIQUE.value: 25,
    Severity.ELEVE.value: 15,
    Severity.MOYEN.value: 10,
    Severity.FAIBLE.value: 5,
}

# (minimum points, level, next level, span to next level)
USER_LEVELS: list[tuple[int, str, str, int]] = [
    (500, "Expert", "Maître", 500),
    (200, "Avancé", "Expert", 300),
    (50, "Intermédiaire", "Avancé", 150),
    (0, "Débutant", "Intermédiaire", 50),
]


def _clamp(score: float) -> int:
    return int(min(max(score, 0), 100))


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def analysis_score(finding_count: int) -> int:
    """Per-analysis score: max(100 - 10 x findings, 0)."""
    return _clamp(100 - 10 * max(finding_count, 0))


def aggregate_score(
    historical_scores: Sequence[float],
    default: int = DEFAULT_AGGREGATE_SCORE,
) -> int:
    """
    Per-user aggregate score: rounded mean of each analysis's stored score.

    A user with no analyses gets ``default`` rather than 0, so new users are
    not shown a failing score before they have submitted anything.
    """
    if not historical_scores:
        return _clamp(default)
    return _clamp(_round_half_up(sum(historical_scores) / len(historical_scores)))


def user_score_update(finding_count: int) -> UserScoreUpdate:
    """
    Profile update after one analysis.

    points_gained = 10 + 5 x findings, new_security_score = max(100 - 3 x findings, 0).
    """
    count = max(finding_count, 0)
    return UserScoreUpdate(
        points_gained=10 + 5 * count,
        new_security_score=_clamp(100 - 3 * count),
    )


def severity_weighted_score(findings: Iterable[Finding]) -> int:
    """100 minus 25/15/10/5 per critique/eleve/moyen/faible finding, floored at 0."""
    penalty = sum(SEVERITY_PENALTIES.get(f.severity, 0) for f in findings)
    return _clamp(100 - penalty)


def user_level(points: int) -> UserLevel:
    """Level reached for an accumulated point total, with progression toward the next."""
    points = max(points, 0)
    for minimum, level, next_level, span in USER_LEVELS:
        if points >= minimum:
            break
    progression = min((points - minimum) / span * 100, 100.0)
    return UserLevel(level=level, next_level=next_level, progression=round(progression, 1))
