"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Ensure src is on path for tests
root = Path(__file__).resolve().parent.parent
src = root / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from securecode_mcp.collaborators import InMemoryAnalysisRepository  # noqa: E402
from securecode_mcp.models import SecurityRule  # noqa: E402
from securecode_mcp.rule_store import RuleStore  # noqa: E402
from securecode_mcp.rules_engine import PatternMatcher  # noqa: E402

RULES_DIR = root / "rules"


def make_rule(**overrides) -> SecurityRule:
    """Build a SecurityRule with sensible defaults for tests."""
    data = {
        "id": "xss-innerhtml",
        "name": "innerHTML assignment",
        "description": "Untrusted data written to innerHTML",
        "language": "javascript",
        "pattern": r"innerHTML\s*=",
        "severity": "high",
        "category": "XSS",
        "fix_suggestion": "Use textContent instead of innerHTML",
    }
    data.update(overrides)
    return SecurityRule(**data)


@pytest.fixture
def rule_factory():
    return make_rule


@pytest.fixture
def bundled_store() -> RuleStore:
    """RuleStore loaded from the rules shipped with the project."""
    return RuleStore.from_directory(RULES_DIR)


@pytest.fixture
def bundled_matcher(bundled_store) -> PatternMatcher:
    return PatternMatcher(rule_store=bundled_store)


@pytest.fixture
def repository() -> InMemoryAnalysisRepository:
    return InMemoryAnalysisRepository()
