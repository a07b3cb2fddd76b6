"""Tests for the in-process collaborators."""

import pytest

from securecode_mcp.collaborators import (
    DEFAULT_MAX_HISTORY,
    InMemoryAnalysisRepository,
    StaticAIConfigProvider,
)
from securecode_mcp.models import AIConfig, AnalysisRecord, UserScoreUpdate


def _record(index: int) -> AnalysisRecord:
    return AnalysisRecord(
        file_name=f"file{index}.js",
        source_text="eval(x);",
        finding_count=1,
        score=90,
        language="javascript",
    )


def test_history_capped_per_user():
    """Only the newest analyses are kept once a user exceeds the cap."""
    repository = InMemoryAnalysisRepository(max_history=3)
    ids = [repository.save_analysis("user-1", _record(i), [])[0] for i in range(5)]
    repository.save_analysis("user-2", _record(99), [])

    analyses = repository.get_analyses("user-1")
    assert [a["analysis_id"] for a in analyses] == ids[2:]
    assert [a["record"].file_name for a in analyses] == ["file2.js", "file3.js", "file4.js"]
    assert len(repository.get_analyses("user-2")) == 1


def test_default_history_cap():
    repository = InMemoryAnalysisRepository()
    for i in range(DEFAULT_MAX_HISTORY + 10):
        repository.save_analysis(None, _record(i), [])
    analyses = repository.get_analyses(None)
    assert len(analyses) == DEFAULT_MAX_HISTORY
    assert analyses[-1]["record"].file_name == f"file{DEFAULT_MAX_HISTORY + 9}.js"


def test_invalid_history_cap():
    with pytest.raises(ValueError):
        InMemoryAnalysisRepository(max_history=0)


def test_user_stats_accumulate_past_history_cap():
    repository = InMemoryAnalysisRepository(max_history=1)
    for i in range(3):
        repository.save_analysis("user-1", _record(i), [])
        repository.update_user_stats("user-1", UserScoreUpdate(points_gained=15, new_security_score=97))

    assert repository.get_user_stats("user-1") == {"points": 45, "security_score": 97}
    assert repository.get_user_stats("someone-else") == {"points": 0, "security_score": 100}


def test_static_config_provider_falls_back_to_default():
    default = AIConfig(provider="openai", api_key="sk-default", model="gpt-4")
    own = AIConfig(provider="anthropic", api_key="sk-own", model="claude-3-sonnet")
    provider = StaticAIConfigProvider(default=default)
    provider.set_config("user-1", own)

    assert provider.get_active_config("user-1") is own
    assert provider.get_active_config("user-2") is default
    assert provider.get_active_config(None) is default
    assert StaticAIConfigProvider().get_active_config("user-1") is None
