"""Tests for engine configuration loading."""

import pytest

from securecode_mcp.config import RULES_DIR_ENV, EngineConfig, load_config, resolve_rules_dir
from securecode_mcp.exceptions import ConfigurationError


def test_defaults_when_file_missing(tmp_path):
    config = load_config(tmp_path)
    assert config == EngineConfig()
    assert config.default_language == "javascript"
    assert config.ai_timeout_seconds == 30.0
    assert config.ai_fallback == "empty"
    assert config.default_aggregate_score == 85


def test_bundled_config():
    config = load_config()
    assert config.extensions[".tsx"] == "typescript"
    assert config.max_findings_per_scan == 1000


def test_load_sections(tmp_path):
    (tmp_path / "config.yaml").write_text(
        "default_language: TypeScript\n"
        "extensions:\n"
        "  .ES6: javascript\n"
        "engine:\n"
        "  pattern_timeout_seconds: 2\n"
        "  max_findings_per_scan: 50\n"
        "ai:\n"
        "  timeout_seconds: 10\n"
        "  fallback: demo\n"
        "stats:\n"
        "  default_aggregate_score: 70\n",
        encoding="utf-8",
    )
    config = load_config(tmp_path)

    assert config.default_language == "typescript"
    assert config.extensions == {".es6": "javascript"}
    assert config.pattern_timeout_seconds == 2.0
    assert config.max_findings_per_scan == 50
    assert config.ai_timeout_seconds == 10.0
    assert config.ai_fallback == "demo"
    assert config.default_aggregate_score == 70


def test_empty_file_uses_defaults(tmp_path):
    (tmp_path / "config.yaml").write_text("", encoding="utf-8")
    assert load_config(tmp_path) == EngineConfig()


@pytest.mark.parametrize(
    "content",
    [
        "engine: [unclosed",
        "- just\n- a list\n",
        "ai:\n  fallback: random\n",
        "ai:\n  timeout_seconds: -1\n",
        "engine:\n  max_findings_per_scan: 0\n",
        "stats:\n  default_aggregate_score: 120\n",
        "extensions: .js\n",
    ],
)
def test_invalid_config_raises(tmp_path, content):
    (tmp_path / "config.yaml").write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(tmp_path)


def test_rules_dir_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv(RULES_DIR_ENV, str(tmp_path))
    assert resolve_rules_dir() == tmp_path
