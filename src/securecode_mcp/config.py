"""
Engine configuration loaded from ``config.yaml`` in the rules directory.

Example config.yaml:

    default_language: javascript
    extensions:
      .js: javascript
      .ts: typescript
    engine:
      pattern_timeout_seconds: 5
      max_findings_per_scan: 1000
    ai:
      timeout_seconds: 30
      fallback: empty        # or "demo"
    stats:
      default_aggregate_score: 85
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from securecode_mcp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RULES_DIR_ENV = "SECURECODE_MCP_RULES_DIR"

AI_FALLBACK_MODES = ("empty", "demo")

DEFAULT_EXTENSIONS: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
}


@dataclass
class EngineConfig:
    """
    Global engine configuration.

    Attributes:
        extensions: Mapping of file extensions to language names.
        default_language: Language used when none is given or detected.
        pattern_timeout_seconds: Per-rule regex timeout (ReDoS protection).
        max_findings_per_scan: Upper bound on rule matches kept per scan.
        ai_timeout_seconds: Upper bound on one AI provider call.
        ai_fallback: What the AI detector returns on failure: "empty" for no
            AI findings, "demo" for the fixed illustrative triple.
        default_aggregate_score: Average score reported for an empty history.
    """

    extensions: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_EXTENSIONS))
    default_language: str = "javascript"
    pattern_timeout_seconds: float = 5.0
    max_findings_per_scan: int = 1000
    ai_timeout_seconds: float = 30.0
    ai_fallback: str = "empty"
    default_aggregate_score: int = 85


def resolve_rules_dir(rules_dir: str = "rules") -> Path:
    """
    Resolve the rules directory path.

    Checks in order:
    1. SECURECODE_MCP_RULES_DIR environment variable
    2. Project root (2 levels up from package)
    3. Current working directory
    4. The path as given

    Args:
        rules_dir: Default rules directory name.

    Returns:
        Resolved Path to rules directory.
    """
    if env_path := os.environ.get(RULES_DIR_ENV):
        return Path(env_path)

    pkg_dir = Path(__file__).resolve().parent
    project_root = pkg_dir.parent.parent

    candidates = [
        project_root / rules_dir,
        Path.cwd() / rules_dir,
        Path(rules_dir),
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return project_root / rules_dir


def load_config(rules_dir: str | Path | None = None) -> EngineConfig:
    """
    Load engine configuration from ``config.yaml``.

    Args:
        rules_dir: Directory holding config.yaml. Resolved with
            resolve_rules_dir() when omitted.

    Returns:
        EngineConfig, with defaults for anything the file does not set.

    Raises:
        ConfigurationError: If config.yaml is unreadable or invalid.
    """
    directory = Path(rules_dir) if rules_dir is not None else resolve_rules_dir()
    config_path = directory / "config.yaml"

    if not config_path.exists():
        logger.debug(f"Config file not found at {config_path}, using defaults")
        return EngineConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid config.yaml: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config.yaml: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"config.yaml must be a YAML mapping, got {type(data).__name__}"
        )

    return _parse_config(data)


def _parse_config(data: dict[str, Any]) -> EngineConfig:
    """Validate a raw YAML mapping into an EngineConfig."""
    config = EngineConfig()
    engine = data.get("engine") or {}
    ai = data.get("ai") or {}
    stats = data.get("stats") or {}

    if "extensions" in data:
        extensions = data["extensions"]
        if not isinstance(extensions, dict):
            raise ConfigurationError("extensions must be a mapping")
        config.extensions = {str(k).lower(): str(v).lower() for k, v in extensions.items()}

    if "default_language" in data:
        config.default_language = str(data["default_language"]).lower()

    if "pattern_timeout_seconds" in engine:
        config.pattern_timeout_seconds = _positive_number(
            engine["pattern_timeout_seconds"], "engine.pattern_timeout_seconds"
        )

    if "max_findings_per_scan" in engine:
        value = engine["max_findings_per_scan"]
        if not isinstance(value, int) or value < 1:
            raise ConfigurationError("engine.max_findings_per_scan must be a positive integer")
        config.max_findings_per_scan = value

    if "timeout_seconds" in ai:
        config.ai_timeout_seconds = _positive_number(ai["timeout_seconds"], "ai.timeout_seconds")

    if "fallback" in ai:
        fallback = ai["fallback"]
        if fallback not in AI_FALLBACK_MODES:
            raise ConfigurationError(
                f"ai.fallback must be one of {AI_FALLBACK_MODES}, got '{fallback}'"
            )
        config.ai_fallback = fallback

    if "default_aggregate_score" in stats:
        value = stats["default_aggregate_score"]
        if not isinstance(value, int) or not 0 <= value <= 100:
            raise ConfigurationError("stats.default_aggregate_score must be an integer in 0..100")
        config.default_aggregate_score = value

    return config


def _positive_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive number")
    return float(value)
