"""
Analysis orchestrator.

Runs one analysis end to end:

1. Pattern matching over the active rules of the language, normalized into
   rule findings.
2. Optionally, AI detection when the caller asked for it and has an active
   AI configuration, normalized into AI findings.
3. Merge and de-duplication on (type, line), rule findings first.
4. Scoring: max(100 - 10 x findings, 0), plus the severity-weighted
   display score.
5. Persistence of the analysis and the user's score update through the
   repository collaborator.

Step order is strict. The AI call is the only suspension point; a failing
provider degrades to rule-only findings and a failing repository is reported
on the result instead of raising. Only a rule store that cannot be loaded at
all propagates.

Also provides dashboard aggregation and the machine-readable export.

Example:
    >>> result = await run_analysis(
    ...     "el.innerHTML = userInput;",
    ...     file_name="app.js",
    ...     language="javascript",
    ...     use_ai=False,
    ... )
    >>> result.security_score
    90
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence

from securecode_mcp.ai_detector import AIDetector
from securecode_mcp.collaborators import (
    AIConfigProvider,
    AnalysisRepository,
    InMemoryAnalysisRepository,
    StaticAIConfigProvider,
)
from securecode_mcp.config import EngineConfig, load_config
from securecode_mcp.exceptions import InvalidInputError, PersistenceError
from securecode_mcp.language_detector import detect_language
from securecode_mcp.merge import merge_findings
from securecode_mcp.models import (
    AggregateStats,
    AnalysisRecord,
    AnalysisResult,
    ExportedAnalysis,
    ExportedVulnerability,
    Finding,
)
from securecode_mcp.normalizer import normalize_ai_candidate, normalize_rule_match
from securecode_mcp.rule_store import clear_rule_store_cache, default_rule_store
from securecode_mcp.rules_engine import PatternMatcher
from securecode_mcp.scoring import (
    aggregate_score,
    analysis_score,
    severity_weighted_score,
    user_score_update,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Cached engine components
# =============================================================================


_cached_config: EngineConfig | None = None
_cached_matcher: PatternMatcher | None = None
_cached_detector: AIDetector | None = None
_engine_lock = threading.Lock()

_config_provider: AIConfigProvider = StaticAIConfigProvider()
_repository: AnalysisRepository = InMemoryAnalysisRepository()


def get_cached_config() -> EngineConfig:
    """Get the engine configuration, loading config.yaml once."""
    global _cached_config
    with _engine_lock:
        if _cached_config is None:
            _cached_config = load_config()
        return _cached_config


def get_cached_matcher() -> PatternMatcher:
    """
    Get or create the shared PatternMatcher.

    Raises:
        RuleLoadError: If the rule files cannot be loaded.
    """
    global _cached_matcher
    config = get_cached_config()
    with _engine_lock:
        if _cached_matcher is None:
            logger.info("Initializing cached PatternMatcher instance")
            _cached_matcher = PatternMatcher(
                rule_store=default_rule_store(),
                pattern_timeout=config.pattern_timeout_seconds,
                max_matches=config.max_findings_per_scan,
            )
        return _cached_matcher


def get_cached_detector() -> AIDetector:
    """Get or create the shared AIDetector."""
    global _cached_detector
    config = get_cached_config()
    with _engine_lock:
        if _cached_detector is None:
            _cached_detector = AIDetector(
                timeout_seconds=config.ai_timeout_seconds,
                fallback=config.ai_fallback,
            )
        return _cached_detector


def clear_engine_cache() -> None:
    """Drop cached config, rule store, matcher and detector (use after rule or config changes)."""
    global _cached_config, _cached_matcher, _cached_detector
    clear_rule_store_cache()
    with _engine_lock:
        _cached_config = None
        _cached_matcher = None
        _cached_detector = None
        logger.info("Engine cache cleared")


def set_collaborators(
    config_provider: AIConfigProvider | None = None,
    repository: AnalysisRepository | None = None,
) -> None:
    """Replace the default AI config provider and/or analysis repository."""
    global _config_provider, _repository
    if config_provider is not None:
        _config_provider = config_provider
    if repository is not None:
        _repository = repository


def get_config_provider() -> AIConfigProvider:
    return _config_provider


def get_repository() -> AnalysisRepository:
    return _repository


# =============================================================================
# Main Analysis Function
# =============================================================================


def _validate_source(source_text: Any) -> None:
    """
    Check that source text is analyzable.

    Raises:
        InvalidInputError: If the text is not a string or is blank.
    """
    if not isinstance(source_text, str):
        raise InvalidInputError(f"Source must be text, got {type(source_text).__name__}")
    if not source_text.strip():
        raise InvalidInputError("Source text is empty")


def detect_rule_findings(
    source_text: str,
    language: str,
    matcher: PatternMatcher | None = None,
) -> list[Finding]:
    """
    Rule findings for a code unit, normalized and de-duplicated.

    No AI call, no persistence. The findings are those run_analysis reports
    with AI disabled.
    """
    matcher = matcher or get_cached_matcher()
    return merge_findings([normalize_rule_match(m) for m in matcher.match(source_text, language)], [])


async def run_analysis(
    source_text: Any,
    file_name: str = "",
    language: str | None = None,
    use_ai: bool = False,
    *,
    user_id: Optional[str] = None,
    matcher: PatternMatcher | None = None,
    detector: AIDetector | None = None,
    config_provider: AIConfigProvider | None = None,
    repository: AnalysisRepository | None = None,
) -> AnalysisResult:
    """
    Analyze one code unit and return its merged findings and score.

    Args:
        source_text: Full text of the code unit. Empty or non-string input
            yields an empty result with score 100.
        file_name: Name of the submitted file, stored with the analysis and
            used to detect the language when none is given.
        language: Language whose rules apply. Detected from file_name
            (default javascript) when empty.
        use_ai: Whether to also ask the caller's AI provider.
        user_id: Caller identity for AI configuration and persistence.
        matcher: PatternMatcher to use; the shared one by default.
        detector: AIDetector to use; the shared one by default.
        config_provider: AI configuration collaborator.
        repository: Persistence collaborator.

    Returns:
        AnalysisResult. ``persistence_error`` is set when storing failed.

    Raises:
        RuleLoadError: If the rule store cannot be loaded.
        asyncio.CancelledError: If the awaiting task is cancelled.
    """
    start_time = time.time()

    try:
        _validate_source(source_text)
    except InvalidInputError as e:
        logger.warning(
            f"{e}, returning empty analysis",
            extra={"file_name": file_name, "input_type": type(source_text).__name__},
        )
        return AnalysisResult(findings=[], security_score=100, total_findings=0)

    language = (language or "").strip().lower() or detect_language(file_name, source_text)
    matcher = matcher or get_cached_matcher()
    config_provider = config_provider or _config_provider
    repository = repository or _repository

    logger.info(
        "Starting analysis",
        extra={"file_name": file_name, "language": language, "use_ai": use_ai},
    )

    # Step 1: rule findings
    rule_findings = detect_rule_findings(source_text, language, matcher)

    # Step 2: AI findings
    ai_findings: list[Finding] = []
    ai_config = config_provider.get_active_config(user_id) if use_ai else None
    if use_ai and ai_config is None:
        logger.info("AI analysis requested but no active AI configuration", extra={"user_id": user_id})
    if ai_config is not None:
        detector = detector or get_cached_detector()
        candidates = await detector.detect(source_text, language, ai_config)
        ai_findings = [normalize_ai_candidate(c) for c in candidates]

    # Step 3: merge
    findings = merge_findings(rule_findings, ai_findings)

    # Step 4: score
    score = analysis_score(len(findings))

    result = AnalysisResult(
        findings=findings,
        security_score=score,
        total_findings=len(findings),
        weighted_score=severity_weighted_score(findings),
        ai_used=ai_config is not None,
    )

    # Step 5: persistence
    record = AnalysisRecord(
        file_name=file_name,
        source_text=source_text,
        finding_count=len(findings),
        score=score,
        language=language,
        ai_used=result.ai_used,
    )
    _persist(repository, user_id, record, result)

    elapsed_ms = int((time.time() - start_time) * 1000)
    logger.info(
        "Analysis completed",
        extra={
            "file_name": file_name,
            "language": language,
            "rule_findings": len(rule_findings),
            "ai_findings": len(ai_findings),
            "total_findings": len(findings),
            "security_score": score,
            "elapsed_ms": elapsed_ms,
        },
    )
    return result


def _persist(
    repository: AnalysisRepository,
    user_id: Optional[str],
    record: AnalysisRecord,
    result: AnalysisResult,
) -> None:
    """Store the analysis and update user stats, recording failures on the result."""
    try:
        analysis_id, _ = repository.save_analysis(user_id, record, result.findings)
        result.analysis_id = analysis_id
        repository.update_user_stats(user_id, user_score_update(record.finding_count))
    except PersistenceError as e:
        logger.error(
            f"Failed to persist analysis: {e}",
            extra={"file_name": record.file_name, "user_id": user_id},
        )
        result.persistence_error = str(e)
    except Exception as e:
        logger.exception(
            f"Unexpected error persisting analysis: {e}",
            extra={"file_name": record.file_name, "user_id": user_id},
        )
        result.persistence_error = str(e)


def run_analysis_sync(
    source_text: Any,
    file_name: str = "",
    language: str | None = None,
    use_ai: bool = False,
    **kwargs: Any,
) -> AnalysisResult:
    """
    Synchronous wrapper for run_analysis.

    Use this when calling from synchronous code contexts.
    """
    return asyncio.run(run_analysis(source_text, file_name, language, use_ai, **kwargs))


# =============================================================================
# Dashboard aggregation
# =============================================================================


def compute_trend(historical_scores: Sequence[float]) -> str:
    """
    Relative change between the older and newer half of a score history.

    Scores are ordered oldest first. With an odd count the middle analysis
    belongs to the newer half. Fewer than two analyses, or an older half
    averaging 0, report "0%".

    Returns:
        Signed whole percentage such as "+12%", "-5%" or "0%".
    """
    if len(historical_scores) < 2:
        return "0%"

    middle = len(historical_scores) // 2
    older = historical_scores[:middle]
    newer = historical_scores[middle:]
    older_mean = sum(older) / len(older)
    newer_mean = sum(newer) / len(newer)

    if older_mean == 0:
        return "0%"

    change = (newer_mean - older_mean) / older_mean * 100
    percent = int(Decimal(str(abs(change))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if percent == 0:
        return "0%"
    return f"+{percent}%" if change > 0 else f"-{percent}%"


def compute_aggregate_stats(
    historical_scores: Sequence[float],
    historical_finding_counts: Sequence[int],
    default_score: int | None = None,
) -> AggregateStats:
    """
    Summarize a user's analysis history for the dashboard.

    Args:
        historical_scores: Stored score of each analysis, oldest first.
        historical_finding_counts: Finding count of each analysis.
        default_score: Average reported for an empty history; the configured
            default_aggregate_score (85) when omitted.

    Returns:
        AggregateStats with totals, rounded average score and trend.
    """
    if default_score is None:
        default_score = get_cached_config().default_aggregate_score

    return AggregateStats(
        total_analyses=len(historical_scores),
        total_findings=sum(historical_finding_counts),
        average_score=aggregate_score(historical_scores, default=default_score),
        trend=compute_trend(historical_scores),
    )


# =============================================================================
# Export
# =============================================================================


def export_analysis(
    result: AnalysisResult,
    file_name: str,
    timestamp: str | None = None,
) -> ExportedAnalysis:
    """
    Build the machine-readable export of an analysis.

    Each vulnerability carries only type, severity, line, description and
    fix. Serialize with ``model_dump(by_alias=True)`` for the camelCase shape.

    Args:
        result: Analysis to export.
        file_name: Name of the analyzed file.
        timestamp: ISO-8601 export time; now (UTC) when omitted.
    """
    return ExportedAnalysis(
        file_name=file_name,
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
        vulnerabilities=[
            ExportedVulnerability(
                type=f.type,
                severity=f.severity,
                line=f.line,
                description=f.description,
                fix=f.fix,
            )
            for f in result.findings
        ],
    )


def list_available_rules(language: str | None = None) -> list[dict]:
    """List loaded rules, optionally only the active rules of one language."""
    store = default_rule_store()
    rules = store.get_active_rules(language) if language else store.all_rules()
    return [r.model_dump(by_alias=True) for r in rules]
