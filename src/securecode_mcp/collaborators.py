"""
Collaborator interfaces used by the analysis orchestrator.

The engine does not own storage or user settings. It talks to two
collaborators:

- AIConfigProvider: returns the caller's active AI configuration, if any.
- AnalysisRepository: stores analyses with their findings and updates user
  statistics.

In-memory implementations are provided for the MCP server and for tests.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from typing import Optional, Protocol

from securecode_mcp.exceptions import PersistenceError
from securecode_mcp.models import AIConfig, AnalysisRecord, Finding, UserScoreUpdate

logger = logging.getLogger(__name__)

# Analyses kept per user by InMemoryAnalysisRepository
DEFAULT_MAX_HISTORY = 100


class AIConfigProvider(Protocol):
    """Source of per-user AI provider configuration."""

    def get_active_config(self, user_id: Optional[str]) -> Optional[AIConfig]:
        ...


class AnalysisRepository(Protocol):
    """Persistence for analyses, findings and user statistics."""

    def save_analysis(
        self,
        user_id: Optional[str],
        record: AnalysisRecord,
        findings: list[Finding],
    ) -> tuple[str, list[str]]:
        ...

    def update_user_stats(self, user_id: Optional[str], update: UserScoreUpdate) -> None:
        ...


class StaticAIConfigProvider:
    """
    AIConfigProvider backed by a dict of user id to config.

    A ``default`` config, when given, is returned for users without their
    own entry (including anonymous callers).
    """

    def __init__(
        self,
        configs: dict[str, AIConfig] | None = None,
        default: AIConfig | None = None,
    ):
        self._configs = dict(configs or {})
        self._default = default

    def set_config(self, user_id: str, config: AIConfig) -> None:
        self._configs[user_id] = config

    def get_active_config(self, user_id: Optional[str]) -> Optional[AIConfig]:
        if user_id is not None and user_id in self._configs:
            return self._configs[user_id]
        return self._default


class InMemoryAnalysisRepository:
    """
    Thread-safe AnalysisRepository kept in process memory.

    Analyses are stored per user (anonymous callers share the ``None`` key).
    Only the latest ``max_history`` analyses of each user are kept; older ones
    are dropped as new ones arrive. User statistics accumulate points and keep
    the latest security score.
    """

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY):
        if max_history < 1:
            raise ValueError(f"max_history must be at least 1, got {max_history}")
        self.max_history = max_history
        self._lock = threading.Lock()
        self._analyses: dict[Optional[str], deque[dict]] = {}
        self._user_stats: dict[Optional[str], dict[str, int]] = {}

    def save_analysis(
        self,
        user_id: Optional[str],
        record: AnalysisRecord,
        findings: list[Finding],
    ) -> tuple[str, list[str]]:
        analysis_id = uuid.uuid4().hex
        finding_ids = [f.id for f in findings]
        with self._lock:
            history = self._analyses.get(user_id)
            if history is None:
                history = self._analyses[user_id] = deque(maxlen=self.max_history)
            history.append(
                {
                    "analysis_id": analysis_id,
                    "record": record,
                    "findings": list(findings),
                }
            )
        logger.debug(
            "Stored analysis",
            extra={"analysis_id": analysis_id, "finding_count": len(finding_ids)},
        )
        return analysis_id, finding_ids

    def update_user_stats(self, user_id: Optional[str], update: UserScoreUpdate) -> None:
        with self._lock:
            stats = self._user_stats.setdefault(user_id, {"points": 0, "security_score": 100})
            stats["points"] += update.points_gained
            stats["security_score"] = update.new_security_score

    def get_analyses(self, user_id: Optional[str]) -> list[dict]:
        """Stored analyses for a user, oldest first."""
        with self._lock:
            return list(self._analyses.get(user_id, []))

    def get_user_stats(self, user_id: Optional[str]) -> dict[str, int]:
        with self._lock:
            return dict(self._user_stats.get(user_id, {"points": 0, "security_score": 100}))


class FailingAnalysisRepository:
    """AnalysisRepository whose every call fails. Used to exercise error paths."""

    def __init__(self, message: str = "storage unavailable"):
        self.message = message

    def save_analysis(self, user_id, record, findings):
        raise PersistenceError(self.message)

    def update_user_stats(self, user_id, update):
        raise PersistenceError(self.message)
