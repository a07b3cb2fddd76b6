"""
Rule store: the ordered set of detection rules the engine evaluates.

Rules are authored by an administrative collaborator and are read-only to the
engine while a scan runs. The store keeps them in insertion order and answers
one question for the matcher: which rules are active for a given language.

Rule files live in the rules directory as ``<language>.json`` and contain
either a JSON array of rule objects or ``{"rules": [...]}``. Keys may be
camelCase (``customMessage``, ``fixSuggestion``, ``isActive``) or snake_case.

Example:
    >>> store = RuleStore.from_directory("rules")
    >>> for rule in store.get_active_rules("JavaScript"):
    ...     print(rule.id, rule.severity)
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from securecode_mcp.config import resolve_rules_dir
from securecode_mcp.exceptions import RuleLoadError, RuleValidationError
from securecode_mcp.models import RuleCategory, RuleSeverity, SecurityRule

logger = logging.getLogger(__name__)


# =============================================================================
# Helper Functions
# =============================================================================


def _normalize_severity(value: Any) -> RuleSeverity:
    """
    Map a severity string to a RuleSeverity, defaulting to MEDIUM.

    Args:
        value: Severity string from a rule record.

    Returns:
        Corresponding RuleSeverity value.
    """
    mapping = {
        "critical": RuleSeverity.CRITICAL,
        "high": RuleSeverity.HIGH,
        "medium": RuleSeverity.MEDIUM,
        "low": RuleSeverity.LOW,
        "error": RuleSeverity.HIGH,
        "warning": RuleSeverity.MEDIUM,
        "info": RuleSeverity.LOW,
    }
    return mapping.get(value.lower(), RuleSeverity.MEDIUM) if isinstance(value, str) else RuleSeverity.MEDIUM


def _normalize_category(value: Any) -> RuleCategory:
    """
    Map a category string to a RuleCategory, defaulting to OTHER.

    Args:
        value: Category string from a rule record.

    Returns:
        Corresponding RuleCategory value.
    """
    if not isinstance(value, str) or not value.strip():
        return RuleCategory.OTHER

    lowered = value.strip().lower()
    for category in RuleCategory:
        if category.value.lower() == lowered:
            return category

    mapping = {
        "cross-site-scripting": RuleCategory.XSS,
        "cross_site_scripting": RuleCategory.XSS,
        "code-injection": RuleCategory.INJECTION,
        "code_injection": RuleCategory.INJECTION,
        "secret": RuleCategory.SECRETS,
        "hardcoded-secret": RuleCategory.SECRETS,
        "credentials": RuleCategory.SECRETS,
        "authn": RuleCategory.AUTHENTICATION,
        "authz": RuleCategory.AUTHORIZATION,
    }
    return mapping.get(lowered, RuleCategory.OTHER)


def _validate_rule(item: Any, language: str | None, index: int) -> SecurityRule:
    """
    Validate a raw rule record.

    Args:
        item: Raw rule dictionary from JSON.
        language: Language implied by the file name, used when the record
            does not carry its own.
        index: Index in the rules array (for error messages).

    Returns:
        Validated SecurityRule.

    Raises:
        RuleValidationError: If required fields are missing or invalid.
    """
    if not isinstance(item, dict):
        raise RuleValidationError(f"Rule at index {index} is not an object")

    record = dict(item)
    if language and not record.get("language"):
        record["language"] = language

    required_fields = ["id", "name", "pattern", "severity", "category", "language"]
    missing = [f for f in required_fields if not record.get(f)]
    if missing:
        raise RuleValidationError(
            f"Rule at index {index} missing required fields: {missing}",
            rule_id=record.get("id"),
            details={"missing_fields": missing},
        )

    record["severity"] = _normalize_severity(record["severity"])
    record["category"] = _normalize_category(record["category"])

    try:
        return SecurityRule.model_validate(record)
    except ValidationError as e:
        raise RuleValidationError(
            f"Rule '{record.get('id')}' failed validation: {e}",
            rule_id=record.get("id"),
            details={"validation_errors": e.errors()},
        ) from e


# =============================================================================
# RuleStore Class
# =============================================================================


class RuleStore:
    """
    Ordered, thread-safe collection of detection rules.

    Adding a rule whose id already exists replaces it in place, so the
    original insertion position is kept.

    Example:
        >>> store = RuleStore([rule_a, rule_b])
        >>> store.get_active_rules("javascript")
        [rule_a, rule_b]
    """

    def __init__(self, rules: Iterable[SecurityRule] | None = None):
        self._lock = threading.RLock()
        self._rules: dict[str, SecurityRule] = {}
        for rule in rules or []:
            self.add_rule(rule)

    def __len__(self) -> int:
        return len(self._rules)

    @classmethod
    def from_directory(cls, rules_dir: str | Path | None = None) -> RuleStore:
        """
        Build a store from every ``*.json`` rule file in a directory.

        Args:
            rules_dir: Directory to load. Resolved with resolve_rules_dir()
                when omitted.

        Returns:
            RuleStore with all valid rules, files loaded in name order.

        Raises:
            RuleLoadError: If a rule file exists but cannot be read or parsed.
        """
        directory = Path(rules_dir) if rules_dir is not None else resolve_rules_dir()
        store = cls()

        if not directory.exists():
            logger.warning(f"Rules directory does not exist: {directory}")
            return store

        for json_file in sorted(directory.glob("*.json")):
            store.load_file(json_file)

        logger.info(
            "Rule store loaded",
            extra={
                "rules_dir": str(directory),
                "rule_count": len(store),
                "languages": store.languages(),
            },
        )
        return store

    def load_file(self, path: str | Path, language: str | None = None) -> list[SecurityRule]:
        """
        Load rules from one JSON file and append them to the store.

        Invalid records are skipped with a warning; the rest of the file
        still loads.

        Args:
            path: Path to the rule file.
            language: Language for records without one. Defaults to the file
                stem (``javascript.json`` -> ``javascript``).

        Returns:
            The rules that were added.

        Raises:
            RuleLoadError: If the file cannot be read or is not valid JSON.
        """
        json_path = Path(path)
        language = language or json_path.stem

        try:
            with open(json_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise RuleLoadError(
                f"Invalid JSON in {json_path}: {e}",
                language=language,
                path=str(json_path),
            ) from e
        except OSError as e:
            raise RuleLoadError(
                f"Cannot read {json_path}: {e}",
                language=language,
                path=str(json_path),
            ) from e

        items = data if isinstance(data, list) else data.get("rules", []) if isinstance(data, dict) else []

        loaded: list[SecurityRule] = []
        for idx, item in enumerate(items):
            try:
                rule = _validate_rule(item, language, idx)
            except RuleValidationError as e:
                logger.warning(f"Skipping invalid rule at index {idx} in {json_path.name}: {e}")
                continue
            self.add_rule(rule)
            loaded.append(rule)

        logger.debug(
            f"Loaded {len(loaded)} rules from {json_path.name}",
            extra={"language": language, "rule_count": len(loaded)},
        )
        return loaded

    def add_rule(self, rule: SecurityRule) -> None:
        """Add a rule, replacing any existing rule with the same id in place."""
        with self._lock:
            self._rules[rule.id] = rule

    def get_rule(self, rule_id: str) -> SecurityRule | None:
        """Return the rule with the given id, or None."""
        return self._rules.get(rule_id)

    def all_rules(self) -> list[SecurityRule]:
        """Return every rule, active or not, in insertion order."""
        with self._lock:
            return list(self._rules.values())

    def get_active_rules(self, language: str) -> list[SecurityRule]:
        """
        Return active rules for a language.

        Language matching is case-insensitive. Order is insertion order; it
        is not sorted by severity. An unknown language yields an empty list.

        Args:
            language: Language to filter on.

        Returns:
            Active rules for the language.
        """
        wanted = (language or "").strip().lower()
        with self._lock:
            return [
                rule for rule in self._rules.values()
                if rule.is_active and rule.language.lower() == wanted
            ]

    def languages(self) -> list[str]:
        """Return the distinct languages that have at least one rule."""
        with self._lock:
            return sorted({rule.language.lower() for rule in self._rules.values()})


# =============================================================================
# Module-level default store
# =============================================================================


_default_store: RuleStore | None = None
_default_store_lock = threading.Lock()


def default_rule_store() -> RuleStore:
    """
    Get the process-wide RuleStore loaded from the rules directory.

    Returns:
        Shared RuleStore instance.
    """
    global _default_store
    with _default_store_lock:
        if _default_store is None:
            _default_store = RuleStore.from_directory()
        return _default_store


def clear_rule_store_cache() -> None:
    """Drop the shared RuleStore so the next call reloads rule files."""
    global _default_store
    with _default_store_lock:
        _default_store = None
        logger.info("Rule store cache cleared")
