"""
Exception hierarchy for the SecureCode detection engine.

Rule-level and provider-level errors are recovered close to where they are
raised (a bad rule is skipped, a failing AI provider degrades to no AI
findings). Only a rule store that cannot be loaded at all is meant to reach
the caller as a hard failure.
"""

from __future__ import annotations

from typing import Any


class SecureCodeError(Exception):
    """Base exception for all SecureCode errors."""

    pass


# =============================================================================
# Rule Engine Errors
# =============================================================================


class RuleEngineError(SecureCodeError):
    """Base exception for rule loading and matching errors."""

    pass


class RuleLoadError(RuleEngineError):
    """Raised when a rule file cannot be read or parsed."""

    def __init__(self, message: str, language: str | None = None, path: str | None = None):
        self.language = language
        self.path = path
        super().__init__(message)


class RuleValidationError(RuleEngineError):
    """Raised when a rule record fails validation against the schema."""

    def __init__(self, message: str, rule_id: str | None = None, details: dict[str, Any] | None = None):
        self.rule_id = rule_id
        self.details = details or {}
        super().__init__(message)


class RuleCompileError(RuleEngineError):
    """Raised when a rule's regex pattern cannot be compiled."""

    def __init__(self, message: str, rule_id: str, pattern: str):
        self.rule_id = rule_id
        self.pattern = pattern
        super().__init__(message)


class PatternTimeoutError(RuleEngineError):
    """Raised when regex matching exceeds the timeout threshold."""

    def __init__(self, message: str, rule_id: str, timeout_seconds: float):
        self.rule_id = rule_id
        self.timeout_seconds = timeout_seconds
        super().__init__(message)


class ConfigurationError(SecureCodeError):
    """Raised when config.yaml is invalid."""

    pass


# =============================================================================
# Analysis Errors
# =============================================================================


class AIProviderError(SecureCodeError):
    """Raised when calling or parsing an AI provider fails."""

    def __init__(self, message: str, provider: str | None = None, status_code: int | None = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class PersistenceError(SecureCodeError):
    """Raised by a persistence collaborator when records cannot be stored."""

    pass


class InvalidInputError(SecureCodeError):
    """Raised for source text that is empty or not a string."""

    pass
