"""
Pattern matcher: applies regex detection rules to one source text.

The matcher asks the RuleStore for the active rules of a language, compiles
each rule's pattern (compiled patterns are cached by pattern source), and
runs it over the full text. Every non-overlapping occurrence becomes a
RawMatch carrying the rule, the 1-based line of the match start, and a
snippet.

Failures are contained per rule: a pattern that does not compile or that
exceeds the regex timeout is logged and skipped, and the scan continues with
the remaining rules.

Example:
    >>> matcher = PatternMatcher(RuleStore([xss_rule]))
    >>> matches = matcher.match("el.innerHTML = userInput;", "javascript")
    >>> [(m.rule.id, m.line) for m in matches]
    [('xss-innerhtml', 1)]
"""

from __future__ import annotations

import logging
import re
import signal
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from securecode_mcp.exceptions import PatternTimeoutError, RuleCompileError
from securecode_mcp.models import RawMatch, SecurityRule
from securecode_mcp.rule_store import RuleStore, default_rule_store

logger = logging.getLogger(__name__)


# =============================================================================
# Internal Data Structures
# =============================================================================


@dataclass
class CompiledRule:
    """
    A rule with its regex pattern compiled.

    Attributes:
        rule: The SecurityRule with all metadata.
        compiled_pattern: Compiled regex pattern.
    """

    rule: SecurityRule
    compiled_pattern: re.Pattern[str]

    @property
    def has_capture(self) -> bool:
        """Whether the pattern defines at least one capture group."""
        return self.compiled_pattern.groups > 0


# =============================================================================
# Timeout Context Manager (ReDoS Protection)
# =============================================================================


class TimeoutException(Exception):
    """Raised when an operation times out."""

    pass


@contextmanager
def timeout_context(seconds: float) -> Iterator[None]:
    """
    Context manager for timeout protection on Unix systems.

    Uses SIGALRM, which only works in the main thread. On Windows or from
    worker threads the operation runs without timeout protection.

    Args:
        seconds: Maximum execution time in seconds.

    Raises:
        TimeoutException: If the operation exceeds the timeout.
    """

    def timeout_handler(signum: int, frame: Any) -> None:
        raise TimeoutException(f"Operation timed out after {seconds} seconds")

    if hasattr(signal, "SIGALRM") and threading.current_thread() is threading.main_thread():
        old_handler = signal.signal(signal.SIGALRM, timeout_handler)
        signal.setitimer(signal.ITIMER_REAL, seconds)
        try:
            yield
        finally:
            signal.setitimer(signal.ITIMER_REAL, 0)
            signal.signal(signal.SIGALRM, old_handler)
    else:
        yield


# =============================================================================
# Helper Functions
# =============================================================================


def split_lines(text: str) -> list[str]:
    """
    Split source text into lines.

    A trailing empty last line (text ending with a line break) is not
    counted as a line.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def line_number_at(text: str, pos: int) -> int:
    """Return the 1-based line number for a character offset."""
    return text.count("\n", 0, pos) + 1


# =============================================================================
# PatternMatcher Class
# =============================================================================


class PatternMatcher:
    """
    Deterministic regex matcher over the active rules of a language.

    Attributes:
        rule_store: Source of detection rules.
        pattern_timeout: Maximum seconds for one rule's regex (ReDoS guard).
        max_matches: Upper bound on RawMatches returned for one scan.

    Thread Safety:
        Matching only reads the rule store; the compiled-pattern cache is
        protected by a lock, so one matcher can serve concurrent scans.
    """

    DEFAULT_PATTERN_TIMEOUT: float = 5.0
    DEFAULT_MAX_MATCHES: int = 1000

    def __init__(
        self,
        rule_store: RuleStore | None = None,
        pattern_timeout: float | None = None,
        max_matches: int | None = None,
    ):
        self.rule_store = rule_store if rule_store is not None else default_rule_store()
        self.pattern_timeout = pattern_timeout or self.DEFAULT_PATTERN_TIMEOUT
        self.max_matches = max_matches or self.DEFAULT_MAX_MATCHES
        self._cache: dict[str, re.Pattern[str]] = {}
        self._cache_lock = threading.Lock()

    def compile_rule(self, rule: SecurityRule) -> CompiledRule:
        """
        Compile a rule's pattern, reusing a cached compilation when possible.

        Raises:
            RuleCompileError: If the pattern is not a valid regex.
        """
        with self._cache_lock:
            compiled = self._cache.get(rule.pattern)
        if compiled is None:
            try:
                compiled = re.compile(rule.pattern, re.MULTILINE)
            except re.error as e:
                raise RuleCompileError(
                    f"Invalid regex in rule '{rule.id}': {e}",
                    rule_id=rule.id,
                    pattern=rule.pattern,
                ) from e
            with self._cache_lock:
                self._cache[rule.pattern] = compiled
        return CompiledRule(rule=rule, compiled_pattern=compiled)

    def match(self, source_text: str, language: str) -> list[RawMatch]:
        """
        Apply every active rule for a language to the source text.

        Args:
            source_text: Full text of one code unit.
            language: Language whose rules apply (case-insensitive).

        Returns:
            RawMatches in rule order, then by position within the text.
            Empty text or no active rules yields an empty list.
        """
        if not source_text:
            return []

        rules = self.rule_store.get_active_rules(language)
        if not rules:
            logger.debug(f"No active rules for language: {language}")
            return []

        lines = split_lines(source_text)
        matches: list[RawMatch] = []

        for rule in rules:
            try:
                compiled_rule = self.compile_rule(rule)
                matches.extend(self._match_rule(source_text, lines, compiled_rule, language))
            except RuleCompileError as e:
                logger.error(
                    f"Skipping rule with invalid pattern: {e}",
                    extra={"rule_id": e.rule_id, "pattern": e.pattern},
                )
            except PatternTimeoutError as e:
                logger.warning(f"Pattern timeout for rule {e.rule_id}: {e}")

        if len(matches) > self.max_matches:
            logger.warning(f"Matches truncated from {len(matches)} to {self.max_matches}")
            matches = matches[: self.max_matches]

        logger.debug(
            "Pattern matching complete",
            extra={"language": language, "rule_count": len(rules), "match_count": len(matches)},
        )
        return matches

    def _match_rule(
        self,
        text: str,
        lines: list[str],
        compiled_rule: CompiledRule,
        language: str,
    ) -> list[RawMatch]:
        """
        Run one compiled rule over the text under the regex timeout.

        Raises:
            PatternTimeoutError: If matching exceeds the timeout threshold.
        """
        rule = compiled_rule.rule

        try:
            with timeout_context(self.pattern_timeout):
                found = list(compiled_rule.compiled_pattern.finditer(text))
        except TimeoutException:
            raise PatternTimeoutError(
                f"Pattern matching timed out after {self.pattern_timeout}s",
                rule_id=rule.id,
                timeout_seconds=self.pattern_timeout,
            )

        results: list[RawMatch] = []
        for m in found:
            line = line_number_at(text, m.start())
            matched_text = m.group(0)
            if compiled_rule.has_capture and matched_text:
                snippet = matched_text
            else:
                snippet = lines[line - 1].strip() if line <= len(lines) else matched_text.strip()
            results.append(
                RawMatch(rule=rule, line=line, snippet=snippet, language_matched=language)
            )
        return results

