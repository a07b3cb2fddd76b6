"""Tests for the pattern matcher."""

import logging
import signal

import pytest

from securecode_mcp.exceptions import RuleCompileError
from securecode_mcp.rule_store import RuleStore
from securecode_mcp.rules_engine import PatternMatcher, line_number_at, split_lines


def test_split_lines_ignores_trailing_newline():
    assert split_lines("a\nb\n") == ["a", "b"]
    assert split_lines("a\nb") == ["a", "b"]
    assert split_lines("") == []


def test_line_number_at():
    text = "first\nsecond\nthird"
    assert line_number_at(text, 0) == 1
    assert line_number_at(text, text.index("second")) == 2
    assert line_number_at(text, text.index("third")) == 3


def test_match_empty_text(rule_factory):
    """Empty text yields no matches."""
    matcher = PatternMatcher(RuleStore([rule_factory()]))
    assert matcher.match("", "javascript") == []


def test_match_no_rules_for_language(rule_factory):
    matcher = PatternMatcher(RuleStore([rule_factory()]))
    assert matcher.match("el.innerHTML = x;", "python") == []


def test_match_reports_line_and_trimmed_snippet(rule_factory):
    """Without capture groups the snippet is the trimmed source line."""
    matcher = PatternMatcher(RuleStore([rule_factory()]))
    text = "const a = 1;\n    el.innerHTML = userInput;   \n"
    matches = matcher.match(text, "javascript")

    assert len(matches) == 1
    assert matches[0].line == 2
    assert matches[0].snippet == "el.innerHTML = userInput;"
    assert matches[0].language_matched == "javascript"


def test_match_capture_group_uses_matched_text(rule_factory):
    """With a capture group the snippet is the full matched text."""
    rule = rule_factory(pattern=r"(innerHTML)\s*=\s*\w+")
    matcher = PatternMatcher(RuleStore([rule]))
    matches = matcher.match("  el.innerHTML = userInput;", "javascript")
    assert matches[0].snippet == "innerHTML = userInput"


def test_match_every_occurrence(rule_factory):
    """Each non-overlapping occurrence is reported, in text order."""
    matcher = PatternMatcher(RuleStore([rule_factory()]))
    text = "a.innerHTML = 1;\nb.innerHTML = 2; c.innerHTML = 3;\n"
    assert [m.line for m in matcher.match(text, "javascript")] == [1, 2, 2]


def test_match_rule_order_then_position(rule_factory):
    store = RuleStore([
        rule_factory(id="eval", pattern=r"eval\(", category="Injection"),
        rule_factory(id="inner", pattern=r"innerHTML\s*="),
    ])
    text = "el.innerHTML = x;\neval(y);\n"
    matches = PatternMatcher(store).match(text, "javascript")
    assert [(m.rule.id, m.line) for m in matches] == [("eval", 2), ("inner", 1)]


def test_invalid_pattern_skipped(rule_factory, caplog):
    """A rule whose pattern fails to compile is skipped and logged."""
    store = RuleStore([
        rule_factory(id="broken", pattern="(unclosed"),
        rule_factory(id="good"),
    ])
    with caplog.at_level(logging.ERROR):
        matches = PatternMatcher(store).match("el.innerHTML = x;", "javascript")

    assert [m.rule.id for m in matches] == ["good"]
    assert "broken" in caplog.text


@pytest.mark.skipif(not hasattr(signal, "SIGALRM"), reason="regex timeout needs SIGALRM")
def test_slow_pattern_times_out_and_is_skipped(rule_factory, caplog):
    """A rule exceeding the regex timeout is skipped; later rules still run."""
    store = RuleStore([
        rule_factory(id="backtracking", pattern=r"(a+)+$"),
        rule_factory(id="good"),
    ])
    text = "a" * 30 + "b\nel.innerHTML = x;\n"
    with caplog.at_level(logging.WARNING):
        matches = PatternMatcher(store, pattern_timeout=0.1).match(text, "javascript")

    assert [(m.rule.id, m.line) for m in matches] == [("good", 2)]
    assert "Pattern timeout for rule backtracking" in caplog.text


def test_compile_rule_raises_for_invalid_pattern(rule_factory):
    matcher = PatternMatcher(RuleStore())
    with pytest.raises(RuleCompileError) as exc_info:
        matcher.compile_rule(rule_factory(id="broken", pattern="[a-"))
    assert exc_info.value.rule_id == "broken"


def test_compiled_patterns_cached(rule_factory):
    matcher = PatternMatcher(RuleStore())
    first = matcher.compile_rule(rule_factory(id="a"))
    second = matcher.compile_rule(rule_factory(id="b"))
    assert first.compiled_pattern is second.compiled_pattern


def test_max_matches_truncates(rule_factory):
    matcher = PatternMatcher(RuleStore([rule_factory()]), max_matches=2)
    text = "\n".join("el.innerHTML = x;" for _ in range(5))
    assert len(matcher.match(text, "javascript")) == 2


def test_match_deterministic(bundled_matcher):
    """Same text and rules give the same matches."""
    text = "eval(userInput);\nel.innerHTML = userInput;\nconst password = 'hunter22';\n"
    first = [(m.rule.id, m.line, m.snippet) for m in bundled_matcher.match(text, "javascript")]
    second = [(m.rule.id, m.line, m.snippet) for m in bundled_matcher.match(text, "javascript")]
    assert first == second
    assert first


def test_bundled_rules_detect_three_categories(bundled_matcher):
    text = "eval(userInput);\nel.innerHTML = userInput;\nconst password = 'hunter22';\n"
    categories = {m.rule.category for m in bundled_matcher.match(text, "javascript")}
    assert categories == {"Injection", "XSS", "Secrets"}


def test_bundled_inactive_rule_not_evaluated(bundled_matcher):
    matches = bundled_matcher.match("location.href = target;", "javascript")
    assert matches == []
