"""Resource handlers for exposing rules and configuration via MCP."""

from securecode_mcp.ai_detector import AI_PROVIDERS
from securecode_mcp.config import load_config
from securecode_mcp.rule_store import default_rule_store


def get_rules_resource(language: str | None = None) -> str:
    """Get rules as formatted text resource."""
    store = default_rule_store()
    rules = store.get_active_rules(language) if language else store.all_rules()
    if not rules:
        return "No rules configured for the specified language."

    lines = ["# Security Rules\n"]
    for r in rules:
        lines.append(f"## {r.name} (`{r.id}`)")
        lines.append(f"- Language: {r.language}")
        lines.append(f"- Category: {r.category}")
        lines.append(f"- Severity: {r.severity}")
        if r.description:
            lines.append(f"- Description: {r.description}")
        if r.fix_suggestion:
            lines.append(f"- Fix: {r.fix_suggestion}")
        if not r.is_active:
            lines.append("- Inactive")
        lines.append("")
    return "\n".join(lines)


def get_config_resource() -> str:
    """Get engine configuration as formatted text."""
    config = load_config()
    lines = [
        "# Engine Configuration",
        "",
        f"Default language: {config.default_language}",
        f"Pattern timeout: {config.pattern_timeout_seconds}s",
        f"Max findings per scan: {config.max_findings_per_scan}",
        f"AI timeout: {config.ai_timeout_seconds}s",
        f"AI fallback: {config.ai_fallback}",
        f"Default aggregate score: {config.default_aggregate_score}",
        "",
        "Extensions:",
    ]
    for ext, language in sorted(config.extensions.items()):
        lines.append(f"  - {ext}: {language}")
    lines.append("")
    lines.append("AI providers:")
    for provider in AI_PROVIDERS:
        lines.append(f"  - {provider.id}: {', '.join(provider.models)}")
    return "\n".join(lines)
