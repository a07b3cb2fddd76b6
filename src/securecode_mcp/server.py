"""SecureCode MCP Server - Static vulnerability detection for JavaScript and TypeScript."""

import json
import logging
import os

from mcp.server.fastmcp import FastMCP

from securecode_mcp.ai_detector import AI_PROVIDERS, get_provider_info
from securecode_mcp.collaborators import StaticAIConfigProvider
from securecode_mcp.language_detector import detect_language
from securecode_mcp.models import AIConfig, AnalysisResult
from securecode_mcp.prompts.prompt_templates import SECURITY_REVIEW_PROMPT, render_template
from securecode_mcp.resources.resource_handlers import get_config_resource, get_rules_resource
from securecode_mcp.scoring import user_level
from securecode_mcp.tools import (
    compute_aggregate_stats,
    detect_rule_findings,
    export_analysis,
    list_available_rules,
    run_analysis,
    set_collaborators,
)

# ────────────────────────────────────────────
# LOGGING SETUP
# ────────────────────────────────────────────

logger = logging.getLogger("securecode")

# ────────────────────────────────────────────
# AI CONFIGURATION
# ────────────────────────────────────────────

AI_PROVIDER_ENV = "SECURECODE_AI_PROVIDER"
AI_API_KEY_ENV = "SECURECODE_AI_API_KEY"
AI_MODEL_ENV = "SECURECODE_AI_MODEL"


def ai_config_from_env() -> AIConfig | None:
    """Build the server-wide AI config from environment variables, if set."""
    provider = os.environ.get(AI_PROVIDER_ENV)
    api_key = os.environ.get(AI_API_KEY_ENV)
    if not provider or not api_key:
        return None

    model = os.environ.get(AI_MODEL_ENV)
    if not model:
        info = get_provider_info(provider)
        model = info.default_model if info else ""
    if not model:
        logger.warning(f"No model configured for AI provider {provider}, AI analysis disabled")
        return None
    return AIConfig(provider=provider, api_key=api_key, model=model)


set_collaborators(config_provider=StaticAIConfigProvider(default=ai_config_from_env()))

# ────────────────────────────────────────────
# SERVER INSTANTIATION
# ────────────────────────────────────────────

mcp = FastMCP(
    name="SecureCode MCP",
    instructions="Static vulnerability detection for JavaScript and TypeScript. Detects XSS, code injection and hard-coded secrets with pattern rules and an optional AI provider, and scores each analysis.",
)

# ────────────────────────────────────────────
# TOOLS
# ────────────────────────────────────────────


@mcp.tool()
async def analyze(
    content: str,
    file_name: str = "",
    language: str | None = None,
    use_ai: bool = False,
    user_id: str | None = None,
) -> dict:
    """Analyze a code snippet for XSS, injection and hard-coded secrets. Returns merged findings, the security score (100 minus 10 per finding), a severity-weighted score and the analysis id. Set use_ai to also query the configured AI provider."""
    result = await run_analysis(content, file_name, language, use_ai, user_id=user_id)
    logger.info(f"analyze: {result.total_findings} findings, score {result.security_score}")
    return result.model_dump()


@mcp.tool()
def aggregate_stats(historical_scores: list[float], historical_finding_counts: list[int]) -> dict:
    """Summarize an analysis history (scores and finding counts, oldest first) into totals, average score and trend. An empty history reports an average of 85."""
    stats = compute_aggregate_stats(historical_scores, historical_finding_counts)
    logger.info(f"aggregate_stats: {stats.total_analyses} analyses")
    return stats.model_dump()


@mcp.tool()
def level(points: int) -> dict:
    """Gamified level for a user's accumulated points, with the next level and progression toward it (0-100)."""
    return user_level(points).model_dump()


@mcp.tool()
def export(analysis: dict, file_name: str) -> dict:
    """Export an analyze result as {fileName, timestamp, vulnerabilities: [{type, severity, line, description, fix}]}."""
    result = AnalysisResult.model_validate(analysis)
    exported = export_analysis(result, file_name)
    logger.info(f"export: {file_name}, {len(exported.vulnerabilities)} vulnerabilities")
    return exported.model_dump(by_alias=True)


@mcp.tool()
def list_rules(language: str | None = None) -> list:
    """List security rules. With a language (javascript, typescript), only that language's active rules."""
    return list_available_rules(language)


@mcp.tool()
def list_ai_providers() -> list:
    """List supported AI providers with their models and token limits."""
    return [p.model_dump() for p in AI_PROVIDERS]


# ────────────────────────────────────────────
# RESOURCES
# ────────────────────────────────────────────


@mcp.resource("securecode://rules")
def rules_resource() -> str:
    """All security rules across all supported languages."""
    return get_rules_resource()


@mcp.resource("securecode://rules/{language}")
def rules_for_language(language: str) -> str:
    """Active security rules for one language."""
    return get_rules_resource(language)


@mcp.resource("securecode://config")
def config_resource() -> str:
    """Detection engine configuration and settings."""
    return get_config_resource()


# ────────────────────────────────────────────
# PROMPTS
# ────────────────────────────────────────────


@mcp.prompt()
def security_analysis(code: str, language: str = "javascript", file_name: str = "") -> str:
    """Run rule-based analysis on code and return a structured review prompt with all findings included."""
    language = (language or "").strip().lower() or detect_language(file_name, code)
    findings = detect_rule_findings(code, language) if code.strip() else []
    findings_text = (
        json.dumps([f.model_dump() for f in findings], indent=2)
        if findings
        else "No findings."
    )
    logger.info(f"security_analysis prompt generated: {len(findings)} findings")
    return render_template(
        SECURITY_REVIEW_PROMPT,
        code=code,
        language=language,
        findings=findings_text,
    )


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting SecureCode MCP server...")
    mcp.run(transport="stdio")


# ────────────────────────────────────────────
# ENTRY POINT
# ────────────────────────────────────────────

if __name__ == "__main__":
    main()
