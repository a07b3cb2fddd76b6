"""MCP tools for vulnerability analysis, dashboard statistics and export."""

from securecode_mcp.tools.analyzer import (
    clear_engine_cache,
    compute_aggregate_stats,
    compute_trend,
    detect_rule_findings,
    export_analysis,
    get_config_provider,
    get_repository,
    list_available_rules,
    run_analysis,
    run_analysis_sync,
    set_collaborators,
)

__all__ = [
    "clear_engine_cache",
    "compute_aggregate_stats",
    "compute_trend",
    "detect_rule_findings",
    "export_analysis",
    "get_config_provider",
    "get_repository",
    "list_available_rules",
    "run_analysis",
    "run_analysis_sync",
    "set_collaborators",
]
