"""SecureCode MCP - Static vulnerability detection and scoring via Model Context Protocol."""

__version__ = "0.1.0"

from securecode_mcp.exceptions import (
    AIProviderError,
    ConfigurationError,
    PersistenceError,
    RuleLoadError,
    SecureCodeError,
)
from securecode_mcp.models import (
    AggregateStats,
    AnalysisResult,
    ExportedAnalysis,
    Finding,
    SecurityRule,
)
from securecode_mcp.tools.analyzer import (
    compute_aggregate_stats,
    export_analysis,
    run_analysis,
    run_analysis_sync,
)

__all__ = [
    # Errors
    "AIProviderError",
    "ConfigurationError",
    "PersistenceError",
    "RuleLoadError",
    "SecureCodeError",
    # Models
    "AggregateStats",
    "AnalysisResult",
    "ExportedAnalysis",
    "Finding",
    "SecurityRule",
    # Analysis
    "compute_aggregate_stats",
    "export_analysis",
    "run_analysis",
    "run_analysis_sync",
]
