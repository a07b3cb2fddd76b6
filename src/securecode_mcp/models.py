"""
Pydantic models for SecureCode MCP.

This module defines the data models used throughout the detection engine:
detection rules and their raw matches, the free-form candidates returned by
AI providers, canonical findings, analysis results, and the records handed
to the persistence and dashboard collaborators.

Two vocabularies coexist:
- Rules are authored with an English severity scale (critical/high/medium/low)
  and an open-ended category list.
- Findings always use the canonical closed taxonomy: three types
  (xss/injection/secrets) and four French-labelled severities
  (critique > eleve > moyen > faible).
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class RuleSeverity(str, Enum):
    """Severity a rule author assigns to a detection rule."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RuleCategory(str, Enum):
    """
    Category a rule author assigns to a detection rule.

    Only XSS, INJECTION and SECRETS have a dedicated finding type; every
    other category is reported under the xss bucket.
    """

    XSS = "XSS"
    INJECTION = "Injection"
    SECRETS = "Secrets"
    AUTHENTICATION = "Authentication"
    AUTHORIZATION = "Authorization"
    CSRF = "CSRF"
    OTHER = "Other"


class FindingType(str, Enum):
    """Canonical vulnerability type of a finding."""

    XSS = "xss"
    INJECTION = "injection"
    SECRETS = "secrets"


class Severity(str, Enum):
    """
    Canonical four-level severity scale of a finding.

    Attributes:
        CRITIQUE: Immediate exploitation risk.
        ELEVE: Significant impact, fix before deployment.
        MOYEN: Moderate risk.
        FAIBLE: Minor concern.
    """

    CRITIQUE = "critique"
    ELEVE = "eleve"
    MOYEN = "moyen"
    FAIBLE = "faible"


class FindingSource(str, Enum):
    """Detector that produced a finding."""

    RULE = "rule"
    AI = "ai"


class SecurityRule(BaseModel):
    """
    An administrator-configured detection rule.

    Rules are plain data: the pattern is only compiled by the PatternMatcher,
    so a rule with a broken pattern can be stored and will simply be skipped
    at evaluation time.

    Attributes:
        id: Unique identifier for the rule.
        name: Human-readable rule name.
        description: What the rule detects.
        language: Language the rule applies to (matched case-insensitively).
        pattern: Regular expression source.
        severity: Rule-author severity.
        category: Rule-author category.
        custom_message: Optional override for the finding description.
        fix_suggestion: Suggested remediation text.
        is_active: Inactive rules are never evaluated.

    Example:
        >>> rule = SecurityRule(
        ...     id="xss-innerhtml",
        ...     name="innerHTML assignment",
        ...     language="javascript",
        ...     pattern=r"innerHTML\\s*=.*",
        ...     severity=RuleSeverity.HIGH,
        ...     category=RuleCategory.XSS,
        ...     fix_suggestion="Use textContent instead of innerHTML",
        ... )
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "xss-innerhtml",
                "name": "innerHTML assignment",
                "description": "Untrusted data written to innerHTML",
                "language": "javascript",
                "pattern": r"innerHTML\s*=.*",
                "severity": "high",
                "category": "XSS",
                "customMessage": "User data is inserted as HTML",
                "fixSuggestion": "Use textContent or sanitize with DOMPurify",
                "isActive": True,
            }
        },
        populate_by_name=True,
        use_enum_values=True,
    )

    id: str = Field(
        ...,
        description="Unique identifier for the rule",
        min_length=1,
        examples=["xss-innerhtml", "injection-eval"]
    )
    name: str = Field(
        ...,
        description="Human-readable rule name",
        min_length=1,
        max_length=200
    )
    description: str = Field(
        default="",
        description="What the rule detects"
    )
    language: str = Field(
        ...,
        description="Language this rule applies to",
        min_length=1,
        examples=["javascript", "typescript"]
    )
    pattern: str = Field(
        ...,
        description="Regular expression source",
        min_length=1
    )
    severity: RuleSeverity = Field(
        ...,
        description="Rule-author severity level"
    )
    category: RuleCategory = Field(
        ...,
        description="Rule-author category"
    )
    custom_message: Optional[str] = Field(
        default=None,
        alias="customMessage",
        description="Overrides the generated finding description"
    )
    fix_suggestion: str = Field(
        default="",
        alias="fixSuggestion",
        description="Suggested remediation text"
    )
    is_active: bool = Field(
        default=True,
        alias="isActive",
        description="Whether the rule is evaluated"
    )


class RawMatch(BaseModel):
    """One occurrence of a rule firing, prior to normalization."""

    rule: SecurityRule
    line: int = Field(..., ge=1, description="1-based line of the match start")
    snippet: str = Field(..., description="Matched text or the trimmed line")
    language_matched: str = Field(..., description="Language the scan was run for")


class AICandidate(BaseModel):
    """
    A vulnerability exactly as an AI provider described it.

    Providers are not bound to the canonical vocabulary, so ``type`` and
    ``severity`` are kept as free strings here. Parsing is lenient: missing
    fields take defaults and a line that is not a positive integer becomes 1.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = ""
    severity: str = ""
    line: int = 1
    description: str = ""
    code_snippet: str = Field(default="", alias="codeSnippet")
    fix: str = ""
    confidence: Optional[float] = None

    @field_validator("type", "severity", "description", "code_snippet", "fix", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """Providers sometimes send null or numbers for text fields."""
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("line", mode="before")
    @classmethod
    def coerce_line(cls, v: Any) -> int:
        try:
            line = int(v)
        except (TypeError, ValueError, OverflowError):
            return 1
        return line if line >= 1 else 1

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v: Any) -> Optional[float]:
        if v is None:
            return None
        try:
            value = float(v)
        except (TypeError, ValueError, OverflowError):
            return None
        return value if math.isfinite(value) else None


class Finding(BaseModel):
    """
    A reported vulnerability in the canonical vocabulary.

    Attributes:
        id: Opaque identifier, unique within one analysis run.
        type: One of xss, injection, secrets.
        severity: One of critique, eleve, moyen, faible.
        line: 1-based line number.
        description: Human-readable explanation.
        code_snippet: Vulnerable code excerpt.
        fix: Suggested remediation.
        confidence: 0-100; 100 for rule findings.
        source: Detector that produced the finding.
        rule_id: Rule that fired, for rule findings.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "xss-1-1718000000000-3f2a9c1b",
                "type": "xss",
                "severity": "eleve",
                "line": 1,
                "description": "User data is inserted as HTML",
                "code_snippet": "document.getElementById('output').innerHTML = userInput;",
                "fix": "Use textContent or sanitize with DOMPurify",
                "confidence": 100,
                "source": "rule",
                "rule_id": "xss-innerhtml",
            }
        },
        use_enum_values=True,
    )

    id: str = Field(..., min_length=1)
    type: FindingType
    severity: Severity
    line: int = Field(..., ge=1)
    description: str = ""
    code_snippet: str = ""
    fix: str = ""
    confidence: float = Field(default=100.0, ge=0.0, le=100.0)
    source: FindingSource
    rule_id: Optional[str] = None


class AnalysisResult(BaseModel):
    """
    Output of one analysis run.

    Attributes:
        findings: Merged, de-duplicated findings.
        security_score: max(100 - 10 x total_findings, 0).
        weighted_score: 100 minus per-severity penalties, floored at 0.
        total_findings: Number of findings.
        analysis_id: Identifier returned by the persistence collaborator.
        ai_used: Whether AI findings were requested and a config was available.
        persistence_error: Set when storing the analysis failed; the result
            itself is still valid.
    """

    model_config = ConfigDict(use_enum_values=True)

    findings: list[Finding] = Field(default_factory=list)
    security_score: int = Field(default=100, ge=0, le=100)
    total_findings: int = Field(default=0, ge=0)
    weighted_score: int = Field(default=100, ge=0, le=100)
    analysis_id: Optional[str] = None
    ai_used: bool = False
    persistence_error: Optional[str] = None

    @field_validator("total_findings")
    @classmethod
    def validate_total_matches_findings(cls, v: int, info) -> int:
        """Validate total_findings matches the findings list length."""
        findings = info.data.get("findings", [])
        if v != len(findings):
            raise ValueError(
                f"total_findings ({v}) must match findings count ({len(findings)})"
            )
        return v


class AIConfig(BaseModel):
    """A user's active AI provider configuration. The API key is a secret."""

    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(..., min_length=1, examples=["openai", "anthropic"])
    api_key: SecretStr = Field(..., alias="apiKey")
    model: str = Field(..., min_length=1)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4000, alias="maxTokens", ge=1)


class AIProviderInfo(BaseModel):
    """Catalog entry describing a supported AI provider."""

    id: str
    name: str
    models: list[str]
    default_model: str
    max_tokens: int
    supports_streaming: bool = False


class AggregateStats(BaseModel):
    """Dashboard summary across a user's historical analyses."""

    total_analyses: int = Field(default=0, ge=0)
    total_findings: int = Field(default=0, ge=0)
    average_score: int = Field(default=85, ge=0, le=100)
    trend: str = "0%"


class AnalysisRecord(BaseModel):
    """Analysis row handed to the persistence collaborator."""

    file_name: str
    source_text: str
    finding_count: int = Field(..., ge=0)
    score: int = Field(..., ge=0, le=100)
    language: str
    ai_used: bool = False


class UserScoreUpdate(BaseModel):
    """Point and score change applied to a user after an analysis."""

    points_gained: int = Field(..., ge=0)
    new_security_score: int = Field(..., ge=0, le=100)


class UserLevel(BaseModel):
    """Gamified level derived from a user's accumulated points."""

    level: str
    next_level: str
    progression: float = Field(..., ge=0.0, le=100.0)


class ExportedVulnerability(BaseModel):
    """Finding as it appears in a machine-readable export."""

    model_config = ConfigDict(use_enum_values=True)

    type: FindingType
    severity: Severity
    line: int = Field(..., ge=1)
    description: str
    fix: str


class ExportedAnalysis(BaseModel):
    """
    Machine-readable dump of one analysis.

    Serialize with ``model_dump(by_alias=True)`` to get the camelCase wire
    shape ``{fileName, timestamp, vulnerabilities}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName")
    timestamp: str = Field(..., description="ISO-8601 export time")
    vulnerabilities: list[ExportedVulnerability] = Field(default_factory=list)
