"""Prompt templates for AI vulnerability detection and code review."""

import re

TEMPLATE_VARIABLES = ("code", "language", "findings")

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

SYSTEM_PROMPT = (
    "You are an application security expert specialised in reviewing source code. "
    "Answer with a single JSON object and nothing else."
)

ANALYSIS_PROMPT = """Analyze this {{language}} code for security vulnerabilities.

Code to analyze:
```{{language}}
{{code}}
```

Look specifically for:
1. XSS (Cross-Site Scripting) vulnerabilities
2. Code injection (eval, Function, etc.)
3. Hard-coded secrets (passwords, API keys)
4. Other security problems

Answer in JSON with this structure:
{
  "vulnerabilities": [
    {
      "type": "xss|injection|secrets|other",
      "severity": "critique|eleve|moyen|faible",
      "line": number,
      "description": "Description of the vulnerability",
      "codeSnippet": "Problematic code",
      "fix": "Recommended fix",
      "confidence": number (0-100)
    }
  ],
  "summary": {
    "totalVulnerabilities": number,
    "securityScore": number (0-100),
    "recommendations": ["list of recommendations"]
  }
}"""

SECURITY_REVIEW_PROMPT = """You are a security reviewer. Review the following code and the findings reported by the detection engine.

**Language:** {{language}}

**Code to review:**
```
{{code}}
```

**Findings (from the rules engine):**
{{findings}}

Provide a structured review with:
1. Summary of findings
2. Critical issues (if any)
3. Likely false positives
4. Specific line references and fixes
"""


def render_template(
    template: str,
    *,
    code: str,
    language: str,
    findings: str = "",
) -> str:
    """
    Substitute ``{{code}}``, ``{{language}}`` and ``{{findings}}`` placeholders.

    Unknown placeholders are left as they are. Substituted values are not
    re-scanned, so code containing ``{{...}}`` is inserted verbatim.
    """
    values = {"code": code, "language": language, "findings": findings}

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        return values[name] if name in TEMPLATE_VARIABLES else match.group(0)

    return _PLACEHOLDER.sub(_replace, template)
