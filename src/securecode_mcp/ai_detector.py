"""
AI vulnerability detector.

Sends the source text to a user-configured LLM provider with a prompt asking
for a fixed JSON shape, and parses the reply into AICandidates. This path is
best-effort: every failure (network error, non-200 status, timeout,
malformed or incomplete JSON, unsupported provider) is contained inside
``AIDetector.detect``, which then returns the configured fallback instead of
raising. The rule-based path keeps working when no provider is reachable.

Supported providers: openai, anthropic, mistral (OpenAI-compatible API),
google (Gemini). Cohere is listed in the catalog but has no transport yet.

Example:
    >>> detector = AIDetector(timeout_seconds=30)
    >>> candidates = await detector.detect(code, "javascript", config)
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any

import httpx
from pydantic import ValidationError

from securecode_mcp.exceptions import AIProviderError
from securecode_mcp.models import AICandidate, AIConfig, AIProviderInfo
from securecode_mcp.prompts.prompt_templates import ANALYSIS_PROMPT, SYSTEM_PROMPT, render_template

logger = logging.getLogger(__name__)


# =============================================================================
# Provider catalog
# =============================================================================


AI_PROVIDERS: list[AIProviderInfo] = [
    AIProviderInfo(
        id="openai",
        name="OpenAI",
        models=["gpt-4", "gpt-4-turbo", "gpt-3.5-turbo"],
        default_model="gpt-4",
        max_tokens=4000,
        supports_streaming=True,
    ),
    AIProviderInfo(
        id="anthropic",
        name="Anthropic (Claude)",
        models=["claude-3-opus", "claude-3-sonnet", "claude-3-haiku"],
        default_model="claude-3-sonnet",
        max_tokens=4000,
        supports_streaming=True,
    ),
    AIProviderInfo(
        id="google",
        name="Google (Gemini)",
        models=["gemini-pro", "gemini-pro-vision"],
        default_model="gemini-pro",
        max_tokens=2000,
        supports_streaming=False,
    ),
    AIProviderInfo(
        id="mistral",
        name="Mistral AI",
        models=["mistral-large", "mistral-medium", "mistral-small"],
        default_model="mistral-medium",
        max_tokens=2000,
        supports_streaming=True,
    ),
    AIProviderInfo(
        id="cohere",
        name="Cohere",
        models=["command", "command-light"],
        default_model="command",
        max_tokens=2000,
        supports_streaming=False,
    ),
]

DEFAULT_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "mistral": "https://api.mistral.ai/v1",
    "anthropic": "https://api.anthropic.com",
    "google": "https://generativelanguage.googleapis.com/v1beta",
}

# Illustrative findings returned on failure when ai_fallback is "demo".
DEMO_FALLBACK_CANDIDATES: list[dict[str, Any]] = [
    {
        "type": "xss",
        "severity": "eleve",
        "line": 1,
        "description": "Untrusted data may be written to the DOM without escaping.",
        "codeSnippet": "element.innerHTML = userInput;",
        "fix": "Use textContent or sanitize the value with DOMPurify before inserting it.",
        "confidence": 50,
    },
    {
        "type": "injection",
        "severity": "critique",
        "line": 1,
        "description": "Dynamic code execution can run attacker-controlled input.",
        "codeSnippet": "eval(userInput);",
        "fix": "Remove eval() and parse data with JSON.parse or an explicit dispatcher.",
        "confidence": 50,
    },
    {
        "type": "secrets",
        "severity": "moyen",
        "line": 1,
        "description": "A credential-like literal appears to be hard-coded.",
        "codeSnippet": "const apiKey = '...';",
        "fix": "Load secrets from environment variables or a secret manager.",
        "confidence": 50,
    },
]

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


def get_provider_info(provider_id: str) -> AIProviderInfo | None:
    """Return the catalog entry for a provider id, or None."""
    for info in AI_PROVIDERS:
        if info.id == provider_id:
            return info
    return None


# =============================================================================
# Reply parsing
# =============================================================================


def parse_json_content(text: str, provider: str) -> dict[str, Any]:
    """
    Parse a provider's text reply as a JSON object.

    Replies wrapped in a Markdown code fence are unwrapped first.

    Raises:
        AIProviderError: If the text is not a JSON object.
    """
    if not isinstance(text, str):
        raise AIProviderError(f"{provider} reply content is not text", provider=provider)

    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise AIProviderError(f"Failed to parse {provider} response as JSON: {e}", provider=provider)

    if not isinstance(payload, dict):
        raise AIProviderError(f"{provider} response is not a JSON object", provider=provider)
    return payload


def parse_candidates(payload: dict[str, Any], provider: str = "ai") -> list[AICandidate]:
    """
    Extract AICandidates from ``{"vulnerabilities": [...], "summary": {...}}``.

    Entries that are not objects are skipped.

    Raises:
        AIProviderError: If ``vulnerabilities`` is missing or not a list.
    """
    vulnerabilities = payload.get("vulnerabilities")
    if not isinstance(vulnerabilities, list):
        raise AIProviderError(f"{provider} response has no 'vulnerabilities' list", provider=provider)

    candidates: list[AICandidate] = []
    for idx, item in enumerate(vulnerabilities):
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object vulnerability at index {idx} from {provider}")
            continue
        try:
            candidates.append(AICandidate.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping invalid vulnerability at index {idx} from {provider}: {e}")
    return candidates


# =============================================================================
# Provider transports
# =============================================================================


async def call_openai_compatible(
    prompt: str,
    system_prompt: str,
    api_key: str,
    model: str,
    base_url: str,
    temperature: float = 0.1,
    max_tokens: int = 4000,
    timeout_seconds: float = 30.0,
    provider: str = "openai",
) -> dict[str, Any]:
    """
    Call an OpenAI-compatible chat completions endpoint (OpenAI, Mistral).

    Returns the parsed JSON object from the first choice.

    Raises:
        AIProviderError: On any failure.
    """
    if not api_key:
        raise AIProviderError(f"No API key provided for {provider}.", provider=provider)

    payload = {
        "model": model,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
    }
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            resp = await client.post(f"{base_url}/chat/completions", headers=headers, json=payload)

        if resp.status_code != 200:
            raise AIProviderError(
                f"{provider} API returned {resp.status_code}: {resp.text[:500]}",
                provider=provider,
                status_code=resp.status_code,
            )

        body = resp.json()
        content = body["choices"][0]["message"]["content"]
    except httpx.TimeoutException:
        raise AIProviderError(f"{provider} request timed out after {timeout_seconds}s", provider=provider)
    except httpx.HTTPError as e:
        raise AIProviderError(f"{provider} request failed: {e}", provider=provider)
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise AIProviderError(f"Unexpected {provider} response structure: {e}", provider=provider)

    return parse_json_content(content, provider)


async def call_anthropic(
    prompt: str,
    system_prompt: str,
    api_key: str,
    model: str,
    base_url: str = DEFAULT_BASE_URLS["anthropic"],
    temperature: float = 0.1,
    max_tokens: int = 4000,
    timeout_seconds: float = 30.0,
) -> dict[str, Any]:
    """
    Call the Anthropic Messages API.

    JSON output is enforced via prompt instruction.

    Raises:
        AIProviderError: On any failure.
    """
    if not api_key:
        raise AIProviderError("No API key provided for anthropic.", provider="anthropic")

    payload = {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "system": system_prompt,
        "messages": [{"role": "user", "content": prompt}],
    }
    headers = {
        "x-api-key": api_key,
        "anthropic-version": "2023-06-01",
        "Content-Type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            resp = await client.post(f"{base_url}/v1/messages", headers=headers, json=payload)

        if resp.status_code != 200:
            raise AIProviderError(
                f"anthropic API returned {resp.status_code}: {resp.text[:500]}",
                provider="anthropic",
                status_code=resp.status_code,
            )

        body = resp.json()
        # Content is a list of blocks
        text = body["content"][0]["text"]
    except httpx.TimeoutException:
        raise AIProviderError(f"anthropic request timed out after {timeout_seconds}s", provider="anthropic")
    except httpx.HTTPError as e:
        raise AIProviderError(f"anthropic request failed: {e}", provider="anthropic")
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise AIProviderError(f"Unexpected anthropic response structure: {e}", provider="anthropic")

    return parse_json_content(text, "anthropic")


async def call_gemini(
    prompt: str,
    system_prompt: str,
    api_key: str,
    model: str,
    base_url: str = DEFAULT_BASE_URLS["google"],
    temperature: float = 0.1,
    max_tokens: int = 2000,
    timeout_seconds: float = 30.0,
) -> dict[str, Any]:
    """
    Call the Google Gemini generateContent API.

    JSON output is enforced via responseMimeType. The key travels in a
    header so it never appears in logged request URLs.

    Raises:
        AIProviderError: On any failure.
    """
    if not api_key:
        raise AIProviderError("No API key provided for google.", provider="google")

    payload = {
        "system_instruction": {"parts": [{"text": system_prompt}]},
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
            "responseMimeType": "application/json",
        },
    }
    headers = {
        "x-goog-api-key": api_key,
        "Content-Type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            resp = await client.post(
                f"{base_url}/models/{model}:generateContent",
                headers=headers,
                json=payload,
            )

        if resp.status_code != 200:
            raise AIProviderError(
                f"google API returned {resp.status_code}: {resp.text[:500]}",
                provider="google",
                status_code=resp.status_code,
            )

        body = resp.json()
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except httpx.TimeoutException:
        raise AIProviderError(f"google request timed out after {timeout_seconds}s", provider="google")
    except httpx.HTTPError as e:
        raise AIProviderError(f"google request failed: {e}", provider="google")
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise AIProviderError(f"Unexpected google response structure: {e}", provider="google")

    return parse_json_content(text, "google")


# =============================================================================
# AIDetector Class
# =============================================================================


class AIDetector:
    """
    Best-effort LLM-based vulnerability detector.

    One attempt per analysis, no retries. The call is bounded by
    ``timeout_seconds`` both at the HTTP layer and around the whole request.
    Cancelling the awaiting task cancels the HTTP call.

    Attributes:
        timeout_seconds: Upper bound on one provider call.
        fallback: "empty" returns no candidates on failure; "demo" returns
            the fixed illustrative triple.
        prompt_template: ``{{code}}``/``{{language}}`` template for the
            user prompt.
        base_urls: Provider id to API base URL.
    """

    DEFAULT_TIMEOUT: float = 30.0

    def __init__(
        self,
        timeout_seconds: float | None = None,
        fallback: str = "empty",
        prompt_template: str = ANALYSIS_PROMPT,
        base_urls: dict[str, str] | None = None,
    ):
        if fallback not in ("empty", "demo"):
            raise ValueError(f"fallback must be 'empty' or 'demo', got '{fallback}'")
        self.timeout_seconds = timeout_seconds or self.DEFAULT_TIMEOUT
        self.fallback = fallback
        self.prompt_template = prompt_template
        self.base_urls = {**DEFAULT_BASE_URLS, **(base_urls or {})}

    def build_prompt(self, source_text: str, language: str) -> str:
        """Render the analysis prompt for one code unit."""
        return render_template(self.prompt_template, code=source_text, language=language)

    def fallback_candidates(self) -> list[AICandidate]:
        """Candidates returned when the provider call fails."""
        if self.fallback == "demo":
            return [AICandidate.model_validate(item) for item in DEMO_FALLBACK_CANDIDATES]
        return []

    async def detect(self, source_text: str, language: str, config: AIConfig) -> list[AICandidate]:
        """
        Ask the configured provider for vulnerabilities in the source text.

        Never raises for provider failures: errors are logged and the
        fallback candidates are returned.

        Args:
            source_text: Full text of one code unit.
            language: Language of the code.
            config: The caller's active AI configuration.

        Returns:
            Parsed candidates on success, fallback candidates on failure.
        """
        logger.info(
            "Requesting AI analysis",
            extra={"provider": config.provider, "model": config.model, "language": language},
        )
        try:
            payload = await asyncio.wait_for(
                self._request(self.build_prompt(source_text, language), config),
                timeout=self.timeout_seconds,
            )
            candidates = parse_candidates(payload, config.provider)
        except asyncio.TimeoutError:
            logger.warning(
                f"AI analysis timed out after {self.timeout_seconds}s",
                extra={"provider": config.provider},
            )
            return self.fallback_candidates()
        except AIProviderError as e:
            logger.warning(
                f"AI analysis failed: {e}",
                extra={"provider": config.provider, "status_code": e.status_code},
            )
            return self.fallback_candidates()
        except Exception as e:
            logger.exception(f"Unexpected error during AI analysis: {e}")
            return self.fallback_candidates()

        logger.info(
            "AI analysis complete",
            extra={"provider": config.provider, "candidate_count": len(candidates)},
        )
        return candidates

    async def _request(self, prompt: str, config: AIConfig) -> dict[str, Any]:
        """Dispatch to the transport for the configured provider."""
        provider = config.provider.lower()
        api_key = config.api_key.get_secret_value()
        common = {
            "prompt": prompt,
            "system_prompt": SYSTEM_PROMPT,
            "api_key": api_key,
            "model": config.model,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "timeout_seconds": self.timeout_seconds,
        }

        if provider in ("openai", "mistral"):
            return await call_openai_compatible(base_url=self.base_urls[provider], provider=provider, **common)
        if provider == "anthropic":
            return await call_anthropic(base_url=self.base_urls["anthropic"], **common)
        if provider == "google":
            return await call_gemini(base_url=self.base_urls["google"], **common)

        raise AIProviderError(f"Provider {config.provider} is not supported", provider=config.provider)
