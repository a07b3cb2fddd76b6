"""
Language detection for code submitted without an explicit language.

The file extension is the primary signal, using the extension map from
``config.yaml``. When the extension is unknown, the content is checked for
TypeScript-only syntax. Anything else falls back to the configured default
language (javascript).

Example:
    >>> detect_language("src/app.tsx")
    'typescript'
    >>> detect_language("snippet.txt", "const x = 1;")
    'javascript'
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Optional

from securecode_mcp.config import EngineConfig, load_config

logger = logging.getLogger(__name__)


# Syntax that only appears in TypeScript
TYPESCRIPT_INDICATORS: list[re.Pattern[str]] = [
    re.compile(r":\s*(string|number|boolean|any|void|never|unknown)\b"),
    re.compile(r"\binterface\s+\w+\s*\{"),
    re.compile(r"\btype\s+\w+\s*="),
    re.compile(r"\bimplements\s+\w+"),
    re.compile(r"\bdeclare\s+(const|let|var|function|class|module|namespace)\b"),
    re.compile(r"\breadonly\s+\w+"),
]

# Indicators needed before content is classified as TypeScript
TYPESCRIPT_THRESHOLD = 2


class LanguageDetector:
    """
    Extension- and content-based language detector.

    Attributes:
        config: Engine configuration supplying the extension map and the
            default language.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config if config is not None else load_config()

    def language_for_extension(self, file_name: str) -> Optional[str]:
        """Language mapped to the file's extension, or None."""
        if not file_name:
            return None
        suffix = Path(file_name).suffix.lower()
        return self.config.extensions.get(suffix)

    def detect_language(self, file_name: str | None = None, code: str | None = None) -> str:
        """
        Detect the language of a code unit.

        Args:
            file_name: Name or path of the file, if known.
            code: Source text, used when the extension is not recognised.

        Returns:
            A language name; never raises.
        """
        language = self.language_for_extension(file_name or "")
        if language:
            return language

        if code:
            hits = sum(1 for pattern in TYPESCRIPT_INDICATORS if pattern.search(code))
            if hits >= TYPESCRIPT_THRESHOLD:
                logger.debug(f"Detected typescript from content ({hits} indicators)")
                return "typescript"

        return self.config.default_language

    def supported_extensions(self) -> list[str]:
        return sorted(self.config.extensions)


# =============================================================================
# Module-level convenience functions
# =============================================================================


_detector: LanguageDetector | None = None
_detector_lock = threading.Lock()


def get_detector() -> LanguageDetector:
    """Get the shared LanguageDetector."""
    global _detector
    with _detector_lock:
        if _detector is None:
            _detector = LanguageDetector()
        return _detector


def detect_language(file_name: str | None = None, code: str | None = None) -> str:
    """Detect a language with the shared detector."""
    return get_detector().detect_language(file_name, code)
