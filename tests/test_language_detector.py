"""Tests for language detection."""

from securecode_mcp.config import EngineConfig
from securecode_mcp.language_detector import LanguageDetector


def test_detect_from_extension():
    detector = LanguageDetector(EngineConfig())
    assert detector.detect_language("src/app.ts") == "typescript"
    assert detector.detect_language("Component.JSX") == "javascript"
    assert detector.detect_language("lib/index.mjs") == "javascript"


def test_detect_typescript_from_content():
    detector = LanguageDetector(EngineConfig())
    code = "interface User {\n  name: string;\n}\n"
    assert detector.detect_language("snippet.txt", code) == "typescript"


def test_default_language_fallback():
    detector = LanguageDetector(EngineConfig(default_language="javascript"))
    assert detector.detect_language("", "const x = 1;") == "javascript"
    assert detector.detect_language(None, None) == "javascript"


def test_supported_extensions():
    assert ".tsx" in LanguageDetector(EngineConfig()).supported_extensions()
