"""
Supported narration languages.
"""

from __future__ import annotations

from typing import Dict, NamedTuple

from .errors import InvalidInputError


class Language(NamedTuple):
    code: str
    name: str
    native: str


SUPPORTED_LANGUAGES: Dict[str, Language] = {
    "en": Language("en", "English", "English"),
    "vi": Language("vi", "Vietnamese", "Tiếng Việt"),
    "zh": Language("zh", "Chinese", "中文"),
    "ja": Language("ja", "Japanese", "日本語"),
    "ko": Language("ko", "Korean", "한국어"),
    "es": Language("es", "Spanish", "Español"),
    "fr": Language("fr", "French", "Français"),
    "de": Language("de", "German", "Deutsch"),
    "pt": Language("pt", "Portuguese", "Português"),
    "th": Language("th", "Thai", "ไทย"),
}


def is_supported(code: str) -> bool:
    return code in SUPPORTED_LANGUAGES


def get_language(code: str) -> Language:
    """Look up display metadata for a language code."""
    try:
        return SUPPORTED_LANGUAGES[code]
    except KeyError:
        raise InvalidInputError(
            f"Unsupported language '{code}'. Expected one of {sorted(SUPPORTED_LANGUAGES)}."
        ) from None


__all__ = ["Language", "SUPPORTED_LANGUAGES", "is_supported", "get_language"]
