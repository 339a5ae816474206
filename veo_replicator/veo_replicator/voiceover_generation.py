"""
Voiceover generation agent: 8-second narration scripts per scene.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from .config import SCENE_SPOKEN_SECONDS
from .errors import InvalidInputError
from .gateway import ModelGateway, parse_structured_array, parse_structured_object
from .languages import get_language
from .media import scene_time_range
from .prompts import VOICEOVER_SYSTEM, build_single_voiceover_prompt, build_voiceover_batch_prompt
from .types import RawVoiceoverResponse, VoiceoverScript, VoiceoverTone

logger = logging.getLogger(__name__)


def count_words(script: str) -> int:
    """Whitespace-delimited token count."""
    return len((script or "").split())


def _parse_tone(value: Any) -> VoiceoverTone:
    try:
        return VoiceoverTone(str(value).strip().lower())
    except ValueError:
        return VoiceoverTone.NARRATIVE


def _positive_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _normalise_voiceover(raw: RawVoiceoverResponse, scene_index: int, language: str) -> VoiceoverScript:
    """Fill defaults for one voiceover element. scene_index comes from its position."""
    if not isinstance(raw, dict):
        raw = {}
    script = str(raw.get("script") or "").strip()
    word_count = _positive_number(raw.get("wordCount"))
    duration = _positive_number(raw.get("estimatedDuration"))
    return VoiceoverScript(
        scene_index=scene_index,
        time_range=scene_time_range(scene_index),
        language=language,
        script=script,
        word_count=int(word_count) if word_count else count_words(script),
        estimated_duration=duration or SCENE_SPOKEN_SECONDS,
        tone=_parse_tone(raw.get("tone")),
    )


def generate_voiceover_batch(
    frames: Sequence[str],
    language: str,
    start_scene_index: int,
    gateway: ModelGateway,
) -> List[VoiceoverScript]:
    """
    Generate narration for up to BATCH_SIZE consecutive frames in one language.

    Raises:
        InvalidInputError: frames is empty or the language is unknown
    """
    if not frames:
        raise InvalidInputError("Voiceover generation needs at least one frame")
    lang = get_language(language)

    prompt = build_voiceover_batch_prompt(len(frames), lang.name, lang.code)
    raw_text = gateway.send(prompt, images=list(frames), system_instruction=VOICEOVER_SYSTEM)
    items = parse_structured_array(raw_text, len(frames), "voiceovers")
    return [
        _normalise_voiceover(item, start_scene_index + offset, lang.code)
        for offset, item in enumerate(items)
    ]


def generate_single_voiceover(
    frame: str,
    language: str,
    scene_index: int,
    gateway: ModelGateway,
    previous_script: Optional[str] = None,
) -> VoiceoverScript:
    """Regenerate one scene's narration, continuing from the previous script."""
    if not frame:
        raise InvalidInputError("A frame image is required")
    lang = get_language(language)

    prompt = build_single_voiceover_prompt(lang.name, previous_script or "")
    raw_text = gateway.send(prompt, images=[frame], system_instruction=VOICEOVER_SYSTEM)
    parsed = parse_structured_object(raw_text, "voiceover")
    return _normalise_voiceover(parsed, scene_index, lang.code)


__all__ = [
    "count_words",
    "generate_voiceover_batch",
    "generate_single_voiceover",
]
