"""
Prompt generation agent: paired image (static keyframe) and video (motion)
prompts for a batch of scenes.
"""

from __future__ import annotations

import logging
from typing import Any, List, Sequence

from .errors import InvalidInputError
from .gateway import ModelGateway, parse_structured_array
from .media import scene_time_range
from .prompts import (
    IMAGE_PROMPT_SYSTEM,
    STYLE_TOKEN_MARKER,
    VIDEO_PROMPT_SYSTEM,
    build_batch_prompt,
    build_single_image_prompt,
    build_single_video_prompt,
)
from .types import GeneratedPrompt, OCRTextResult, RawOCRText, RawPromptResponse

logger = logging.getLogger(__name__)

DEFAULT_SHOT_TYPE = "Medium Shot"
DEFAULT_OCR_POSITION = {"x": 0, "y": 0, "width": 0, "height": 0}
DEFAULT_OCR_STYLE = {"fontStyle": "sans-serif", "fontSize": "medium", "color": "#ffffff"}


def ensure_style_suffix(prompt: str) -> str:
    """Append the style-token marker unless the prompt already carries it."""
    prompt = prompt or ""
    if STYLE_TOKEN_MARKER in prompt:
        return prompt
    return f"{prompt} {STYLE_TOKEN_MARKER}"


def _normalise_ocr(entries: Any) -> List[OCRTextResult]:
    results: List[OCRTextResult] = []
    for entry in entries or []:
        if isinstance(entry, str):
            entry = {"text": entry}
        if not isinstance(entry, dict):
            continue
        raw: RawOCRText = entry
        results.append(
            OCRTextResult(
                text=str(raw.get("text") or ""),
                position={**DEFAULT_OCR_POSITION, **(raw.get("position") or {})},
                style={**DEFAULT_OCR_STYLE, **(raw.get("style") or {})},
            )
        )
    return results


def _normalise_prompt(raw: RawPromptResponse, scene_index: int) -> GeneratedPrompt:
    """Fill defaults for one batch element. scene_index comes from its position."""
    if not isinstance(raw, dict):
        raw = {}
    return GeneratedPrompt(
        scene_index=scene_index,
        time_range=raw.get("timeRange") or scene_time_range(scene_index),
        image_prompt=ensure_style_suffix(raw.get("imagePrompt") or ""),
        video_prompt=ensure_style_suffix(raw.get("videoPrompt") or ""),
        shot_type=raw.get("shotType") or DEFAULT_SHOT_TYPE,
        ocr_text=_normalise_ocr(raw.get("ocrText")),
    )


def generate_prompt_batch(
    frames: Sequence[str],
    batch_index: int,
    style_token_string: str,
    start_scene_index: int,
    gateway: ModelGateway,
) -> List[GeneratedPrompt]:
    """
    Generate image/video prompts for up to BATCH_SIZE consecutive frames.

    Array position i maps to scene start_scene_index + i; any sceneIndex the
    model echoes back is ignored.
    """
    if not frames:
        raise InvalidInputError("Prompt generation needs at least one frame")

    prompt = build_batch_prompt(batch_index, len(frames), style_token_string)
    raw_text = gateway.send(
        prompt,
        images=list(frames),
        system_instruction=f"{IMAGE_PROMPT_SYSTEM}\n\n{VIDEO_PROMPT_SYSTEM}",
    )
    items = parse_structured_array(raw_text, len(frames), "prompts")
    return [
        _normalise_prompt(item, start_scene_index + offset)
        for offset, item in enumerate(items)
    ]


def _single_text(raw_text: str) -> str:
    return ensure_style_suffix((raw_text or "").strip())


def generate_single_image_prompt(frame: str, style_token_string: str, gateway: ModelGateway) -> str:
    """Regenerate the image prompt for one frame."""
    if not frame:
        raise InvalidInputError("A frame image is required")
    return _single_text(gateway.send(build_single_image_prompt(style_token_string), images=[frame]))


def generate_single_video_prompt(
    frame: str,
    image_prompt: str,
    style_token_string: str,
    gateway: ModelGateway,
) -> str:
    """Regenerate the motion prompt for one frame, anchored on its image prompt."""
    if not frame:
        raise InvalidInputError("A frame image is required")
    prompt = build_single_video_prompt(style_token_string, image_prompt)
    return _single_text(gateway.send(prompt, images=[frame]))


__all__ = [
    "DEFAULT_SHOT_TYPE",
    "ensure_style_suffix",
    "generate_prompt_batch",
    "generate_single_image_prompt",
    "generate_single_video_prompt",
]
