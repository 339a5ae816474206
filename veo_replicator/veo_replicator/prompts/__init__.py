"""
Prompt templates for the Veo3 scene replicator.
"""

from .veo3 import (
    IMAGE_PROMPT_SYSTEM,
    STYLE_EXTRACTION_PROMPT,
    STYLE_TOKEN_MARKER,
    VIDEO_PROMPT_SYSTEM,
    VOICEOVER_SYSTEM,
    build_batch_prompt,
    build_single_image_prompt,
    build_single_video_prompt,
    build_single_voiceover_prompt,
    build_voiceover_batch_prompt,
)

__all__ = [
    "IMAGE_PROMPT_SYSTEM",
    "STYLE_EXTRACTION_PROMPT",
    "STYLE_TOKEN_MARKER",
    "VIDEO_PROMPT_SYSTEM",
    "VOICEOVER_SYSTEM",
    "build_batch_prompt",
    "build_single_image_prompt",
    "build_single_video_prompt",
    "build_single_voiceover_prompt",
    "build_voiceover_batch_prompt",
]
