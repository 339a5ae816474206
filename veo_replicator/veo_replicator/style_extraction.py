"""
Style extraction agent: one Gemini call over a handful of sample frames that
yields the GlobalStyleToken every later prompt refers to.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .errors import InvalidInputError
from .gateway import ModelGateway, parse_structured_object
from .prompts import STYLE_EXTRACTION_PROMPT
from .types import FidelityElement, GlobalStyleToken, RawStyleResponse

logger = logging.getLogger(__name__)

FIDELITY_ELEMENT_COUNT = 14

DEFAULT_FIDELITY_ELEMENTS: List[FidelityElement] = [
    FidelityElement("Character Anatomy", "Body proportions and pose", "natural proportions"),
    FidelityElement("Facial Construction", "Face structure rules", "realistic features"),
    FidelityElement("Material Surface", "Texture behavior", "physically accurate"),
    FidelityElement("Lighting Temperature", "Color temperature", "neutral to warm"),
    FidelityElement("Shadow Behavior", "Shadow casting", "soft diffused"),
    FidelityElement("Highlight Behavior", "Specular/reflection", "natural highlights"),
    FidelityElement("Geometry Simplification", "Detail level", "high detail"),
    FidelityElement("Perspective Rules", "Camera perspective", "natural perspective"),
    FidelityElement("Background Density", "Background complexity", "contextual"),
    FidelityElement("Object Interaction", "Physics of contact", "realistic"),
    FidelityElement("Transition Language", "Scene transitions", "smooth cuts"),
    FidelityElement("Timing Rhythm", "Motion pacing", "natural timing"),
    FidelityElement("Secondary Motion", "Subsidiary movement", "subtle"),
    FidelityElement("Continuity Rules", "Cross-scene consistency", "maintained"),
]

# snake_case field -> (camelCase response key, default)
_STYLE_FIELDS = {
    "art_style": ("artStyle", "Cinematic"),
    "render_quality": ("renderQuality", "4K"),
    "line_weight": ("lineWeight", "sharp"),
    "line_style": ("lineStyle", "photographic"),
    "color_harmony": ("colorHarmony", "complementary"),
    "shading_style": ("shadingStyle", "soft volumetric"),
    "contrast_level": ("contrastLevel", "high"),
    "camera_style": ("cameraStyle", "stabilized"),
    "lens_character": ("lensCharacter", "35mm"),
    "motion_style": ("motionStyle", "smooth"),
    "physics_realism": ("physicsRealism", "realistic"),
    "background_style": ("backgroundStyle", "detailed"),
    "depth_treatment": ("depthTreatment", "shallow DOF"),
    "text_style": ("textStyle", ""),
    "text_animation": ("textAnimation", ""),
}


def build_token_string(fields: Dict[str, Any]) -> str:
    """Synthesize the one-line style token from already-defaulted fields."""
    parts = [
        fields["art_style"],
        fields["render_quality"],
        fields["camera_style"],
        fields["lens_character"],
        fields["shading_style"],
        f"{fields['contrast_level']} contrast",
        f"{fields['motion_style']} motion",
    ]
    return ", ".join(parts)


def _text_or_default(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _normalise_fidelity(raw: Any) -> List[FidelityElement]:
    """
    Keep the model's elements only when it returned exactly 14 usable entries.
    Anything else is replaced wholesale by the default set.
    """
    if not isinstance(raw, list) or len(raw) != FIDELITY_ELEMENT_COUNT:
        if raw:
            logger.warning(
                "Model returned %s fidelity elements; using the default set",
                len(raw) if isinstance(raw, list) else "malformed",
            )
        return list(DEFAULT_FIDELITY_ELEMENTS)

    elements: List[FidelityElement] = []
    for item in raw:
        if not isinstance(item, dict) or not _text_or_default(item.get("factor"), ""):
            logger.warning("Fidelity element without a factor name; using the default set")
            return list(DEFAULT_FIDELITY_ELEMENTS)
        elements.append(
            FidelityElement(
                factor=item["factor"].strip(),
                description=_text_or_default(item.get("description"), ""),
                value=_text_or_default(item.get("value"), ""),
            )
        )
    return elements


def _normalise_style(raw: RawStyleResponse) -> GlobalStyleToken:
    """Turn a partial style payload into a complete GlobalStyleToken."""
    fields: Dict[str, Any] = {
        name: _text_or_default(raw.get(key), default)
        for name, (key, default) in _STYLE_FIELDS.items()
    }

    palette = raw.get("colorPalette")
    if isinstance(palette, str):
        palette = [palette]
    fields["color_palette"] = [c.strip() for c in palette or [] if isinstance(c, str) and c.strip()]

    fields["token_string"] = _text_or_default(raw.get("tokenString"), "") or build_token_string(fields)
    fields["fidelity_elements"] = _normalise_fidelity(raw.get("fidelityElements"))
    return GlobalStyleToken(**fields)


def extract_style(sample_frames: Sequence[str], gateway: ModelGateway) -> GlobalStyleToken:
    """
    Derive the GlobalStyleToken from sample frames (data URLs).

    Raises:
        InvalidInputError: sample_frames is empty
        MalformedResponseError: The model did not return a JSON object
    """
    if not sample_frames:
        raise InvalidInputError("At least one sample frame is required for style extraction")

    raw_text = gateway.send(STYLE_EXTRACTION_PROMPT, images=list(sample_frames))
    token = _normalise_style(parse_structured_object(raw_text, "style token"))
    logger.debug("Style token: %s", token.token_string)
    return token


def default_style_token(overrides: Optional[Dict[str, Any]] = None) -> GlobalStyleToken:
    """A fully defaulted token, mostly useful for tests and offline exports."""
    return _normalise_style(overrides or {})


__all__ = [
    "DEFAULT_FIDELITY_ELEMENTS",
    "FIDELITY_ELEMENT_COUNT",
    "build_token_string",
    "default_style_token",
    "extract_style",
]
