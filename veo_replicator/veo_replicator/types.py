"""
Type definitions for the scene replication pipeline.

Raw model payloads are TypedDicts (the model may omit any field); the records
the pipeline owns are dataclasses with every field filled in.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class AnalysisState(str, Enum):
    """Analysis session states, in intended order."""
    IDLE = "IDLE"
    UPLOADING = "UPLOADING"
    EXTRACTING_METADATA = "EXTRACTING_METADATA"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    EXTRACTING_FRAMES = "EXTRACTING_FRAMES"
    DETECTING_STYLE = "DETECTING_STYLE"
    GENERATING_PROMPTS = "GENERATING_PROMPTS"
    GENERATING_VOICEOVERS = "GENERATING_VOICEOVERS"
    VALIDATING = "VALIDATING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class VoiceoverTone(str, Enum):
    NARRATIVE = "narrative"
    DRAMATIC = "dramatic"
    INFORMATIVE = "informative"
    CONVERSATIONAL = "conversational"


class VoiceoverMode(str, Enum):
    GLOBAL = "global"
    PER_SCENE = "per-scene"


# ---------------------------------------------------------------------------
# Raw model responses
# ---------------------------------------------------------------------------

class RawFidelityElement(TypedDict, total=False):
    factor: str
    description: str
    value: str


class RawStyleResponse(TypedDict, total=False):
    """Style token as returned by the model."""
    artStyle: str
    renderQuality: str
    lineWeight: str
    lineStyle: str
    colorPalette: List[str]
    colorHarmony: str
    shadingStyle: str
    contrastLevel: str
    cameraStyle: str
    lensCharacter: str
    motionStyle: str
    physicsRealism: str
    backgroundStyle: str
    depthTreatment: str
    textStyle: Optional[str]
    textAnimation: Optional[str]
    tokenString: str
    fidelityElements: List[RawFidelityElement]


class RawOCRText(TypedDict, total=False):
    text: str
    position: Dict[str, float]
    style: Dict[str, str]


class RawPromptResponse(TypedDict, total=False):
    """One element of the prompt batch array."""
    sceneIndex: int
    timeRange: str
    shotType: str
    imagePrompt: str
    videoPrompt: str
    ocrText: List[RawOCRText]


class RawVoiceoverResponse(TypedDict, total=False):
    """One element of the voiceover batch array."""
    sceneIndex: int
    script: str
    wordCount: int
    estimatedDuration: float
    tone: str


# ---------------------------------------------------------------------------
# Pipeline records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VideoMetadata:
    """Probe result for the uploaded video."""
    duration: float
    width: int
    height: int
    fps: float
    format: str
    file_name: str
    file_size: int


@dataclass(frozen=True)
class ExtractedFrame:
    scene_index: int
    timestamp: float
    time_range: str
    image: str  # data:image/jpeg;base64,...


@dataclass(frozen=True)
class FidelityElement:
    factor: str
    description: str
    value: str


@dataclass(frozen=True)
class GlobalStyleToken:
    """Visual style fingerprint computed once per video."""
    art_style: str
    render_quality: str
    line_weight: str
    line_style: str
    color_palette: List[str]
    color_harmony: str
    shading_style: str
    contrast_level: str
    camera_style: str
    lens_character: str
    motion_style: str
    physics_realism: str
    background_style: str
    depth_treatment: str
    text_style: str
    text_animation: str
    token_string: str
    fidelity_elements: List[FidelityElement]

    def summary(self) -> Dict[str, Any]:
        """Condensed view used by the JSON export."""
        return {
            "tokenString": self.token_string,
            "artStyle": self.art_style,
            "renderQuality": self.render_quality,
            "colorPalette": list(self.color_palette),
            "cameraStyle": self.camera_style,
            "motionStyle": self.motion_style,
        }


@dataclass
class OCRTextResult:
    text: str
    position: Dict[str, float]
    style: Dict[str, str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GeneratedPrompt:
    """Image + motion prompt pair for one scene."""
    scene_index: int
    time_range: str
    image_prompt: str
    video_prompt: str
    shot_type: str
    ocr_text: List[OCRTextResult] = field(default_factory=list)
    quality_score: float = 0
    missing_factors: List[str] = field(default_factory=list)


@dataclass
class VoiceoverScript:
    """Narration for one scene."""
    scene_index: int
    time_range: str
    language: str
    script: str
    word_count: int
    estimated_duration: float
    tone: VoiceoverTone = VoiceoverTone.NARRATIVE


@dataclass
class VoiceoverSettings:
    """Narration language selection; overrides only apply in per-scene mode."""
    mode: VoiceoverMode = VoiceoverMode.GLOBAL
    default_language: str = "vi"
    scene_overrides: Dict[int, str] = field(default_factory=dict)

    def language_for(self, scene_index: int) -> str:
        if self.mode == VoiceoverMode.PER_SCENE:
            return self.scene_overrides.get(scene_index, self.default_language)
        return self.default_language


__all__ = [
    "AnalysisState",
    "VoiceoverTone",
    "VoiceoverMode",
    "RawStyleResponse",
    "RawFidelityElement",
    "RawOCRText",
    "RawPromptResponse",
    "RawVoiceoverResponse",
    "VideoMetadata",
    "ExtractedFrame",
    "FidelityElement",
    "GlobalStyleToken",
    "OCRTextResult",
    "GeneratedPrompt",
    "VoiceoverScript",
    "VoiceoverSettings",
]
