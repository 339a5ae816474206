"""
Pipeline stages for scene replication.

Stages run in order against one AnalysisSession; each one enters its own
AnalysisState before executing.
"""

from .frame_extraction import FrameExtractionStage
from .style_detection import StyleDetectionStage
from .prompt_generation import PromptGenerationStage
from .voiceover_generation import VoiceoverGenerationStage
from .quality_validation import QualityValidationStage

__all__ = [
    "FrameExtractionStage",
    "StyleDetectionStage",
    "PromptGenerationStage",
    "VoiceoverGenerationStage",
    "QualityValidationStage",
    "default_stages",
]


def default_stages():
    """Default stage order for an analysis run."""
    return [
        FrameExtractionStage(),
        StyleDetectionStage(),
        PromptGenerationStage(),
        VoiceoverGenerationStage(),
        QualityValidationStage(),  # Skipped unless a validator is supplied
    ]
