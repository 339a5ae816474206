"""
Pipeline module for scene replication.

Provides the stage-based AnalysisOrchestrator that turns a video into
style token, prompts and voiceovers, plus the AnalysisSession it writes to.
"""

from .base import AnalysisOrchestrator, AnalysisResult, BatchStage, OrchestratorConfig, Stage
from .context import AnalysisSession, Notification
from ..errors import (
    AuthError,
    FrameExtractionError,
    InvalidInputError,
    MalformedResponseError,
    PipelineError,
    StageError,
    TransportError,
)

__all__ = [
    # Core classes
    "Stage",
    "BatchStage",
    "AnalysisOrchestrator",
    "AnalysisResult",
    "OrchestratorConfig",
    "AnalysisSession",
    "Notification",
    # Exceptions
    "PipelineError",
    "InvalidInputError",
    "AuthError",
    "TransportError",
    "MalformedResponseError",
    "FrameExtractionError",
    "StageError",
]
