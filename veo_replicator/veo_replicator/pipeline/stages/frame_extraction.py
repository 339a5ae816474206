"""
Stage 1: Frame Extraction

Samples one still per 8-second scene window from the source video.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...errors import InvalidInputError
from ...types import AnalysisState
from ..base import Stage
from ..context import AnalysisSession

if TYPE_CHECKING:
    from ..base import AnalysisOrchestrator

logger = logging.getLogger("veo_replicator.pipeline.frame_extraction")


class FrameExtractionStage(Stage):
    """
    Stage 1: Extract scene frames.

    Responsibilities:
    - Call the frame extractor at the configured scene interval
    - Forward extraction progress (0-100) to the session
    - Set session.frames

    A cancellation raised mid-extraction keeps whatever frames were sampled;
    the orchestrator stops before the next stage.
    """

    name = "FrameExtractionStage"
    state = AnalysisState.EXTRACTING_FRAMES

    def validate_inputs(self, session: AnalysisSession) -> None:
        if session.video_path is None:
            raise InvalidInputError("video_path is required (call load_video first)", self.name)

    def execute(self, session: AnalysisSession, orchestrator: "AnalysisOrchestrator") -> None:
        session.notify("info", "Extracting frames...")
        session.set_progress(phase_progress=0)

        frames = orchestrator.frame_extractor(
            str(session.video_path),
            orchestrator.config.scene_interval_seconds,
            on_progress=lambda value: session.set_progress(phase_progress=value),
            cancel_event=session.cancel_event,
        )
        session.add_frames(frames)
        session.set_progress(total_scenes=len(frames))
        logger.info("Extracted %d frames from %s", len(frames), session.video_path.name)
