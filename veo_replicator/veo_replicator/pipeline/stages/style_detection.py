"""
Stage 2: Style Detection

Derives the GlobalStyleToken from the first few frames.
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

logger = logging.getLogger("veo_replicator.pipeline.style_detection")


class StyleDetectionStage(Stage):
    """
    Stage 2: Extract the global style token.

    Sends min(style_sample_size, frame count) frames in one call and sets
    session.style_token.
    """

    name = "StyleDetectionStage"
    state = AnalysisState.DETECTING_STYLE

    def validate_inputs(self, session: AnalysisSession) -> None:
        if not session.frames:
            raise InvalidInputError(
                "No frames were extracted; the video must be at least one scene long",
                self.name,
            )

    def execute(self, session: AnalysisSession, orchestrator: "AnalysisOrchestrator") -> None:
        from ...style_extraction import extract_style

        session.notify("info", "Detecting Global Style Token...")
        sample = [frame.image for frame in session.frames[: orchestrator.config.style_sample_size]]
        token = extract_style(sample, orchestrator.gateway)
        session.set_style_token(token)
        logger.info("Style token: %s", token.token_string[:120])
