"""
Stage 5: Quality Validation (optional)

Scores every prompt with an externally supplied validator.
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

logger = logging.getLogger("veo_replicator.pipeline.quality_validation")


class QualityValidationStage(Stage):
    """
    Stage 5: Apply quality scores.

    Runs only when the orchestrator was given a quality_validator, a
    callable (prompt, style_token) -> (score, missing_factors).
    """

    name = "QualityValidationStage"
    state = AnalysisState.VALIDATING

    def should_run(self, session: AnalysisSession, orchestrator: "AnalysisOrchestrator") -> bool:
        return orchestrator.quality_validator is not None

    def validate_inputs(self, session: AnalysisSession) -> None:
        if session.style_token is None:
            raise InvalidInputError("style_token is required for validation", self.name)

    def execute(self, session: AnalysisSession, orchestrator: "AnalysisOrchestrator") -> None:
        validator = orchestrator.quality_validator
        for prompt in list(session.prompts):
            if session.is_cancelled():
                return
            score, missing = validator(prompt, session.style_token)
            session.apply_quality(prompt.scene_index, score, missing)
        logger.info("Validated %d prompts", len(session.prompts))
