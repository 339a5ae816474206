"""
Stage 3: Prompt Generation

Batched image/video prompt generation, one model call per five scenes.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from ...errors import InvalidInputError
from ...gateway import ModelGateway
from ...types import AnalysisState, GeneratedPrompt
from ..base import BatchStage
from ..context import AnalysisSession

logger = logging.getLogger("veo_replicator.pipeline.prompt_generation")


class PromptGenerationStage(BatchStage):
    """
    Stage 3: Generate image and motion prompts per scene.

    Each batch is sent with the style token string; results are appended to
    session.prompts in batch order.
    """

    name = "PromptGenerationStage"
    state = AnalysisState.GENERATING_PROMPTS

    def validate_inputs(self, session: AnalysisSession) -> None:
        super().validate_inputs(session)
        if session.style_token is None:
            raise InvalidInputError("style_token is required (run StyleDetectionStage first)", self.name)

    def generate_batch(
        self,
        images: Sequence[str],
        batch_index: int,
        start_scene_index: int,
        session: AnalysisSession,
        gateway: ModelGateway,
    ) -> List[GeneratedPrompt]:
        from ...prompt_generation import generate_prompt_batch

        if batch_index == 0:
            session.notify("info", "Generating prompts...")
        return generate_prompt_batch(
            images,
            batch_index,
            session.style_token.token_string,
            start_scene_index,
            gateway,
        )

    def store(self, session: AnalysisSession, results: List[GeneratedPrompt]) -> None:
        for prompt in results:
            session.add_prompt(prompt)
