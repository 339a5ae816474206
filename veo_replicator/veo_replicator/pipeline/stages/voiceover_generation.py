"""
Stage 4: Voiceover Generation

Batched narration scripts in the session's default voiceover language.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from ...gateway import ModelGateway
from ...types import AnalysisState, VoiceoverMode, VoiceoverScript
from ..base import BatchStage
from ..context import AnalysisSession

logger = logging.getLogger("veo_replicator.pipeline.voiceover_generation")


class VoiceoverGenerationStage(BatchStage):
    """
    Stage 4: Generate one 8-second voiceover per scene.

    Every batch uses voiceover_settings.default_language. Per-scene overrides
    are kept in the settings but do not change the batch language.
    """

    name = "VoiceoverGenerationStage"
    state = AnalysisState.GENERATING_VOICEOVERS

    def generate_batch(
        self,
        images: Sequence[str],
        batch_index: int,
        start_scene_index: int,
        session: AnalysisSession,
        gateway: ModelGateway,
    ) -> List[VoiceoverScript]:
        from ...voiceover_generation import generate_voiceover_batch

        settings = session.voiceover_settings
        language = settings.default_language
        if batch_index == 0:
            session.notify("info", "Generating voiceovers...")

        if settings.mode == VoiceoverMode.PER_SCENE:
            window = range(start_scene_index, start_scene_index + len(images))
            ignored = sorted(
                idx for idx in window
                if settings.scene_overrides.get(idx, language) != language
            )
            if ignored:
                logger.warning(
                    "Per-scene languages for scenes %s are not applied; batch uses '%s'",
                    ignored, language,
                )

        return generate_voiceover_batch(images, language, start_scene_index, gateway)

    def store(self, session: AnalysisSession, results: List[VoiceoverScript]) -> None:
        for voiceover in results:
            session.add_voiceover(voiceover)
