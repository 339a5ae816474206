"""
Base classes for the analysis pipeline.

Provides the Stage/BatchStage base classes and the AnalysisOrchestrator state
machine that drives them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .. import media
from ..config import (
    BATCH_DELAY_SECONDS,
    BATCH_SIZE,
    SCENE_INTERVAL_SECONDS,
    STYLE_SAMPLE_SIZE,
    get_batch_delay_seconds,
)
from ..errors import InvalidInputError, PipelineError, StageError, TransportError
from ..gateway import ModelGateway
from ..settings import SettingsStore
from ..types import AnalysisState, GeneratedPrompt, GlobalStyleToken, VideoMetadata
from .context import AnalysisSession

logger = logging.getLogger("veo_replicator.pipeline")

FrameExtractor = Callable[..., List[Any]]
MetadataProbe = Callable[[str], VideoMetadata]
QualityValidator = Callable[[GeneratedPrompt, GlobalStyleToken], Tuple[float, List[str]]]

_STARTABLE_STATES = (AnalysisState.AWAITING_CONFIRMATION, AnalysisState.COMPLETE)


@dataclass
class OrchestratorConfig:
    """
    Fixed geometry and pacing of an analysis run.

    Attributes:
        scene_interval_seconds: Length of one scene window
        batch_size: Scenes per model call
        style_sample_size: Frames sent to the style extraction call
        batch_delay_seconds: Pause between batches and before a rotated retry
    """
    scene_interval_seconds: float = SCENE_INTERVAL_SECONDS
    batch_size: int = BATCH_SIZE
    style_sample_size: int = STYLE_SAMPLE_SIZE
    batch_delay_seconds: float = BATCH_DELAY_SECONDS

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Create config from environment variables."""
        return cls(batch_delay_seconds=get_batch_delay_seconds())


@dataclass
class AnalysisResult:
    """
    Outcome of one start_analysis() call.

    Attributes:
        success: The run reached COMPLETE
        state: Session state when the call returned
        cancelled: The run stopped because cancellation was requested
        rejected_reason: Preconditions were not met (no state change happened)
        error: Failure message when the run ended in ERROR
        elapsed_time: Wall-clock seconds spent in the run
        counts: Frames/prompts/voiceovers produced
    """
    success: bool
    state: AnalysisState
    cancelled: bool = False
    rejected_reason: Optional[str] = None
    error: Optional[str] = None
    elapsed_time: float = 0.0
    counts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_session(
        cls,
        session: AnalysisSession,
        cancelled: bool = False,
        rejected_reason: Optional[str] = None,
    ) -> "AnalysisResult":
        return cls(
            success=session.state == AnalysisState.COMPLETE and not cancelled and not rejected_reason,
            state=session.state,
            cancelled=cancelled,
            rejected_reason=rejected_reason,
            error=session.error if session.state == AnalysisState.ERROR else None,
            elapsed_time=0.0 if rejected_reason else session.elapsed_time(),
            counts={
                "scenes": len(session.frames),
                "prompts": len(session.prompts),
                "voiceovers": len(session.voiceovers),
            },
        )


class Stage(ABC):
    """
    Base class for pipeline stages.

    Each stage owns one AnalysisState. The orchestrator enters that state,
    calls validate_inputs() and then execute().

    Subclasses must implement:
    - name: Unique identifier for the stage
    - state: AnalysisState entered while the stage runs
    - execute(): Perform stage logic

    Optionally override:
    - should_run(): Skip the stage (without a state change)
    - validate_inputs(): Check required session data exists
    """

    name: str = "BaseStage"
    state: AnalysisState = AnalysisState.IDLE

    def should_run(self, session: AnalysisSession, orchestrator: "AnalysisOrchestrator") -> bool:
        return True

    def validate_inputs(self, session: AnalysisSession) -> None:
        """
        Raises:
            InvalidInputError: If required inputs are missing
        """
        pass

    @abstractmethod
    def execute(self, session: AnalysisSession, orchestrator: "AnalysisOrchestrator") -> None:
        """
        Execute the stage logic, writing results into the session.

        Raises:
            PipelineError: If the stage fails
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class BatchStage(Stage):
    """
    A stage that walks the frames in fixed-size batches.

    The orchestrator owns the loop (progress, pacing, key rotation); the
    stage only makes one model call per batch and stores what it returns.
    """

    def validate_inputs(self, session: AnalysisSession) -> None:
        if not session.frames:
            raise InvalidInputError("No frames available for batch generation", self.name)

    @abstractmethod
    def generate_batch(
        self,
        images: Sequence[str],
        batch_index: int,
        start_scene_index: int,
        session: AnalysisSession,
        gateway: ModelGateway,
    ) -> List[Any]:
        pass

    @abstractmethod
    def store(self, session: AnalysisSession, results: List[Any]) -> None:
        pass

    def execute(self, session: AnalysisSession, orchestrator: "AnalysisOrchestrator") -> None:
        orchestrator.run_batches(self, session)


class AnalysisOrchestrator:
    """
    Drives one AnalysisSession through the analysis state machine.

    IDLE -> UPLOADING -> EXTRACTING_METADATA -> AWAITING_CONFIRMATION
    -> EXTRACTING_FRAMES -> DETECTING_STYLE -> GENERATING_PROMPTS
    -> GENERATING_VOICEOVERS [-> VALIDATING] -> COMPLETE, with ERROR
    reachable from every step until reset_analysis().

    Usage:
        orchestrator = AnalysisOrchestrator(session, ModelGateway(), SettingsStore.load())
        orchestrator.load_video("clip.mp4")
        result = orchestrator.start_analysis()
    """

    def __init__(
        self,
        session: AnalysisSession,
        gateway: ModelGateway,
        settings: SettingsStore,
        config: Optional[OrchestratorConfig] = None,
        frame_extractor: Optional[FrameExtractor] = None,
        metadata_probe: Optional[MetadataProbe] = None,
        quality_validator: Optional[QualityValidator] = None,
        stages: Optional[List[Stage]] = None,
    ):
        from .stages import default_stages

        self.session = session
        self.gateway = gateway
        self.settings = settings
        self.config = config or OrchestratorConfig.from_env()
        self.frame_extractor = frame_extractor or media.extract_frames
        self.metadata_probe = metadata_probe or media.probe_video
        self.quality_validator = quality_validator
        self.stages = stages if stages is not None else default_stages()

        names = [s.name for s in self.stages]
        if len(names) != len(set(names)):
            raise ValueError("Stage names must be unique")

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def load_video(self, path: str) -> Optional[VideoMetadata]:
        """Register a video and probe it; the session ends in AWAITING_CONFIRMATION or ERROR."""
        session = self.session
        session.clear_results()
        session.set_video(Path(path))
        session.set_state(AnalysisState.EXTRACTING_METADATA)
        try:
            metadata = self.metadata_probe(str(path))
        except PipelineError as exc:
            logger.error("Could not read video metadata for %s: %s", path, exc)
            session.set_error(str(exc))
            return None
        except Exception as exc:
            logger.exception("Unexpected error probing %s", path)
            session.set_error(f"Could not read video metadata: {exc}")
            return None

        session.set_metadata(metadata)
        logger.info(
            "Loaded %s: %.1fs %dx%d -> %d scenes",
            metadata.file_name, metadata.duration, metadata.width, metadata.height,
            session.total_scenes,
        )
        if session.total_scenes == 0:
            session.notify(
                "warning",
                f"Video is shorter than {self.config.scene_interval_seconds:g}s; no scenes to analyse",
            )
        session.set_state(AnalysisState.AWAITING_CONFIRMATION)
        return metadata

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def start_analysis(self) -> AnalysisResult:
        """
        Run every stage in order. Never raises for pipeline failures; the
        outcome is recorded on the session and returned.
        """
        session = self.session

        rejected = self._check_preconditions()
        if rejected:
            session.notify("error", rejected)
            return AnalysisResult.from_session(session, rejected_reason=rejected)

        session.clear_cancel()
        session.clear_results()
        self.gateway.set_api_key(self.settings.activate_first())

        try:
            for stage in self.stages:
                if session.is_cancelled():
                    return self._cancelled()
                if not stage.should_run(session, self):
                    logger.debug("Skipping stage: %s", stage.name)
                    continue
                self._run_stage(stage)

            if session.is_cancelled():
                return self._cancelled()

        except PipelineError as exc:
            message = str(exc)
            logger.error("Analysis failed at %s: %s", exc.stage_name, message)
            session.set_error(message)
            return AnalysisResult.from_session(session)

        session.set_state(AnalysisState.COMPLETE)
        session.notify("success", f"Done! Generated {len(session.prompts)} scenes.")
        result = AnalysisResult.from_session(session)
        logger.info(
            "Analysis complete in %.1fs - scenes=%d, prompts=%d, voiceovers=%d",
            result.elapsed_time, len(session.frames), len(session.prompts), len(session.voiceovers),
        )
        return result

    def _check_preconditions(self) -> Optional[str]:
        if self.session.video_path is None:
            return "Please upload a video first."
        if not self.settings.has_keys:
            return "Please add at least one API key first."
        state = self.session.state
        if state == AnalysisState.ERROR:
            return "Analysis failed. Reset before starting again."
        if state in _STARTABLE_STATES:
            return None
        # a stopped run may be restarted from the state it stopped in
        if self.session.is_cancelled():
            return None
        if state in (AnalysisState.UPLOADING, AnalysisState.EXTRACTING_METADATA):
            return "Video is still loading."
        return "Analysis is already running."

    def _cancelled(self) -> AnalysisResult:
        logger.info("Analysis cancelled in state %s", self.session.state.value)
        return AnalysisResult.from_session(self.session, cancelled=True)

    def _run_stage(self, stage: Stage) -> None:
        session = self.session
        session.set_state(stage.state)
        logger.info("Running stage: %s", stage.name)
        try:
            stage.validate_inputs(session)
            stage.execute(session, self)
        except PipelineError as exc:
            if exc.stage_name is None:
                exc.stage_name = stage.name
            raise
        except Exception as exc:
            logger.exception("Unexpected error in %s", stage.name)
            raise StageError(str(exc), stage.name, cause=exc) from exc

    def run_batches(self, stage: BatchStage, session: AnalysisSession) -> None:
        """
        Process the frames in batches, retrying a failed batch with the next
        API key until the pool is exhausted.
        """
        frames = session.frames
        total_scenes = len(frames)
        size = self.config.batch_size
        total_batches = media.batch_count(total_scenes, size)
        session.set_progress(
            current_batch=0, total_batches=total_batches,
            current_scene=0, total_scenes=total_scenes,
        )

        batch_index = 0
        while batch_index < total_batches:
            if session.is_cancelled():
                logger.info("%s cancelled before batch %d", stage.name, batch_index + 1)
                return

            start, end = media.batch_window(batch_index, total_scenes, size)
            images = [frame.image for frame in frames[start:end]]

            try:
                results = stage.generate_batch(images, batch_index, start, session, self.gateway)
            except TransportError as exc:
                next_key = self.settings.rotate_key()
                if next_key is None:
                    raise
                self.gateway.set_api_key(next_key)
                logger.warning(
                    "%s batch %d/%d failed (%s); retrying with API key #%d",
                    stage.name, batch_index + 1, total_batches, str(exc)[:100],
                    self.settings.current_key_index + 1,
                )
                session.notify("warning", "Switched to another API key")
                self._pause()
                continue

            stage.store(session, results)
            self.settings.mark_rotation_origin()
            session.set_progress(current_batch=batch_index + 1, current_scene=end)
            logger.info("%s: batch %d/%d complete", stage.name, batch_index + 1, total_batches)

            if batch_index < total_batches - 1:
                self._pause()
            batch_index += 1

    def _pause(self) -> None:
        delay = self.config.batch_delay_seconds
        if delay > 0:
            self.session.cancel_event.wait(delay)

    def stop_analysis(self) -> None:
        """Ask the running analysis to stop before its next step."""
        self.session.request_cancel()
        self.session.notify("info", "Analysis stopped")
        logger.info("Cancellation requested")

    def reset_analysis(self) -> None:
        """Back to IDLE. The API-key pool is untouched."""
        self.session.reset()
        self.session.notify("info", "Reset")

    # ------------------------------------------------------------------
    # Post-analysis edits and export
    # ------------------------------------------------------------------

    def regenerate_scene(self, scene_index: int, kind: str) -> Any:
        """
        Regenerate one scene's image prompt, video prompt or voiceover.

        Returns the updated GeneratedPrompt or VoiceoverScript.
        """
        from ..prompt_generation import generate_single_image_prompt, generate_single_video_prompt
        from ..voiceover_generation import generate_single_voiceover

        session = self.session
        frame = session.get_frame(scene_index)
        if frame is None:
            raise InvalidInputError(f"No frame for scene {scene_index}")
        if not self.gateway.api_key:
            self.gateway.set_api_key(self.settings.current_key)

        if kind in ("image", "video"):
            prompt = session.get_prompt(scene_index)
            if prompt is None or session.style_token is None:
                raise InvalidInputError(f"Scene {scene_index} has no prompt to regenerate")
            token = session.style_token.token_string
            if kind == "image":
                text = generate_single_image_prompt(frame.image, token, self.gateway)
                return session.update_prompt(scene_index, image_prompt=text)
            text = generate_single_video_prompt(frame.image, prompt.image_prompt, token, self.gateway)
            return session.update_prompt(scene_index, video_prompt=text)

        if kind == "voiceover":
            current = session.get_voiceover(scene_index)
            if current is None:
                raise InvalidInputError(f"Scene {scene_index} has no voiceover to regenerate")
            previous = session.get_voiceover(scene_index - 1)
            script = generate_single_voiceover(
                frame.image,
                current.language,
                scene_index,
                self.gateway,
                previous_script=previous.script if previous else None,
            )
            return session.update_voiceover(scene_index, script=script.script)

        raise InvalidInputError(f"Unknown regeneration kind: {kind!r}")

    def export(self, fmt: str, output_dir: Optional[str] = None):
        """Write the results in txt/json/csv and return the ExportedFile."""
        from ..export import ExportData, ExportOptions, export_prompts

        session = self.session
        if not session.prompts:
            raise InvalidInputError("Nothing to export: no prompts generated")
        if session.style_token is None:
            raise InvalidInputError("Nothing to export: style token missing")
        if session.metadata is None:
            raise InvalidInputError("Nothing to export: video metadata missing")

        data = ExportData(
            prompts=list(session.prompts),
            voiceovers=list(session.voiceovers),
            style_token=session.style_token,
            metadata=session.metadata,
            voiceover_language=session.voiceover_settings.default_language,
            total_scenes=session.total_scenes or len(session.frames),
        )
        try:
            exported = export_prompts(data, ExportOptions(format=fmt), output_dir=output_dir)
        except Exception as exc:
            session.notify("error", f"Export failed: {exc}")
            raise
        session.notify("success", f"Exported {exported.filename}")
        return exported


__all__ = [
    "AnalysisOrchestrator",
    "AnalysisResult",
    "BatchStage",
    "OrchestratorConfig",
    "Stage",
]
