"""
Analysis session for the replication pipeline.

The AnalysisSession is the single shared record of one video's analysis. The
orchestrator is its only writer while a run is in progress; UIs and the CLI
observe it through subscribe() and snapshot().
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config import BATCH_SIZE, SCENE_INTERVAL_SECONDS
from ..errors import InvalidInputError
from ..languages import get_language
from ..types import (
    AnalysisState,
    ExtractedFrame,
    GeneratedPrompt,
    GlobalStyleToken,
    VideoMetadata,
    VoiceoverMode,
    VoiceoverScript,
    VoiceoverSettings,
)

logger = logging.getLogger("veo_replicator.pipeline.context")

Listener = Callable[[str, "AnalysisSession"], None]

EDITABLE_PROMPT_FIELDS = {"image_prompt", "video_prompt", "shot_type"}
EDITABLE_VOICEOVER_FIELDS = {"script"}
_IMMUTABLE_FIELDS = {"scene_index", "time_range"}


@dataclass(frozen=True)
class Notification:
    """Transient user-facing message (toast)."""
    level: str
    message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class AnalysisSession:
    """
    Shared state for one video analysis.

    Attributes:
        state: Current AnalysisState
        video_path: Source video (set by load_video)
        metadata: ffprobe result (set after EXTRACTING_METADATA)
        frames: One ExtractedFrame per scene (set by FrameExtractionStage)
        style_token: GlobalStyleToken (set by StyleDetectionStage)
        prompts: GeneratedPrompt per scene, in batch-completion order
        voiceovers: VoiceoverScript per scene, in batch-completion order

        current_batch/total_batches: Batch progress of the running phase
        current_scene/total_scenes: Scene progress of the running phase
        phase_progress: 0-100 progress inside frame extraction

        voiceover_settings: Narration language selection
        error: Message of the failure that moved the session to ERROR
        notifications: Every notification emitted so far
    """

    state: AnalysisState = AnalysisState.IDLE
    video_path: Optional[Path] = None
    metadata: Optional[VideoMetadata] = None
    frames: List[ExtractedFrame] = field(default_factory=list)
    style_token: Optional[GlobalStyleToken] = None
    prompts: List[GeneratedPrompt] = field(default_factory=list)
    voiceovers: List[VoiceoverScript] = field(default_factory=list)

    # Progress tracking
    current_batch: int = 0
    total_batches: int = 0
    current_scene: int = 0
    total_scenes: int = 0
    phase_progress: int = 0

    voiceover_settings: VoiceoverSettings = field(default_factory=VoiceoverSettings)
    error: Optional[str] = None
    notifications: List[Notification] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)

    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _listeners: List[Listener] = field(default_factory=list, repr=False)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                logger.exception("Session listener failed on %r event", event)

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict view for read-only consumers."""
        return {
            "state": self.state.value,
            "video": self.video_path.name if self.video_path else None,
            "current_batch": self.current_batch,
            "total_batches": self.total_batches,
            "current_scene": self.current_scene,
            "total_scenes": self.total_scenes,
            "phase_progress": self.phase_progress,
            "frames": len(self.frames),
            "prompts": len(self.prompts),
            "voiceovers": len(self.voiceovers),
            "has_style_token": self.style_token is not None,
            "error": self.error,
            "cancelled": self.is_cancelled(),
        }

    def notify(self, level: str, message: str) -> Notification:
        note = Notification(level=level, message=message)
        self.notifications.append(note)
        self._emit("notification")
        return note

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_video(self, path: Path) -> None:
        self.video_path = Path(path)
        self.error = None
        self.set_state(AnalysisState.UPLOADING)

    def set_state(self, state: AnalysisState) -> None:
        if state == self.state:
            return
        logger.debug("State %s -> %s", self.state.value, state.value)
        self.state = state
        self._emit("state")

    def set_metadata(self, metadata: VideoMetadata) -> None:
        """Store probe results and derive the scene/batch totals."""
        self.metadata = metadata
        self.total_scenes = (
            int(math.floor(metadata.duration / SCENE_INTERVAL_SECONDS)) if metadata.duration > 0 else 0
        )
        self.total_batches = int(math.ceil(self.total_scenes / BATCH_SIZE))
        self._emit("metadata")

    def set_error(self, message: str) -> None:
        self.error = message
        self.state = AnalysisState.ERROR
        self._emit("state")
        self._emit("error")
        self.notify("error", message)

    def clear_results(self) -> None:
        """Drop everything a previous run produced, keeping video and metadata."""
        self.frames = []
        self.style_token = None
        self.prompts = []
        self.voiceovers = []
        self.current_batch = 0
        self.current_scene = 0
        self.phase_progress = 0
        self.error = None
        self.start_time = time.time()

    def reset(self) -> None:
        """Return to a blank IDLE session. Listeners stay subscribed."""
        self.clear_results()
        self.video_path = None
        self.metadata = None
        self.total_batches = 0
        self.total_scenes = 0
        self.voiceover_settings = VoiceoverSettings(
            default_language=self.voiceover_settings.default_language
        )
        self.notifications = []
        self.cancel_event.clear()
        self.state = AnalysisState.IDLE
        self._emit("reset")

    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def request_cancel(self) -> None:
        self.cancel_event.set()

    def clear_cancel(self) -> None:
        self.cancel_event.clear()

    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def add_frames(self, frames: Iterable[ExtractedFrame]) -> None:
        known = {f.scene_index for f in self.frames}
        new_frames = list(frames)
        for frame in new_frames:
            if frame.scene_index in known:
                raise InvalidInputError(f"Frame for scene {frame.scene_index} already exists")
            known.add(frame.scene_index)
        self.frames.extend(new_frames)
        self._emit("frames")

    def set_style_token(self, token: GlobalStyleToken) -> None:
        self.style_token = token
        self._emit("style")

    def get_frame(self, scene_index: int) -> Optional[ExtractedFrame]:
        return next((f for f in self.frames if f.scene_index == scene_index), None)

    def get_prompt(self, scene_index: int) -> Optional[GeneratedPrompt]:
        return next((p for p in self.prompts if p.scene_index == scene_index), None)

    def get_voiceover(self, scene_index: int) -> Optional[VoiceoverScript]:
        return next((v for v in self.voiceovers if v.scene_index == scene_index), None)

    def add_prompt(self, prompt: GeneratedPrompt) -> None:
        if self.get_prompt(prompt.scene_index) is not None:
            raise InvalidInputError(f"Prompt for scene {prompt.scene_index} already exists")
        self.prompts.append(prompt)
        self._emit("prompt")

    def add_voiceover(self, voiceover: VoiceoverScript) -> None:
        if self.get_voiceover(voiceover.scene_index) is not None:
            raise InvalidInputError(f"Voiceover for scene {voiceover.scene_index} already exists")
        self.voiceovers.append(voiceover)
        self._emit("voiceover")

    @staticmethod
    def _check_edit(changes: Dict[str, Any], allowed: set, what: str) -> None:
        locked = _IMMUTABLE_FIELDS.intersection(changes)
        if locked:
            raise InvalidInputError(f"{what} fields {sorted(locked)} cannot be edited")
        unknown = set(changes) - allowed
        if unknown:
            raise InvalidInputError(f"{what} fields {sorted(unknown)} are not editable")

    def update_prompt(self, scene_index: int, /, **changes: Any) -> GeneratedPrompt:
        """Edit the image/video prompt text (or shot type) of one scene."""
        self._check_edit(changes, EDITABLE_PROMPT_FIELDS, "Prompt")
        for idx, prompt in enumerate(self.prompts):
            if prompt.scene_index == scene_index:
                updated = replace(prompt, **changes)
                self.prompts[idx] = updated
                self._emit("prompt")
                return updated
        raise InvalidInputError(f"No prompt for scene {scene_index}")

    def update_voiceover(self, scene_index: int, /, **changes: Any) -> VoiceoverScript:
        """Edit one scene's script; the word count follows the new text."""
        from ..voiceover_generation import count_words

        self._check_edit(changes, EDITABLE_VOICEOVER_FIELDS, "Voiceover")
        for idx, voiceover in enumerate(self.voiceovers):
            if voiceover.scene_index == scene_index:
                script = changes.get("script", voiceover.script)
                updated = replace(voiceover, script=script, word_count=count_words(script))
                self.voiceovers[idx] = updated
                self._emit("voiceover")
                return updated
        raise InvalidInputError(f"No voiceover for scene {scene_index}")

    def apply_quality(self, scene_index: int, score: float, missing_factors: Iterable[str] = ()) -> None:
        """Record an external quality score for one prompt."""
        prompt = self.get_prompt(scene_index)
        if prompt is None:
            raise InvalidInputError(f"No prompt for scene {scene_index}")
        prompt.quality_score = score
        prompt.missing_factors = list(missing_factors)
        self._emit("prompt")

    def set_progress(
        self,
        current_batch: Optional[int] = None,
        total_batches: Optional[int] = None,
        current_scene: Optional[int] = None,
        total_scenes: Optional[int] = None,
        phase_progress: Optional[int] = None,
    ) -> None:
        if current_batch is not None:
            self.current_batch = current_batch
        if total_batches is not None:
            self.total_batches = total_batches
        if current_scene is not None:
            self.current_scene = current_scene
        if total_scenes is not None:
            self.total_scenes = total_scenes
        if phase_progress is not None:
            self.phase_progress = phase_progress
        self._emit("progress")

    # ------------------------------------------------------------------
    # Voiceover settings
    # ------------------------------------------------------------------

    def set_voiceover_settings(
        self,
        mode: Optional[VoiceoverMode] = None,
        default_language: Optional[str] = None,
    ) -> None:
        if mode is not None:
            self.voiceover_settings.mode = VoiceoverMode(mode)
        if default_language is not None:
            self.voiceover_settings.default_language = get_language(default_language).code
        self._emit("settings")

    def set_scene_language(self, scene_index: int, language: str) -> None:
        if scene_index < 0:
            raise InvalidInputError(f"Scene index must be non-negative, got {scene_index}")
        self.voiceover_settings.scene_overrides[scene_index] = get_language(language).code
        self._emit("settings")


__all__ = ["AnalysisSession", "Notification", "EDITABLE_PROMPT_FIELDS"]
