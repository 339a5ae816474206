import json
from pathlib import Path

import pytest

from veo_replicator.errors import TransportError
from veo_replicator.gateway import ModelGateway
from veo_replicator.media import format_time_range
from veo_replicator.pipeline import AnalysisOrchestrator, AnalysisSession, OrchestratorConfig
from veo_replicator.settings import SettingsStore
from veo_replicator.types import ExtractedFrame, VideoMetadata

FAKE_IMAGE = "data:image/jpeg;base64,/9j/AAAA"


class ScriptedTransport:
    """
    Stand-in for the Gemini transport.

    Answers style, prompt-batch and voiceover-batch requests with valid JSON
    sized to the number of images sent. Keys listed in fail_keys raise
    TransportError; `malformed` makes every answer unparseable. With
    fail_phase set, those failures only hit prompts containing that text.
    """

    def __init__(self, fail_keys=(), malformed=False, fail_phase=None):
        self.fail_keys = set(fail_keys)
        self.malformed = malformed
        self.fail_phase = fail_phase
        self.calls = []

    def generate(self, api_key, model, prompt, images=None, system_instruction=None):
        self.calls.append(
            {
                "api_key": api_key,
                "model": model,
                "prompt": prompt,
                "images": list(images or []),
                "system_instruction": system_instruction,
            }
        )
        failing = self.fail_phase is None or self.fail_phase in prompt
        if failing and api_key in self.fail_keys:
            raise TransportError("429 RESOURCE_EXHAUSTED", status_code=429)
        if failing and self.malformed:
            return "Sorry, I can't help with that."

        count = len(images or [])
        if "GLOBAL STYLE TOKEN PRO+" in prompt:
            return "```json\n" + json.dumps({"artStyle": "Anime", "colorPalette": ["#112233"]}) + "\n```"
        if "scene prompts for this video segment" in prompt:
            return json.dumps(
                [
                    {
                        "sceneIndex": 99,
                        "shotType": "Wide Shot",
                        "imagePrompt": f"Still {i}",
                        "videoPrompt": f"Motion {i}",
                    }
                    for i in range(count)
                ]
            )
        if "voiceover scripts in" in prompt:
            return json.dumps(
                [{"script": f"line number {i} here", "tone": "dramatic"} for i in range(count)]
            )
        if "8-second voiceover script in" in prompt:
            return json.dumps({"script": "a fresh regenerated line", "tone": "conversational"})
        return "plain text answer"

    def keys_used(self):
        return [call["api_key"] for call in self.calls]


def make_frames(count, interval=8.0):
    return [
        ExtractedFrame(
            scene_index=i,
            timestamp=i * interval,
            time_range=format_time_range(i * interval, (i + 1) * interval),
            image=FAKE_IMAGE,
        )
        for i in range(count)
    ]


def make_metadata(duration=40.0, file_name="clip.mp4"):
    return VideoMetadata(
        duration=duration,
        width=1920,
        height=1080,
        fps=30.0,
        format="mov",
        file_name=file_name,
        file_size=1024,
    )


class FakeFrameExtractor:
    """Returns floor(duration/interval) frames and reports progress like ffmpeg sampling would."""

    def __init__(self, duration=40.0, on_call=None):
        self.duration = duration
        self.on_call = on_call
        self.calls = 0

    def __call__(self, video_path, interval_seconds, on_progress=None, cancel_event=None):
        self.calls += 1
        if self.on_call:
            self.on_call()
        frames = []
        for frame in make_frames(int(self.duration // interval_seconds), interval_seconds):
            if cancel_event is not None and cancel_event.is_set():
                break
            frames.append(frame)
        if on_progress:
            on_progress(100)
        return frames


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def gateway(transport):
    gw = ModelGateway(transport=transport, model="test-model")
    gw.set_api_key("key-A")
    return gw


@pytest.fixture
def session():
    return AnalysisSession()


@pytest.fixture
def build_orchestrator(tmp_path):
    """Factory for an orchestrator wired to fakes; the video file exists on disk."""

    def _build(
        keys=("key-A", "key-B"),
        transport=None,
        duration=40.0,
        extractor=None,
        quality_validator=None,
    ):
        video = tmp_path / "clip.mp4"
        video.write_bytes(b"\x00")
        session = AnalysisSession()
        transport = transport or ScriptedTransport()
        orchestrator = AnalysisOrchestrator(
            session,
            ModelGateway(transport=transport, model="test-model"),
            SettingsStore(api_keys=list(keys)),
            config=OrchestratorConfig(batch_delay_seconds=0),
            frame_extractor=extractor or FakeFrameExtractor(duration),
            metadata_probe=lambda path: make_metadata(duration, Path(path).name),
            quality_validator=quality_validator,
        )
        return orchestrator, transport, video

    return _build
