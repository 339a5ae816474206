import json
import threading

import pytest

from conftest import FakeFrameExtractor, ScriptedTransport
from veo_replicator.errors import FrameExtractionError, InvalidInputError
from veo_replicator.prompts import STYLE_TOKEN_MARKER
from veo_replicator.types import AnalysisState

PROMPT_PHASE = "scene prompts for this video segment"
VOICEOVER_PHASE = "voiceover scripts in"


def _phase_calls(transport, phase):
    return [call for call in transport.calls if phase in call["prompt"]]


def _record_states(session):
    states = []
    session.subscribe(lambda event, s: states.append(s.state) if event == "state" else None)
    return states


def test_load_video_awaits_confirmation(build_orchestrator):
    orchestrator, _, video = build_orchestrator(duration=100.0)
    metadata = orchestrator.load_video(str(video))

    session = orchestrator.session
    assert metadata.file_name == "clip.mp4"
    assert session.state == AnalysisState.AWAITING_CONFIRMATION
    assert session.total_scenes == 12
    assert session.total_batches == 3


def test_load_video_probe_failure_moves_to_error(build_orchestrator):
    orchestrator, _, video = build_orchestrator()

    def broken_probe(path):
        raise FrameExtractionError("ffprobe failed")

    orchestrator.metadata_probe = broken_probe
    assert orchestrator.load_video(str(video)) is None
    assert orchestrator.session.state == AnalysisState.ERROR
    assert orchestrator.session.error == "ffprobe failed"


def test_full_run_produces_aligned_scenes_and_exports(build_orchestrator, tmp_path):
    orchestrator, transport, video = build_orchestrator(duration=40.0)
    orchestrator.load_video(str(video))
    states = _record_states(orchestrator.session)

    result = orchestrator.start_analysis()

    session = orchestrator.session
    assert result.success
    assert result.state == AnalysisState.COMPLETE
    assert result.counts == {"scenes": 5, "prompts": 5, "voiceovers": 5}
    assert states == [
        AnalysisState.EXTRACTING_FRAMES,
        AnalysisState.DETECTING_STYLE,
        AnalysisState.GENERATING_PROMPTS,
        AnalysisState.GENERATING_VOICEOVERS,
        AnalysisState.COMPLETE,
    ]

    assert [p.scene_index for p in session.prompts] == [0, 1, 2, 3, 4]
    assert [v.scene_index for v in session.voiceovers] == [0, 1, 2, 3, 4]
    assert session.prompts[2].time_range == "00:16-00:24"
    assert session.prompts[2].image_prompt == f"Still 2 {STYLE_TOKEN_MARKER}"
    assert session.voiceovers[4].time_range == "00:32-00:40"
    assert session.style_token.art_style == "Anime"
    assert session.notifications[-1].message == "Done! Generated 5 scenes."

    # style sample is capped at five frames
    (style_call,) = [c for c in transport.calls if "GLOBAL STYLE TOKEN PRO+" in c["prompt"]]
    assert len(style_call["images"]) == 5

    exported = orchestrator.export("json", output_dir=str(tmp_path / "out"))
    document = json.loads(exported.path.read_text(encoding="utf-8"))
    assert exported.filename == "clip.json"
    assert len(document["scenes"]) == 5
    assert all(scene["voiceover"] is not None for scene in document["scenes"])


def test_long_video_is_processed_in_batches_of_five(build_orchestrator):
    orchestrator, transport, video = build_orchestrator(duration=100.0)
    orchestrator.load_video(str(video))
    result = orchestrator.start_analysis()

    assert result.success
    assert [len(c["images"]) for c in _phase_calls(transport, PROMPT_PHASE)] == [5, 5, 2]
    assert [len(c["images"]) for c in _phase_calls(transport, VOICEOVER_PHASE)] == [5, 5, 2]
    assert [p.scene_index for p in orchestrator.session.prompts] == list(range(12))
    assert orchestrator.session.current_batch == 3
    assert orchestrator.session.current_scene == 12


def test_failed_batch_retries_same_batch_with_next_key(build_orchestrator):
    transport = ScriptedTransport(fail_keys=["key-A"], fail_phase=PROMPT_PHASE)
    orchestrator, _, video = build_orchestrator(keys=("key-A", "key-B"), transport=transport)
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    assert result.success
    assert transport.keys_used() == ["key-A", "key-A", "key-B", "key-B"]
    assert [p.scene_index for p in orchestrator.session.prompts] == [0, 1, 2, 3, 4]
    assert "Switched to another API key" in [n.message for n in orchestrator.session.notifications]


def test_single_key_failure_ends_in_error(build_orchestrator):
    transport = ScriptedTransport(fail_keys=["key-A"], fail_phase=PROMPT_PHASE)
    orchestrator, _, video = build_orchestrator(keys=("key-A",), transport=transport)
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    assert not result.success
    assert result.state == AnalysisState.ERROR
    assert result.error == "429 RESOURCE_EXHAUSTED"
    assert orchestrator.session.error == "429 RESOURCE_EXHAUSTED"
    assert orchestrator.session.notifications[-1].level == "error"
    assert len(_phase_calls(transport, PROMPT_PHASE)) == 1


def test_style_failure_is_not_rotated(build_orchestrator):
    transport = ScriptedTransport(fail_keys=["key-A"])
    orchestrator, _, video = build_orchestrator(keys=("key-A", "key-B"), transport=transport)
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    assert result.state == AnalysisState.ERROR
    assert transport.keys_used() == ["key-A"]


def test_malformed_batch_is_fatal_without_rotation(build_orchestrator):
    transport = ScriptedTransport(malformed=True, fail_phase=PROMPT_PHASE)
    orchestrator, _, video = build_orchestrator(keys=("key-A", "key-B"), transport=transport)
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    assert result.state == AnalysisState.ERROR
    assert len(_phase_calls(transport, PROMPT_PHASE)) == 1
    assert _phase_calls(transport, VOICEOVER_PHASE) == []
    assert orchestrator.session.prompts == []


def test_cancel_during_frame_extraction_stops_quietly(build_orchestrator):
    orchestrator, transport, video = build_orchestrator()
    orchestrator.frame_extractor.on_call = orchestrator.stop_analysis
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    assert result.cancelled
    assert not result.success
    assert result.state == AnalysisState.EXTRACTING_FRAMES
    assert orchestrator.session.error is None
    assert transport.calls == []


def test_cancel_between_batches_keeps_completed_batches(build_orchestrator):
    orchestrator, transport, video = build_orchestrator(duration=100.0)
    orchestrator.load_video(str(video))

    def cancel_after_first_prompt_batch(event, session):
        if event == "prompt" and len(session.prompts) == 5:
            session.request_cancel()

    orchestrator.session.subscribe(cancel_after_first_prompt_batch)
    result = orchestrator.start_analysis()

    assert result.cancelled
    assert result.state == AnalysisState.GENERATING_PROMPTS
    assert len(orchestrator.session.prompts) == 5
    assert len(_phase_calls(transport, PROMPT_PHASE)) == 1


def test_start_without_video_is_rejected(build_orchestrator):
    orchestrator, transport, _ = build_orchestrator()

    result = orchestrator.start_analysis()

    assert result.rejected_reason == "Please upload a video first."
    assert result.state == AnalysisState.IDLE
    assert orchestrator.session.state == AnalysisState.IDLE
    assert transport.calls == []


def test_start_without_keys_is_rejected(build_orchestrator):
    orchestrator, transport, video = build_orchestrator(keys=())
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    assert result.rejected_reason == "Please add at least one API key first."
    assert orchestrator.session.state == AnalysisState.AWAITING_CONFIRMATION
    assert orchestrator.frame_extractor.calls == 0


def test_short_video_fails_at_style_detection(build_orchestrator):
    orchestrator, transport, video = build_orchestrator(duration=5.0)
    orchestrator.load_video(str(video))
    assert orchestrator.session.notifications[-1].level == "warning"

    result = orchestrator.start_analysis()

    assert result.state == AnalysisState.ERROR
    assert "No frames were extracted" in result.error
    assert transport.calls == []


def test_rerun_replaces_previous_results(build_orchestrator):
    orchestrator, _, video = build_orchestrator()
    orchestrator.load_video(str(video))

    orchestrator.start_analysis()
    result = orchestrator.start_analysis()

    assert result.success
    assert result.counts == {"scenes": 5, "prompts": 5, "voiceovers": 5}


def test_quality_validator_adds_validating_phase(build_orchestrator):
    seen = []

    def validator(prompt, token):
        seen.append(prompt.scene_index)
        return 92.0, ["Lighting"] if prompt.scene_index == 0 else []

    orchestrator, _, video = build_orchestrator(quality_validator=validator)
    orchestrator.load_video(str(video))
    states = _record_states(orchestrator.session)

    result = orchestrator.start_analysis()

    assert result.success
    assert AnalysisState.VALIDATING in states
    assert seen == [0, 1, 2, 3, 4]
    assert orchestrator.session.get_prompt(0).quality_score == 92.0
    assert orchestrator.session.get_prompt(0).missing_factors == ["Lighting"]


def test_regenerate_scene(build_orchestrator):
    orchestrator, transport, video = build_orchestrator()
    orchestrator.load_video(str(video))
    orchestrator.start_analysis()

    prompt = orchestrator.regenerate_scene(1, "image")
    assert prompt.image_prompt == f"plain text answer {STYLE_TOKEN_MARKER}"
    assert orchestrator.session.get_prompt(1).video_prompt == f"Motion 1 {STYLE_TOKEN_MARKER}"

    voiceover = orchestrator.regenerate_scene(1, "voiceover")
    assert voiceover.script == "a fresh regenerated line"
    assert voiceover.word_count == 4
    assert "line number 0 here" in transport.calls[-1]["prompt"]

    with pytest.raises(InvalidInputError):
        orchestrator.regenerate_scene(1, "music")
    with pytest.raises(InvalidInputError):
        orchestrator.regenerate_scene(40, "image")


def test_export_requires_results(build_orchestrator):
    orchestrator, _, video = build_orchestrator()
    orchestrator.load_video(str(video))

    with pytest.raises(InvalidInputError):
        orchestrator.export("txt")


def test_reset_returns_to_idle_and_keeps_keys(build_orchestrator):
    orchestrator, _, video = build_orchestrator()
    orchestrator.load_video(str(video))
    orchestrator.start_analysis()

    orchestrator.reset_analysis()

    assert orchestrator.session.state == AnalysisState.IDLE
    assert orchestrator.session.prompts == []
    assert orchestrator.settings.api_keys == ["key-A", "key-B"]


def test_custom_stage_names_must_be_unique(build_orchestrator):
    from veo_replicator.pipeline import AnalysisOrchestrator
    from veo_replicator.pipeline.stages import FrameExtractionStage

    orchestrator, _, _ = build_orchestrator()
    with pytest.raises(ValueError):
        AnalysisOrchestrator(
            orchestrator.session,
            orchestrator.gateway,
            orchestrator.settings,
            stages=[FrameExtractionStage(), FrameExtractionStage()],
        )


def test_fake_extractor_reports_progress():
    progress = []
    frames = FakeFrameExtractor(duration=24.0)("clip.mp4", 8.0, on_progress=progress.append)
    assert len(frames) == 3
    assert progress == [100]


def test_start_after_probe_failure_is_rejected(build_orchestrator):
    orchestrator, transport, video = build_orchestrator()

    def broken_probe(path):
        raise FrameExtractionError("ffprobe failed")

    orchestrator.metadata_probe = broken_probe
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    assert result.rejected_reason == "Analysis failed. Reset before starting again."
    assert not result.success
    assert orchestrator.session.state == AnalysisState.ERROR
    assert orchestrator.frame_extractor.calls == 0
    assert transport.calls == []


def test_unexpected_probe_error_moves_to_error(build_orchestrator):
    orchestrator, _, video = build_orchestrator()

    def unparseable_probe(path):
        return float("N/A")

    orchestrator.metadata_probe = unparseable_probe

    assert orchestrator.load_video(str(video)) is None
    assert orchestrator.session.state == AnalysisState.ERROR
    assert "Could not read video metadata" in orchestrator.session.error


def test_start_while_running_is_rejected(build_orchestrator):
    orchestrator, _, video = build_orchestrator()
    orchestrator.load_video(str(video))
    nested = []

    def start_again():
        nested.append(orchestrator.start_analysis())

    orchestrator.frame_extractor.on_call = start_again
    result = orchestrator.start_analysis()

    assert result.success
    assert nested[0].rejected_reason == "Analysis is already running."
    assert orchestrator.frame_extractor.calls == 1


def test_stopped_run_can_be_restarted(build_orchestrator):
    orchestrator, _, video = build_orchestrator()
    orchestrator.frame_extractor.on_call = orchestrator.stop_analysis
    orchestrator.load_video(str(video))
    assert orchestrator.start_analysis().cancelled

    orchestrator.frame_extractor.on_call = None
    result = orchestrator.start_analysis()

    assert result.success
    assert result.counts == {"scenes": 5, "prompts": 5, "voiceovers": 5}


def test_failed_voiceover_batch_rotates_key(build_orchestrator):
    transport = ScriptedTransport(fail_keys=["key-A"], fail_phase=VOICEOVER_PHASE)
    orchestrator, _, video = build_orchestrator(keys=("key-A", "key-B"), transport=transport)
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    assert result.success
    assert transport.keys_used() == ["key-A", "key-A", "key-A", "key-B"]
    assert [v.scene_index for v in orchestrator.session.voiceovers] == [0, 1, 2, 3, 4]


class RecordingEvent(threading.Event):
    """Cancel event that records pauses instead of sleeping."""

    def __init__(self):
        super().__init__()
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return self.is_set()


def test_rotated_retry_waits_the_batch_delay(build_orchestrator):
    transport = ScriptedTransport(fail_keys=["key-A"], fail_phase=PROMPT_PHASE)
    orchestrator, _, video = build_orchestrator(keys=("key-A", "key-B"), transport=transport)
    orchestrator.config.batch_delay_seconds = 2.5
    orchestrator.session.cancel_event = RecordingEvent()
    orchestrator.load_video(str(video))

    result = orchestrator.start_analysis()

    # single-batch phases only pause for the retry
    assert result.success
    assert orchestrator.session.cancel_event.waits == [2.5]


def test_batches_are_paced_by_the_batch_delay(build_orchestrator):
    orchestrator, _, video = build_orchestrator(duration=100.0)
    orchestrator.config.batch_delay_seconds = 2.0
    orchestrator.session.cancel_event = RecordingEvent()
    orchestrator.load_video(str(video))

    assert orchestrator.start_analysis().success
    # three batches per phase, two pauses each
    assert orchestrator.session.cancel_event.waits == [2.0, 2.0, 2.0, 2.0]
