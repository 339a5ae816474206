import csv
import io
import json

import pytest

from veo_replicator import export
from veo_replicator.errors import InvalidInputError
from veo_replicator.style_extraction import default_style_token
from veo_replicator.types import GeneratedPrompt, VideoMetadata, VoiceoverScript, VoiceoverTone


def _metadata(file_name="holiday.final.mp4", duration=40.0):
    return VideoMetadata(
        duration=duration, width=1280, height=720, fps=24.0, format="mov", file_name=file_name, file_size=10
    )


def _prompt(i, image="Still", video="Motion"):
    return GeneratedPrompt(
        scene_index=i,
        time_range=f"00:{i * 8:02d}-00:{(i + 1) * 8:02d}",
        image_prompt=f"{image} {i}",
        video_prompt=f"{video} {i}",
        shot_type="Wide Shot",
    )


def _voiceover(i, script=None):
    return VoiceoverScript(
        scene_index=i,
        time_range="",
        language="vi",
        script=script if script is not None else f"Cảnh {i}",
        word_count=2,
        estimated_duration=8,
        tone=VoiceoverTone.DRAMATIC,
    )


def _data(prompts, voiceovers, file_name="holiday.final.mp4", duration=40.0):
    return export.ExportData(
        prompts=prompts,
        voiceovers=voiceovers,
        style_token=default_style_token({"artStyle": "Anime"}),
        metadata=_metadata(file_name, duration),
        voiceover_language="vi",
    )


def test_txt_export_has_header_and_scene_blocks():
    data = _data([_prompt(0), _prompt(1)], [_voiceover(0)])
    text = export.generate_txt_export(data)
    lines = text.splitlines()

    assert lines[0] == "=" * 80
    assert lines[1] == export.EXPORT_TITLE
    assert "Source: holiday.final.mp4" in lines
    assert "Duration: 40s" in lines
    assert "Total Scenes: 2" in lines
    assert "Voiceover Language: Vietnamese (Tiếng Việt)" in lines
    assert "--- SCENE 1 | 00:00-00:08 | Wide Shot ---" in lines
    assert "[VOICEOVER - Tiếng Việt]" in lines
    assert "Cảnh 0" in lines
    # scene 2 has no voiceover
    assert "(No voiceover)" in lines


def test_txt_export_keeps_fractional_duration():
    text = export.generate_txt_export(_data([_prompt(0)], [], duration=123.4567))
    assert "Duration: 123.4567s" in text.splitlines()


def test_txt_export_can_omit_voiceovers():
    data = _data([_prompt(0)], [_voiceover(0)])
    text = export.generate_txt_export(data, export.ExportOptions("txt", include_voiceover=False))
    assert "[VOICEOVER" not in text


def test_json_export_lists_every_scene():
    prompts = [_prompt(i) for i in range(5)]
    data = _data(prompts, [_voiceover(i) for i in range(4)])
    document = json.loads(export.generate_json_export(data))

    assert document["version"] == "3.7"
    assert document["generatedAt"].endswith("Z")
    assert document["metadata"] == {
        "source": "holiday.final.mp4",
        "duration": 40.0,
        "totalScenes": 5,
        "voiceoverLanguage": "vi",
    }
    assert document["globalStyleToken"]["artStyle"] == "Anime"
    assert [scene["index"] for scene in document["scenes"]] == [1, 2, 3, 4, 5]
    assert document["scenes"][0]["voiceover"] == {
        "language": "vi",
        "script": "Cảnh 0",
        "wordCount": 2,
        "tone": "dramatic",
    }
    assert document["scenes"][4]["voiceover"] is None
    assert document["scenes"][0]["qualityScore"] == 0
    assert document["scenes"][0]["ocrText"] == []


def test_json_export_respects_options():
    data = _data([_prompt(0)], [_voiceover(0)])
    options = export.ExportOptions("json", include_voiceover=False, include_quality_scores=False, include_ocr_text=False)
    (scene,) = json.loads(export.generate_json_export(data, options))["scenes"]
    assert set(scene) == {"index", "timeRange", "shotType", "imagePrompt", "videoPrompt"}


def test_json_export_uses_session_scene_total():
    data = _data([_prompt(0)], [])
    data.total_scenes = 12
    assert json.loads(export.generate_json_export(data))["metadata"]["totalScenes"] == 12


def test_csv_export_quotes_and_flattens_text():
    prompt = _prompt(0, image='He said "go"', video="line one\nline two")
    data = _data([prompt], [_voiceover(0, script="Xin\r\nchào")])
    content = export.generate_csv_export(data)
    lines = content.splitlines()

    assert lines[0] == '"Scene","TimeRange","ShotType","ImagePrompt","VideoPrompt","VoiceoverLanguage","VoiceoverScript"'
    assert lines[1] == (
        '1,"00:00-00:08","Wide Shot","He said ""go"" 0","line one line two 0","Vietnamese","Xin chào"'
    )
    assert len(lines) == 2


def test_csv_export_reads_back_with_missing_voiceover():
    data = _data([_prompt(0), _prompt(1)], [_voiceover(1)])
    rows = list(csv.reader(io.StringIO(export.generate_csv_export(data))))
    assert rows[1][-1] == ""
    assert rows[2][-1] == "Cảnh 1"


@pytest.mark.parametrize(
    "file_name, expected",
    [("holiday.final.mp4", "holiday.final"), ("clip", "clip"), (".mp4", "veo3_prompts"), ("", "veo3_prompts")],
)
def test_export_basename(file_name, expected):
    assert export.export_basename(file_name) == expected


def test_unknown_format_rejected():
    with pytest.raises(InvalidInputError):
        export.ExportOptions("xml")


def test_build_export_names_file_and_mime_type():
    data = _data([_prompt(0)], [])
    _, filename, mime_type = export.build_export(data, export.ExportOptions("CSV"))
    assert filename == "holiday.final.csv"
    assert mime_type == "text/csv"


def test_export_prompts_writes_file(tmp_path):
    data = _data([_prompt(0)], [_voiceover(0)])
    exported = export.export_prompts(data, export.ExportOptions("json"), output_dir=str(tmp_path / "out"))

    assert exported.path == tmp_path / "out" / "holiday.final.json"
    assert exported.mime_type == "application/json"
    assert json.loads(exported.path.read_text(encoding="utf-8"))["scenes"][0]["imagePrompt"] == "Still 0"
