"""
Export assembler: writes finished scenes as TXT, JSON or CSV.

The caller is expected to have checked that prompts, style token and metadata
exist; nothing here re-validates them.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidInputError
from .languages import get_language
from .types import GeneratedPrompt, GlobalStyleToken, VideoMetadata, VoiceoverScript

logger = logging.getLogger(__name__)

EXPORT_VERSION = "3.7"
EXPORT_TITLE = "VEO3 REPLICATOR ELITE — ULTRA MODE v3.7"
FALLBACK_BASENAME = "veo3_prompts"
RULE = "=" * 80

MIME_TYPES = {
    "txt": "text/plain",
    "json": "application/json",
    "csv": "text/csv",
}

CSV_HEADER = ["Scene", "TimeRange", "ShotType", "ImagePrompt", "VideoPrompt", "VoiceoverLanguage", "VoiceoverScript"]


@dataclass
class ExportData:
    prompts: List[GeneratedPrompt]
    voiceovers: List[VoiceoverScript]
    style_token: GlobalStyleToken
    metadata: VideoMetadata
    voiceover_language: str
    total_scenes: Optional[int] = None

    def scene_count(self) -> int:
        return self.total_scenes if self.total_scenes is not None else len(self.prompts)

    def voiceover_for(self, scene_index: int) -> Optional[VoiceoverScript]:
        return next((v for v in self.voiceovers if v.scene_index == scene_index), None)


@dataclass
class ExportOptions:
    format: str = "txt"
    include_voiceover: bool = True
    include_quality_scores: bool = True
    include_ocr_text: bool = True

    def __post_init__(self) -> None:
        self.format = (self.format or "txt").lower()
        if self.format not in MIME_TYPES:
            raise InvalidInputError(
                f"Unsupported export format '{self.format}'. Use one of {sorted(MIME_TYPES)}."
            )


@dataclass(frozen=True)
class ExportedFile:
    path: Path
    filename: str
    mime_type: str


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _format_seconds(value: float) -> str:
    """Whole numbers without a trailing .0, everything else at full precision."""
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def export_basename(file_name: str) -> str:
    """Source file name without its extension, or the fallback name."""
    return re.sub(r"\.[^/.]+$", "", file_name or "") or FALLBACK_BASENAME


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------

def generate_txt_export(data: ExportData, options: Optional[ExportOptions] = None) -> str:
    options = options or ExportOptions("txt")
    lang = get_language(data.voiceover_language)

    lines = [
        RULE,
        EXPORT_TITLE,
        RULE,
        f"Source: {data.metadata.file_name}",
        f"Duration: {_format_seconds(data.metadata.duration)}s",
        f"Total Scenes: {data.scene_count()}",
        f"Voiceover Language: {lang.name} ({lang.native})",
        f"Global Style Token: {data.style_token.token_string}",
        f"Generated: {_now_iso()}",
        RULE,
        "",
    ]
    for prompt in data.prompts:
        lines += [
            f"--- SCENE {prompt.scene_index + 1} | {prompt.time_range} | {prompt.shot_type} ---",
            "",
            "[IMAGE PROMPT]",
            prompt.image_prompt,
            "",
            "[VIDEO PROMPT]",
            prompt.video_prompt,
            "",
        ]
        if options.include_voiceover:
            voiceover = data.voiceover_for(prompt.scene_index)
            lines += [
                f"[VOICEOVER - {lang.native}]",
                voiceover.script if voiceover and voiceover.script else "(No voiceover)",
                "",
            ]
        lines += [RULE, ""]
    return "\n".join(lines) + "\n"


def _scene_entry(prompt: GeneratedPrompt, data: ExportData, options: ExportOptions) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "index": prompt.scene_index + 1,
        "timeRange": prompt.time_range,
        "shotType": prompt.shot_type,
        "imagePrompt": prompt.image_prompt,
        "videoPrompt": prompt.video_prompt,
    }
    if options.include_voiceover:
        voiceover = data.voiceover_for(prompt.scene_index)
        entry["voiceover"] = (
            {
                "language": voiceover.language,
                "script": voiceover.script,
                "wordCount": voiceover.word_count,
                "tone": voiceover.tone.value,
            }
            if voiceover
            else None
        )
    if options.include_quality_scores:
        entry["qualityScore"] = prompt.quality_score
    if options.include_ocr_text:
        entry["ocrText"] = [ocr.to_dict() for ocr in prompt.ocr_text]
    return entry


def generate_json_export(data: ExportData, options: Optional[ExportOptions] = None) -> str:
    options = options or ExportOptions("json")
    document = {
        "version": EXPORT_VERSION,
        "generatedAt": _now_iso(),
        "metadata": {
            "source": data.metadata.file_name,
            "duration": data.metadata.duration,
            "totalScenes": data.scene_count(),
            "voiceoverLanguage": data.voiceover_language,
        },
        "globalStyleToken": data.style_token.summary(),
        "scenes": [_scene_entry(prompt, data, options) for prompt in data.prompts],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def _flatten(text: Optional[str]) -> str:
    return (text or "").replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def generate_csv_export(data: ExportData, options: Optional[ExportOptions] = None) -> str:
    """
    One row per prompt. Text fields are always quoted with embedded quotes
    doubled; newlines inside them become spaces.
    """
    options = options or ExportOptions("csv")
    lang = get_language(data.voiceover_language)
    header = CSV_HEADER if options.include_voiceover else CSV_HEADER[:5]

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(header)
    for prompt in data.prompts:
        row: List[Any] = [
            prompt.scene_index + 1,
            prompt.time_range,
            prompt.shot_type,
            _flatten(prompt.image_prompt),
            _flatten(prompt.video_prompt),
        ]
        if options.include_voiceover:
            voiceover = data.voiceover_for(prompt.scene_index)
            row += [lang.name, _flatten(voiceover.script if voiceover else "")]
        writer.writerow(row)
    return buffer.getvalue()


_GENERATORS = {
    "txt": generate_txt_export,
    "json": generate_json_export,
    "csv": generate_csv_export,
}


def build_export(data: ExportData, options: ExportOptions) -> Tuple[str, str, str]:
    """Return (content, filename, mime_type) without touching the filesystem."""
    content = _GENERATORS[options.format](data, options)
    filename = f"{export_basename(data.metadata.file_name)}.{options.format}"
    return content, filename, MIME_TYPES[options.format]


def export_prompts(
    data: ExportData,
    options: ExportOptions,
    output_dir: Optional[str] = None,
) -> ExportedFile:
    """Write the export next to output_dir (cwd by default)."""
    content, filename, mime_type = build_export(data, options)
    target_dir = Path(output_dir).expanduser() if output_dir else Path.cwd()
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / filename
    path.write_text(content, encoding="utf-8")
    logger.info("Exported %d scenes to %s", len(data.prompts), path)
    return ExportedFile(path=path, filename=filename, mime_type=mime_type)


__all__ = [
    "ExportData",
    "ExportOptions",
    "ExportedFile",
    "build_export",
    "export_basename",
    "export_prompts",
    "generate_csv_export",
    "generate_json_export",
    "generate_txt_export",
]
