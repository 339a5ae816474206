#!/usr/bin/env python
"""
Command-line entry point for the Veo3 scene replicator.

Analyses a video into a global style token, per-scene image/video prompts and
voiceover scripts, then writes them as TXT, JSON or CSV.

Usage:
    python -m veo_replicator.replicate VIDEO [--language vi] [--format json]
    python -m veo_replicator.replicate --add-key KEY
    python -m veo_replicator.replicate --list-keys

Environment Variables:
    GEMINI_API_KEYS - Comma-separated keys merged into the saved key pool
    GEMINI_MODEL - Model name (default: gemini-2.5-flash-preview-05-20)
    GATEWAY_TRANSPORT - direct (google-genai) or proxy (HTTP)
    GATEWAY_PROXY_URL - Proxy endpoint when GATEWAY_TRANSPORT=proxy
    VEO_SETTINGS_PATH - Key pool file (default: ~/.veo_replicator/settings.json)
    ANALYSIS_BATCH_DELAY - Seconds between batches (default: 2)
    SENTRY_DSN - Enables error reporting (optional)
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Dict, List, Optional

import sentry_sdk

from .config import describe_active_models, get_runtime_config
from .export import MIME_TYPES
from .gateway import ModelGateway
from .languages import SUPPORTED_LANGUAGES
from .pipeline import AnalysisOrchestrator, AnalysisSession, PipelineError
from .settings import SettingsStore, mask_key
from .types import VoiceoverMode

logger = logging.getLogger("veo_replicator.replicate")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

def _configure_logging(quiet: bool) -> None:
    level = "WARNING" if quiet else get_runtime_config().log_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
        ],
    )


def _init_sentry() -> None:
    sentry_dsn = get_runtime_config().sentry_dsn
    if sentry_dsn:
        sentry_sdk.init(dsn=sentry_dsn, traces_sample_rate=0.0)
        logger.info("Sentry error tracking initialized")
    else:
        logger.debug("SENTRY_DSN not set - error tracking disabled")


def _parse_scene_languages(values: List[str], parser: argparse.ArgumentParser) -> Dict[int, str]:
    overrides: Dict[int, str] = {}
    for value in values or []:
        index, sep, code = value.partition("=")
        if not sep or not index.strip().isdigit():
            parser.error(f"--scene-language expects INDEX=CODE, got '{value}'")
        code = code.strip().lower()
        if code not in SUPPORTED_LANGUAGES:
            parser.error(f"Unsupported language '{code}' in --scene-language")
        overrides[int(index)] = code
    return overrides


def _log_session_event(event: str, session: AnalysisSession) -> None:
    if event == "notification" and session.notifications:
        note = session.notifications[-1]
        log = logger.warning if note.level in ("warning", "error") else logger.info
        log("[%s] %s", note.level, note.message)
    elif event == "progress" and session.total_batches and session.current_batch:
        logger.info(
            "Progress: batch %d/%d, scene %d/%d",
            session.current_batch, session.total_batches,
            session.current_scene, session.total_scenes,
        )
    elif event == "state":
        logger.debug("State: %s", session.state.value)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def manage_keys(store: SettingsStore, args: argparse.Namespace) -> int:
    if args.add_key:
        if store.add_api_key(args.add_key):
            print(f"Added key {mask_key(args.add_key.strip())}")
        else:
            print("Key is empty or already present")
    if args.remove_key is not None:
        try:
            removed = store.remove_api_key(args.remove_key)
        except IndexError as exc:
            print(str(exc), file=sys.stderr)
            return EXIT_FAILURE
        print(f"Removed key {mask_key(removed)}")
    if args.list_keys:
        if not store.api_keys:
            print("No API keys configured")
        for idx, key in enumerate(store.api_keys):
            print(f"{idx}: {mask_key(key)}")
    return EXIT_OK


def run_analysis(
    video: str,
    store: SettingsStore,
    language: str,
    mode: str,
    scene_languages: Dict[int, str],
    fmt: str,
    output_dir: Optional[str],
) -> int:
    """
    Analyse one video and export it.

    Returns:
        Exit code (0 success, 1 failure, 130 cancelled)
    """
    session = AnalysisSession()
    session.set_voiceover_settings(mode=VoiceoverMode(mode), default_language=language)
    for scene_index, code in scene_languages.items():
        session.set_scene_language(scene_index, code)
    session.subscribe(_log_session_event)

    orchestrator = AnalysisOrchestrator(session, ModelGateway(), store)

    def _handle_sigint(signum, frame):
        logger.warning("Received SIGINT - stopping after the current step...")
        orchestrator.stop_analysis()

    previous_handler = signal.signal(signal.SIGINT, _handle_sigint)
    try:
        if orchestrator.load_video(video) is None:
            sentry_sdk.capture_message(f"Could not load video: {session.error}", level="error")
            return EXIT_FAILURE

        result = orchestrator.start_analysis()
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if result.cancelled:
        logger.warning("Analysis cancelled (%s)", result.state.value)
        return EXIT_CANCELLED
    if not result.success:
        reason = result.rejected_reason or result.error
        logger.error("Analysis failed: %s", reason)
        if result.error:
            sentry_sdk.capture_message(f"Analysis failed: {result.error}", level="error")
        return EXIT_FAILURE

    try:
        exported = orchestrator.export(fmt, output_dir)
    except (PipelineError, OSError) as exc:
        logger.error("Export failed: %s", exc)
        sentry_sdk.capture_exception(exc)
        return EXIT_FAILURE

    print(exported.path)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Veo3 scene replicator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("video", nargs="?", help="Video file to analyse")
    parser.add_argument(
        "--language",
        choices=sorted(SUPPORTED_LANGUAGES),
        default=None,
        help="Voiceover language (default: VOICEOVER_DEFAULT_LANGUAGE or vi)",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in VoiceoverMode],
        default=VoiceoverMode.GLOBAL.value,
        help="Voiceover language mode (default: global)",
    )
    parser.add_argument(
        "--scene-language",
        action="append",
        metavar="INDEX=CODE",
        help="Per-scene language override (repeatable, per-scene mode)",
    )
    parser.add_argument(
        "--format",
        choices=sorted(MIME_TYPES),
        default="txt",
        help="Export format (default: txt)",
    )
    parser.add_argument("--output-dir", default=None, help="Export directory (default: cwd)")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--add-key", metavar="KEY", help="Add an API key to the pool and exit")
    parser.add_argument("--remove-key", type=int, metavar="INDEX", help="Remove the key at INDEX and exit")
    parser.add_argument("--list-keys", action="store_true", help="List configured keys (masked) and exit")

    args = parser.parse_args(argv)
    _configure_logging(args.quiet)

    store = SettingsStore.load()
    if args.add_key or args.remove_key is not None or args.list_keys:
        return manage_keys(store, args)

    if not args.video:
        parser.error("a video file is required unless a key-management flag is given")

    scene_languages = _parse_scene_languages(args.scene_language, parser)
    _init_sentry()
    logger.info("Models: %s", describe_active_models())

    return run_analysis(
        args.video,
        store,
        language=args.language or get_runtime_config().default_language,
        mode=args.mode,
        scene_languages=scene_languages,
        fmt=args.format,
        output_dir=args.output_dir,
    )


if __name__ == "__main__":
    sys.exit(main())
