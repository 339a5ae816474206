"""
Configuration helpers for the Veo3 scene replicator.

Centralises environment variable loading/validation so the rest of the codebase
can depend on typed config objects instead of sprinkling os.getenv calls.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

GATEWAY_TRANSPORT_CHOICES = {"direct", "proxy"}
DEFAULT_MODEL = "gemini-2.5-flash-preview-05-20"
DEFAULT_SETTINGS_PATH = "~/.veo_replicator/settings.json"
SETTINGS_NAMESPACE = "veo3-settings"

# Fixed pipeline geometry
SCENE_INTERVAL_SECONDS = 8.0
BATCH_SIZE = 5
STYLE_SAMPLE_SIZE = 5
SCENE_SPOKEN_SECONDS = 8
BATCH_DELAY_SECONDS = 2.0


@dataclass(frozen=True)
class GatewayConfig:
    """How the model gateway reaches Gemini."""

    transport: str
    model_name: str
    proxy_url: Optional[str]
    request_timeout: Optional[float]


@dataclass(frozen=True)
class SettingsConfig:
    """Where the API-key pool is persisted and which keys seed it."""

    settings_path: Path
    seed_api_keys: Tuple[str, ...]


@dataclass(frozen=True)
class RuntimeConfig:
    """Misc runtime knobs."""

    log_level: str
    default_language: str
    sentry_dsn: Optional[str]


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Wrapper around os.getenv that trims whitespace."""
    value = os.getenv(name, default)
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or default


def _require_env(name: str) -> str:
    """Fetch an environment variable or raise a helpful error."""
    value = _get_env(name)
    if not value:
        raise RuntimeError(f"Expected environment variable '{name}' to be set.")
    return value


def _get_float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a float, got '{raw}'.") from exc
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}.")
    return value


@lru_cache(maxsize=1)
def get_gateway_config() -> GatewayConfig:
    """Return the model gateway transport configuration."""
    transport = (_get_env("GATEWAY_TRANSPORT") or "direct").lower()
    if transport not in GATEWAY_TRANSPORT_CHOICES:
        raise ValueError(
            f"GATEWAY_TRANSPORT must be one of {sorted(GATEWAY_TRANSPORT_CHOICES)}, got '{transport}'."
        )
    proxy_url = _get_env("GATEWAY_PROXY_URL")
    if transport == "proxy":
        proxy_url = _require_env("GATEWAY_PROXY_URL")

    return GatewayConfig(
        transport=transport,
        model_name=_get_env("GEMINI_MODEL") or DEFAULT_MODEL,
        proxy_url=proxy_url,
        request_timeout=_get_float_env("GATEWAY_TIMEOUT_SECONDS", None),
    )


@lru_cache(maxsize=1)
def get_settings_config() -> SettingsConfig:
    """Return the key-pool persistence location and seed keys."""
    raw_path = _get_env("VEO_SETTINGS_PATH") or DEFAULT_SETTINGS_PATH
    raw_keys = _get_env("GEMINI_API_KEYS") or ""
    seed_keys = tuple(k.strip() for k in raw_keys.split(",") if k.strip())
    return SettingsConfig(
        settings_path=Path(raw_path).expanduser(),
        seed_api_keys=seed_keys,
    )


@lru_cache(maxsize=1)
def get_runtime_config() -> RuntimeConfig:
    """Return logging/language/error-reporting toggles."""
    from .languages import SUPPORTED_LANGUAGES

    default_language = (_get_env("VOICEOVER_DEFAULT_LANGUAGE") or "vi").lower()
    if default_language not in SUPPORTED_LANGUAGES:
        raise ValueError(
            f"VOICEOVER_DEFAULT_LANGUAGE must be one of {sorted(SUPPORTED_LANGUAGES)}, "
            f"got '{default_language}'."
        )
    return RuntimeConfig(
        log_level=_get_env("LOG_LEVEL") or "INFO",
        default_language=default_language,
        sentry_dsn=_get_env("SENTRY_DSN"),
    )


def get_batch_delay_seconds() -> float:
    """Inter-batch pause, overridable for local runs via ANALYSIS_BATCH_DELAY."""
    return _get_float_env("ANALYSIS_BATCH_DELAY", BATCH_DELAY_SECONDS)


def describe_active_models() -> dict:
    """Return a summary of the currently selected transport/model."""
    gateway_cfg = get_gateway_config()
    return {
        "transport": gateway_cfg.transport,
        "model": gateway_cfg.model_name,
        "proxy_url": gateway_cfg.proxy_url,
    }


__all__ = [
    "GatewayConfig",
    "SettingsConfig",
    "RuntimeConfig",
    "SCENE_INTERVAL_SECONDS",
    "BATCH_SIZE",
    "STYLE_SAMPLE_SIZE",
    "SCENE_SPOKEN_SECONDS",
    "BATCH_DELAY_SECONDS",
    "SETTINGS_NAMESPACE",
    "get_gateway_config",
    "get_settings_config",
    "get_runtime_config",
    "get_batch_delay_seconds",
    "describe_active_models",
]
