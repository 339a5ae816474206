"""
Model gateway: the single path from the agents to Gemini.

The gateway holds the active API key and model name, forwards a prompt plus
optional data-URL images to a transport, and returns the raw completion text.
It never retries; rotation policy lives in the orchestrator.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from google import genai
from google.genai import types

from .config import GatewayConfig, get_gateway_config
from .errors import AuthError, MalformedResponseError, TransportError

logger = logging.getLogger(__name__)

_DATA_URL_MIME = re.compile(r"data:(.*?);")
DEFAULT_IMAGE_MIME = "image/jpeg"


# ---------------------------------------------------------------------------
# Data URLs
# ---------------------------------------------------------------------------

def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """
    Split a ``data:<mime>;base64,<payload>`` string into (mime_type, bytes).

    The mime type falls back to image/jpeg when the header does not match.
    """
    meta, _, payload = data_url.partition(",")
    match = _DATA_URL_MIME.match(meta)
    mime_type = match.group(1) if match and match.group(1) else DEFAULT_IMAGE_MIME
    try:
        data = base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise TransportError(f"Image is not valid base64: {exc}", cause=exc) from exc
    return mime_type, data


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

def generate_with_genai(
    api_key: str,
    model: str,
    prompt: str,
    images: Optional[Sequence[str]] = None,
    system_instruction: Optional[str] = None,
) -> str:
    """Call Gemini through google-genai. Shared by the direct transport and the proxy."""
    client = genai.Client(api_key=api_key)

    content_parts = []
    for image in images or []:
        if not image.startswith("data:"):
            continue
        mime_type, data = decode_data_url(image)
        content_parts.append(types.Part.from_bytes(data=data, mime_type=mime_type))
    content_parts.append(types.Part.from_text(text=prompt))

    config = None
    if system_instruction:
        config = types.GenerateContentConfig(system_instruction=system_instruction)

    response = client.models.generate_content(
        model=model,
        contents=content_parts,
        config=config,
    )
    return getattr(response, "text", None) or ""


class GenAITransport:
    """Talk to Gemini directly with the google-genai SDK."""

    def generate(
        self,
        api_key: str,
        model: str,
        prompt: str,
        images: Optional[Sequence[str]] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        try:
            return generate_with_genai(api_key, model, prompt, images, system_instruction)
        except TransportError:
            raise
        except Exception as exc:
            status_code = getattr(exc, "code", None)
            message = getattr(exc, "message", None) or str(exc)
            raise TransportError(
                message,
                status_code=status_code if isinstance(status_code, int) else None,
                cause=exc,
            ) from exc


class ProxyTransport:
    """POST the request to the HTTP proxy (see backend/main.py)."""

    def __init__(self, url: str, timeout: Optional[float] = None, session: Optional[Any] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests

    def generate(
        self,
        api_key: str,
        model: str,
        prompt: str,
        images: Optional[Sequence[str]] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        body = {
            "apiKey": api_key,
            "prompt": prompt,
            "images": list(images) if images else None,
            "systemInstruction": system_instruction,
            "model": model,
        }
        try:
            response = self.session.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Request to {self.url} failed: {exc}", cause=exc) from exc

        if not response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            error = payload.get("error") if isinstance(payload, dict) else None
            raise TransportError(
                error or f"API request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()["text"]
        except (ValueError, KeyError, TypeError) as exc:
            raise TransportError("Proxy returned an unexpected payload", cause=exc) from exc


def create_transport(config: Optional[GatewayConfig] = None):
    cfg = config or get_gateway_config()
    if cfg.transport == "proxy":
        return ProxyTransport(cfg.proxy_url, timeout=cfg.request_timeout)
    return GenAITransport()


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class ModelGateway:
    """Sends prompts with the currently active key and model."""

    def __init__(self, transport: Any = None, model: Optional[str] = None):
        if transport is None or model is None:
            cfg = get_gateway_config()
            transport = transport or create_transport(cfg)
            model = model or cfg.model_name
        self.transport = transport
        self.model = model
        self._api_key: Optional[str] = None

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    def set_api_key(self, api_key: Optional[str]) -> None:
        self._api_key = api_key
        logger.debug("Active API key updated")

    def set_model(self, model: str) -> None:
        self.model = model

    def send(
        self,
        prompt: str,
        images: Optional[List[str]] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        """
        Send a prompt (and optional images) and return the raw completion text.

        Raises:
            AuthError: No API key is active
            TransportError: The network call failed or the provider rejected it
        """
        if not self._api_key:
            raise AuthError()
        logger.debug("Calling %s with %d images", self.model, len(images or []))
        return self.transport.generate(
            self._api_key,
            self.model,
            prompt,
            images=images,
            system_instruction=system_instruction,
        )


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------

def _strip_markdown_fences(text: str) -> str:
    """Remove one leading ```json / ``` fence and one trailing ``` fence."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_structured(text: str) -> Any:
    """Parse model output as JSON, tolerating Markdown code fences."""
    cleaned = _strip_markdown_fences(text or "")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse model response as JSON: %s", cleaned[:1000])
        raise MalformedResponseError(
            f"Failed to parse model response as JSON: {exc}", cleaned_text=cleaned
        ) from exc


def parse_structured_array(text: str, expected: int, what: str = "items") -> List[Any]:
    """
    Parse a JSON array answer for a batch of `expected` frames.

    Extra entries are dropped; a short array is returned as-is.
    """
    parsed = parse_structured(text)
    if not isinstance(parsed, list):
        raise MalformedResponseError(
            f"Expected a JSON array of {what}, got {type(parsed).__name__}",
            cleaned_text=_strip_markdown_fences(text or "")[:1000],
        )
    if len(parsed) > expected:
        logger.warning(
            "Model returned %d %s for %d frames; extra entries dropped", len(parsed), what, expected
        )
        return parsed[:expected]
    if len(parsed) < expected:
        logger.warning("Model returned %d %s for %d frames", len(parsed), what, expected)
    return parsed


def parse_structured_object(text: str, what: str = "object") -> Dict[str, Any]:
    parsed = parse_structured(text)
    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"Expected a JSON object for the {what}, got {type(parsed).__name__}",
            cleaned_text=_strip_markdown_fences(text or "")[:1000],
        )
    return parsed


__all__ = [
    "ModelGateway",
    "GenAITransport",
    "ProxyTransport",
    "create_transport",
    "generate_with_genai",
    "decode_data_url",
    "parse_structured",
    "parse_structured_array",
    "parse_structured_object",
]
