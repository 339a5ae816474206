"""
Exceptions shared by the gateway, agents and pipeline.

Provides a clear hierarchy for the error types the analysis pipeline knows about:
- PipelineError: Base exception for all pipeline errors
- InvalidInputError: Caller bug (empty frame list, unknown language, bad edit)
- AuthError: No API key is active in the model gateway
- TransportError: Network or provider failure (the only retryable error)
- MalformedResponseError: Model text could not be parsed as JSON
- FrameExtractionError: ffmpeg/ffprobe could not sample the video
- StageError: Unexpected failure wrapped with the stage that raised it
"""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    recoverable: bool = False

    def __init__(self, message: str, stage_name: Optional[str] = None):
        self.stage_name = stage_name
        super().__init__(message)


class InvalidInputError(PipelineError):
    """A required input was missing or invalid. Never retried."""
    pass


class AuthError(PipelineError):
    """No API key has been configured for the model gateway."""

    def __init__(self, message: str = "API key not set. Add an API key first."):
        super().__init__(message)


class TransportError(PipelineError):
    """
    The call to the model provider failed.

    Examples:
    - Network error / connection reset
    - Provider returned a non-success status (including 429 rate limits)
    - Proxy returned an error payload

    This is the only error eligible for key rotation in the orchestrator.
    """

    recoverable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)


class MalformedResponseError(PipelineError):
    """The model's text output was not valid JSON after fence stripping."""

    def __init__(self, message: str, cleaned_text: str = ""):
        self.cleaned_text = cleaned_text
        super().__init__(message)


class FrameExtractionError(PipelineError):
    """Frames could not be sampled from the video."""
    pass


class StageError(PipelineError):
    """Unexpected error during stage execution."""

    def __init__(
        self,
        message: str,
        stage_name: str,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        self.cause = cause
        self.recoverable = recoverable
        super().__init__(message, stage_name)
