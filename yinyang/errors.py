"""yinyang/errors.py

Exception taxonomy for the generation-orchestration layer.

Only ``MalformedHistory`` is ever surfaced to an HTTP caller.  The model
errors are absorbed by the invoker, ``UnsupportedAttachment`` by the
attachment decoder, and ``ResponseShapeMismatch`` by the interpreter.
"""

from __future__ import annotations


class YinYangError(Exception):
    """Base class for all errors raised by the yinyang package."""


class MalformedHistory(YinYangError):
    """The supplied conversation history failed shape validation."""


class UnsupportedAttachment(YinYangError):
    """An attachment's MIME type is outside the allow-list."""

    def __init__(self, mime_type: str | None) -> None:
        super().__init__(f"Unsupported attachment MIME type: {mime_type!r}")
        self.mime_type = mime_type


class ModelInvocationFailed(YinYangError):
    """The model service rejected the call; retrying will not help.

    Attributes:
        status: HTTP-style status code reported by the service, if any.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class TransientModelUnavailable(ModelInvocationFailed):
    """The model service is temporarily overloaded (HTTP 503)."""

    def __init__(self, message: str = "Model temporarily unavailable") -> None:
        super().__init__(message, status=503)


class ResponseShapeMismatch(YinYangError):
    """Raw model output is not parseable or lacks the expected fields."""
