"""tests/conftest.py

Pytest configuration and shared fixtures for the yinyang test suite.
"""

from __future__ import annotations

# Standard Library
import base64
import inspect
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

# Third-Party Libraries
import pytest

# Local Modules
from yinyang.config import Settings
from yinyang.invoker import ResilientInvoker
from yinyang.models import BinaryAttachment, GenerationRequest, InvocationPolicy, RetryPolicy
from yinyang.registry import ModelHandle, ModelRegistry

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-body"

Responder = Callable[[ModelHandle, GenerationRequest], Any]


class ScriptedBackend:
    """In-memory model backend.

    Returns (or raises) the next entry of ``script`` on each call, or defers
    to ``responder`` (sync or async) when one is given.  Every call is recorded.
    """

    name = "scripted"

    def __init__(self, script: list[Any] | None = None, responder: Responder | None = None) -> None:
        self.script = list(script or [])
        self.responder = responder
        self.calls: list[tuple[ModelHandle, GenerationRequest]] = []

    async def generate(self, handle: ModelHandle, request: GenerationRequest) -> str:
        self.calls.append((handle, request))
        result = self.responder(handle, request) if self.responder else self.script.pop(0)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, BaseException):
            raise result
        return result


def fake_prompt(name: str) -> str:
    return f"<{name}>"


@pytest.fixture
def settings() -> Settings:
    """Create test settings isolated from any local .env file.

    Returns:
        Settings with a single valid bearer token.
    """
    return Settings(
        _env_file=None,
        model_provider="gemini",
        primary_model="primary-model",
        fallback_model="fallback-model",
        api_tokens={"good-token": "user-1"},
    )


@pytest.fixture
def registry(settings: Settings) -> ModelRegistry:
    return ModelRegistry.from_settings(settings, loader=fake_prompt)


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Replacement for ``asyncio.sleep`` that records requested delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def policy() -> InvocationPolicy:
    """Three exponential primary attempts, five constant fallback attempts."""
    return InvocationPolicy(
        primary=RetryPolicy(max_attempts=3, base_delay_ms=1000, exponential=True),
        fallback=RetryPolicy(max_attempts=5, base_delay_ms=1000, exponential=False),
    )


@pytest.fixture
def make_invoker(registry: ModelRegistry, no_sleep: AsyncMock) -> Callable[[ScriptedBackend], ResilientInvoker]:
    def factory(backend: ScriptedBackend) -> ResilientInvoker:
        return ResilientInvoker(backend, registry, sleep=no_sleep)

    return factory


@pytest.fixture
def png_attachment() -> BinaryAttachment:
    return BinaryAttachment(mime_type="image/png", data=PNG_BYTES, filename="photo.png")


@pytest.fixture
def sample_history() -> list[dict[str, Any]]:
    """Create sample history in the client's Content format.

    Returns:
        History starting with a model greeting and containing an inline image.
    """
    return [
        {"role": "model", "parts": [{"text": "Hi! Share a photo with me."}]},
        {"role": "user", "parts": [{"text": "Here is my cat"}]},
        {"role": "assistant", "parts": [{"text": "What a fluffy friend!"}]},
        {
            "role": "user",
            "parts": [
                {"text": "And the garden"},
                {
                    "inlineData": {
                        "mimeType": "image/png",
                        "data": base64.b64encode(PNG_BYTES).decode("ascii"),
                    }
                },
            ],
        },
    ]
