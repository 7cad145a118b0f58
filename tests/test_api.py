"""tests/test_api.py

Integration tests for the FastAPI application (yinyang/api.py).
The model backend is scripted; everything above it runs for real.
"""

from __future__ import annotations

# Standard Library
import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, Mock

# Third-Party Libraries
import pytest
from fastapi.testclient import TestClient

# Local Modules
from tests.conftest import PNG_BYTES, ScriptedBackend
from yinyang.api import create_app
from yinyang.config import Settings
from yinyang.models import GenerationRequest, InvocationPolicy, ReplyShape, RetryPolicy
from yinyang.orchestrator import GenerationOrchestrator
from yinyang.registry import ModelHandle

AUTH = {"Authorization": "Bearer good-token"}


def respond(handle: ModelHandle, request: GenerationRequest) -> Any:
    text = request.parts[0]
    if request.shape is ReplyShape.BUBBLES:
        return json.dumps({"bubbles": ["hey there", f"t={handle.parameters.temperature}"]})
    if "Context from user" in text:
        return '{"text": "Weekend mood"}'
    if "previous photo" in text.lower():
        return '{"text": "Whoa, new scenery!"}'
    return '{"text": "A dog on grass."}'


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend(responder=respond)


@pytest.fixture
def client(settings: Settings, make_invoker, backend: ScriptedBackend) -> TestClient:
    single = InvocationPolicy(primary=RetryPolicy(1), fallback=RetryPolicy(1))
    orchestrator = GenerationOrchestrator(
        make_invoker(backend), reply_policy=single, image_policy=single
    )
    return TestClient(create_app(settings, orchestrator=orchestrator))


def _image(name: str = "photo.png", mime: str = "image/png") -> tuple[str, tuple[str, bytes, str]]:
    return ("images", (name, PNG_BYTES, mime))


class TestHealth:
    """Test suite for GET /health."""

    def test_health_needs_no_auth(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["provider"] == "scripted"
        assert isinstance(body["degraded"], dict)


class TestAuth:
    """Test suite for bearer authentication."""

    def test_missing_header(self, client: TestClient) -> None:
        response = client.post("/yinyang", data={"prompt": "hi"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized: Missing Bearer token"

    def test_invalid_token(self, client: TestClient, backend: ScriptedBackend) -> None:
        response = client.post(
            "/yinyang", data={"prompt": "hi"}, headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized: Invalid token"
        assert backend.calls == []


class TestYinYangEndpoint:
    """Test suite for POST /yinyang."""

    def test_text_reply(self, client: TestClient) -> None:
        response = client.post("/yinyang", data={"prompt": "hello"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"bubbles": ["hey there", "t=1.0"]}

    def test_personality_selects_voice(self, client: TestClient) -> None:
        response = client.post(
            "/yinyang", data={"prompt": "hello", "personality": "YANG"}, headers=AUTH
        )
        assert response.json()["bubbles"][1] == "t=1.15"

    def test_unknown_personality_defaults_to_yin(self, client: TestClient) -> None:
        response = client.post(
            "/yinyang", data={"prompt": "hello", "personality": "grumpy"}, headers=AUTH
        )
        assert response.json()["bubbles"][1] == "t=1.0"

    def test_image_upload_reaches_model(self, client: TestClient, backend: ScriptedBackend) -> None:
        response = client.post(
            "/yinyang", data={"prompt": ""}, files=[_image()], headers=AUTH
        )

        assert response.status_code == 200
        _, request = backend.calls[0]
        assert len(request.attachments) == 1
        assert request.attachments[0].data == PNG_BYTES

    def test_history_forwarded(self, client: TestClient, backend: ScriptedBackend) -> None:
        history = [
            {"role": "model", "parts": [{"text": "Hi!"}]},
            {"role": "user", "parts": [{"text": "earlier"}]},
            {"role": "model", "parts": [{"text": "reply"}]},
        ]
        response = client.post(
            "/yinyang",
            data={"prompt": "again", "history": json.dumps(history)},
            headers=AUTH,
        )

        assert response.status_code == 200
        _, request = backend.calls[0]
        assert [turn.parts for turn in request.history] == [("earlier",), ("reply",)]

    def test_empty_request_rejected(self, client: TestClient, backend: ScriptedBackend) -> None:
        response = client.post("/yinyang", data={"prompt": "  "}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["detail"] == "Prompt or images required"
        assert backend.calls == []

    def test_disallowed_image_only_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/yinyang", files=[_image("anim.gif", "image/gif")], headers=AUTH
        )
        assert response.status_code == 400

    def test_malformed_history(self, client: TestClient) -> None:
        response = client.post(
            "/yinyang", data={"prompt": "hi", "history": "{oops"}, headers=AUTH
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid history format")

    def test_unexpected_error_is_500(self, settings: Settings) -> None:
        orchestrator = Mock(spec=GenerationOrchestrator)
        orchestrator.reply = AsyncMock(side_effect=RuntimeError("kaboom"))
        client = TestClient(create_app(settings, orchestrator=orchestrator))

        response = client.post("/yinyang", data={"prompt": "hi"}, headers=AUTH)

        assert response.status_code == 500
        assert response.json()["detail"] == "Error processing your request"

    def test_request_budget_exceeded(self) -> None:
        """Test a reply slower than the request budget returns 504."""

        async def slow_reply(turn: Any) -> None:
            await asyncio.sleep(5)

        settings = Settings(
            _env_file=None, api_tokens={"good-token": "user-1"}, request_timeout_seconds=0.05
        )
        orchestrator = Mock(spec=GenerationOrchestrator)
        orchestrator.reply = slow_reply
        client = TestClient(create_app(settings, orchestrator=orchestrator))

        response = client.post("/yinyang", data={"prompt": "hi"}, headers=AUTH)
        assert response.status_code == 504


class TestCaptionEndpoint:
    """Test suite for POST /caption."""

    def test_requires_images(self, client: TestClient) -> None:
        response = client.post("/caption", data={"prompt": "hi"}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["detail"] == "No images provided"

    def test_caption_and_description(self, client: TestClient) -> None:
        response = client.post("/caption", files=[_image()], headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {
            "caption": "Weekend mood",
            "description": "A dog on grass.",
        }

    def test_transition_with_previous_photo(self, client: TestClient) -> None:
        response = client.post(
            "/caption",
            data={"prevPhotoDescription": "A cat on a sofa."},
            files=[_image()],
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["transitionalComment"] == "Whoa, new scenery!"


class TestTurnEndpoint:
    """Test suite for POST /turn."""

    def test_text_turn_has_only_bubbles(self, client: TestClient) -> None:
        response = client.post("/turn", data={"prompt": "hello"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"bubbles": ["hey there", "t=1.0"]}

    def test_photo_turn_fills_everything(self, client: TestClient, backend: ScriptedBackend) -> None:
        response = client.post(
            "/turn",
            data={"prompt": "my dog", "prevPhotoDescription": "A cat on a sofa."},
            files=[_image()],
            headers=AUTH,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["bubbles"] == ["hey there", "t=1.0"]
        assert body["caption"] == "Weekend mood"
        assert body["description"] == "A dog on grass."
        assert body["transitionalComment"] == "Whoa, new scenery!"
        assert len(backend.calls) == 4
