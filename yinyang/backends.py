"""yinyang/backends.py

Model service backends.

Each backend turns a :class:`GenerationRequest` plus the registry's
:class:`ModelHandle` into one provider call and returns the raw response
text.  Provider errors are translated into the package taxonomy:

  HTTP 503 (overloaded)  -> TransientModelUnavailable  (retryable)
  anything else          -> ModelInvocationFailed      (escalate tier)
"""

from __future__ import annotations

# Standard Library
import logging
from typing import Any, Protocol

# Local Modules
from yinyang.config import Settings
from yinyang.errors import ModelInvocationFailed, TransientModelUnavailable
from yinyang.models import BinaryAttachment, GenerationRequest, Role
from yinyang.registry import ModelHandle
from yinyang.schemas import PAYLOAD_SCHEMAS, json_schema_for

logger = logging.getLogger(__name__)

UNAVAILABLE_STATUS: int = 503


class ModelBackend(Protocol):
    """Anything that can execute one generation call."""

    name: str

    async def generate(self, handle: ModelHandle, request: GenerationRequest) -> str:
        """Run the call and return the model's raw text output."""
        ...


def _translate_status(status: int | None, message: str) -> ModelInvocationFailed:
    if status == UNAVAILABLE_STATUS:
        return TransientModelUnavailable(message)
    return ModelInvocationFailed(message, status=status)


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


class GeminiBackend:
    """Google Gemini via the ``google-genai`` async client.

    The SDK client is created lazily on first use so that building the
    application does not require credentials.
    """

    name = "gemini"

    def __init__(self, api_key: str = "", client: Any | None = None) -> None:
        self.api_key = api_key
        self._client = client

    def _ensure_client(self) -> Any:
        if self._client is None:
            from google import genai

            if not self.api_key:
                raise ModelInvocationFailed("GEMINI_API_KEY is not set")
            self._client = genai.Client(api_key=self.api_key)
            logger.info("Gemini client initialized")
        return self._client

    @staticmethod
    def _to_content(role: Role, parts: tuple[Any, ...]) -> Any:
        from google.genai import types

        converted = [
            types.Part.from_bytes(data=p.data, mime_type=p.mime_type)
            if isinstance(p, BinaryAttachment)
            else types.Part.from_text(text=p)
            for p in parts
        ]
        return types.Content(role=role.value, parts=converted)

    def build_contents(self, request: GenerationRequest) -> list[Any]:
        contents = [self._to_content(turn.role, turn.parts) for turn in request.history]
        contents.append(self._to_content(Role.USER, request.parts))
        return contents

    def build_config(self, handle: ModelHandle, request: GenerationRequest) -> Any:
        from google.genai import types

        params = handle.parameters
        return types.GenerateContentConfig(
            system_instruction=handle.system_preamble,
            temperature=params.temperature,
            top_p=params.top_p,
            top_k=params.top_k,
            max_output_tokens=params.max_output_tokens,
            response_mime_type="application/json",
            response_schema=PAYLOAD_SCHEMAS[request.shape],
        )

    async def generate(self, handle: ModelHandle, request: GenerationRequest) -> str:
        from google.genai import errors

        client = self._ensure_client()
        try:
            response = await client.aio.models.generate_content(
                model=handle.model_id,
                contents=self.build_contents(request),
                config=self.build_config(handle, request),
            )
        except errors.APIError as exc:
            raise _translate_status(exc.code, f"Gemini {handle.model_id}: {exc}") from exc
        return response.text or ""


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------


def _ollama_message(role: Role, parts: tuple[Any, ...]) -> dict[str, Any]:
    text = "\n".join(p for p in parts if isinstance(p, str))
    message: dict[str, Any] = {
        "role": "assistant" if role is Role.MODEL else "user",
        "content": text,
    }
    images = [p.data for p in parts if isinstance(p, BinaryAttachment)]
    if images:
        message["images"] = images
    return message


class OllamaBackend:
    """A local Ollama server via ``ollama.AsyncClient``."""

    name = "ollama"

    def __init__(self, host: str = "http://localhost:11434", client: Any | None = None) -> None:
        self.host = host
        if client is None:
            from ollama import AsyncClient

            client = AsyncClient(host=host)
        self.client = client

    def build_messages(
        self, handle: ModelHandle, request: GenerationRequest
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": handle.system_preamble}
        ]
        for turn in request.history:
            messages.append(_ollama_message(turn.role, turn.parts))
        messages.append(_ollama_message(Role.USER, request.parts))
        return messages

    async def generate(self, handle: ModelHandle, request: GenerationRequest) -> str:
        from ollama import ResponseError

        params = handle.parameters
        try:
            response = await self.client.chat(
                model=handle.model_id,
                messages=self.build_messages(handle, request),
                format=json_schema_for(request.shape),
                options={
                    "temperature": params.temperature,
                    "top_p": params.top_p,
                    "top_k": params.top_k,
                    "num_predict": params.max_output_tokens,
                },
            )
        except ResponseError as exc:
            raise _translate_status(
                exc.status_code, f"Ollama {handle.model_id}: {exc.error}"
            ) from exc
        except ConnectionError as exc:
            raise ModelInvocationFailed(f"Ollama unreachable at {self.host}: {exc}") from exc
        return response["message"]["content"] or ""


def build_backend(settings: Settings) -> ModelBackend:
    """Instantiate the backend selected by ``settings.model_provider``."""
    if settings.model_provider == "ollama":
        logger.info("Using Ollama backend at %s", settings.ollama_base_url)
        return OllamaBackend(host=settings.ollama_base_url)
    logger.info("Using Gemini backend")
    return GeminiBackend(api_key=settings.gemini_api_key)
