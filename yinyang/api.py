"""yinyang/api.py

FastAPI HTTP interface for the generation orchestrator.

Endpoints:
  GET  /health    - liveness probe plus degradation counters
  POST /yinyang   - chat reply as ``{"bubbles": [...]}``
  POST /caption   - ``{"caption", "description", "transitionalComment"?}``
  POST /turn      - all of the above from one concurrent fan-out

All POST endpoints take ``multipart/form-data`` with the fields ``prompt``,
``personality`` (yin|yang), ``history`` (JSON array), ``prevPhotoDescription``
and any number of ``images`` files, and require an ``Authorization: Bearer``
header.
"""

from __future__ import annotations

# Standard Library
import asyncio
import logging
from typing import Annotated, Any

# Third-Party Libraries
import uvicorn
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

# Local Modules
from yinyang.attachments import collect_attachments
from yinyang.auth import StaticTokenVerifier, TokenVerifier, authenticate
from yinyang.config import Settings, get_settings
from yinyang.errors import MalformedHistory
from yinyang.history import normalize_history
from yinyang.interpreter import degradation_snapshot
from yinyang.models import Personality
from yinyang.orchestrator import (
    CAPTION_UNAVAILABLE,
    DESCRIPTION_UNAVAILABLE,
    FALLBACK_VALUES,
    GenerationOrchestrator,
    SubTask,
    TurnInput,
    build_orchestrator,
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logger = logging.getLogger(__name__)

REQUEST_FAILED = "Error processing your request"

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class ReplyResponse(BaseModel):
    bubbles: list[str] = Field(..., min_length=1)


class CaptionResponse(BaseModel):
    caption: str
    description: str
    transitionalComment: str | None = None


class TurnResponse(BaseModel):
    bubbles: list[str] = Field(..., min_length=1)
    caption: str | None = None
    description: str | None = None
    transitionalComment: str | None = None


# ---------------------------------------------------------------------------
# Request plumbing
# ---------------------------------------------------------------------------

PromptField = Annotated[str, Form()]
PersonalityField = Annotated[str, Form()]
HistoryField = Annotated[str | None, Form()]
PreviousDescriptionField = Annotated[str | None, Form(alias="prevPhotoDescription")]
ImagesField = Annotated[list[UploadFile] | None, File()]


async def _build_turn(
    *,
    prompt: str,
    personality: str,
    images: list[UploadFile] | None,
    history: str | None = None,
    previous_description: str | None = None,
) -> TurnInput:
    turn = TurnInput(
        personality=Personality.parse(personality),
        prompt=prompt,
        attachments=await collect_attachments(images or []),
        history=normalize_history(history) if history is not None else (),
        previous_description=previous_description,
    )
    logger.info(
        "Form data processed: has_prompt=%s history=%d personality=%s images=%d",
        bool(prompt.strip()),
        len(turn.history),
        turn.personality.value,
        len(turn.attachments),
    )
    return turn


async def _within_budget(request: Request, awaitable: Any) -> Any:
    """Await ``awaitable`` under the configured whole-request time budget."""
    timeout = request.app.state.settings.request_timeout_seconds
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error("Request exceeded %.0fs budget", timeout)
        raise HTTPException(status_code=504, detail="Request timed out") from exc


def _orchestrator(request: Request) -> GenerationOrchestrator:
    return request.app.state.orchestrator


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


async def health(request: Request) -> dict[str, Any]:
    """Liveness probe."""
    backend = _orchestrator(request).invoker.backend
    return {
        "status": "ok",
        "server": "yinyang-chat",
        "provider": getattr(backend, "name", type(backend).__name__),
        "degraded": degradation_snapshot(),
    }


async def yinyang(
    request: Request,
    uid: Annotated[str, Depends(authenticate)],
    prompt: PromptField = "",
    personality: PersonalityField = Personality.YIN.value,
    history: HistoryField = None,
    images: ImagesField = None,
) -> ReplyResponse:
    """Generate a chat reply in the selected personality."""
    logger.info("Yin/Yang endpoint called by %s", uid)
    try:
        turn = await _build_turn(
            prompt=prompt, personality=personality, images=images, history=history
        )
        if not turn.prompt.strip() and not turn.attachments:
            raise HTTPException(status_code=400, detail="Prompt or images required")
        reply = await _within_budget(request, _orchestrator(request).reply(turn))
    except (HTTPException, MalformedHistory):
        raise
    except Exception as exc:
        logger.error("Error processing endpoint: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail=REQUEST_FAILED) from exc

    logger.info("Response sent: %d bubble(s)", len(reply.bubbles))
    return ReplyResponse(bubbles=list(reply.bubbles))


async def caption(
    request: Request,
    uid: Annotated[str, Depends(authenticate)],
    prompt: PromptField = "",
    personality: PersonalityField = Personality.YIN.value,
    previous_description: PreviousDescriptionField = None,
    images: ImagesField = None,
) -> CaptionResponse:
    """Caption, describe and (optionally) bridge from the previous photo."""
    logger.info("Caption endpoint called by %s", uid)
    try:
        turn = await _build_turn(
            prompt=prompt,
            personality=personality,
            images=images,
            previous_description=previous_description,
        )
        if not turn.attachments:
            raise HTTPException(status_code=400, detail="No images provided")
        result = await _within_budget(request, _orchestrator(request).caption(turn))
    except HTTPException:
        raise
    except Exception as exc:
        logger.error("Error in caption endpoint: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Error generating caption") from exc

    return CaptionResponse(
        caption=result.caption if result.caption is not None else CAPTION_UNAVAILABLE,
        description=(
            result.description if result.description is not None else DESCRIPTION_UNAVAILABLE
        ),
        transitionalComment=result.transitional_comment,
    )


async def turn(
    request: Request,
    uid: Annotated[str, Depends(authenticate)],
    prompt: PromptField = "",
    personality: PersonalityField = Personality.YIN.value,
    history: HistoryField = None,
    previous_description: PreviousDescriptionField = None,
    images: ImagesField = None,
) -> TurnResponse:
    """Reply plus image outputs, generated concurrently."""
    logger.info("Turn endpoint called by %s", uid)
    try:
        user_turn = await _build_turn(
            prompt=prompt,
            personality=personality,
            images=images,
            history=history,
            previous_description=previous_description,
        )
        if not user_turn.prompt.strip() and not user_turn.attachments:
            raise HTTPException(status_code=400, detail="Prompt or images required")
        result = await _within_budget(request, _orchestrator(request).run(user_turn))
    except (HTTPException, MalformedHistory):
        raise
    except Exception as exc:
        logger.error("Error processing turn: %s", exc, exc_info=True)
        raise HTTPException(status_code=500, detail=REQUEST_FAILED) from exc

    if result.failed:
        logger.warning("Turn completed with fallbacks for %s", sorted(t.value for t in result.failed))
    return TurnResponse(
        bubbles=list((result.reply or FALLBACK_VALUES[SubTask.REPLY]).bubbles),
        caption=result.caption,
        description=result.description,
        transitionalComment=result.transitional_comment,
    )


async def _malformed_history_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Rejected malformed history: %s", exc)
    return JSONResponse(status_code=400, content={"detail": f"Invalid history format: {exc}"})


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    orchestrator: GenerationOrchestrator | None = None,
    verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; defaults to :func:`get_settings`.
        orchestrator: Pre-built orchestrator; built from settings if omitted.
        verifier: Token verifier; defaults to the static table in settings.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="yinyang-chat",
        version="0.1.0",
        description="Two-personality multimodal chat over a tiered LLM backend.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)
    app.state.verifier = verifier or StaticTokenVerifier(settings.api_tokens)

    app.add_exception_handler(MalformedHistory, _malformed_history_handler)
    app.add_api_route("/health", health, methods=["GET"], tags=["meta"])
    app.add_api_route(
        "/yinyang", yinyang, methods=["POST"], response_model=ReplyResponse, tags=["chat"]
    )
    app.add_api_route(
        "/caption",
        caption,
        methods=["POST"],
        response_model=CaptionResponse,
        response_model_exclude_none=True,
        tags=["chat"],
    )
    app.add_api_route(
        "/turn",
        turn,
        methods=["POST"],
        response_model=TurnResponse,
        response_model_exclude_none=True,
        tags=["chat"],
    )
    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_api() -> None:
    """Start the FastAPI server via uvicorn."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting yinyang-chat API on %s:%d", settings.api_host, settings.api_port)
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run_api()
