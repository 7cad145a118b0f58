"""yinyang/orchestrator.py

Concurrent multi-output generation for one user turn.

Up to four independent sub-tasks are launched together:

  REPLY       - chat bubbles in the selected personality, with history
  CAPTION     - a social media caption for the attached image(s)
  DESCRIPTION - one plain, factual sentence describing the image(s)
  TRANSITION  - a comment bridging the previous photo to the new one

CAPTION and DESCRIPTION need attachments; TRANSITION additionally needs a
description of the previous photo.  Every sub-task resolves to either its
interpreted value or its own fallback value, so one failure never blocks or
fails the others.
"""

from __future__ import annotations

# Standard Library
import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable, Collection
from enum import Enum
from typing import Any

# Local Modules
from yinyang.backends import build_backend
from yinyang.composer import compose_request
from yinyang.config import Settings
from yinyang.interpreter import FILLER_BUBBLE, interpret_bubbles, interpret_text
from yinyang.invoker import ResilientInvoker
from yinyang.models import (
    BinaryAttachment,
    ConversationTurn,
    InvocationPolicy,
    Personality,
    ReplyShape,
    StructuredReply,
)
from yinyang.prompts import load_prompt, transition_prompt
from yinyang.registry import ModelRegistry

logger = logging.getLogger(__name__)

DEFAULT_CAPTION_PROMPT: str = (
    "Please generate a natural, engaging caption for this image that "
    "captures its essence and meaning."
)
CAPTION_UNAVAILABLE: str = "Caption unavailable"
DESCRIPTION_UNAVAILABLE: str = ""

# Marks a sub-task whose invocation failed on every tier.
_FAILED: Any = object()


class SubTask(str, Enum):
    REPLY = "reply"
    CAPTION = "caption"
    DESCRIPTION = "description"
    TRANSITION = "transition"


IMAGE_TASKS: frozenset[SubTask] = frozenset(
    {SubTask.CAPTION, SubTask.DESCRIPTION, SubTask.TRANSITION}
)

FALLBACK_VALUES: dict[SubTask, Any] = {
    SubTask.REPLY: StructuredReply(bubbles=(FILLER_BUBBLE,)),
    SubTask.CAPTION: CAPTION_UNAVAILABLE,
    SubTask.DESCRIPTION: DESCRIPTION_UNAVAILABLE,
    SubTask.TRANSITION: None,
}


@dataclasses.dataclass(frozen=True, slots=True)
class TurnInput:
    """One inbound user turn, already decoded and normalized.

    Attributes:
        personality: Voice used by every sub-task.
        prompt: User text; may be blank when attachments are present.
        attachments: Fully materialized, allow-listed attachments.
        history: Normalized history (only the REPLY sub-task uses it).
        previous_description: Plain description of the previously shared
            photo, enabling the TRANSITION sub-task.
    """

    personality: Personality
    prompt: str = ""
    attachments: tuple[BinaryAttachment, ...] = ()
    history: tuple[ConversationTurn, ...] = ()
    previous_description: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class TurnResult:
    """Aggregated sub-task values; fields of tasks not run stay ``None``."""

    reply: StructuredReply | None = None
    caption: str | None = None
    description: str | None = None
    transitional_comment: str | None = None
    failed: frozenset[SubTask] = frozenset()


class GenerationOrchestrator:
    """Fans a turn out into independent sub-tasks and aggregates them."""

    def __init__(
        self,
        invoker: ResilientInvoker,
        reply_policy: InvocationPolicy,
        image_policy: InvocationPolicy,
    ) -> None:
        self.invoker = invoker
        self.reply_policy = reply_policy
        self.image_policy = image_policy

    @classmethod
    def from_settings(cls, invoker: ResilientInvoker, settings: Settings) -> "GenerationOrchestrator":
        return cls(
            invoker,
            reply_policy=settings.reply_policy(),
            image_policy=settings.image_policy(),
        )

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def applicable_tasks(
        self, turn: TurnInput, requested: Collection[SubTask] | None = None
    ) -> list[SubTask]:
        """Sub-tasks to run for ``turn``, after checking preconditions."""
        wanted = list(SubTask) if requested is None else [t for t in SubTask if t in requested]
        tasks: list[SubTask] = []
        for task in wanted:
            if task in IMAGE_TASKS and not turn.attachments:
                continue
            if task is SubTask.TRANSITION and not (turn.previous_description or "").strip():
                continue
            tasks.append(task)
        return tasks

    async def run(
        self, turn: TurnInput, requested: Collection[SubTask] | None = None
    ) -> TurnResult:
        """Run every applicable sub-task concurrently and aggregate.

        Waits for all launched sub-tasks to settle; there is no early return
        and no early abort.
        """
        tasks = self.applicable_tasks(turn, requested)
        logger.info(
            "Orchestrating %s for personality=%s (attachments=%d, history=%d)",
            [t.value for t in tasks],
            turn.personality.value,
            len(turn.attachments),
            len(turn.history),
        )
        settled = await asyncio.gather(*(self._settle(task, turn) for task in tasks))

        values: dict[SubTask, Any] = {}
        failed: set[SubTask] = set()
        for task, (value, ok) in zip(tasks, settled):
            values[task] = value
            if not ok:
                failed.add(task)

        return TurnResult(
            reply=values.get(SubTask.REPLY),
            caption=values.get(SubTask.CAPTION),
            description=values.get(SubTask.DESCRIPTION),
            transitional_comment=values.get(SubTask.TRANSITION),
            failed=frozenset(failed),
        )

    async def reply(self, turn: TurnInput) -> StructuredReply:
        """Chat bubbles only (the primary endpoint)."""
        result = await self.run(turn, {SubTask.REPLY})
        return result.reply or FALLBACK_VALUES[SubTask.REPLY]

    async def caption(self, turn: TurnInput) -> TurnResult:
        """Caption, description and (when possible) transition comment."""
        return await self.run(turn, IMAGE_TASKS)

    # ------------------------------------------------------------------
    # Sub-tasks
    # ------------------------------------------------------------------

    async def _settle(self, task: SubTask, turn: TurnInput) -> tuple[Any, bool]:
        """Run one sub-task, resolving any failure to its fallback value."""
        runner = self._runners()[task]
        try:
            value = await runner(turn)
        except Exception as exc:
            logger.error("[%s] Sub-task raised; using fallback: %s", task.value, exc, exc_info=True)
            return FALLBACK_VALUES[task], False
        if value is _FAILED:
            logger.warning("[%s] Sub-task failed; using fallback value", task.value)
            return FALLBACK_VALUES[task], False
        return value, True

    def _runners(self) -> dict[SubTask, Callable[[TurnInput], Awaitable[Any]]]:
        return {
            SubTask.REPLY: self._run_reply,
            SubTask.CAPTION: self._run_caption,
            SubTask.DESCRIPTION: self._run_description,
            SubTask.TRANSITION: self._run_transition,
        }

    async def _run_reply(self, turn: TurnInput) -> Any:
        request = compose_request(
            turn.personality,
            turn.prompt,
            turn.attachments,
            history=turn.history,
            shape=ReplyShape.BUBBLES,
        )
        outcome = await self.invoker.invoke(request, self.reply_policy, label="reply")
        if not outcome.succeeded:
            return _FAILED
        return interpret_bubbles(outcome.text)

    async def _run_text_task(
        self,
        task: SubTask,
        turn: TurnInput,
        prompt: str,
        sentinel: str,
    ) -> Any:
        request = compose_request(
            turn.personality,
            prompt,
            turn.attachments,
            shape=ReplyShape.TEXT,
        )
        outcome = await self.invoker.invoke(request, self.image_policy, label=task.value)
        if not outcome.succeeded:
            return _FAILED
        return interpret_text(outcome.text, sentinel=sentinel, kind=task.value)

    async def _run_caption(self, turn: TurnInput) -> Any:
        context = turn.prompt.strip() or DEFAULT_CAPTION_PROMPT
        prompt = f"{load_prompt('caption')}\n\nContext from user: {context}"
        return await self._run_text_task(SubTask.CAPTION, turn, prompt, CAPTION_UNAVAILABLE)

    async def _run_description(self, turn: TurnInput) -> Any:
        return await self._run_text_task(
            SubTask.DESCRIPTION,
            turn,
            load_prompt("description"),
            DESCRIPTION_UNAVAILABLE,
        )

    async def _run_transition(self, turn: TurnInput) -> Any:
        prompt = transition_prompt(turn.personality.value, turn.previous_description or "")
        comment = await self._run_text_task(SubTask.TRANSITION, turn, prompt, "")
        if comment is _FAILED:
            return comment
        return comment or None


def build_orchestrator(settings: Settings) -> GenerationOrchestrator:
    """Wire backend, registry, invoker and policies from configuration."""
    registry = ModelRegistry.from_settings(settings)
    invoker = ResilientInvoker(build_backend(settings), registry)
    return GenerationOrchestrator.from_settings(invoker, settings)
