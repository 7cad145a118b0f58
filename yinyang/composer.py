"""yinyang/composer.py

Assembles the ordered content parts for one generation call.
"""

from __future__ import annotations

# Standard Library
import logging
from collections.abc import Iterable, Sequence

# Local Modules
from yinyang.models import (
    BinaryAttachment,
    ConversationTurn,
    GenerationRequest,
    Part,
    Personality,
    ReplyShape,
    Tier,
)

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_PROMPT: str = (
    "Describe what you see in this image in detail and provide thoughtful commentary."
)


def compose_request(
    personality: Personality,
    prompt: str,
    attachments: Iterable[BinaryAttachment] = (),
    *,
    history: Sequence[ConversationTurn] = (),
    shape: ReplyShape = ReplyShape.BUBBLES,
    default_prompt: str = DEFAULT_IMAGE_PROMPT,
) -> GenerationRequest:
    """Build a primary-tier request for one sub-task.

    The text part always comes first, followed by the attachments in the
    order received.  A blank prompt is replaced by ``default_prompt`` when
    attachments are present, since the model needs at least one text element.

    Args:
        personality: Voice to generate in.
        prompt: User-supplied text; may be blank when images are attached.
        attachments: Validated attachments; unsupported ones are skipped.
        history: Normalized prior turns.
        shape: Output shape the caller will interpret.
        default_prompt: Substitute text for a blank prompt.

    Returns:
        A frozen :class:`GenerationRequest` bound to :attr:`Tier.PRIMARY`.

    Raises:
        ValueError: If there is neither prompt text nor any attachment.
    """
    accepted: list[BinaryAttachment] = []
    for attachment in attachments:
        if attachment.is_supported:
            accepted.append(attachment)
        else:
            logger.warning(
                "Skipping attachment %r with unsupported MIME type %s",
                attachment.filename,
                attachment.mime_type,
            )

    parts: list[Part] = []
    if prompt.strip():
        parts.append(prompt)
    elif accepted:
        parts.append(default_prompt)
    else:
        raise ValueError("A request needs prompt text or at least one attachment")
    parts.extend(accepted)

    return GenerationRequest(
        personality=personality,
        tier=Tier.PRIMARY,
        history=tuple(history),
        parts=tuple(parts),
        shape=shape,
    )
