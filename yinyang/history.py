"""yinyang/history.py

Validates and canonicalizes a caller-supplied conversation history.

Accepted input is the ``Content``-style array the mobile client sends::

    [
        {"role": "user", "parts": [{"text": "hi"}]},
        {"role": "assistant", "parts": [{"text": "hey!"}]},
        {"role": "user", "parts": [{"inlineData": {"mimeType": "image/png", "data": "<b64>"}}]},
    ]

The caller's value is never mutated; a new tuple of turns is returned.
"""

from __future__ import annotations

# Standard Library
import base64
import binascii
import json
import logging
from collections.abc import Sequence
from typing import Any

# Local Modules
from yinyang.errors import MalformedHistory
from yinyang.models import BinaryAttachment, ConversationTurn, Part, Role

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT: str = "Hello"

_ROLE_ALIASES: dict[str, Role] = {
    "user": Role.USER,
    "human": Role.USER,
    "model": Role.MODEL,
    "assistant": Role.MODEL,
    "ai": Role.MODEL,
    "bot": Role.MODEL,
}


def _canonical_role(raw: Any) -> Role | None:
    if not isinstance(raw, str):
        return None
    return _ROLE_ALIASES.get(raw.strip().lower())


def _inline_attachment(part: dict[str, Any]) -> BinaryAttachment | None:
    inline = part.get("inlineData") or part.get("inline_data")
    if not isinstance(inline, dict):
        return None
    mime_type = inline.get("mimeType") or inline.get("mime_type")
    data = inline.get("data")
    if not isinstance(data, str):
        return None
    try:
        payload = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("Dropping history attachment with undecodable data")
        return None
    attachment = BinaryAttachment(mime_type=str(mime_type), data=payload)
    if not attachment.is_supported:
        logger.warning(
            "Dropping history attachment with unsupported MIME type: %s", mime_type
        )
        return None
    return attachment


def _convert_parts(raw_parts: Sequence[Any]) -> tuple[Part, ...]:
    parts: list[Part] = []
    for raw in raw_parts:
        if isinstance(raw, str):
            if raw.strip():
                parts.append(raw)
        elif isinstance(raw, dict):
            text = raw.get("text")
            if isinstance(text, str):
                if text.strip():
                    parts.append(text)
                continue
            attachment = _inline_attachment(raw)
            if attachment is not None:
                parts.append(attachment)
    return tuple(parts)


def _decode(value: Any) -> Any:
    if isinstance(value, (str, bytes, bytearray)):
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise MalformedHistory(f"History is not valid JSON: {exc}") from exc
    return value


def normalize_history(value: Any) -> tuple[ConversationTurn, ...]:
    """Turn an untrusted history value into turns the model API accepts.

    Args:
        value: A JSON-decoded list, a JSON string encoding one, or ``None``
            (treated as an empty history).

    Returns:
        A non-empty tuple of turns whose first element has role USER.

    Raises:
        MalformedHistory: If the value is not a list, or an element is not an
            object carrying ``role`` and a list-valued ``parts`` field.
    """
    if value is None:
        value = []
    value = _decode(value)

    if not isinstance(value, list):
        raise MalformedHistory("History must be an array of Content objects")
    for index, item in enumerate(value):
        if not isinstance(item, dict) or "role" not in item or "parts" not in item:
            raise MalformedHistory(
                f"History item {index} must be an object with 'role' and 'parts'"
            )
        if not isinstance(item["parts"], list):
            raise MalformedHistory(f"History item {index} has non-array 'parts'")

    turns: list[ConversationTurn] = []
    for index, item in enumerate(value):
        role = _canonical_role(item["role"])
        if role is None:
            logger.warning("Dropping history item %d with unknown role %r", index, item["role"])
            continue
        parts = _convert_parts(item["parts"])
        if not parts:
            logger.warning("Dropping history item %d with no usable content", index)
            continue
        turns.append(ConversationTurn(role=role, parts=parts))

    if turns and turns[0].role is Role.MODEL:
        logger.info("Removing leading model message from chat history")
        turns = turns[1:]

    if not turns or turns[0].role is not Role.USER:
        logger.info("Adding placeholder user message at the start of chat history")
        turns.insert(0, ConversationTurn.user_text(PLACEHOLDER_TEXT))

    logger.debug(
        "Chat history normalized: %d turns, last role=%s",
        len(turns),
        turns[-1].role.value,
    )
    return tuple(turns)
