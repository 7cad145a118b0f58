"""yinyang/interpreter.py

Parses raw model output into the shape each call site expects.

Malformed output never becomes a request failure: a fixed sentinel is
substituted instead.  Every substitution is logged and counted in
``degradation_counts`` so operators can tell silent degradation apart from
genuine success.
"""

from __future__ import annotations

# Standard Library
import json
import logging
import re
import threading
from collections import Counter
from typing import Any

# Local Modules
from yinyang.errors import ResponseShapeMismatch
from yinyang.models import StructuredReply

logger = logging.getLogger(__name__)

FILLER_BUBBLE: str = "... ummmmm"
PARSE_FAILURE_BUBBLE: str = (
    "I can see your image, but I'm having trouble processing it right now. "
    "Can you tell me what you'd like to know about it?"
)

_FENCE_OPEN = re.compile(r"^```[a-z]*\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")
_SPEAKER_LABEL = re.compile(
    r"^\s*(?:\*\*)?(?:yin|yang|assistant)(?:\*\*)?\s*:(?:\*\*)?\s*",
    re.IGNORECASE,
)

_lock = threading.Lock()
degradation_counts: Counter[str] = Counter()


def record_degradation(kind: str, detail: str = "") -> None:
    """Count and log one sentinel substitution of type ``kind``."""
    with _lock:
        degradation_counts[kind] += 1
    logger.warning("Model output degraded (%s): %s", kind, detail or "no detail")


def degradation_snapshot() -> dict[str, int]:
    with _lock:
        return dict(degradation_counts)


def strip_speaker_label(line: str) -> str:
    """Remove an echoed ``Yin:``/``Assistant:`` style prefix from ``line``."""
    return _SPEAKER_LABEL.sub("", line, count=1).strip()


def _load_json(raw: str) -> Any:
    text = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", raw.strip()))
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError) as exc:
        raise ResponseShapeMismatch(f"not valid JSON: {exc}") from exc


def interpret_bubbles(raw: str) -> StructuredReply:
    """Interpret model output as ``{"bubbles": [str, ...]}``.

    A bare string under ``bubbles`` is treated as a single bubble.  Blank and
    non-string items are dropped.  The result always holds at least one
    bubble.
    """
    try:
        payload = _load_json(raw)
    except ResponseShapeMismatch as exc:
        record_degradation("bubbles_unparseable", f"{exc}; raw={raw[:200]!r}")
        return StructuredReply(bubbles=(PARSE_FAILURE_BUBBLE,))

    value = payload.get("bubbles") if isinstance(payload, dict) else None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        value = []

    bubbles = tuple(
        cleaned
        for cleaned in (strip_speaker_label(item) for item in value if isinstance(item, str))
        if cleaned
    )
    if not bubbles:
        record_degradation("bubbles_empty", f"raw={raw[:200]!r}")
        return StructuredReply(bubbles=(FILLER_BUBBLE,))
    return StructuredReply(bubbles=bubbles)


def interpret_text(raw: str, sentinel: str = "", kind: str = "text") -> str:
    """Interpret model output as ``{"text": str}`` (or a bare JSON string).

    Args:
        raw: Raw model output.
        sentinel: Value returned when the output is unusable.
        kind: Call-site name used for the degradation counter.
    """
    try:
        payload = _load_json(raw)
    except ResponseShapeMismatch as exc:
        record_degradation(f"{kind}_unparseable", f"{exc}; raw={raw[:200]!r}")
        return sentinel

    if isinstance(payload, dict):
        payload = payload.get("text")
    if isinstance(payload, str):
        cleaned = strip_speaker_label(payload)
        if cleaned:
            return cleaned

    record_degradation(f"{kind}_missing", f"raw={raw[:200]!r}")
    return sentinel
