"""yinyang/schemas.py

JSON payload schemas the model is asked to produce, one per ReplyShape.
"""

from __future__ import annotations

# Standard Library
from typing import Any

# Third-Party Libraries
from pydantic import BaseModel

# Local Modules
from yinyang.models import ReplyShape


class BubblesPayload(BaseModel):
    bubbles: list[str]


class TextPayload(BaseModel):
    text: str


PAYLOAD_SCHEMAS: dict[ReplyShape, type[BaseModel]] = {
    ReplyShape.BUBBLES: BubblesPayload,
    ReplyShape.TEXT: TextPayload,
}


def json_schema_for(shape: ReplyShape) -> dict[str, Any]:
    """Plain JSON Schema for ``shape``, for backends that take a dict."""
    return PAYLOAD_SCHEMAS[shape].model_json_schema()
