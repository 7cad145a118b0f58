"""yinyang: two-personality multimodal chat over a tiered LLM backend."""

from yinyang.errors import (
    MalformedHistory,
    ModelInvocationFailed,
    ResponseShapeMismatch,
    TransientModelUnavailable,
    UnsupportedAttachment,
    YinYangError,
)
from yinyang.models import Personality, Tier

__all__ = [
    "MalformedHistory",
    "ModelInvocationFailed",
    "Personality",
    "ResponseShapeMismatch",
    "Tier",
    "TransientModelUnavailable",
    "UnsupportedAttachment",
    "YinYangError",
]

__version__ = "0.1.0"
