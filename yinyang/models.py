"""yinyang/models.py

Request-scoped value types shared by every stage of the generation pipeline.

Everything here is immutable once built.  Escalating a request to the
fallback tier, for example, produces a new ``GenerationRequest`` via
``dataclasses.replace`` rather than mutating the original.
"""

from __future__ import annotations

# Standard Library
import dataclasses
import logging
from enum import Enum
from typing import Union

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/heif",
        "image/webp",
    }
)


class Role(str, Enum):
    """Speaker of a conversation turn, using the model API's labels."""

    USER = "user"
    MODEL = "model"


class Personality(str, Enum):
    """The two fixed voices a reply can be generated in."""

    YIN = "yin"
    YANG = "yang"

    @classmethod
    def parse(cls, value: str | None) -> "Personality":
        """Resolve a caller-supplied label, defaulting to ``YIN``.

        Matching is case-insensitive and ignores surrounding whitespace.
        """
        if value:
            try:
                return cls(value.strip().lower())
            except ValueError:
                logger.warning(
                    "Invalid personality requested: %r, defaulting to %s",
                    value,
                    cls.YIN.value,
                )
        return cls.YIN


class Tier(str, Enum):
    """Model selection tier used by the resilient invoker."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class ReplyShape(str, Enum):
    """Structured output shape the model is asked to produce."""

    BUBBLES = "bubbles"
    TEXT = "text"


@dataclasses.dataclass(frozen=True, slots=True)
class BinaryAttachment:
    """A fully materialized binary attachment (an image).

    Attributes:
        mime_type: Declared MIME type, e.g. ``image/png``.
        data: Raw bytes of the attachment.
        filename: Original upload name, used only for logging.
    """

    mime_type: str
    data: bytes
    filename: str = ""

    @property
    def is_supported(self) -> bool:
        return self.mime_type in ALLOWED_MIME_TYPES

    def __repr__(self) -> str:
        return (
            f"BinaryAttachment(mime_type={self.mime_type!r}, "
            f"size={len(self.data)}, filename={self.filename!r})"
        )


Part = Union[str, BinaryAttachment]


@dataclasses.dataclass(frozen=True, slots=True)
class ConversationTurn:
    """One turn of a conversation.

    Attributes:
        role: Who spoke.
        parts: Ordered content elements; text segments and attachments may be
            interleaved and keep their original order.
    """

    role: Role
    parts: tuple[Part, ...]

    def __post_init__(self) -> None:
        if not self.parts:
            raise ValueError("A conversation turn needs at least one content element")

    @classmethod
    def user_text(cls, text: str) -> "ConversationTurn":
        return cls(role=Role.USER, parts=(text,))

    @property
    def text_segments(self) -> tuple[str, ...]:
        return tuple(p for p in self.parts if isinstance(p, str))

    @property
    def attachments(self) -> tuple[BinaryAttachment, ...]:
        return tuple(p for p in self.parts if isinstance(p, BinaryAttachment))


@dataclasses.dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Everything needed for one call to the model service.

    Attributes:
        personality: Voice to generate in; selects the system preamble and
            temperature from the registry.
        tier: Which model tier this request targets.
        history: Normalized prior turns, starting with a USER turn (may be
            empty for stateless sub-tasks such as captioning).
        parts: Content of the new user message, in caller order.
        shape: Structured output shape expected back.
    """

    personality: Personality
    tier: Tier
    history: tuple[ConversationTurn, ...]
    parts: tuple[Part, ...]
    shape: ReplyShape = ReplyShape.BUBBLES

    @property
    def attachments(self) -> tuple[BinaryAttachment, ...]:
        return tuple(p for p in self.parts if isinstance(p, BinaryAttachment))

    def at_tier(self, tier: Tier) -> "GenerationRequest":
        """Return a copy of this request bound to ``tier``."""
        return dataclasses.replace(self, tier=tier)


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry configuration for a single tier.

    Attributes:
        max_attempts: Total attempts on the tier, including the first.
        base_delay_ms: Delay unit between attempts, in milliseconds.
        exponential: When true the delay grows linearly with the number of
            failed attempts (``base * n``); otherwise it is constant.
    """

    max_attempts: int
    base_delay_ms: int = 1000
    exponential: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must not be negative")

    def delay_seconds(self, failed_attempts: int) -> float:
        """Seconds to wait after ``failed_attempts`` failures on this tier."""
        multiplier = failed_attempts if self.exponential else 1
        return self.base_delay_ms * multiplier / 1000.0


@dataclasses.dataclass(frozen=True, slots=True)
class InvocationPolicy:
    """Primary and fallback retry policies for one sub-task."""

    primary: RetryPolicy
    fallback: RetryPolicy

    def for_tier(self, tier: Tier) -> RetryPolicy:
        return self.primary if tier is Tier.PRIMARY else self.fallback


@dataclasses.dataclass(frozen=True, slots=True)
class GenerationOutcome:
    """Result of one resilient invocation.

    Attributes:
        succeeded: Whether any tier produced text.
        text: Raw model output; empty on failure.
        tier_used: Tier that produced ``text``, or ``None`` when all failed.
        attempts: Total model calls made across both tiers.
    """

    succeeded: bool
    text: str = ""
    tier_used: Tier | None = None
    attempts: int = 0


@dataclasses.dataclass(frozen=True, slots=True)
class StructuredReply:
    """The primary endpoint's reply: one or more chat bubbles."""

    bubbles: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.bubbles:
            raise ValueError("A structured reply needs at least one bubble")
