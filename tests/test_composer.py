"""tests/test_composer.py

Unit tests for request composition (yinyang/composer.py).
"""

from __future__ import annotations

# Third-Party Libraries
import pytest

# Local Modules
from yinyang.composer import DEFAULT_IMAGE_PROMPT, compose_request
from yinyang.models import (
    BinaryAttachment,
    ConversationTurn,
    Personality,
    ReplyShape,
    Tier,
)


class TestComposeRequest:
    """Test suite for compose_request."""

    def test_prompt_only(self) -> None:
        request = compose_request(Personality.YIN, "hello")

        assert request.parts == ("hello",)
        assert request.tier is Tier.PRIMARY
        assert request.shape is ReplyShape.BUBBLES
        assert request.history == ()

    def test_text_first_then_attachments_in_order(self, png_attachment: BinaryAttachment) -> None:
        """Test ordering of the text element and attachments."""
        jpeg = BinaryAttachment(mime_type="image/jpeg", data=b"jpeg")
        request = compose_request(Personality.YANG, "look", [png_attachment, jpeg])

        assert request.parts == ("look", png_attachment, jpeg)
        assert request.attachments == (png_attachment, jpeg)

    def test_blank_prompt_with_image_uses_default(self, png_attachment: BinaryAttachment) -> None:
        request = compose_request(Personality.YIN, "   ", [png_attachment])
        assert request.parts == (DEFAULT_IMAGE_PROMPT, png_attachment)

    def test_custom_default_prompt(self, png_attachment: BinaryAttachment) -> None:
        request = compose_request(Personality.YIN, "", [png_attachment], default_prompt="Caption")
        assert request.parts[0] == "Caption"

    def test_unsupported_attachment_skipped(self, png_attachment: BinaryAttachment) -> None:
        gif = BinaryAttachment(mime_type="image/gif", data=b"gif")
        request = compose_request(Personality.YIN, "hi", [gif, png_attachment])
        assert request.parts == ("hi", png_attachment)

    def test_empty_request_rejected(self) -> None:
        """Test no text and no usable attachment is an error."""
        with pytest.raises(ValueError):
            compose_request(Personality.YIN, "")
        with pytest.raises(ValueError):
            compose_request(
                Personality.YIN, " ", [BinaryAttachment(mime_type="text/plain", data=b"x")]
            )

    def test_history_and_shape_carried(self) -> None:
        history = [ConversationTurn.user_text("Hello")]
        request = compose_request(
            Personality.YANG, "hi", history=history, shape=ReplyShape.TEXT
        )

        assert request.history == tuple(history)
        assert request.shape is ReplyShape.TEXT
        assert request.personality is Personality.YANG

    def test_at_tier_returns_copy(self) -> None:
        request = compose_request(Personality.YIN, "hello")
        fallback = request.at_tier(Tier.FALLBACK)

        assert fallback.tier is Tier.FALLBACK
        assert request.tier is Tier.PRIMARY
        assert fallback.parts == request.parts

    def test_hello_with_empty_history_has_two_text_parts(self) -> None:
        """Test the placeholder turn plus the new prompt give two text parts."""
        from yinyang.history import normalize_history

        request = compose_request(Personality.YIN, "hello", history=normalize_history([]))
        texts = [p for turn in request.history for p in turn.text_segments]
        texts.extend(p for p in request.parts if isinstance(p, str))

        assert texts == ["Hello", "hello"]
