"""yinyang/registry.py

Static lookup from (personality, tier) to a pre-configured model handle.

The registry is built once at process start and is read-only afterwards, so
one instance is safely shared by every concurrent request.
"""

from __future__ import annotations

# Standard Library
import dataclasses
import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType

# Local Modules
from yinyang.config import Settings
from yinyang.models import Personality, Tier
from yinyang.prompts import load_prompt

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class GenerationParameters:
    """Sampling parameters sent with every call for a personality."""

    temperature: float
    top_p: float = 0.95
    top_k: int = 40
    max_output_tokens: int = 8192


@dataclasses.dataclass(frozen=True, slots=True)
class ModelHandle:
    """A fully configured model selection.

    Attributes:
        model_id: Provider model identifier, e.g. ``gemini-2.0-flash``.
        parameters: Sampling parameters.
        system_preamble: System instruction (security preamble followed by
            the personality prompt).
    """

    model_id: str
    parameters: GenerationParameters
    system_preamble: str


def build_system_preamble(
    personality: Personality,
    loader: Callable[[str], str] = load_prompt,
) -> str:
    """Join the shared security preamble with the personality's prompt."""
    return f"{loader('security')}\n\n{loader(personality.value)}"


class ModelRegistry:
    """Read-only ``(personality, tier) → ModelHandle`` table."""

    def __init__(self, handles: Mapping[tuple[Personality, Tier], ModelHandle]) -> None:
        missing = [
            (p.value, t.value)
            for p in Personality
            for t in Tier
            if (p, t) not in handles
        ]
        if missing:
            raise ValueError(f"Model registry is missing entries for {missing}")
        self._handles: Mapping[tuple[Personality, Tier], ModelHandle] = MappingProxyType(
            dict(handles)
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        loader: Callable[[str], str] = load_prompt,
    ) -> "ModelRegistry":
        """Build every handle from configuration and the packaged prompts."""
        model_ids = {
            Tier.PRIMARY: settings.primary_model,
            Tier.FALLBACK: settings.fallback_model,
        }
        handles: dict[tuple[Personality, Tier], ModelHandle] = {}
        for personality in Personality:
            parameters = GenerationParameters(
                temperature=settings.temperature_for(personality),
                top_p=settings.top_p,
                top_k=settings.top_k,
                max_output_tokens=settings.max_output_tokens,
            )
            preamble = build_system_preamble(personality, loader)
            for tier, model_id in model_ids.items():
                handles[(personality, tier)] = ModelHandle(
                    model_id=model_id,
                    parameters=parameters,
                    system_preamble=preamble,
                )

        logger.info(
            "Model registry built: primary=%s fallback=%s temperatures=%s",
            settings.primary_model,
            settings.fallback_model,
            {p.value: settings.temperature_for(p) for p in Personality},
        )
        return cls(handles)

    def lookup(self, personality: Personality, tier: Tier) -> ModelHandle:
        return self._handles[(personality, tier)]

    @property
    def handles(self) -> Mapping[tuple[Personality, Tier], ModelHandle]:
        return self._handles
