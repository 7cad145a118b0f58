"""tests/test_registry.py

Unit tests for the model registry (yinyang/registry.py) and prompt loading.
"""

from __future__ import annotations

# Third-Party Libraries
import pytest

# Local Modules
from yinyang.config import Settings
from yinyang.models import Personality, Tier
from yinyang.prompts import load_prompt, transition_prompt
from yinyang.registry import ModelRegistry, build_system_preamble


class TestModelRegistry:
    """Test suite for ModelRegistry."""

    def test_every_combination_present(self, registry: ModelRegistry) -> None:
        assert set(registry.handles) == {(p, t) for p in Personality for t in Tier}

    def test_model_ids_by_tier(self, registry: ModelRegistry) -> None:
        for personality in Personality:
            assert registry.lookup(personality, Tier.PRIMARY).model_id == "primary-model"
            assert registry.lookup(personality, Tier.FALLBACK).model_id == "fallback-model"

    def test_personality_parameters(self, registry: ModelRegistry) -> None:
        """Test temperatures differ by personality and sampling is shared."""
        yin = registry.lookup(Personality.YIN, Tier.PRIMARY).parameters
        yang = registry.lookup(Personality.YANG, Tier.FALLBACK).parameters

        assert yin.temperature == 1.0
        assert yang.temperature == 1.15
        assert (yin.top_p, yin.top_k, yin.max_output_tokens) == (0.95, 40, 8192)

    def test_preamble_is_security_then_personality(self, registry: ModelRegistry) -> None:
        handle = registry.lookup(Personality.YIN, Tier.FALLBACK)
        assert handle.system_preamble == "<security>\n\n<yin>"

    def test_handles_read_only(self, registry: ModelRegistry) -> None:
        with pytest.raises(TypeError):
            registry.handles[(Personality.YIN, Tier.PRIMARY)] = None  # type: ignore[index]

    def test_incomplete_table_rejected(self, registry: ModelRegistry) -> None:
        partial = {
            key: handle for key, handle in registry.handles.items() if key[0] is Personality.YIN
        }
        with pytest.raises(ValueError):
            ModelRegistry(partial)

    def test_custom_temperatures(self) -> None:
        settings = Settings(_env_file=None, yin_temperature=0.5, yang_temperature=1.4)
        registry = ModelRegistry.from_settings(settings, loader=lambda name: name)

        assert registry.lookup(Personality.YIN, Tier.PRIMARY).parameters.temperature == 0.5
        assert registry.lookup(Personality.YANG, Tier.PRIMARY).parameters.temperature == 1.4


class TestPrompts:
    """Test suite for the packaged prompt files."""

    @pytest.mark.parametrize(
        "name",
        ["security", "yin", "yang", "caption", "description", "yin_transition", "yang_transition"],
    )
    def test_prompt_files_present(self, name: str) -> None:
        text = load_prompt(name)
        assert text
        assert text == text.rstrip()

    def test_real_preamble(self) -> None:
        preamble = build_system_preamble(Personality.YANG)
        assert preamble.startswith(load_prompt("security"))
        assert preamble.endswith(load_prompt("yang"))

    def test_transition_substitution(self) -> None:
        rendered = transition_prompt("yin", "a cat on a sofa")
        assert "a cat on a sofa" in rendered
        assert "{prevPhotoDescription}" not in rendered

    def test_missing_prompt(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_prompt("does_not_exist")
