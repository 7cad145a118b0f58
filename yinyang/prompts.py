"""yinyang/prompts.py

Loads the packaged prompt text files, caching each one after first read.
"""

from __future__ import annotations

# Standard Library
from functools import lru_cache
from pathlib import Path

PROMPT_DIR: Path = Path(__file__).parent / "prompt_texts"


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Return the contents of ``prompt_texts/<name>.txt`` without trailing whitespace.

    Args:
        name: Prompt file stem, e.g. ``"yin"`` or ``"caption"``.

    Raises:
        FileNotFoundError: If no such prompt exists.
    """
    return (PROMPT_DIR / f"{name}.txt").read_text(encoding="utf-8").rstrip()


def transition_prompt(personality: str, previous_description: str) -> str:
    """Render the personality's transition prompt for the previous photo."""
    template = load_prompt(f"{personality}_transition")
    return template.replace("{prevPhotoDescription}", previous_description)
