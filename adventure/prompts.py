"""Prompt templates shipped in the repo `prompts/` directory."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

# adventure/prompts.py -> adventure/ -> project root
PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"


class PromptLoadError(RuntimeError):
    pass


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    path = PROMPTS_DIR / name
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise PromptLoadError(f"Prompt not found: {path}") from e
    return text.strip() + "\n"


def render_prompt(name: str, **values: object) -> str:
    """Fill the template's `{placeholders}`.

    Example:
        render_prompt("scene_image.txt", description="A shattered plaza.")
    """

    try:
        return load_prompt(name).format(**values)
    except KeyError as e:
        raise PromptLoadError(f"Prompt {name} needs a value for {e.args[0]!r}") from e
