from __future__ import annotations

import os
from dataclasses import dataclass

from adventure.turn_processing.history import DEFAULT_HISTORY_TURNS


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().casefold() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True, slots=True)
class AdventureSettings:
    redis_url: str
    # How many past system turns the generator sees.
    history_turns: int
    images_enabled: bool
    image_model: str
    dedupe_lore: bool


def settings_from_env() -> AdventureSettings:
    return AdventureSettings(
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        history_turns=_env_int("ADVENTURE_HISTORY_TURNS", DEFAULT_HISTORY_TURNS),
        images_enabled=_env_flag("ADVENTURE_IMAGES_ENABLED", True),
        image_model=os.environ.get("OPENAI_IMAGE_MODEL", "gpt-image-1"),
        dedupe_lore=_env_flag("ADVENTURE_DEDUPE_LORE", False),
    )
