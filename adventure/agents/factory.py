from __future__ import annotations

from typing import cast

from adventure.agents.ag2_backend import Ag2ChatAgent
from adventure.agents.autogen_config import settings_from_env
from adventure.agents.base import Agent, ImageGenerator, TurnGenerator
from adventure.agents.image_generator import NullImageGenerator, OpenAIImageGenerator
from adventure.agents.turn_generator import LlmTurnGenerator
from adventure.config import AdventureSettings


def create_default_agent(*, name: str) -> Agent:
    """Create the LLM-backed narrator agent (AG2, model configured from env)."""

    return cast(Agent, Ag2ChatAgent(name=name, settings=settings_from_env()))


def create_turn_generator() -> TurnGenerator:
    return LlmTurnGenerator(agent=create_default_agent(name="dungeon_master"))


def create_image_generator(settings: AdventureSettings) -> ImageGenerator:
    if not settings.images_enabled:
        return NullImageGenerator()
    return OpenAIImageGenerator(settings=settings_from_env(), image_model=settings.image_model)
