from __future__ import annotations

from adventure.core.context import BaseAgentContext, RenderedContext, WorldContext, compose_context
from adventure.prompts import load_prompt

WORLD_NAME = "Veridia"


def make_narrator_context(*, system_prefix: str = "") -> BaseAgentContext:
    """Construct the base narrator context from prompts/narrator.txt.

    You can optionally prepend extra system-level instructions via system_prefix.
    """

    rules = load_prompt("narrator.txt")
    parts: list[str] = []
    if system_prefix.strip():
        parts.append(system_prefix.strip())
    parts.append(rules.strip())

    return BaseAgentContext(system_prompt="\n\n".join(parts).strip())


def make_world_context() -> WorldContext:
    return WorldContext(world_name=WORLD_NAME, codex=load_prompt("world_codex.txt"))


def make_rendered_narrator_context(*, system_prefix: str = "") -> RenderedContext:
    return compose_context(base=make_narrator_context(system_prefix=system_prefix), world=make_world_context())
