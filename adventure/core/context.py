from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class BaseAgentContext:
    """Global instructions for the narrator (role, output contract)."""

    system_prompt: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class WorldContext:
    """Setting overlay: the world codex every scene must stay consistent with."""

    world_name: str
    codex: str


@dataclass(frozen=True, slots=True)
class RenderedContext:
    """Final, merged context passed into the LLM agent."""

    system_prompt: str

    def as_messages(self) -> list[dict[str, str]]:
        return [{"role": "system", "content": self.system_prompt}]


def compose_context(*, base: BaseAgentContext, world: WorldContext) -> RenderedContext:
    parts: list[str] = []
    parts.append(base.system_prompt.strip())

    if world.codex.strip():
        parts.append(
            "\n".join(
                [
                    "WORLD CODEX:",
                    f"- world: {world.world_name}",
                    world.codex.strip(),
                ]
            ).strip()
        )

    system_prompt = "\n\n".join([p for p in parts if p.strip()]).strip()
    return RenderedContext(system_prompt=system_prompt)
