from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from adventure.agents.json_schema import JsonSchema
from adventure.api.models import TurnState
from adventure.core.context import RenderedContext
from adventure.turn_processing.history import HistoryItem


@dataclass(frozen=True, slots=True)
class AgentAction:
    kind: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


class Agent(Protocol):
    name: str

    async def propose_action(
        self,
        *,
        prompt: str,
        ctx: RenderedContext,
        structured_output: JsonSchema | None = None,
    ) -> AgentAction:  # pragma: no cover
        ...


class TurnGenerator(Protocol):
    """Produces validated turns or raises GenerationFailure."""

    async def request_opening_turn(self) -> TurnState:  # pragma: no cover
        ...

    async def request_next_turn(
        self,
        *,
        history: list[HistoryItem],
        current_turn: TurnState,
        player_action: str,
    ) -> TurnState:  # pragma: no cover
        ...


class ImageGenerator(Protocol):
    """Returns an image reference (data URI or URL), or None on any failure."""

    async def request_image(self, description: str) -> str | None:  # pragma: no cover
        ...
