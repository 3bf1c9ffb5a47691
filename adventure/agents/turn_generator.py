from __future__ import annotations

import logging
from dataclasses import dataclass, field

from adventure.agents.base import Agent
from adventure.api.models import TurnState
from adventure.contexts import make_rendered_narrator_context
from adventure.core.context import RenderedContext
from adventure.errors import GenerationFailure
from adventure.prompts import load_prompt, render_prompt
from adventure.turn_processing.history import HistoryItem, history_to_text, turn_status_text
from adventure.turn_processing.schema import TURN_SCHEMA, parse_turn_text

logger = logging.getLogger(__name__)


def build_opening_prompt() -> str:
    return load_prompt("opening_turn.txt")


def build_next_turn_prompt(*, history: list[HistoryItem], current_turn: TurnState, player_action: str) -> str:
    return render_prompt(
        "next_turn.txt",
        status=turn_status_text(current_turn),
        history_turns=len(history),
        history=history_to_text(history),
        action=player_action.strip(),
    )


@dataclass(slots=True)
class LlmTurnGenerator:
    """Turn generator backed by a chat agent with structured output.

    Every reply goes through the turn schema; anything that still fails after
    `max_attempts` becomes a GenerationFailure for the controller.
    """

    agent: Agent
    max_attempts: int = 2
    ctx: RenderedContext = field(default_factory=make_rendered_narrator_context)

    async def _generate(self, prompt: str) -> TurnState:
        last_err: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                action = await self.agent.propose_action(prompt=prompt, ctx=self.ctx, structured_output=TURN_SCHEMA)
            except Exception as e:
                # Transport errors from the SDK are not typed consistently across providers.
                logger.warning("Turn generation attempt %d failed: %s", attempt, e)
                last_err = e
                continue

            try:
                return parse_turn_text(action.content)
            except GenerationFailure as e:
                logger.warning("Turn generation attempt %d returned an unusable turn: %s", attempt, e)
                last_err = e

        raise GenerationFailure(f"Failed to generate a turn after {self.max_attempts} attempts: {last_err}")

    async def request_opening_turn(self) -> TurnState:
        return await self._generate(build_opening_prompt())

    async def request_next_turn(
        self,
        *,
        history: list[HistoryItem],
        current_turn: TurnState,
        player_action: str,
    ) -> TurnState:
        prompt = build_next_turn_prompt(history=history, current_turn=current_turn, player_action=player_action)
        return await self._generate(prompt)
