from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from autogen import ConversableAgent

from adventure.agents.autogen_config import OpenAICompatibleSettings, llm_config_for
from adventure.agents.base import AgentAction
from adventure.agents.json_schema import JsonSchema
from adventure.core.context import RenderedContext

logger = logging.getLogger(__name__)


def last_reply_text(messages: object, summary: object = None) -> str:
    """Newest non-empty message content of an AG2 run, else its summary."""

    if isinstance(messages, list):
        for msg in reversed(messages):
            content = msg.get("content") if isinstance(msg, dict) else None
            if isinstance(content, str) and content.strip():
                return content.strip()
    if isinstance(summary, str):
        return summary.strip()
    return ""


def strip_code_fences(text: str) -> str:
    """Drop a ```json ... ``` wrapper some models add around the turn."""

    stripped = text.strip()
    if not (stripped.startswith("```") and stripped.endswith("```")):
        return stripped

    body = stripped[3:-3]
    first_newline = body.find("\n")
    if first_newline != -1 and not body[:first_newline].strip().startswith("{"):
        body = body[first_newline + 1 :]
    return body.strip()


@dataclass(slots=True)
class Ag2ChatAgent:
    """Single-reply narrator agent on top of AG2's `ConversableAgent`.

    A fresh `ConversableAgent` is built per request with no chat memory;
    the story history travels in the prompt.
    """

    name: str
    settings: OpenAICompatibleSettings

    @property
    def model(self) -> str:
        return self.settings.model

    def _reply_blocking(self, *, prompt: str, ctx: RenderedContext, run_kwargs: dict[str, Any]) -> str:
        narrator = ConversableAgent(
            name=self.name,
            system_message=ctx.system_prompt,
            llm_config=llm_config_for(self.settings),
            human_input_mode="NEVER",
        )
        result = narrator.run(message=prompt, max_turns=1, **run_kwargs)
        result.process()
        return last_reply_text(list(result.messages), result.summary)

    async def propose_action(
        self,
        *,
        prompt: str,
        ctx: RenderedContext,
        structured_output: JsonSchema | None = None,
    ) -> AgentAction:
        run_kwargs: dict[str, Any] = {}
        if structured_output is not None:
            # Forwarded by AG2 to the OpenAI client.
            run_kwargs["response_format"] = structured_output.as_response_format()

        text = await asyncio.to_thread(self._reply_blocking, prompt=prompt, ctx=ctx, run_kwargs=run_kwargs)
        if not text:
            logger.warning("Agent %s returned an empty reply", self.name)

        metadata: dict[str, Any] = {"model": self.model}
        if structured_output is not None:
            metadata["schema"] = structured_output.name
        return AgentAction(kind="chat", content=strip_code_fences(text), metadata=metadata)
