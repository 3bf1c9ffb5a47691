from __future__ import annotations

import json
from dataclasses import dataclass, field

import pytest

from adventure.agents.ag2_backend import last_reply_text, strip_code_fences
from adventure.agents.base import AgentAction
from adventure.agents.json_schema import JsonSchema
from adventure.agents.turn_generator import LlmTurnGenerator, build_next_turn_prompt
from adventure.core.context import RenderedContext
from adventure.errors import GenerationFailure
from adventure.turn_processing.history import HistoryItem


@dataclass
class _ScriptedAgent:
    replies: list[str | Exception]
    name: str = "narrator"
    prompts: list[str] = field(default_factory=list)
    seen_schema: JsonSchema | None = None

    async def propose_action(self, *, prompt: str, ctx: RenderedContext, structured_output: JsonSchema | None = None) -> AgentAction:  # type: ignore[override]
        self.prompts.append(prompt)
        self.seen_schema = structured_output
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return AgentAction(kind="chat", content=reply, metadata={})


def _generator(agent: _ScriptedAgent, **kwargs) -> LlmTurnGenerator:  # type: ignore[no-untyped-def]
    return LlmTurnGenerator(agent=agent, ctx=RenderedContext(system_prompt="x"), **kwargs)


async def test_opening_turn_passes_schema(make_raw_turn) -> None:
    agent = _ScriptedAgent(replies=[json.dumps(make_raw_turn(scene="You wake up with amnesia."))])

    turn = await _generator(agent).request_opening_turn()
    assert turn.scene_description == "You wake up with amnesia."
    assert agent.seen_schema is not None
    assert agent.seen_schema.name == "adventure_turn"
    assert "first scene" in agent.prompts[0]


async def test_next_turn_prompt_carries_status_history_and_action(make_turn, make_raw_turn) -> None:
    agent = _ScriptedAgent(replies=[json.dumps(make_raw_turn(x=0, y=1))])
    current = make_turn(x=0, y=0, name="Shattered Plaza", health=80)
    history = [HistoryItem(scene_text="You wake up."), HistoryItem(scene_text="A wraith attacks.", combat_log="-5 HP")]

    turn = await _generator(agent).request_next_turn(history=history, current_turn=current, player_action="go north")

    assert turn.location.y == 1
    prompt = agent.prompts[0]
    assert "Shattered Plaza (x:0, y:0)" in prompt
    assert "Health: 80" in prompt
    assert "last 2 turns" in prompt
    assert "Combat Log: -5 HP" in prompt
    assert 'PLAYER ACTION: "go north"' in prompt


async def test_unusable_reply_is_retried(make_raw_turn) -> None:
    agent = _ScriptedAgent(replies=["Sorry, I cannot do that.", json.dumps(make_raw_turn(x=4, y=4))])

    turn = await _generator(agent).request_opening_turn()
    assert turn.location.x == 4
    assert len(agent.prompts) == 2


async def test_agent_errors_are_retried_then_reported(make_raw_turn) -> None:
    agent = _ScriptedAgent(replies=[RuntimeError("timeout"), RuntimeError("timeout again")])

    with pytest.raises(GenerationFailure) as e:
        await _generator(agent).request_opening_turn()
    assert "2 attempts" in str(e.value)
    assert "timeout again" in str(e.value)


async def test_schema_violation_exhausts_attempts(make_raw_turn) -> None:
    raw = make_raw_turn()
    del raw["combat"]
    agent = _ScriptedAgent(replies=[json.dumps(raw)])

    with pytest.raises(GenerationFailure):
        await _generator(agent, max_attempts=1).request_opening_turn()


async def test_non_finite_number_in_reply_is_retried(make_raw_turn) -> None:
    bad = json.dumps(make_raw_turn()).replace('"playerHealth": 100', '"playerHealth": NaN')
    agent = _ScriptedAgent(replies=[bad, json.dumps(make_raw_turn(health=90))])

    turn = await _generator(agent).request_opening_turn()
    assert turn.player_health == 90
    assert len(agent.prompts) == 2


async def test_non_finite_number_on_every_attempt_is_a_generation_failure(make_raw_turn) -> None:
    bad = json.dumps(make_raw_turn()).replace('"playerHealth": 100', '"playerHealth": Infinity')
    agent = _ScriptedAgent(replies=[bad, bad])

    with pytest.raises(GenerationFailure):
        await _generator(agent).request_opening_turn()


def test_build_next_turn_prompt_without_history(make_turn) -> None:
    prompt = build_next_turn_prompt(history=[], current_turn=make_turn(), player_action="  wait  ")
    assert "(no previous scenes)" in prompt
    assert 'PLAYER ACTION: "wait"' in prompt


def test_strip_code_fences() -> None:
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```{"a": 1}```') == '{"a": 1}'
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


def test_last_reply_text_prefers_newest_message() -> None:
    messages = [{"role": "user", "content": "go north"}, {"role": "assistant", "content": " {\"a\": 1} "}, {"content": None}]
    assert last_reply_text(messages) == '{"a": 1}'
    assert last_reply_text([], summary=" summary ") == "summary"
    assert last_reply_text(None) == ""
