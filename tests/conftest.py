from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import fakeredis
import pytest

from adventure.api.models import TurnState
from adventure.config import AdventureSettings
from adventure.controller import SessionController
from adventure.errors import GenerationFailure
from adventure.turn_processing.history import HistoryItem
from adventure.turn_processing.schema import coerce_turn


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs.

    In CI, we *don't* auto-load `.env` by default so tests never reach a real model.
    Opt-in locally with: ADVENTURE_LOAD_DOTENV_FOR_TESTS=1
    """

    if os.environ.get("CI") and os.environ.get("ADVENTURE_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


def _complete(entries: list[Any] | None, defaults: dict[str, Any]) -> list[Any]:
    # Tests list only the fields they care about; the rest get neutral values.
    return [{**defaults, **e} if isinstance(e, dict) else e for e in entries or []]


def raw_turn(
    *,
    x: int = 0,
    y: int = 0,
    name: str | None = None,
    description: str | None = None,
    scene: str | None = None,
    health: int = 100,
    is_game_over: bool = False,
    game_over_message: str = "",
    combat_log: str = "",
    in_combat: bool = False,
    lore: list[dict[str, Any]] | None = None,
    inventory: list[dict[str, Any]] | None = None,
    actions: list[str] | None = None,
    visual_effect: str = "none",
    environment: str = "ruins",
) -> dict[str, Any]:
    """A well-formed model reply in the wire (camelCase) shape."""

    return {
        "sceneDescription": scene or f"Scene at ({x}, {y})",
        "location": {
            "name": name or f"Place {x},{y}",
            "x": x,
            "y": y,
            "description": description or f"Tooltip for {x},{y}",
            "environment": environment,
        },
        "inventory": _complete(inventory, {"description": "", "type": "misc"}),
        "playerHealth": health,
        "combat": {
            "isInCombat": in_combat,
            "enemyName": "Shard Wraith" if in_combat else "",
            "enemyHealth": 12 if in_combat else 0,
            "enemyMaxHealth": 20 if in_combat else 0,
            "combatLog": combat_log,
        },
        "visualEffect": visual_effect,
        "suggestedActions": actions if actions is not None else ["go north", "search", "rest"],
        "isGameOver": is_game_over,
        "gameOverMessage": game_over_message,
        "lore": _complete(lore, {"topic": "", "summary": "", "details": ""}),
    }


@pytest.fixture()
def make_turn() -> Callable[..., TurnState]:
    def _make(**kwargs: Any) -> TurnState:
        return coerce_turn(raw_turn(**kwargs))

    return _make


@pytest.fixture()
def make_raw_turn() -> Callable[..., dict[str, Any]]:
    return raw_turn


@dataclass
class ScriptedGenerator:
    """Turn generator stub that replays queued turns (or failures) in order."""

    opening: TurnState | Exception | None = None
    turns: list[TurnState | Exception] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)
    gate: asyncio.Event | None = None

    async def request_opening_turn(self) -> TurnState:
        self.calls.append({"kind": "opening"})
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.opening, Exception):
            raise self.opening
        if self.opening is None:
            return coerce_turn(raw_turn(scene="You wake up with amnesia.", visual_effect="glitch"))
        return self.opening

    async def request_next_turn(
        self,
        *,
        history: list[HistoryItem],
        current_turn: TurnState,
        player_action: str,
    ) -> TurnState:
        self.calls.append(
            {"kind": "next", "history": history, "current_turn": current_turn, "player_action": player_action}
        )
        if self.gate is not None:
            await self.gate.wait()
        if not self.turns:
            raise GenerationFailure("No scripted turn left")
        nxt = self.turns.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


@dataclass
class ScriptedImages:
    """Image generator stub; `gates` lets a test decide when each request resolves."""

    image_for: Callable[[str], str | None] = lambda description: f"img:{description}"
    requests: list[str] = field(default_factory=list)
    gates: dict[str, asyncio.Event] = field(default_factory=dict)

    async def request_image(self, description: str) -> str | None:
        self.requests.append(description)
        gate = self.gates.get(description)
        if gate is not None:
            await gate.wait()
        return self.image_for(description)


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def settings() -> AdventureSettings:
    return AdventureSettings(
        redis_url="redis://unused",
        history_turns=3,
        images_enabled=True,
        image_model="test-image-model",
        dedupe_lore=False,
    )


@pytest.fixture()
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture()
def images() -> ScriptedImages:
    return ScriptedImages()


@pytest.fixture()
def controller(
    generator: ScriptedGenerator,
    images: ScriptedImages,
    r: fakeredis.FakeRedis,
    settings: AdventureSettings,
) -> SessionController:
    return SessionController(generator=generator, images=images, r=r, settings=settings)


class FlakyRedis(fakeredis.FakeRedis):
    """FakeRedis whose reads and writes raise `failure` while it is set."""

    failure: Exception | None = None

    def get(self, name, *args, **kwargs):  # type: ignore[no-untyped-def]
        if self.failure is not None:
            raise self.failure
        return super().get(name, *args, **kwargs)

    def set(self, name, value, *args, **kwargs):  # type: ignore[no-untyped-def]
        if self.failure is not None:
            raise self.failure
        return super().set(name, value, *args, **kwargs)

    def delete(self, *names):  # type: ignore[no-untyped-def]
        if self.failure is not None:
            raise self.failure
        return super().delete(*names)


@pytest.fixture()
def flaky_r() -> FlakyRedis:
    return FlakyRedis(decode_responses=True)
