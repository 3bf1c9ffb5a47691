from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from adventure.agents.base import ImageGenerator, TurnGenerator
from adventure.api.models import (
    Environment,
    Location,
    LogEntryKind,
    Session,
    SessionPhase,
    StoryLogEntry,
    TurnState,
    VisualEffect,
)
from adventure.config import AdventureSettings, settings_from_env
from adventure.core.events import EventType, SessionEvent
from adventure.errors import GenerationFailure, PersistenceCorrupt, PersistenceUnavailable
from adventure.fsm import SessionFSM
from adventure.session_store import KeyValueStore, delete_saved_session, load_session, save_session
from adventure.turn_processing.history import recent_history
from adventure.turn_processing.merger import merge_turn, patch_scene_image

logger = logging.getLogger(__name__)

CONNECTION_SEVERED_TEXT = "The connection to the Gem-Tech network has been severed. (API Error)"
CONNECTION_ERROR_MESSAGE = "Connection error."

EventListener = Callable[[SessionEvent], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class TurnOutcome:
    """Result of new_game/submit_action.

    - `accepted`: False when the request was ignored (busy, no session, game over).
    - `error`: set when the generator failed and a terminal error turn was shown,
      or when the turn was committed but could not be saved.
    """

    accepted: bool
    is_new_location: bool = False
    error: str | None = None


class LoadStatus(StrEnum):
    loaded = "loaded"
    not_found = "not_found"
    corrupt = "corrupt"
    busy = "busy"
    unavailable = "unavailable"


@dataclass(frozen=True, slots=True)
class LoadOutcome:
    status: LoadStatus
    message: str


def connection_severed_turn(previous: TurnState | None) -> TurnState:
    """Terminal turn shown when the generator cannot be reached or understood.

    Keeps the player where they were, with what they carried.
    """

    if previous is None:
        return TurnState(
            scene_description=CONNECTION_SEVERED_TEXT,
            location=Location(name="Error Void", x=0, y=0, description="Unknown", environment=Environment.other),
            player_health=0,
            is_game_over=True,
            game_over_message=CONNECTION_ERROR_MESSAGE,
            visual_effect=VisualEffect.glitch,
        )

    return previous.model_copy(
        update={
            "scene_description": CONNECTION_SEVERED_TEXT,
            "suggested_actions": [],
            "is_game_over": True,
            "game_over_message": CONNECTION_ERROR_MESSAGE,
            "visual_effect": VisualEffect.glitch,
        },
        deep=True,
    )


class SessionController:
    """Owns the single session: turn requests, merging, persistence and art.

    Only one turn request may be in flight; actions arriving meanwhile (or
    after game over) are ignored rather than rejected with an error.
    """

    def __init__(
        self,
        *,
        generator: TurnGenerator,
        images: ImageGenerator,
        r: KeyValueStore,
        settings: AdventureSettings | None = None,
        on_event: EventListener | None = None,
    ) -> None:
        self.generator = generator
        self.images = images
        self.r = r
        self.settings = settings or settings_from_env()
        self.on_event = on_event
        self.session: Session | None = None
        self.fsm = SessionFSM()
        self._image_tasks: set[asyncio.Task[None]] = set()

    @property
    def phase(self) -> SessionPhase:
        return self.fsm.phase

    @property
    def is_busy(self) -> bool:
        return self.phase in {SessionPhase.initializing, SessionPhase.awaiting_turn}

    async def _emit(self, type: EventType, *, entry_id: int | None, payload: dict[str, object] | None = None) -> None:
        if self.on_event is None:
            return
        event = SessionEvent.now(type=type, entry_id=entry_id, payload=dict(payload or {}))
        try:
            await self.on_event(event)
        except Exception:
            logger.exception("Event listener failed for %s", type)

    def _persist(self, session: Session) -> str | None:
        """Save `session`; returns an error message instead of raising when the store is down."""

        try:
            save_session(r=self.r, session=session)
        except PersistenceUnavailable as e:
            logger.error("Session not saved: %s", e)
            return f"Progress not saved: {e}"
        return None

    def _append_system_entry(self, session: Session, turn: TurnState) -> StoryLogEntry:
        entry = StoryLogEntry(
            id=session.next_entry_id(),
            kind=LogEntryKind.system,
            text=turn.scene_description,
            turn_state=turn,
        )
        session.log.append(entry)
        session.current_turn = turn
        return entry

    async def _fail_turn(self, session: Session, *, previous: TurnState | None, error: Exception) -> TurnOutcome:
        failure = connection_severed_turn(previous)
        entry = self._append_system_entry(session, failure)

        if self.phase == SessionPhase.initializing:
            self.fsm.opening_ended()
        else:
            self.fsm.turn_ended()

        self._persist(session)
        await self._emit("GENERATION_FAILED", entry_id=entry.id, payload={"error": str(error)})
        return TurnOutcome(accepted=True, error=str(error))

    async def new_game(self) -> TurnOutcome:
        if self.is_busy:
            logger.info("Ignoring new game while %s", self.phase.value)
            return TurnOutcome(accepted=False)

        self.fsm.new_game()
        session = Session()
        self.session = session
        try:
            delete_saved_session(r=self.r)
        except PersistenceUnavailable as e:
            logger.error("Previous save not deleted: %s", e)

        try:
            turn = await self.generator.request_opening_turn()
        except GenerationFailure as e:
            logger.error("Opening turn generation failed: %s", e)
            return await self._fail_turn(session, previous=None, error=e)
        except Exception as e:
            logger.exception("Turn generator raised unexpectedly")
            return await self._fail_turn(session, previous=None, error=e)

        result = merge_turn(turn=turn, previous=None, map_memory={}, dedupe_lore=self.settings.dedupe_lore)
        entry = self._append_system_entry(session, result.turn)
        session.map_memory = result.map_memory

        if result.turn.is_game_over:
            self.fsm.opening_ended()
        else:
            self.fsm.opening_received()

        persist_error = self._persist(session)
        await self._emit("SESSION_STARTED", entry_id=entry.id, payload={"location": result.turn.location.key})

        # The opening location is always new.
        if result.turn.scene_image is None:
            self._dispatch_image(session, entry_id=entry.id, turn=result.turn)
        return TurnOutcome(accepted=True, is_new_location=True, error=persist_error)

    async def submit_action(self, action: str) -> TurnOutcome:
        text = action.strip()
        session = self.session
        if (
            not text
            or session is None
            or session.current_turn is None
            or self.phase != SessionPhase.idle
            or session.current_turn.is_game_over
        ):
            logger.info("Ignoring player action in phase %s", self.phase.value)
            return TurnOutcome(accepted=False)

        previous = session.current_turn
        history = recent_history(session.log, limit=self.settings.history_turns)

        self.fsm.action_submitted()
        session.log.append(StoryLogEntry(id=session.next_entry_id(), kind=LogEntryKind.player, text=text))

        try:
            turn = await self.generator.request_next_turn(
                history=history,
                current_turn=previous,
                player_action=text,
            )
        except GenerationFailure as e:
            logger.error("Turn generation failed: %s", e)
            return await self._fail_turn(session, previous=previous, error=e)
        except Exception as e:
            logger.exception("Turn generator raised unexpectedly")
            return await self._fail_turn(session, previous=previous, error=e)

        result = merge_turn(
            turn=turn,
            previous=previous,
            map_memory=session.map_memory,
            dedupe_lore=self.settings.dedupe_lore,
        )
        entry = self._append_system_entry(session, result.turn)
        session.map_memory = result.map_memory

        if result.turn.is_game_over:
            self.fsm.turn_ended()
        else:
            self.fsm.turn_received()

        persist_error = self._persist(session)
        await self._emit(
            "TURN_COMMITTED",
            entry_id=entry.id,
            payload={"location": result.turn.location.key, "is_new_location": result.is_new_location},
        )

        if result.is_new_location and result.turn.scene_image is None:
            self._dispatch_image(session, entry_id=entry.id, turn=result.turn)

        return TurnOutcome(accepted=True, is_new_location=result.is_new_location, error=persist_error)

    def save_game(self) -> bool:
        """Manual save. Raises PersistenceUnavailable when the store is down."""

        if self.session is None or not self.session.log or self.is_busy:
            return False
        save_session(r=self.r, session=self.session)
        return True

    async def load_game(self) -> LoadOutcome:
        if self.is_busy:
            return LoadOutcome(status=LoadStatus.busy, message="A turn is still being generated")

        try:
            loaded = load_session(r=self.r)
        except PersistenceUnavailable as e:
            logger.error("Save store unavailable: %s", e)
            return LoadOutcome(status=LoadStatus.unavailable, message="Save storage is unavailable")
        except PersistenceCorrupt as e:
            logger.warning("Failed to load save: %s", e)
            self.fsm.load_failed()
            self.session = None
            return LoadOutcome(status=LoadStatus.corrupt, message="Failed to load save file (Incompatible version)")

        if loaded is None:
            return LoadOutcome(status=LoadStatus.not_found, message="No saved game found")

        self.session = loaded
        if loaded.current_turn is not None and loaded.current_turn.is_game_over:
            self.fsm.loaded_game_over()
        else:
            self.fsm.loaded()

        await self._emit("SESSION_LOADED", entry_id=None, payload={"entries": len(loaded.log)})
        return LoadOutcome(status=LoadStatus.loaded, message="Game Loaded Successfully")

    def _dispatch_image(self, session: Session, *, entry_id: int, turn: TurnState) -> None:
        task = asyncio.create_task(self._resolve_image(session, entry_id=entry_id, description=turn.scene_description))
        self._image_tasks.add(task)
        task.add_done_callback(self._image_tasks.discard)

    async def _resolve_image(self, session: Session, *, entry_id: int, description: str) -> None:
        try:
            image = await self.images.request_image(description)
        except Exception:
            logger.exception("Image generation failed for entry %s", entry_id)
            return

        if not image:
            logger.info("No image produced for entry %s", entry_id)
            return

        # Entry ids restart with every session; never patch a replaced one.
        if self.session is not session:
            logger.info("Dropping image for entry %s of a replaced session", entry_id)
            return

        if patch_scene_image(session, entry_id=entry_id, image=image):
            self._persist(session)
            await self._emit("IMAGE_ATTACHED", entry_id=entry_id)

    async def drain_images(self) -> None:
        """Wait for all outstanding image requests to finish."""

        while self._image_tasks:
            await asyncio.gather(*list(self._image_tasks))
