from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import redis
from pydantic import Field, ValidationError

from adventure.api.models import CamelModel, Location, Session, StoryLogEntry, TurnState
from adventure.errors import PersistenceCorrupt, PersistenceUnavailable

logger = logging.getLogger(__name__)


# Bump both whenever the stored shape changes; older saves are then ignored, not migrated.
SCHEMA_VERSION = 3
SAVE_KEY_PREFIX = "gemstone-adventure:save:"
SAVE_KEY = f"{SAVE_KEY_PREFIX}v{SCHEMA_VERSION}"

# OSError covers socket-level failures raised outside redis-py's own hierarchy.
_STORE_ERRORS: tuple[type[Exception], ...] = (redis.RedisError, OSError)


class KeyValueStore(Protocol):
    """Single-slot string storage. `redis.Redis(decode_responses=True)` fits."""

    def get(self, key: str) -> Any: ...  # pragma: no cover

    def set(self, key: str, value: str) -> Any: ...  # pragma: no cover

    def delete(self, key: str) -> Any: ...  # pragma: no cover


class SessionDocument(CamelModel):
    version: int
    game_state: TurnState
    story_log: list[StoryLogEntry] = Field(default_factory=list)
    visited_locations: dict[str, Location] = Field(default_factory=dict)

    @classmethod
    def from_session(cls, session: Session) -> "SessionDocument":
        if session.current_turn is None:
            raise ValueError("Cannot save a session before its first turn")
        return cls(
            version=SCHEMA_VERSION,
            game_state=session.current_turn,
            story_log=session.log,
            visited_locations=session.map_memory,
        )

    def to_session(self) -> Session:
        return Session(current_turn=self.game_state, log=self.story_log, map_memory=self.visited_locations)


def save_session(*, r: KeyValueStore, session: Session) -> None:
    # Whole-document overwrite; last writer wins.
    doc = SessionDocument.from_session(session)
    try:
        r.set(SAVE_KEY, doc.model_dump_json(by_alias=True))
    except _STORE_ERRORS as e:
        raise PersistenceUnavailable(f"Could not write save: {e}") from e
    logger.debug("Saved session (%d log entries, %d locations)", len(session.log), len(session.map_memory))


def load_session(*, r: KeyValueStore) -> Session | None:
    """Load the saved session.

    Returns None when there is nothing to load under the current version.
    Raises PersistenceCorrupt when a current-version document cannot be parsed
    and PersistenceUnavailable when the store cannot be reached.
    """

    try:
        raw = r.get(SAVE_KEY)
    except _STORE_ERRORS as e:
        raise PersistenceUnavailable(f"Could not read save: {e}") from e
    if not raw:
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise PersistenceCorrupt(f"Save document is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise PersistenceCorrupt("Save document is not a JSON object")

    version = data.get("version")
    if version != SCHEMA_VERSION:
        logger.info("Ignoring save document with version=%r (expected %d)", version, SCHEMA_VERSION)
        return None

    try:
        doc = SessionDocument.model_validate(data)
    except ValidationError as e:
        raise PersistenceCorrupt(f"Save document does not match schema v{SCHEMA_VERSION}: {e}") from e

    return doc.to_session()


def has_saved_session(*, r: KeyValueStore) -> bool:
    try:
        return bool(r.get(SAVE_KEY))
    except _STORE_ERRORS as e:
        raise PersistenceUnavailable(f"Could not read save: {e}") from e


def delete_saved_session(*, r: KeyValueStore) -> None:
    try:
        r.delete(SAVE_KEY)
    except _STORE_ERRORS as e:
        raise PersistenceUnavailable(f"Could not delete save: {e}") from e
