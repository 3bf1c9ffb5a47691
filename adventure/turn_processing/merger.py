from __future__ import annotations

import logging
from dataclasses import dataclass

from adventure.api.models import Location, LogEntryKind, LoreEntry, Session, TurnState
from adventure.turn_processing.schema import clamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Outcome of folding a freshly generated turn into session history.

    - `turn`: the turn to store and render.
    - `map_memory`: a new mapping; the input mapping is never mutated.
    - `is_new_location`: the caller should request art for this turn.
    """

    turn: TurnState
    map_memory: dict[str, Location]
    is_new_location: bool


def dedupe_lore_by_id(entries: list[LoreEntry]) -> list[LoreEntry]:
    """Keep one entry per id: first-seen position, last-seen content."""

    by_id: dict[str, LoreEntry] = {}
    for entry in entries:
        by_id[entry.id] = entry
    return list(by_id.values())


def record_location(map_memory: dict[str, Location], location: Location) -> tuple[dict[str, Location], bool]:
    """Insert a location unless its coordinate is already known (first description wins)."""

    if location.key in map_memory:
        return dict(map_memory), False
    updated = dict(map_memory)
    updated[location.key] = location
    return updated, True


def merge_turn(
    *,
    turn: TurnState,
    previous: TurnState | None,
    map_memory: dict[str, Location],
    dedupe_lore: bool = False,
) -> MergeResult:
    updates: dict[str, object] = {}

    health = clamp(turn.player_health, 0, 100)
    if health != turn.player_health:
        logger.warning("Merger clamped playerHealth=%d to %d", turn.player_health, health)
        updates["player_health"] = health

    # Inventory and lore are cumulative lists owned by the generator.
    if dedupe_lore:
        lore = dedupe_lore_by_id(turn.lore)
        if len(lore) != len(turn.lore):
            updates["lore"] = lore

    if (
        turn.scene_image is None
        and previous is not None
        and previous.scene_image is not None
        and previous.location.key == turn.location.key
    ):
        updates["scene_image"] = previous.scene_image

    merged = turn.model_copy(update=updates, deep=True) if updates else turn.model_copy(deep=True)
    new_memory, is_new = record_location(map_memory, merged.location)

    return MergeResult(turn=merged, map_memory=new_memory, is_new_location=is_new)


def patch_scene_image(session: Session, *, entry_id: int, image: str) -> bool:
    """Attach a resolved image to the system entry with `entry_id`.

    Later system entries at the same coordinate that are still waiting for
    art get the image as well (the carry-over they missed), stopping at the
    first move or the first entry with its own image. The current turn is
    patched only if the latest system entry was. Returns False (and changes
    nothing) when the entry is gone, is not a system entry, or already
    carries an image.
    """

    index = next((i for i, e in enumerate(session.log) if e.id == entry_id), None)
    if index is None:
        logger.info("Dropping image for missing entry %s", entry_id)
        return False

    entry = session.log[index]
    if entry.kind != LogEntryKind.system or entry.turn_state is None:
        return False
    if entry.turn_state.scene_image is not None:
        return False

    key = entry.turn_state.location.key
    patched: set[int] = set()
    for later in session.log[index:]:
        if later.kind != LogEntryKind.system or later.turn_state is None:
            continue
        if later.id != entry_id and (later.turn_state.location.key != key or later.turn_state.scene_image is not None):
            break
        later.turn_state = later.turn_state.model_copy(update={"scene_image": image})
        patched.add(later.id)

    latest = session.latest_system_entry()
    if latest is not None and latest.id in patched and session.current_turn is not None:
        session.current_turn = session.current_turn.model_copy(update={"scene_image": image})

    return True
