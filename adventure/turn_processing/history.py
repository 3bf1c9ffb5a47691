from __future__ import annotations

from dataclasses import dataclass

from adventure.api.models import LogEntryKind, StoryLogEntry, TurnState

DEFAULT_HISTORY_TURNS = 3


@dataclass(frozen=True, slots=True)
class HistoryItem:
    """What the generator sees of a past turn: scene text and combat log only."""

    scene_text: str
    combat_log: str | None = None


def recent_history(log: list[StoryLogEntry], *, limit: int = DEFAULT_HISTORY_TURNS) -> list[HistoryItem]:
    """Return the last `limit` system turns, oldest first."""

    items: list[HistoryItem] = []
    for entry in log:
        if entry.kind != LogEntryKind.system or entry.turn_state is None:
            continue
        combat_log = entry.turn_state.combat.combat_log.strip()
        items.append(HistoryItem(scene_text=entry.turn_state.scene_description, combat_log=combat_log or None))

    if limit <= 0:
        return []
    return items[-limit:]


def history_to_text(history: list[HistoryItem]) -> str:
    if not history:
        return "(no previous scenes)"
    blocks = [f"Scene: {h.scene_text.strip()}\nCombat Log: {h.combat_log or 'None'}" for h in history]
    return "\n---\n".join(blocks)


def turn_status_text(turn: TurnState | None) -> str:
    """LLM-friendly summary of the player's current status."""

    if turn is None:
        return "\n".join(
            [
                "Location: unknown (x:0, y:0)",
                "Health: 100",
                "Inventory Items: []",
                "Lore Entries Known: 0",
                "Combat Status: Not in combat",
            ]
        )

    combat = turn.combat
    if combat.is_in_combat:
        combat_text = f"Fighting {combat.enemy_name} ({combat.enemy_health}/{combat.enemy_max_health} HP)"
    else:
        combat_text = "Not in combat"

    inventory = ", ".join(item.name for item in turn.inventory)
    lore_ids = ", ".join(entry.id for entry in turn.lore)

    return "\n".join(
        [
            f"Location: {turn.location.name} (x:{turn.location.x}, y:{turn.location.y})",
            f"Health: {turn.player_health}",
            f"Inventory Items: [{inventory}]",
            f"Lore Entries Known: {len(turn.lore)} [{lore_ids}]",
            f"Combat Status: {combat_text}",
        ]
    )
