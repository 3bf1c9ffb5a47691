from __future__ import annotations

import json
import logging
import math
from enum import StrEnum
from typing import Any, TypeVar

from adventure.agents.json_schema import JsonSchema, array_of, strict_object, string_enum
from adventure.api.models import (
    CombatState,
    Environment,
    InventoryItem,
    ItemType,
    Location,
    LoreEntry,
    TurnState,
    VisualEffect,
)
from adventure.errors import GenerationFailure, SchemaViolation

logger = logging.getLogger(__name__)

SUGGESTED_ACTION_COUNT = 3
FALLBACK_ACTIONS: tuple[str, ...] = ("Look around", "Wait", "Check inventory")

_E = TypeVar("_E", bound=StrEnum)

_STRING = {"type": "string"}
_INTEGER = {"type": "integer"}
_BOOLEAN = {"type": "boolean"}

TURN_SCHEMA = JsonSchema(
    name="adventure_turn",
    schema=strict_object(
        {
            "sceneDescription": _STRING,
            "location": strict_object(
                {
                    "name": _STRING,
                    "x": _INTEGER,
                    "y": _INTEGER,
                    "description": _STRING,
                    "environment": string_enum(e.value for e in Environment),
                }
            ),
            "inventory": array_of(
                strict_object(
                    {
                        "name": _STRING,
                        "description": _STRING,
                        "type": string_enum(t.value for t in ItemType),
                    }
                )
            ),
            "playerHealth": _INTEGER,
            "combat": strict_object(
                {
                    "isInCombat": _BOOLEAN,
                    "enemyName": _STRING,
                    "enemyHealth": _INTEGER,
                    "enemyMaxHealth": _INTEGER,
                    "combatLog": _STRING,
                }
            ),
            "visualEffect": string_enum(v.value for v in VisualEffect),
            "suggestedActions": array_of(_STRING),
            "isGameOver": _BOOLEAN,
            "gameOverMessage": _STRING,
            "lore": array_of(
                strict_object(
                    {
                        "id": _STRING,
                        "topic": _STRING,
                        "summary": _STRING,
                        "details": _STRING,
                    }
                )
            ),
        }
    ),
)

REQUIRED_TURN_FIELDS = TURN_SCHEMA.required_fields


def parse_turn_text(text: str) -> TurnState:
    """Decode a raw model reply and coerce it into a TurnState.

    Non-JSON output is a generation failure; it is not repaired here.
    """

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationFailure(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise GenerationFailure("Expected a JSON object")

    return coerce_turn(data)


def _require(raw: dict[str, Any], key: str, *, where: str = "turn") -> Any:
    if key not in raw or raw[key] is None:
        raise SchemaViolation(f"Missing required field '{key}' in {where}")
    return raw[key]


def _require_all(raw: dict[str, Any], keys: tuple[str, ...], *, where: str) -> None:
    for key in keys:
        _require(raw, key, where=where)


def _nested_required(*path: str) -> tuple[str, ...]:
    node = TURN_SCHEMA.schema
    for key in path:
        node = node["properties"][key]
        if node.get("type") == "array":
            node = node["items"]
    return tuple(node["required"])


LOCATION_FIELDS = _nested_required("location")
INVENTORY_ITEM_FIELDS = _nested_required("inventory")
COMBAT_FIELDS = _nested_required("combat")
LORE_FIELDS = _nested_required("lore")


def _as_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise SchemaViolation(f"Field '{field}' is not an integer: {value!r}") from None
    if isinstance(value, float):
        # json.loads accepts NaN and Infinity.
        if not math.isfinite(value):
            raise SchemaViolation(f"Field '{field}' is not a finite number: {value!r}")
        return int(round(value))
    raise SchemaViolation(f"Field '{field}' is not an integer: {value!r}")


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().casefold() in {"true", "yes", "1"}
    return bool(value)


def _as_list(value: Any, *, field: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaViolation(f"Field '{field}' is not a list")
    return value


def _as_object(value: Any, *, field: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaViolation(f"Field '{field}' is not an object")
    return value


def _coerce_enum(enum_cls: type[_E], value: Any, *, default: _E, field: str) -> _E:
    text = _as_str(value).strip().casefold()
    try:
        return enum_cls(text)
    except ValueError:
        logger.warning("Coercing out-of-enum %s=%r to %r", field, value, default.value)
        return default


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _coerce_location(raw: Any) -> Location:
    loc = _as_object(raw, field="location")
    _require_all(loc, LOCATION_FIELDS, where="location")
    return Location(
        name=_as_str(loc["name"]),
        x=_as_int(loc["x"], field="location.x"),
        y=_as_int(loc["y"], field="location.y"),
        description=_as_str(loc["description"]),
        environment=_coerce_enum(
            Environment, loc["environment"], default=Environment.other, field="location.environment"
        ),
    )


def _coerce_inventory(raw: Any) -> list[InventoryItem]:
    items: list[InventoryItem] = []
    for i, entry in enumerate(_as_list(raw, field="inventory")):
        item = _as_object(entry, field=f"inventory[{i}]")
        _require_all(item, INVENTORY_ITEM_FIELDS, where=f"inventory[{i}]")
        name = _as_str(item["name"]).strip()
        if not name:
            logger.warning("Dropping inventory item without a name: %r", item)
            continue
        items.append(
            InventoryItem(
                name=name,
                description=_as_str(item["description"]),
                type=_coerce_enum(ItemType, item["type"], default=ItemType.misc, field="inventory.type"),
            )
        )
    return items


def _coerce_lore(raw: Any) -> list[LoreEntry]:
    entries: list[LoreEntry] = []
    for i, entry in enumerate(_as_list(raw, field="lore")):
        lore = _as_object(entry, field=f"lore[{i}]")
        _require_all(lore, LORE_FIELDS, where=f"lore[{i}]")
        lore_id = _as_str(lore["id"]).strip()
        if not lore_id:
            logger.warning("Dropping lore entry with a blank id: %r", lore)
            continue
        entries.append(
            LoreEntry(
                id=lore_id,
                topic=_as_str(lore["topic"]),
                summary=_as_str(lore["summary"]),
                details=_as_str(lore["details"]),
            )
        )
    return entries


def _coerce_combat(raw: Any) -> CombatState:
    combat = _as_object(raw, field="combat")
    _require_all(combat, COMBAT_FIELDS, where="combat")
    return CombatState(
        is_in_combat=_as_bool(combat["isInCombat"]),
        enemy_name=_as_str(combat["enemyName"]),
        enemy_health=max(0, _as_int(combat["enemyHealth"], field="combat.enemyHealth")),
        enemy_max_health=max(0, _as_int(combat["enemyMaxHealth"], field="combat.enemyMaxHealth")),
        combat_log=_as_str(combat["combatLog"]),
    )


def normalize_suggested_actions(actions: list[str], *, is_game_over: bool) -> list[str]:
    """Trim to exactly three actions, padding with neutral fallbacks.

    Game-over turns keep whatever the model sent (usually nothing).
    """

    cleaned = [a.strip() for a in actions if a.strip()]
    if is_game_over:
        return cleaned

    if len(cleaned) != SUGGESTED_ACTION_COUNT:
        logger.warning("Model returned %d suggested actions; normalizing to %d", len(cleaned), SUGGESTED_ACTION_COUNT)

    out = cleaned[:SUGGESTED_ACTION_COUNT]
    for fallback in FALLBACK_ACTIONS:
        if len(out) >= SUGGESTED_ACTION_COUNT:
            break
        if fallback not in out:
            out.append(fallback)
    return out


def coerce_turn(raw: dict[str, Any]) -> TurnState:
    """Validate a decoded model reply and coerce it into a TurnState.

    Missing required fields, at any depth, raise SchemaViolation. Enumerated
    fields outside their closed set fall back to a neutral value instead of
    rejecting the turn.
    """

    _require_all(raw, REQUIRED_TURN_FIELDS, where="turn")

    health = _as_int(raw["playerHealth"], field="playerHealth")
    if not 0 <= health <= 100:
        logger.warning("Clamping playerHealth=%d into [0, 100]", health)
        health = clamp(health, 0, 100)

    is_game_over = _as_bool(raw["isGameOver"])
    actions = [_as_str(a) for a in _as_list(raw["suggestedActions"], field="suggestedActions")]

    scene_image = raw.get("sceneImage")

    return TurnState(
        scene_description=_as_str(raw["sceneDescription"]),
        location=_coerce_location(raw["location"]),
        inventory=_coerce_inventory(raw["inventory"]),
        player_health=health,
        suggested_actions=normalize_suggested_actions(actions, is_game_over=is_game_over),
        is_game_over=is_game_over,
        game_over_message=_as_str(raw["gameOverMessage"]),
        lore=_coerce_lore(raw["lore"]),
        combat=_coerce_combat(raw["combat"]),
        visual_effect=_coerce_enum(
            VisualEffect, raw["visualEffect"], default=VisualEffect.none, field="visualEffect"
        ),
        scene_image=scene_image if isinstance(scene_image, str) and scene_image else None,
    )
