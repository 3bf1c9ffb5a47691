from __future__ import annotations

import json

import pytest

from adventure.api.models import Environment, ItemType, VisualEffect
from adventure.errors import GenerationFailure, SchemaViolation
from adventure.turn_processing.schema import (
    COMBAT_FIELDS,
    FALLBACK_ACTIONS,
    INVENTORY_ITEM_FIELDS,
    LOCATION_FIELDS,
    LORE_FIELDS,
    REQUIRED_TURN_FIELDS,
    TURN_SCHEMA,
    coerce_turn,
    parse_turn_text,
)


def test_parse_turn_text_requires_strict_json(make_raw_turn) -> None:
    with pytest.raises(GenerationFailure):
        parse_turn_text("The crystals hum softly.")

    with pytest.raises(GenerationFailure):
        parse_turn_text('["not", "an", "object"]')

    turn = parse_turn_text(json.dumps(make_raw_turn(x=2, y=3, health=80)))
    assert turn.location.x == 2
    assert turn.location.y == 3
    assert turn.player_health == 80
    assert turn.scene_image is None


@pytest.mark.parametrize("missing", REQUIRED_TURN_FIELDS)
def test_missing_required_field_is_a_schema_violation(make_raw_turn, missing: str) -> None:
    raw = make_raw_turn()
    del raw[missing]

    with pytest.raises(SchemaViolation) as e:
        coerce_turn(raw)
    assert missing in str(e.value)


def test_schema_violation_is_a_generation_failure(make_raw_turn) -> None:
    raw = make_raw_turn()
    del raw["location"]["x"]

    with pytest.raises(GenerationFailure):
        parse_turn_text(json.dumps(raw))


def test_out_of_enum_values_are_coerced_to_neutral_defaults(make_raw_turn) -> None:
    raw = make_raw_turn(
        environment="crystal-jungle",
        visual_effect="rainbow",
        inventory=[{"name": "Prism Shard", "description": "Warm to the touch", "type": "gem"}],
    )

    turn = coerce_turn(raw)
    assert turn.location.environment == Environment.other
    assert turn.visual_effect == VisualEffect.none
    assert turn.inventory[0].type == ItemType.misc


def test_known_enum_values_are_kept(make_raw_turn) -> None:
    turn = coerce_turn(make_raw_turn(environment="Tech", visual_effect="flash_red"))
    assert turn.location.environment == Environment.tech
    assert turn.visual_effect == VisualEffect.flash_red


def test_suggested_actions_are_truncated_or_padded_to_three(make_raw_turn) -> None:
    long = coerce_turn(make_raw_turn(actions=["a", "b", "c", "d", "e"]))
    assert long.suggested_actions == ["a", "b", "c"]

    short = coerce_turn(make_raw_turn(actions=["climb the spire"]))
    assert len(short.suggested_actions) == 3
    assert short.suggested_actions[0] == "climb the spire"
    assert short.suggested_actions[1:] == list(FALLBACK_ACTIONS[:2])

    blank = coerce_turn(make_raw_turn(actions=["  ", ""]))
    assert blank.suggested_actions == list(FALLBACK_ACTIONS)


def test_game_over_turn_keeps_its_suggestions_as_given(make_raw_turn) -> None:
    turn = coerce_turn(make_raw_turn(is_game_over=True, game_over_message="You fell.", actions=[]))
    assert turn.is_game_over is True
    assert turn.suggested_actions == []
    assert turn.game_over_message == "You fell."


def test_player_health_is_clamped(make_raw_turn) -> None:
    assert coerce_turn(make_raw_turn(health=250)).player_health == 100
    assert coerce_turn(make_raw_turn(health=-7)).player_health == 0


def test_numeric_strings_are_accepted_for_integers(make_raw_turn) -> None:
    raw = make_raw_turn()
    raw["location"]["x"] = "4"
    raw["playerHealth"] = "55"

    turn = coerce_turn(raw)
    assert turn.location.x == 4
    assert turn.player_health == 55


def test_non_numeric_coordinate_is_a_schema_violation(make_raw_turn) -> None:
    raw = make_raw_turn()
    raw["location"]["y"] = "north"

    with pytest.raises(SchemaViolation):
        coerce_turn(raw)


def test_blank_names_and_ids_are_dropped(make_raw_turn) -> None:
    raw = make_raw_turn(
        inventory=[{"name": "Rust Blade", "type": "weapon"}, {"name": "  "}],
        lore=[{"id": "spire", "topic": "The Singing Spire"}, {"id": ""}],
    )

    turn = coerce_turn(raw)
    assert [i.name for i in turn.inventory] == ["Rust Blade"]
    assert [entry.id for entry in turn.lore] == ["spire"]


def test_non_object_list_entries_are_schema_violations(make_raw_turn) -> None:
    with pytest.raises(SchemaViolation):
        coerce_turn(make_raw_turn(inventory=["junk"]))
    with pytest.raises(SchemaViolation):
        coerce_turn(make_raw_turn(lore=[42]))


NESTED_FIELD_PATHS = (
    [("location", f) for f in LOCATION_FIELDS]
    + [("combat", f) for f in COMBAT_FIELDS]
    + [("inventory", 0, f) for f in INVENTORY_ITEM_FIELDS]
    + [("lore", 0, f) for f in LORE_FIELDS]
)


@pytest.mark.parametrize("path", NESTED_FIELD_PATHS, ids=lambda p: ".".join(map(str, p)))
def test_missing_nested_field_is_a_schema_violation(make_raw_turn, path: tuple) -> None:
    raw = make_raw_turn(
        inventory=[{"name": "Prism Key", "description": "Hums", "type": "quest"}],
        lore=[{"id": "cult", "topic": "Chromatic Cult", "summary": "Zealots", "details": "..."}],
    )
    node = raw
    for key in path[:-1]:
        node = node[key]
    del node[path[-1]]

    with pytest.raises(SchemaViolation) as e:
        coerce_turn(raw)
    assert path[-1] in str(e.value)


def test_nested_fields_follow_the_turn_schema() -> None:
    assert set(LOCATION_FIELDS) == {"name", "x", "y", "description", "environment"}
    assert set(COMBAT_FIELDS) == {"isInCombat", "enemyName", "enemyHealth", "enemyMaxHealth", "combatLog"}
    assert set(INVENTORY_ITEM_FIELDS) == {"name", "description", "type"}
    assert set(LORE_FIELDS) == {"id", "topic", "summary", "details"}


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_numbers_are_schema_violations(make_raw_turn, literal: str) -> None:
    text = json.dumps(make_raw_turn()).replace('"playerHealth": 100', f'"playerHealth": {literal}')
    assert literal in text

    with pytest.raises(SchemaViolation):
        parse_turn_text(text)


def test_non_finite_numeric_strings_are_schema_violations(make_raw_turn) -> None:
    raw = make_raw_turn()
    raw["location"]["x"] = "inf"

    with pytest.raises(SchemaViolation):
        coerce_turn(raw)


def test_combat_state_is_parsed(make_raw_turn) -> None:
    turn = coerce_turn(make_raw_turn(in_combat=True, combat_log="You parry."))
    assert turn.combat.is_in_combat is True
    assert turn.combat.enemy_name == "Shard Wraith"
    assert turn.combat.enemy_health == 12
    assert turn.combat.enemy_max_health == 20
    assert turn.combat.combat_log == "You parry."


def test_turn_schema_is_strict_and_requires_every_field() -> None:
    schema = TURN_SCHEMA.schema
    assert TURN_SCHEMA.strict is True
    assert schema["additionalProperties"] is False
    assert set(schema["required"]) == set(REQUIRED_TURN_FIELDS)
    assert schema["properties"]["location"]["properties"]["environment"]["enum"] == [e.value for e in Environment]

    fmt = TURN_SCHEMA.as_response_format()
    assert fmt["type"] == "json_schema"
    assert fmt["json_schema"]["name"] == "adventure_turn"
