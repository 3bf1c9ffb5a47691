from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # Wire documents (model replies, saves) keep the camelCase field names.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Environment(StrEnum):
    forest = "forest"
    ruins = "ruins"
    city = "city"
    tech = "tech"
    cave = "cave"
    plains = "plains"
    indoor = "indoor"
    other = "other"


class ItemType(StrEnum):
    weapon = "weapon"
    armor = "armor"
    consumable = "consumable"
    quest = "quest"
    misc = "misc"


class VisualEffect(StrEnum):
    none = "none"
    shake = "shake"
    glitch = "glitch"
    flash_red = "flash_red"
    flash_white = "flash_white"
    particles_combat = "particles_combat"


class LogEntryKind(StrEnum):
    player = "player"
    system = "system"


class SessionPhase(StrEnum):
    no_session = "no_session"
    initializing = "initializing"
    idle = "idle"
    awaiting_turn = "awaiting_turn"
    game_over = "game_over"


def location_key(x: int, y: int) -> str:
    return f"{x},{y}"


class Location(CamelModel):
    name: str
    x: int
    y: int
    description: str = ""
    environment: Environment = Environment.other

    @property
    def key(self) -> str:
        return location_key(self.x, self.y)


class InventoryItem(CamelModel):
    name: str
    description: str = ""
    type: ItemType = ItemType.misc


class LoreEntry(CamelModel):
    id: str
    topic: str
    summary: str = ""
    details: str = ""


class CombatState(CamelModel):
    is_in_combat: bool = False
    enemy_name: str = ""
    enemy_health: int = 0
    enemy_max_health: int = 0
    combat_log: str = ""


class TurnState(CamelModel):
    scene_description: str
    location: Location
    inventory: list[InventoryItem] = Field(default_factory=list)
    player_health: int = 100
    suggested_actions: list[str] = Field(default_factory=list)
    is_game_over: bool = False
    game_over_message: str = ""
    lore: list[LoreEntry] = Field(default_factory=list)
    combat: CombatState = Field(default_factory=CombatState)
    visual_effect: VisualEffect = VisualEffect.none

    # Data URI or URL; filled in later by the image generator.
    scene_image: str | None = None


class StoryLogEntry(CamelModel):
    id: int
    kind: LogEntryKind
    text: str

    # Only system entries carry the turn that produced them.
    turn_state: TurnState | None = None


class Session(CamelModel):
    current_turn: TurnState | None = None
    log: list[StoryLogEntry] = Field(default_factory=list)
    map_memory: dict[str, Location] = Field(default_factory=dict)

    def next_entry_id(self) -> int:
        return (self.log[-1].id + 1) if self.log else 1

    def latest_system_entry(self) -> StoryLogEntry | None:
        for entry in reversed(self.log):
            if entry.kind == LogEntryKind.system:
                return entry
        return None


class ActionRequest(BaseModel):
    action: str = Field(..., min_length=1, max_length=2000)


class SessionView(BaseModel):
    phase: SessionPhase
    save_exists: bool
    session: Session | None = None


class TurnOutcomeResponse(BaseModel):
    accepted: bool
    phase: SessionPhase
    is_new_location: bool = False
    error: str | None = None
    session: Session | None = None


class LoadResponse(BaseModel):
    status: str
    message: str
    phase: SessionPhase


class SaveResponse(BaseModel):
    saved: bool
    message: str


class MapCell(BaseModel):
    dx: int
    dy: int
    is_current: bool
    location: Location | None = None


class MapWindowResponse(BaseModel):
    center: Location | None = None
    cells: list[MapCell] = Field(default_factory=list)
