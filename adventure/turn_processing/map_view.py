from __future__ import annotations

from dataclasses import dataclass

from adventure.api.models import Location, location_key

# 3 cells in each direction: a 7x7 window around the player.
DEFAULT_MAP_RADIUS = 3


@dataclass(frozen=True, slots=True)
class MapCellView:
    dx: int
    dy: int
    is_current: bool
    location: Location | None


def map_window(
    *,
    center: Location,
    map_memory: dict[str, Location],
    radius: int = DEFAULT_MAP_RADIUS,
) -> list[MapCellView]:
    """Visited cells around `center`, north row first, west to east.

    Unvisited cells are returned with `location=None` so the grid stays square.
    """

    cells: list[MapCellView] = []
    for dy in range(radius, -radius - 1, -1):
        for dx in range(-radius, radius + 1):
            key = location_key(center.x + dx, center.y + dy)
            cells.append(
                MapCellView(
                    dx=dx,
                    dy=dy,
                    is_current=dx == 0 and dy == 0,
                    location=map_memory.get(key),
                )
            )
    return cells
