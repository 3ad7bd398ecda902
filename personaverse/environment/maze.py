"""Tile map with per-tile event annotations and an address index.

Coordinates handed to and returned from a ``Maze`` are ``(x, y)`` tuples; the
underlying ``tiles`` grid is stored ``[y][x]``. Addresses are colon-delimited
location paths such as ``"the Ville:Hobbs Cafe:cafe:counter"``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from personaverse.errors import AddressNotFoundError, TileOutOfBoundsError

from .schemas import EMPTY_BLOCK_ID, WorldDefinition


Coordinate = Tuple[int, int]

SPAWN_PREFIX = "<spawn_loc>"
TILE_LEVELS = ("world", "sector", "arena", "game_object")


@dataclass(frozen=True)
class TileEvent:
    """Activity observable on a tile: a (subject, predicate, object) triple plus description.

    A blank event (predicate/object/description all ``None``) marks a subject
    that is present but not doing anything in particular; perception treats it
    as ``is idle``.
    """

    subject: str
    predicate: Optional[str] = None
    object: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def blank(cls, subject: str) -> "TileEvent":
        return cls(subject)

    @classmethod
    def idle(cls, subject: str) -> "TileEvent":
        return cls(subject, "is", "idle", "idle")

    @classmethod
    def from_tuple(cls, values: Iterable[Optional[str]]) -> "TileEvent":
        subject, predicate, obj, description = tuple(values)
        return cls(subject or "", predicate, obj, description)

    def as_tuple(self) -> Tuple[str, Optional[str], Optional[str], Optional[str]]:
        return (self.subject, self.predicate, self.object, self.description)

    def to_list(self) -> List[Optional[str]]:
        return list(self.as_tuple())

    @property
    def is_blank(self) -> bool:
        return not self.predicate


@dataclass
class Tile:
    """Static labels for a single tile plus the events currently on it."""

    x: int
    y: int
    world: str = ""
    sector: str = ""
    arena: str = ""
    game_object: str = ""
    spawning_location: str = ""
    collision: bool = False
    events: Set[TileEvent] = field(default_factory=set)


class Maze:
    """The shared 2-D world: tiles, collision layer and address index.

    ``address_tiles`` is built once here and never changes afterwards. Only the
    per-tile ``events`` sets are mutated during a simulation.
    """

    def __init__(self, definition: WorldDefinition):
        self.maze_name = definition.maze_name
        self.maze_width = definition.width
        self.maze_height = definition.height
        self.sq_tile_size = definition.tile_size
        self.special_constraint = definition.special_constraint
        self.collision_block_id = definition.collision_block_id

        # Raw collision ids in [y][x] form; this is what the path finder walks.
        self.collision_maze: List[List[str]] = definition.rows("collision")
        sector_rows = definition.rows("sector")
        arena_rows = definition.rows("arena")
        object_rows = definition.rows("game_object")
        spawn_rows = definition.rows("spawning_location")

        self.tiles: List[List[Tile]] = []
        for y in range(self.maze_height):
            row: List[Tile] = []
            for x in range(self.maze_width):
                row.append(
                    Tile(
                        x=x,
                        y=y,
                        world=definition.world,
                        sector=definition.sector_labels.get(sector_rows[y][x], ""),
                        arena=definition.arena_labels.get(arena_rows[y][x], ""),
                        game_object=definition.game_object_labels.get(object_rows[y][x], ""),
                        spawning_location=definition.spawning_location_labels.get(spawn_rows[y][x], ""),
                        collision=self.collision_maze[y][x] != EMPTY_BLOCK_ID,
                    )
                )
            self.tiles.append(row)

        # Every game object starts with a blank event so personas can notice it.
        for row in self.tiles:
            for tile in row:
                if tile.game_object:
                    tile.events.add(TileEvent.blank(self.get_tile_path((tile.x, tile.y), "game_object")))

        index: Dict[str, Set[Coordinate]] = {}
        for row in self.tiles:
            for tile in row:
                for address in self._tile_addresses(tile):
                    index.setdefault(address, set()).add((tile.x, tile.y))
        self._address_tiles: Dict[str, FrozenSet[Coordinate]] = {
            address: frozenset(coords) for address, coords in index.items()
        }

    @staticmethod
    def _tile_addresses(tile: Tile) -> List[str]:
        addresses: List[str] = []
        if tile.sector:
            addresses.append(f"{tile.world}:{tile.sector}")
        if tile.arena:
            addresses.append(f"{tile.world}:{tile.sector}:{tile.arena}")
        if tile.game_object:
            addresses.append(f"{tile.world}:{tile.sector}:{tile.arena}:{tile.game_object}")
        if tile.spawning_location:
            addresses.append(f"{SPAWN_PREFIX}{tile.spawning_location}")
        return addresses

    @property
    def address_tiles(self) -> Mapping[str, FrozenSet[Coordinate]]:
        return self._address_tiles

    def has_address(self, address: str) -> bool:
        return address in self._address_tiles

    def tiles_for_address(self, address: str) -> FrozenSet[Coordinate]:
        """Return every ``(x, y)`` matching ``address``.

        Raises:
            AddressNotFoundError: If the address was never registered at load time.
        """
        try:
            return self._address_tiles[address]
        except KeyError:
            raise AddressNotFoundError(address) from None

    def in_bounds(self, coordinate: Coordinate) -> bool:
        x, y = coordinate
        return 0 <= x < self.maze_width and 0 <= y < self.maze_height

    def access_tile(self, coordinate: Coordinate) -> Tile:
        """Return the tile at ``(x, y)``; out-of-range coordinates are fatal."""
        if not self.in_bounds(coordinate):
            raise TileOutOfBoundsError(tuple(coordinate), self.maze_width, self.maze_height)
        x, y = coordinate
        return self.tiles[y][x]

    def get_tile_path(self, coordinate: Coordinate, level: str) -> str:
        """Return the address of ``coordinate`` truncated at ``level``.

        ``level`` is one of ``world``, ``sector``, ``arena`` or ``game_object``.
        """
        if level not in TILE_LEVELS:
            raise ValueError(f"Unknown tile level {level!r}; expected one of {TILE_LEVELS}")
        tile = self.access_tile(coordinate)
        parts = [tile.world, tile.sector, tile.arena, tile.game_object]
        return ":".join(parts[: TILE_LEVELS.index(level) + 1])

    def get_nearby_tiles(self, center: Coordinate, radius: int) -> List[Coordinate]:
        """Return tiles within Euclidean ``radius`` of ``center``, scanned row by row."""
        cx, cy = center
        nearby: List[Coordinate] = []
        for y in range(max(0, cy - radius), min(self.maze_height - 1, cy + radius) + 1):
            for x in range(max(0, cx - radius), min(self.maze_width - 1, cx + radius) + 1):
                if math.hypot(x - cx, y - cy) <= radius:
                    nearby.append((x, y))
        return nearby

    # Event bookkeeping -------------------------------------------------------

    def add_event_from_tile(self, event: TileEvent, coordinate: Coordinate) -> None:
        self.access_tile(coordinate).events.add(event)

    def remove_event_from_tile(self, event: TileEvent, coordinate: Coordinate) -> None:
        self.access_tile(coordinate).events.discard(event)

    def remove_subject_events_from_tile(self, subject: str, coordinate: Coordinate) -> None:
        tile = self.access_tile(coordinate)
        tile.events = {event for event in tile.events if event.subject != subject}

    def turn_event_from_tile_idle(self, event: TileEvent, coordinate: Coordinate) -> None:
        """Replace ``event`` on the tile with a blank event for the same subject."""
        tile = self.access_tile(coordinate)
        if event in tile.events:
            tile.events.discard(event)
            tile.events.add(TileEvent.blank(event.subject))
