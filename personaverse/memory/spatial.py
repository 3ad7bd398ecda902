"""Spatial memory: the world -> sector -> arena -> game objects a persona has seen."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from pydantic import TypeAdapter


SpatialTree = Dict[str, Dict[str, Dict[str, List[str]]]]

_TREE = TypeAdapter(SpatialTree)


class SpatialMemory:
    """Explicit four-level location tree.

    Levels are only ever added (insert-if-absent); nothing is removed, so a
    persona keeps knowing about places it has not revisited. Object lists keep
    first-seen order.
    """

    def __init__(self, tree: SpatialTree | None = None):
        self.tree: SpatialTree = tree if tree is not None else {}

    def add_world(self, world: str) -> None:
        if world:
            self.tree.setdefault(world, {})

    def add_sector(self, world: str, sector: str) -> None:
        if world and sector:
            self.tree.setdefault(world, {}).setdefault(sector, {})

    def add_arena(self, world: str, sector: str, arena: str) -> None:
        if world and sector and arena:
            self.tree.setdefault(world, {}).setdefault(sector, {}).setdefault(arena, [])

    def add_game_object(self, world: str, sector: str, arena: str, game_object: str) -> None:
        if not (world and sector and arena and game_object):
            return
        objects = self.tree.setdefault(world, {}).setdefault(sector, {}).setdefault(arena, [])
        if game_object not in objects:
            objects.append(game_object)

    def add_tile(self, world: str, sector: str, arena: str, game_object: str) -> None:
        """Insert every non-empty level of a tile's address."""
        self.add_world(world)
        self.add_sector(world, sector)
        self.add_arena(world, sector, arena)
        self.add_game_object(world, sector, arena, game_object)

    # Prompt helpers ----------------------------------------------------------

    def get_str_accessible_sectors(self, curr_world: str) -> str:
        return ", ".join(self.tree.get(curr_world, {}))

    def get_str_accessible_sector_arenas(self, sector: str) -> str:
        """Arenas under a ``"world:sector"`` address, comma separated."""
        parts = sector.split(":")
        if len(parts) < 2 or not parts[1]:
            return ""
        return ", ".join(self.tree.get(parts[0], {}).get(parts[1], {}))

    def get_str_accessible_arena_game_objects(self, arena: str) -> str:
        """Game objects under a ``"world:sector:arena"`` address, comma separated."""
        parts = arena.split(":")
        if len(parts) < 3 or not parts[2]:
            return ""
        arenas = self.tree.get(parts[0], {}).get(parts[1], {})
        objects = arenas.get(parts[2])
        if objects is None:
            objects = arenas.get(parts[2].lower(), [])
        return ", ".join(objects)

    # Snapshots ---------------------------------------------------------------

    def save(self, out_json: Path | str) -> None:
        out_json = Path(out_json)
        out_json.parent.mkdir(parents=True, exist_ok=True)
        out_json.write_bytes(_TREE.dump_json(self.tree, indent=2))

    @classmethod
    def load(cls, f_saved: Path | str) -> "SpatialMemory":
        f_saved = Path(f_saved)
        if not f_saved.exists():
            return cls()
        return cls(_TREE.validate_json(f_saved.read_bytes()))
