"""
World-definition loading from the classic matrix directory layout.

Directory structure:
- ``maze_meta_info.json``: world name, width, height, tile size, constraint
- ``special_blocks/*_blocks.csv``: block id rows; the label is the last column
- ``maze/*_maze.csv``: one flat row of block ids per layer, ``width * height`` long

Usage:
    definition = load_world_definition(Path("environment/matrix"))
    maze = Maze(definition)
"""

import csv
import json
from pathlib import Path
from typing import Dict, List

from .schemas import DEFAULT_COLLISION_BLOCK_ID, WorldDefinition


LAYERS = ("collision", "sector", "arena", "game_object", "spawning_location")


def _read_csv_rows(path: Path) -> List[List[str]]:
    with path.open(newline="", encoding="utf-8") as handle:
        return [[cell.strip() for cell in row] for row in csv.reader(handle) if row]


def _read_block_labels(path: Path) -> Dict[str, str]:
    """Map block id (first column) to label (last column)."""
    if not path.exists():
        return {}
    return {row[0]: row[-1] for row in _read_csv_rows(path)}


def _read_layer(path: Path) -> List[str]:
    rows = _read_csv_rows(path)
    if not rows:
        raise ValueError(f"Maze layer file is empty: {path}")
    return rows[0]


def load_world_definition(matrix_dir: Path | str) -> WorldDefinition:
    """Load a ``WorldDefinition`` from a matrix directory.

    Args:
        matrix_dir: Folder containing ``maze_meta_info.json``, ``special_blocks/``
            and ``maze/``.

    Returns:
        Validated WorldDefinition (layer sizes are checked against width * height).

    Raises:
        FileNotFoundError: If the meta file, world blocks or a maze layer is missing.
        ValueError: If a layer is empty or has the wrong size.
    """
    matrix_dir = Path(matrix_dir)
    meta_path = matrix_dir / "maze_meta_info.json"
    if not meta_path.exists():
        raise FileNotFoundError(f"World meta info not found: {meta_path}")

    with meta_path.open(encoding="utf-8") as handle:
        meta = json.load(handle)

    blocks_dir = matrix_dir / "special_blocks"
    world_rows = _read_csv_rows(blocks_dir / "world_blocks.csv")
    world_label = world_rows[0][-1]

    layers = {layer: _read_layer(matrix_dir / "maze" / f"{layer}_maze.csv") for layer in LAYERS}

    return WorldDefinition(
        maze_name=meta.get("world_name", matrix_dir.name),
        width=int(meta["maze_width"]),
        height=int(meta["maze_height"]),
        tile_size=int(meta.get("sq_tile_size", 32)),
        special_constraint=meta.get("special_constraint", ""),
        world=world_label,
        collision_block_id=str(meta.get("collision_block_id", DEFAULT_COLLISION_BLOCK_ID)),
        sector_labels=_read_block_labels(blocks_dir / "sector_blocks.csv"),
        arena_labels=_read_block_labels(blocks_dir / "arena_blocks.csv"),
        game_object_labels=_read_block_labels(blocks_dir / "game_object_blocks.csv"),
        spawning_location_labels=_read_block_labels(blocks_dir / "spawning_location_blocks.csv"),
        **layers,
    )
