"""Tests for the tile maze: address index, bounds and tile events."""

import pytest

from personaverse.environment import SPAWN_PREFIX, TileEvent, WorldDefinition
from personaverse.errors import AddressNotFoundError, StructuralError, TileOutOfBoundsError

from helpers import COUNTER, TABLE, WALL, make_definition, make_maze


def test_address_index_covers_every_level():
    maze = make_maze()

    assert maze.tiles_for_address(COUNTER) == frozenset({(1, 1)})
    assert maze.tiles_for_address(TABLE) == frozenset({(2, 2)})
    assert len(maze.tiles_for_address("the Ville:Hobbs Cafe")) == 20
    assert len(maze.tiles_for_address("the Ville:Johnson Park:garden")) == 5
    assert maze.tiles_for_address(f"{SPAWN_PREFIX}cafe-entry") == frozenset({(0, 0)})
    assert maze.has_address(COUNTER)
    assert not maze.has_address("the Ville:Nowhere")


def test_missing_address_is_fatal():
    maze = make_maze()

    with pytest.raises(AddressNotFoundError) as excinfo:
        maze.tiles_for_address("the Ville:Hobbs Cafe:kitchen:stove")

    # Still a KeyError for callers that catch the builtin
    assert isinstance(excinfo.value, KeyError)
    assert isinstance(excinfo.value, StructuralError)
    assert "kitchen" in str(excinfo.value)


def test_access_tile_out_of_bounds_raises():
    maze = make_maze()

    with pytest.raises(TileOutOfBoundsError):
        maze.access_tile((5, 0))
    with pytest.raises(TileOutOfBoundsError):
        maze.access_tile((0, -1))


def test_tile_labels_and_paths():
    maze = make_maze(walls=[(3, 3)])

    tile = maze.access_tile((1, 1))
    assert (tile.world, tile.sector, tile.arena, tile.game_object) == ("the Ville", "Hobbs Cafe", "cafe", "counter")
    assert maze.get_tile_path((1, 1), "world") == "the Ville"
    assert maze.get_tile_path((1, 1), "arena") == "the Ville:Hobbs Cafe:cafe"
    assert maze.get_tile_path((1, 1), "game_object") == COUNTER
    assert maze.access_tile((3, 3)).collision
    assert not maze.access_tile((0, 0)).collision
    assert maze.collision_maze[3][3] == WALL

    with pytest.raises(ValueError):
        maze.get_tile_path((1, 1), "room")


def test_nearby_tiles_use_euclidean_radius():
    maze = make_maze()

    assert maze.get_nearby_tiles((0, 0), 1) == [(0, 0), (1, 0), (0, 1)]
    nearby = maze.get_nearby_tiles((2, 2), 2)
    assert (2, 0) in nearby and (0, 2) in nearby
    assert (0, 0) not in nearby


def test_game_objects_start_with_blank_events():
    maze = make_maze()

    assert maze.access_tile((1, 1)).events == {TileEvent.blank(COUNTER)}
    assert maze.access_tile((0, 0)).events == set()


def test_event_bookkeeping():
    maze = make_maze()
    reading = TileEvent("Klaus Mueller", "is", "reading", "reading a book")

    maze.add_event_from_tile(reading, (2, 0))
    assert reading in maze.access_tile((2, 0)).events

    maze.turn_event_from_tile_idle(reading, (2, 0))
    assert maze.access_tile((2, 0)).events == {TileEvent.blank("Klaus Mueller")}

    maze.add_event_from_tile(reading, (2, 0))
    maze.remove_subject_events_from_tile("Klaus Mueller", (2, 0))
    assert maze.access_tile((2, 0)).events == set()

    # Removing an event that is not there is a no-op
    maze.remove_event_from_tile(reading, (2, 0))


def test_tile_event_tuple_helpers():
    event = TileEvent.from_tuple(["Isabella Rodriguez", None, None, None])

    assert event.is_blank
    assert event.to_list() == ["Isabella Rodriguez", None, None, None]
    assert TileEvent.idle("bed").as_tuple() == ("bed", "is", "idle", "idle")
    assert not TileEvent.idle("bed").is_blank


def test_world_definition_rejects_wrong_layer_size():
    data = make_definition().model_dump()
    data["sector"] = data["sector"][:-1]

    with pytest.raises(ValueError):
        WorldDefinition.model_validate(data)
