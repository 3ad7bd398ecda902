"""Tests for perception: spatial memory updates, attention and retention."""

import contextlib
import io

import pytest

from personaverse.cognition.perceive import observe_events, perceive
from personaverse.environment import TileEvent

from helpers import COUNTER, TABLE, ScriptedOracle, make_maze, make_persona


READING = TileEvent("Klaus Mueller", "is", "reading", "reading a book")


def test_observe_events_orders_by_distance_within_arena():
    maze = make_maze()
    maze.add_event_from_tile(READING, (2, 0))
    maze.add_event_from_tile(TileEvent("Maria Lopez", "is", "jogging", "jogging"), (4, 0))
    persona = make_persona(curr_tile=(0, 0))

    events = observe_events(persona, maze)

    # Maria is in the park arena, so she is not noticed from the cafe
    assert [event.subject for event in events] == [COUNTER, "Klaus Mueller", TABLE]
    assert "Johnson Park" in persona.s_mem.tree["the Ville"]
    assert persona.s_mem.tree["the Ville"]["Hobbs Cafe"]["cafe"] == ["counter", "table"]


def test_observe_events_respects_attention_bandwidth():
    maze = make_maze()
    maze.add_event_from_tile(READING, (2, 0))
    persona = make_persona(curr_tile=(0, 0), att_bandwidth=1)

    assert observe_events(persona, maze) == [TileEvent.blank(COUNTER)]


@pytest.mark.asyncio
async def test_perceive_records_events_and_lowers_trigger():
    maze = make_maze()
    maze.add_event_from_tile(READING, (2, 0))
    oracle = ScriptedOracle(default='{"output": "4"}')
    persona = make_persona(oracle=oracle, curr_tile=(0, 0))

    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        nodes = await perceive(persona, maze)

    assert [node.description for node in nodes] == [
        "counter is idle",
        "Klaus Mueller is reading a book",
        "table is idle",
    ]
    reading = nodes[1]
    assert reading.spo_summary() == ("Klaus Mueller", "is", "reading")
    assert reading.keywords == {"Klaus Mueller", "reading"}
    assert reading.poignancy == 4
    assert nodes[0].poignancy == 1
    # Idle objects never reach the oracle; only the reading event is scored
    assert len(oracle.prompts) == 1
    assert persona.scratch.importance_trigger_curr == 150 - 4 - 1 - 1
    assert persona.scratch.importance_ele_n == 3
    assert "[•] [Isabella Rodriguez] Perceived 3 new event(s)" in buf.getvalue()


@pytest.mark.asyncio
async def test_recently_seen_events_are_not_stored_again():
    maze = make_maze()
    maze.add_event_from_tile(READING, (2, 0))
    persona = make_persona(curr_tile=(0, 0))

    first = await perceive(persona, maze)
    second = await perceive(persona, maze)

    assert len(first) == 3
    assert second == []
    assert len(persona.a_mem.seq_event) == 3


@pytest.mark.asyncio
async def test_own_chat_event_stores_chat_node():
    maze = make_maze()
    persona = make_persona(curr_tile=(0, 0), att_bandwidth=1)
    persona.scratch.act_description = "conversing about the party"
    persona.scratch.act_event = ("Isabella Rodriguez", "chat with", "Klaus Mueller")
    persona.scratch.chat = [["Isabella Rodriguez", "Hi Klaus!"], ["Klaus Mueller", "Hello!"]]
    maze.add_event_from_tile(
        TileEvent("Isabella Rodriguez", "chat with", "Klaus Mueller", "conversing about the party"), (0, 0)
    )

    nodes = await perceive(persona, maze)

    assert len(nodes) == 1
    chat = persona.a_mem.seq_chat[0]
    assert chat.filling == persona.scratch.chat
    assert nodes[0].filling == [chat.node_id]
    assert persona.a_mem.get_last_chat("Klaus Mueller") is chat
