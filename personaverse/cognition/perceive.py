"""Perception: what a persona notices around it this tick.

Perception has two effects. Every tile within the vision radius is merged into
the persona's spatial memory, and the nearest events in the persona's own
arena are written to associative memory as event nodes. Each new event lowers
the reflection trigger by its poignancy.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, List, Tuple

from personaverse.embeddings import get_or_embed
from personaverse.environment.maze import Maze, TileEvent
from personaverse.llm_calls import query_chat_poignancy, query_event_poignancy
from personaverse.logging_utils import log_deterministic
from personaverse.memory.associative import ConceptNode

if TYPE_CHECKING:
    from personaverse.persona import Persona


def _event_sort_key(event: TileEvent) -> Tuple[str, ...]:
    return tuple(part or "" for part in event.as_tuple())


def observe_events(persona: "Persona", maze: Maze) -> List[TileEvent]:
    """Update spatial memory and return the nearest events in the persona's arena.

    Events are deduplicated, ordered by distance (first encounter wins ties) and
    cut to ``att_bandwidth``.
    """
    scratch = persona.scratch
    curr_tile = scratch.curr_tile
    nearby_tiles = maze.get_nearby_tiles(curr_tile, scratch.vision_r)

    for coordinate in nearby_tiles:
        tile = maze.access_tile(coordinate)
        persona.s_mem.add_tile(tile.world, tile.sector, tile.arena, tile.game_object)

    curr_arena_path = maze.get_tile_path(curr_tile, "arena")
    seen = set()
    percept: List[Tuple[float, TileEvent]] = []
    for coordinate in nearby_tiles:
        tile = maze.access_tile(coordinate)
        if not tile.events or maze.get_tile_path(coordinate, "arena") != curr_arena_path:
            continue
        dist = math.dist(coordinate, curr_tile)
        # Tile event sets are unordered; sort so encounter order is reproducible.
        for event in sorted(tile.events, key=_event_sort_key):
            if event not in seen:
                seen.add(event)
                percept.append((dist, event))

    percept.sort(key=lambda item: item[0])
    return [event for _, event in percept[: scratch.att_bandwidth]]


async def event_poignancy(persona: "Persona", description: str) -> int:
    if "is idle" in description:
        return 1
    return await query_event_poignancy(persona, description)


async def chat_poignancy(persona: "Persona", description: str) -> int:
    if "is idle" in description:
        return 1
    return await query_chat_poignancy(persona, description)


async def perceive(persona: "Persona", maze: Maze) -> List[ConceptNode]:
    """Record newly noticed events as memories and return the new event nodes."""
    scratch = persona.scratch
    a_mem = persona.a_mem
    ret_events: List[ConceptNode] = []

    for event in observe_events(persona, maze):
        s, p, o, desc = event.as_tuple()
        if not p:
            p, o, desc = "is", "idle", "idle"
        desc = f"{s.split(':')[-1]} is {desc}"

        # Recomputed per event so duplicates within this tick are caught too.
        if (s, p, o) in a_mem.get_summarized_latest_events(scratch.retention):
            continue

        keywords = {s.split(":")[-1], o.split(":")[-1]}
        embedding_key = desc
        if "(" in desc:
            embedding_key = desc.split("(")[1].split(")")[0].strip()
        embedding = await get_or_embed(persona, embedding_key)
        poignancy = await event_poignancy(persona, embedding_key)

        evidence: List[str] = []
        if s == persona.name and p == "chat with":
            act_desc = scratch.act_description or ""
            chat_embedding = await get_or_embed(persona, act_desc)
            chat_node = a_mem.add_chat(
                scratch.curr_time,
                None,
                scratch.act_event[0],
                scratch.act_event[1],
                scratch.act_event[2],
                act_desc,
                keywords,
                await chat_poignancy(persona, act_desc),
                (act_desc, chat_embedding),
                scratch.chat,
            )
            evidence = [chat_node.node_id]

        ret_events.append(
            a_mem.add_event(
                scratch.curr_time, None, s, p, o, desc, keywords, poignancy, (embedding_key, embedding), evidence
            )
        )
        scratch.importance_trigger_curr -= poignancy
        scratch.importance_ele_n += 1

    if ret_events:
        log_deterministic(f"[{persona.name}] Perceived {len(ret_events)} new event(s)")
    return ret_events


__all__ = ["chat_poignancy", "event_poignancy", "observe_events", "perceive"]
