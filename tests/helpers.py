"""Shared fakes for the test suite: a scripted oracle, a bag-of-words embedder and a tiny world."""

from __future__ import annotations

import datetime as dt
import zlib
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from personaverse.environment import Maze, WorldDefinition
from personaverse.memory import Scratch
from personaverse.oracle import Oracle
from personaverse.persona import Persona


EMBEDDING_DIM = 16
START_TIME = dt.datetime(2023, 2, 13, 7, 0, 0)


class ScriptedOracle(Oracle):
    """Answers with queued raw strings, then with ``default``.

    Queued exceptions are raised instead of returned, which lets tests
    exercise the transport failure path.
    """

    def __init__(
        self,
        responses: Optional[Sequence[Union[str, Exception]]] = None,
        default: str = '{"output": "5"}',
        retry_budget: int = 2,
    ):
        super().__init__("openai", "test-model", retry_budget=retry_budget)
        self.responses: List[Union[str, Exception]] = list(responses or [])
        self.default = default
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response


class FakeEmbedder:
    """Hashes words into a fixed-size count vector."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return bag_of_words(text)


def bag_of_words(text: str) -> List[float]:
    vector = [0.0] * EMBEDDING_DIM
    for word in text.lower().split():
        vector[zlib.crc32(word.encode("utf-8")) % EMBEDDING_DIM] += 1.0
    return vector


# ============================================================================
# World
# ============================================================================

WALL = "32125"
WORLD = "the Ville"
CAFE = "the Ville:Hobbs Cafe:cafe"
COUNTER = "the Ville:Hobbs Cafe:cafe:counter"
TABLE = "the Ville:Hobbs Cafe:cafe:table"
BENCH = "the Ville:Johnson Park:garden:bench"


def _layer(width: int, height: int, fill: str, overrides: Dict[Tuple[int, int], str]) -> List[str]:
    cells = [fill] * (width * height)
    for (x, y), value in overrides.items():
        cells[y * width + x] = value
    return cells


def make_definition(walls: Iterable[Tuple[int, int]] = ()) -> WorldDefinition:
    """A 5x5 world: columns 0-3 are Hobbs Cafe, column 4 is Johnson Park."""
    width, height = 5, 5
    park = {(4, y): "2" for y in range(height)}
    garden = {(4, y): "20" for y in range(height)}
    return WorldDefinition(
        maze_name="test_ville",
        width=width,
        height=height,
        world=WORLD,
        collision=_layer(width, height, "0", {tile: WALL for tile in walls}),
        sector=_layer(width, height, "1", park),
        arena=_layer(width, height, "10", garden),
        game_object=_layer(width, height, "0", {(1, 1): "100", (2, 2): "101", (4, 2): "200"}),
        spawning_location=_layer(width, height, "0", {(0, 0): "500", (4, 4): "501"}),
        sector_labels={"1": "Hobbs Cafe", "2": "Johnson Park"},
        arena_labels={"10": "cafe", "20": "garden"},
        game_object_labels={"100": "counter", "101": "table", "200": "bench"},
        spawning_location_labels={"500": "cafe-entry", "501": "park-entry"},
    )


def make_maze(walls: Iterable[Tuple[int, int]] = ()) -> Maze:
    return Maze(make_definition(walls))


def make_persona(
    name: str = "Isabella Rodriguez",
    oracle: Optional[Oracle] = None,
    *,
    curr_time: Optional[dt.datetime] = START_TIME,
    curr_tile: Optional[Tuple[int, int]] = (0, 0),
    **scratch_fields,
) -> Persona:
    scratch = Scratch(
        name=name,
        first_name=name.split(" ")[0],
        last_name=name.split(" ")[-1],
        age=34,
        innate="friendly, outgoing",
        learned=f"{name} runs a cafe.",
        currently=f"{name} is planning a Valentine's Day party.",
        lifestyle="goes to bed around 11pm and wakes up around 6am.",
        living_area=CAFE,
        curr_time=curr_time,
        curr_tile=curr_tile,
        **scratch_fields,
    )
    return Persona(name, scratch, oracle=oracle or ScriptedOracle(), embedder=FakeEmbedder())


def add_event(persona: Persona, description: str, *, subject: Optional[str] = None, predicate: str = "is",
              obj: str = "busy", keywords: Iterable[str] = (), poignancy: int = 5,
              created: Optional[dt.datetime] = None):
    """Store an event node with a bag-of-words embedding keyed by its description."""
    created = created or persona.scratch.curr_time
    return persona.a_mem.add_event(
        created,
        None,
        subject or persona.name,
        predicate,
        obj,
        description,
        set(keywords) or {subject or persona.name, obj},
        poignancy,
        (description, bag_of_words(description)),
    )
