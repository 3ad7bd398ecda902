"""
Persona: one simulated agent.

A persona bundles its three memories (associative, spatial, scratch) with the
oracle and embedder it thinks with, and runs the cognition pipeline once per
step through ``move``.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from personaverse.cognition import RetrievedContext, retrieve
from personaverse.cognition.execute import Execution, execute
from personaverse.cognition.perceive import perceive
from personaverse.cognition.plan import plan
from personaverse.cognition.prompts import PromptLibrary
from personaverse.cognition.reflect import reflect
from personaverse.embeddings import Embedder, build_embedder
from personaverse.environment.maze import Coordinate, Maze
from personaverse.memory import AssociativeMemory, ConceptNode, Scratch, SpatialMemory
from personaverse.oracle import Oracle


ASSOCIATIVE_DIR = "associative_memory"
SPATIAL_FILE = "spatial_memory.json"
SCRATCH_FILE = "scratch.json"


class Persona:
    """A persona and its memories.

    Args:
        name: Full name; also the subject of the persona's tile events.
        scratch: Working state. A fresh ``Scratch(name=name)`` when omitted.
        a_mem: Long-term memory stream.
        s_mem: Known locations.
        oracle: Language model front door; defaults to one built from ``Config``.
        embedder: Text embedder; defaults to ``build_embedder()``.
        prompt_library: Templates used for oracle prompts; defaults to the built-in set.
    """

    def __init__(
        self,
        name: str,
        scratch: Optional[Scratch] = None,
        a_mem: Optional[AssociativeMemory] = None,
        s_mem: Optional[SpatialMemory] = None,
        *,
        oracle: Optional[Oracle] = None,
        embedder: Optional[Embedder] = None,
        prompt_library: Optional[PromptLibrary] = None,
    ):
        self.name = name
        self.scratch = scratch or Scratch(name=name)
        self.a_mem = a_mem or AssociativeMemory()
        self.s_mem = s_mem or SpatialMemory()
        self.oracle = oracle or Oracle()
        self.embedder = embedder or build_embedder()
        self.prompt_library = prompt_library

    def __repr__(self) -> str:
        return f"Persona({self.name!r})"

    # ========================================================================
    # Cognition pipeline
    # ========================================================================

    async def perceive(self, maze: Maze) -> List[ConceptNode]:
        return await perceive(self, maze)

    def retrieve(self, perceived: List[ConceptNode]) -> Dict[str, RetrievedContext]:
        return retrieve(self, perceived)

    async def plan(
        self,
        maze: Maze,
        personas: Mapping[str, "Persona"],
        new_day: Union[bool, str],
        retrieved: Mapping[str, RetrievedContext],
    ) -> str:
        return await plan(self, maze, personas, new_day, retrieved)

    def execute(self, maze: Maze, personas: Mapping[str, "Persona"], plan: str) -> Execution:
        return execute(self, maze, personas, plan)

    async def reflect(self) -> None:
        await reflect(self)

    async def move(
        self,
        maze: Maze,
        personas: Mapping[str, "Persona"],
        curr_tile: Coordinate,
        curr_time: dt.datetime,
    ) -> Execution:
        """Run one step of cognition and return ``(next_tile, pronunciatio, description)``."""
        self.scratch.curr_tile = tuple(curr_tile)

        new_day: Union[bool, str] = False
        if not self.scratch.curr_time:
            new_day = "First day"
        elif self.scratch.curr_time.strftime("%A %B %d") != curr_time.strftime("%A %B %d"):
            new_day = "New day"
        self.scratch.curr_time = curr_time

        perceived = await self.perceive(maze)
        retrieved = self.retrieve(perceived)
        act_address = await self.plan(maze, personas, new_day, retrieved)
        await self.reflect()
        return self.execute(maze, personas, act_address)

    # ========================================================================
    # Snapshots
    # ========================================================================

    def save(self, folder: Union[Path, str]) -> None:
        """Write the persona's memories into ``folder``."""
        folder = Path(folder)
        self.a_mem.save(folder / ASSOCIATIVE_DIR)
        self.s_mem.save(folder / SPATIAL_FILE)
        self.scratch.save(folder / SCRATCH_FILE)

    @classmethod
    def load(
        cls,
        folder: Union[Path, str],
        *,
        oracle: Optional[Oracle] = None,
        embedder: Optional[Embedder] = None,
        prompt_library: Optional[PromptLibrary] = None,
    ) -> "Persona":
        folder = Path(folder)
        scratch = Scratch.load(folder / SCRATCH_FILE)
        return cls(
            scratch.name,
            scratch,
            AssociativeMemory.load(folder / ASSOCIATIVE_DIR),
            SpatialMemory.load(folder / SPATIAL_FILE),
            oracle=oracle,
            embedder=embedder,
            prompt_library=prompt_library,
        )


__all__ = ["Persona"]
