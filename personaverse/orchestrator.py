"""
Simulation loop.

``Simulation`` owns the shared maze, the personas and the clock. Each step it
places personas (and the objects they use) on the maze, lets every persona run
its cognition in turn and collects where each one goes next. Personas run one
after another, never concurrently: a conversation rewrites both partners'
schedules and must be committed before the partner takes its own turn.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, List, Mapping, Optional, Tuple

from personaverse.config import Config
from personaverse.environment.maze import Coordinate, Maze, TileEvent
from personaverse.logging_utils import log_info, log_success
from personaverse.persistence import SimulationStore
from personaverse.persona import Persona
from personaverse.schemas import (
    FRAME_TIME_FORMAT,
    FrameMeta,
    MovementFrame,
    PersonaMovement,
    PersonaPosition,
    SimulationMeta,
)


class Simulation:
    """A running world of personas.

    Args:
        maze: Shared tile world.
        personas: Personas keyed by name.
        persona_tiles: Starting tile of each persona.
        start_time: Simulated time of the first step.
        sec_per_step: Simulated seconds per step (``Config.SEC_PER_STEP`` by default).
        sim_code: Storage folder name used by ``save``.
        store: Optional store; when set, ``run`` saves frames and a final snapshot.
    """

    def __init__(
        self,
        maze: Maze,
        personas: Mapping[str, Persona],
        persona_tiles: Mapping[str, Coordinate],
        start_time: dt.datetime,
        *,
        sec_per_step: Optional[int] = None,
        sim_code: str = "simulation",
        fork_sim_code: Optional[str] = None,
        step: int = 0,
        curr_time: Optional[dt.datetime] = None,
        store: Optional[SimulationStore] = None,
    ):
        self.maze = maze
        self.personas: Dict[str, Persona] = dict(personas)
        self.personas_tile: Dict[str, Coordinate] = {name: tuple(tile) for name, tile in persona_tiles.items()}
        self.start_time = start_time
        self.curr_time = curr_time or start_time
        self.sec_per_step = sec_per_step or Config.SEC_PER_STEP
        self.sim_code = sim_code
        self.fork_sim_code = fork_sim_code
        self.step_count = step
        self.store = store

        # Object events activated last step; they go back to idle before the next one.
        self._game_obj_cleanup: Dict[TileEvent, Coordinate] = {}
        # Where each persona said it would go; used when no positions are supplied.
        self._next_tiles: Dict[str, Coordinate] = dict(self.personas_tile)

        for name, persona in self.personas.items():
            event = TileEvent.from_tuple(persona.scratch.get_curr_event_and_desc())
            self.maze.add_event_from_tile(event, self.personas_tile[name])

    # ========================================================================
    # Stepping
    # ========================================================================

    def _place_personas(self, positions: Mapping[str, Coordinate]) -> None:
        for event, tile in self._game_obj_cleanup.items():
            self.maze.turn_event_from_tile_idle(event, tile)
        self._game_obj_cleanup = {}

        for name, persona in self.personas.items():
            curr_tile = self.personas_tile[name]
            new_tile = tuple(positions.get(name, curr_tile))
            self.personas_tile[name] = new_tile

            self.maze.remove_subject_events_from_tile(persona.name, curr_tile)
            self.maze.add_event_from_tile(
                TileEvent.from_tuple(persona.scratch.get_curr_event_and_desc()), new_tile
            )

            # Arrived: the object being used shows the persona's effect on it.
            if not persona.scratch.planned_path:
                obj_event = TileEvent.from_tuple(persona.scratch.get_curr_obj_event_and_desc())
                if obj_event.subject:
                    self._game_obj_cleanup[obj_event] = new_tile
                    self.maze.add_event_from_tile(obj_event, new_tile)
                    self.maze.remove_event_from_tile(TileEvent.blank(obj_event.subject), new_tile)

    async def step(
        self, positions: Optional[Mapping[str, PersonaPosition | Coordinate]] = None
    ) -> MovementFrame:
        """Advance the world by one step.

        ``positions`` are the tiles the front end reports for each persona;
        when omitted each persona is where it said it would go last step.
        """
        if positions is None:
            tiles = dict(self._next_tiles)
        else:
            tiles = {
                name: (pos.tile if isinstance(pos, PersonaPosition) else tuple(pos))
                for name, pos in positions.items()
            }
        self._place_personas(tiles)

        frame = MovementFrame(meta=FrameMeta(curr_time=self.curr_time.strftime(FRAME_TIME_FORMAT)))
        for name, persona in self.personas.items():
            next_tile, pronunciatio, description = await persona.move(
                self.maze, self.personas, self.personas_tile[name], self.curr_time
            )
            self._next_tiles[name] = tuple(next_tile)
            frame.persona[name] = PersonaMovement(
                movement=tuple(next_tile),
                pronunciatio=pronunciatio,
                description=description,
                chat=persona.scratch.chat,
            )

        log_info(f"Step {self.step_count} @ {frame.meta.curr_time}")
        self.step_count += 1
        self.curr_time += dt.timedelta(seconds=self.sec_per_step)
        return frame

    async def run(self, num_steps: int) -> List[MovementFrame]:
        """Run ``num_steps`` steps; with a store, frames and a final snapshot are saved."""
        if self.store:
            await self.store.initialize()

        frames: List[MovementFrame] = []
        for _ in range(num_steps):
            positions = None
            if self.store:
                positions = await self.store.load_environment(self.step_count)
            step = self.step_count
            frame = await self.step(positions)
            frames.append(frame)
            if self.store:
                await self.store.save_movement(step, frame)

        if self.store:
            await self.save()
        log_success(f"Ran {num_steps} step(s); now at {self.curr_time.strftime(FRAME_TIME_FORMAT)}")
        return frames

    # ========================================================================
    # Snapshots
    # ========================================================================

    def meta(self) -> SimulationMeta:
        return SimulationMeta(
            sim_code=self.sim_code,
            fork_sim_code=self.fork_sim_code,
            start_date=self.start_time,
            curr_time=self.curr_time,
            sec_per_step=self.sec_per_step,
            maze_name=self.maze.maze_name,
            persona_names=list(self.personas),
            step=self.step_count,
            persona_tiles=dict(self._next_tiles),
        )

    async def save(self, store: Optional[SimulationStore] = None) -> SimulationStore:
        store = store or self.store or SimulationStore(self.sim_code)
        await store.save_meta(self.meta())
        for persona in self.personas.values():
            await store.personas.save_persona(persona)
        return store

    @classmethod
    async def load(
        cls,
        maze: Maze,
        store: SimulationStore,
        **persona_kwargs,
    ) -> "Simulation":
        """Resume a saved simulation; ``persona_kwargs`` go to ``PersonaStore.load_persona``."""
        meta = await store.load_meta()
        personas: Dict[str, Persona] = {}
        for name in meta.persona_names:
            personas[name] = await store.personas.load_persona(name, **persona_kwargs)
        tiles: Dict[str, Tuple[int, int]] = {
            name: tuple(meta.persona_tiles.get(name) or personas[name].scratch.curr_tile)
            for name in meta.persona_names
        }
        return cls(
            maze,
            personas,
            tiles,
            meta.start_date,
            sec_per_step=meta.sec_per_step,
            sim_code=meta.sim_code,
            fork_sim_code=meta.fork_sim_code,
            step=meta.step,
            curr_time=meta.curr_time,
            store=store,
        )


__all__ = ["Simulation"]
