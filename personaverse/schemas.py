"""
Pydantic schemas for the per-step exchange and simulation snapshots.

A step consumes one ``PersonaPosition`` per persona (where the front end says
each persona stands) and produces a ``MovementFrame`` (where each persona goes
next, what it shows and what it is saying). ``SimulationMeta`` is the resume
point written next to the per-persona memory folders.
"""

from datetime import datetime
from typing import Annotated, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, PlainSerializer


FRAME_TIME_FORMAT = "%B %d, %Y, %H:%M:%S"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Memory snapshots store times to the second as "YYYY-MM-DD HH:MM:SS".
Timestamp = Annotated[
    datetime,
    PlainSerializer(lambda value: value.strftime(TIMESTAMP_FORMAT), return_type=str, when_used="json"),
]


# ============================================================================
# Step exchange
# ============================================================================


class PersonaPosition(BaseModel):
    """Absolute tile position reported for a persona at the start of a step."""

    x: int = Field(..., ge=0, description="Tile column")
    y: int = Field(..., ge=0, description="Tile row")
    maze: Optional[str] = Field(None, description="Maze the persona is in, when the front end reports it")

    @property
    def tile(self) -> Tuple[int, int]:
        return (self.x, self.y)


class PersonaMovement(BaseModel):
    """What one persona does this step."""

    movement: Tuple[int, int] = Field(..., description="Next tile as (x, y)")
    pronunciatio: Optional[str] = Field(None, description="Emoji shorthand for the current action")
    description: str = Field(..., description="'<action> @ <address>'")
    chat: Optional[List[List[str]]] = Field(None, description="Current conversation as [speaker, utterance] rows")


class FrameMeta(BaseModel):
    curr_time: str = Field(..., description=f"Simulated time of the step ({FRAME_TIME_FORMAT})")


class MovementFrame(BaseModel):
    """Output of one simulation step, keyed by persona name."""

    persona: Dict[str, PersonaMovement] = Field(default_factory=dict)
    meta: FrameMeta


# ============================================================================
# Snapshots
# ============================================================================


class SimulationMeta(BaseModel):
    """Resume information for a saved simulation."""

    sim_code: str = Field(..., description="Name of this simulation's storage folder")
    fork_sim_code: Optional[str] = Field(None, description="Simulation this one was forked from")
    start_date: datetime = Field(..., description="Simulated start of the run")
    curr_time: datetime = Field(..., description="Simulated time of the next step")
    sec_per_step: int = Field(10, gt=0, description="Simulated seconds per step")
    maze_name: str = Field(..., description="World the personas live in")
    persona_names: List[str] = Field(default_factory=list)
    step: int = Field(0, ge=0, description="Number of steps already run")
    persona_tiles: Dict[str, Tuple[int, int]] = Field(
        default_factory=dict, description="Tile each persona stands on at the next step"
    )


__all__ = [
    "FRAME_TIME_FORMAT",
    "FrameMeta",
    "MovementFrame",
    "PersonaMovement",
    "PersonaPosition",
    "SimulationMeta",
    "TIMESTAMP_FORMAT",
    "Timestamp",
]
