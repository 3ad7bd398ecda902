"""Per-persona memory structures."""

from .associative import AssociativeMemory, ConceptNode
from .scratch import MINUTES_PER_DAY, Scratch, pad_schedule, schedule_minutes
from .spatial import SpatialMemory

__all__ = [
    "AssociativeMemory",
    "ConceptNode",
    "MINUTES_PER_DAY",
    "Scratch",
    "SpatialMemory",
    "pad_schedule",
    "schedule_minutes",
]
