"""
Personaverse - generative persona agents in a 2-D tile world.

Each persona perceives nearby events, remembers them in an associative memory
stream, plans its day with a language model, reacts to other personas by
chatting or waiting, walks the map with a grid path finder and reflects on
what it has experienced.
"""

__version__ = "0.1.0"

from .config import Config
from .errors import (
    AddressNotFoundError,
    NoPathError,
    OracleError,
    OracleResponseError,
    OracleUnavailableError,
    StructuralError,
    TileOutOfBoundsError,
    VectorLengthMismatchError,
)
from .environment import Maze, TileEvent, WorldDefinition, load_world_definition, path_finder
from .memory import AssociativeMemory, ConceptNode, Scratch, SpatialMemory
from .oracle import Oracle
from .embeddings import OllamaEmbedder, OpenAIEmbedder, build_embedder
from .persona import Persona
from .persistence import PersonaStore, SimulationStore
from .orchestrator import Simulation
from .schemas import MovementFrame, PersonaMovement, PersonaPosition, SimulationMeta
from .cognition.converse import load_history_via_whisper

__all__ = [
    "__version__",
    "Config",
    "AddressNotFoundError",
    "NoPathError",
    "OracleError",
    "OracleResponseError",
    "OracleUnavailableError",
    "StructuralError",
    "TileOutOfBoundsError",
    "VectorLengthMismatchError",
    "Maze",
    "TileEvent",
    "WorldDefinition",
    "load_world_definition",
    "path_finder",
    "AssociativeMemory",
    "ConceptNode",
    "Scratch",
    "SpatialMemory",
    "Oracle",
    "OllamaEmbedder",
    "OpenAIEmbedder",
    "build_embedder",
    "Persona",
    "PersonaStore",
    "SimulationStore",
    "Simulation",
    "MovementFrame",
    "PersonaMovement",
    "PersonaPosition",
    "SimulationMeta",
    "load_history_via_whisper",
]
