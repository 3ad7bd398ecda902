"""Exception hierarchy for personaverse.

Two families live here. ``StructuralError`` subclasses signal a planning or
world-data bug and are always fatal. ``OracleError`` subclasses describe a
single failed language-model attempt; the oracle retries them and finally
answers with the caller's fail-safe value, so they never escape ``Oracle.query``.
"""

from __future__ import annotations


class StructuralError(Exception):
    """Base class for inconsistencies between plans and world data."""


class AddressNotFoundError(StructuralError, KeyError):
    """An action address was never registered in the maze address index."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Address {address!r} not found in maze address index")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class TileOutOfBoundsError(StructuralError, IndexError):
    """A tile coordinate falls outside the maze grid."""

    def __init__(self, coordinate: tuple[int, int], width: int, height: int):
        self.coordinate = coordinate
        super().__init__(
            f"Tile coordinate out of bounds: {coordinate} (maze is {width}x{height})"
        )


class VectorLengthMismatchError(StructuralError, ValueError):
    """Two embedding vectors of different length were compared."""


class NoPathError(StructuralError):
    """The path finder could not connect start and end within its round cap."""

    def __init__(self, start: tuple[int, int], end: tuple[int, int], rounds: int):
        self.start = start
        self.end = end
        self.rounds = rounds
        super().__init__(f"No path from {start} to {end} after {rounds} expansion rounds")


class OracleError(Exception):
    """Base class for a single failed oracle attempt."""


class OracleResponseError(OracleError):
    """The model answered, but the answer could not be parsed or validated."""


class OracleUnavailableError(OracleError):
    """The model could not be reached (provider error, timeout, local server down)."""


__all__ = [
    "StructuralError",
    "AddressNotFoundError",
    "TileOutOfBoundsError",
    "VectorLengthMismatchError",
    "NoPathError",
    "OracleError",
    "OracleResponseError",
    "OracleUnavailableError",
]
