"""Error taxonomy for graph analysis, layout and PGN import."""

from __future__ import annotations


class RepertoireGraphError(Exception):
    """Base class for every error raised by this package."""


class GraphIntegrityError(RepertoireGraphError, ValueError):
    """A graph violates its structural invariants.

    Raised for a connection whose endpoint is not a known node id, duplicate
    node ids, and self-loops. Never auto-repaired.
    """


class MoveApplicationError(RepertoireGraphError):
    """A single move could not be applied to a position."""

    def __init__(self, notation: str, fen: str, reason: str = "") -> None:
        self.notation = notation
        self.fen = fen
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"cannot play {notation!r} in {fen}{detail}")


class StructuredParseError(RepertoireGraphError):
    """The PGN grammar parser rejected its input."""

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        where = f" at offset {position}" if position is not None else ""
        super().__init__(f"{message}{where}")
