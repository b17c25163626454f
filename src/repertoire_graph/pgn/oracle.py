"""Chess rules oracle: the position/move-legality capability the importer calls into.

The importer only relies on the ``PositionOracle`` protocol. ``ChessBoardOracle``
implements it on top of python-chess.
"""

from __future__ import annotations

from typing import Protocol

import chess

from repertoire_graph.errors import MoveApplicationError

STARTING_FEN = chess.STARTING_FEN


class PositionOracle(Protocol):
    """Protocol every chess position oracle must implement."""

    def fen(self) -> str:
        """Full FEN of the current position."""
        ...

    def position_key(self) -> str:
        """Canonical key used to detect transpositions."""
        ...

    def copy(self) -> PositionOracle:
        """Independent copy; playing on it leaves this oracle untouched."""
        ...

    def play(self, notation: str) -> str:
        """Play ``notation`` (SAN) and return the canonical SAN.

        Raises ``MoveApplicationError`` if the move is illegal, ambiguous or
        unreadable; the position is unchanged in that case.
        """
        ...

    def legal_moves(self) -> list[str]:
        """Legal moves of the current position in SAN."""
        ...


def fen_position_key(fen: str) -> str:
    """Strip the halfmove clock and fullmove number from a FEN.

    Two move orders reaching the same placement, side to move, castling
    rights and en-passant square share a key.
    """
    parts = fen.split()
    return " ".join(parts[:4]) if len(parts) >= 4 else fen


class ChessBoardOracle:
    """``PositionOracle`` backed by ``chess.Board``.

    Built from a FEN or from an existing board. A board is used as is, so
    the oracle then shares it with the caller.
    """

    def __init__(self, position: str | chess.Board = STARTING_FEN) -> None:
        self._board = position if isinstance(position, chess.Board) else chess.Board(position)

    def fen(self) -> str:
        return self._board.fen()

    def position_key(self) -> str:
        return fen_position_key(self._board.fen())

    def copy(self) -> ChessBoardOracle:
        return ChessBoardOracle(self._board.copy(stack=False))

    def play(self, notation: str) -> str:
        try:
            move = self._board.parse_san(notation)
        except ValueError as exc:
            # IllegalMoveError, InvalidMoveError and AmbiguousMoveError are all ValueErrors.
            raise MoveApplicationError(notation, self._board.fen(), str(exc)) from exc
        san = self._board.san(move)
        self._board.push(move)
        return san

    def legal_moves(self) -> list[str]:
        return [self._board.san(move) for move in self._board.legal_moves]


def uci_to_san(uci: str, fen: str) -> str:
    """Convert a UCI move (``e2e4``, ``e7e8q``) to SAN in the given position.

    Returns ``""`` when either argument is empty, and ``uci`` unchanged when
    the move cannot be read or played.
    """
    if not uci or not fen:
        return ""
    try:
        board = chess.Board(fen)
        move = chess.Move.from_uci(uci)
    except ValueError:
        return uci
    if move not in board.legal_moves:
        return uci
    return board.san(move)
