"""Drawing directives embedded in PGN comments: ``[%cal ...]`` and ``[%csl ...]``.

``[%cal Ge2e4,Rd7d5]`` draws arrows, ``[%csl Yd4,Be5]`` highlights squares.
Each directive is filed under the move that precedes it in the text, keyed
by that move's notation as written. Every ``[%...]`` directive is stripped
from the text before structured parsing (``[%evp]``, ``[%clk]`` and friends
are not supported and silently dropped).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from repertoire_graph.graph import Arrow, SquareHighlight

# Standard algebraic move token: piece, disambiguation, capture, destination,
# promotion, check/mate suffix; or castling.
MOVE_TOKEN_PATTERN = r"(?:[KQRBNP]?[a-h]?[1-8]?x?[a-h][1-8](?:=[QRBN])?[+#]?|O-O-O[+#]?|O-O[+#]?)"
MOVE_TOKEN_RE = re.compile(rf"(?<![\w-]){MOVE_TOKEN_PATTERN}(?![\w-])")

_CAL_RE = re.compile(r"\[%cal\s+([^\]]+)\]")
_CSL_RE = re.compile(r"\[%csl\s+([^\]]+)\]")
_DIRECTIVE_RE = re.compile(r"\[%[^\]]*\]")
_COMMENT_RE = re.compile(r"\{[^}]*\}")
_EMPTY_COMMENT_RE = re.compile(r"\{\s*\}")

COLOR_CODES: dict[str, str] = {
    "R": "red",
    "G": "green",
    "B": "blue",
    "Y": "yellow",
    "C": "cyan",
}
DEFAULT_COLOR = "red"


@dataclass
class Annotation:
    """Arrows and highlighted squares attached to one move."""

    arrows: list[Arrow] = field(default_factory=list)
    squares: list[SquareHighlight] = field(default_factory=list)


AnnotationMap = dict[str, Annotation]


def map_color_code(code: str) -> str:
    """``"G"`` → ``"green"``; unknown codes fall back to red."""
    return COLOR_CODES.get(code.upper(), DEFAULT_COLOR)


def parse_arrows(data: str) -> list[Arrow]:
    """Decode the body of a ``[%cal]`` directive (``Ge2e4,Rd7d5``)."""
    arrows: list[Arrow] = []
    for item in data.split(","):
        item = item.strip()
        if len(item) < 5:
            continue
        arrows.append(Arrow(from_square=item[1:3], to_square=item[3:5], color=map_color_code(item[0])))
    return arrows


def parse_squares(data: str) -> list[SquareHighlight]:
    """Decode the body of a ``[%csl]`` directive (``Yd4,Be5``)."""
    squares: list[SquareHighlight] = []
    for item in data.split(","):
        item = item.strip()
        if len(item) < 3:
            continue
        squares.append(SquareHighlight(square=item[1:3], color=map_color_code(item[0])))
    return squares


def _blank(match: re.Match[str]) -> str:
    return " " * len(match.group(0))


def find_move_before(text: str, position: int) -> str | None:
    """Last move token in ``text[:position]``, or None."""
    last: str | None = None
    for match in MOVE_TOKEN_RE.finditer(text, 0, position):
        last = match.group(0)
    return last


def extract_annotations(pgn_text: str) -> tuple[str, AnnotationMap]:
    """Collect arrow/square directives and strip every ``[%...]`` directive.

    Returns the cleaned text and the notation → ``Annotation`` map. Comments
    that held nothing but directives are removed too.
    """
    annotations: AnnotationMap = {}
    # Same offsets as pgn_text, with comment and directive bodies blanked out
    # so square pairs like ``Rd7d5`` are never mistaken for moves.
    masked = _COMMENT_RE.sub(_blank, _DIRECTIVE_RE.sub(_blank, pgn_text))

    for match in _CAL_RE.finditer(pgn_text):
        move = find_move_before(masked, match.start())
        if move is not None:
            annotations.setdefault(move, Annotation()).arrows.extend(parse_arrows(match.group(1)))

    for match in _CSL_RE.finditer(pgn_text):
        move = find_move_before(masked, match.start())
        if move is not None:
            annotations.setdefault(move, Annotation()).squares.extend(parse_squares(match.group(1)))

    cleaned = _DIRECTIVE_RE.sub(" ", pgn_text)
    cleaned = _EMPTY_COMMENT_RE.sub(" ", cleaned)
    return cleaned, annotations
