"""PGN grammar parser: tag pairs + movetext with nested variations.

``parse_game`` turns one PGN game into a ``ParsedGame`` whose ``moves`` is a
recursive move tree::

    1. e4 e5 (1... c5 2. Nf3) 2. Nf3

    [e4, e5 ─ variations: [[c5, Nf3]], Nf3]

A variation is attached to the move it replaces, so it branches from the
position *before* that move. The parser is strict: anything it does not
understand raises ``StructuredParseError`` so the importer can switch to its
permissive fallback scanner.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from repertoire_graph.errors import StructuredParseError
from repertoire_graph.pgn.annotations import MOVE_TOKEN_PATTERN

# Seven-tag roster prepended to movetext that comes without any tag pair.
REQUIRED_TAGS: dict[str, str] = {
    "Event": "Chess Analysis",
    "Site": "?",
    "Date": "????.??.??",
    "Round": "?",
    "White": "White",
    "Black": "Black",
    "Result": "*",
}

GLYPH_NAGS: dict[str, int] = {"!": 1, "?": 2, "!!": 3, "??": 4, "!?": 5, "?!": 6}

RESULT_TOKENS = ("1-0", "0-1", "1/2-1/2", "*")

_TAG_RE = re.compile(r'\[\s*(\w+)\s+"((?:[^"\\]|\\.)*)"\s*\]')
_HAS_TAG_RE = re.compile(r'\[\s*\w+\s+"[^"]*"\s*\]')

_TOKEN_RE = re.compile(
    rf"""
      (?P<space>\s+)
    | (?P<comment>\{{[^}}]*\}})
    | (?P<line_comment>;[^\n]*)
    | (?P<open>\()
    | (?P<close>\))
    | (?P<result>1-0|0-1|1/2-1/2|\*)
    | (?P<move>{MOVE_TOKEN_PATTERN}|0-0-0[+\#]?|0-0[+\#]?)(?P<suffix>[!?]{{1,2}})?(?![!?\w-])
    | (?P<number>\d+\.*|\.\.\.)
    | (?P<nag>\$\d+)
    | (?P<glyph>[!?]{{1,2}})(?![!?\w])
    """,
    re.VERBOSE,
)


@dataclass
class MoveTreeNode:
    """One move of the move tree.

    Attributes:
        notation:       SAN as written (castling with zeros is normalised to ``O``).
        comment:        Comment text following the move.
        comment_before: Comment text preceding the move (start of a line).
        nags:           Numeric annotation glyphs (``$1``, ``!`` → 1, ...).
        variations:     Alternative lines replacing this move.
    """

    notation: str
    comment: str = ""
    comment_before: str = ""
    nags: list[int] = field(default_factory=list)
    variations: list[list[MoveTreeNode]] = field(default_factory=list)


@dataclass
class ParsedGame:
    headers: dict[str, str]
    moves: list[MoveTreeNode]
    result: str = "*"


def has_tags(pgn_text: str) -> bool:
    return _HAS_TAG_RE.search(pgn_text) is not None


def ensure_required_tags(pgn_text: str) -> str:
    """Prepend the seven-tag roster when ``pgn_text`` has no tag pair at all."""
    if has_tags(pgn_text):
        return pgn_text
    roster = "\n".join(f'[{key} "{value}"]' for key, value in REQUIRED_TAGS.items())
    return f"{roster}\n\n{pgn_text}"


def _clean_comment(raw: str) -> str:
    return " ".join(raw.split())


def _join(first: str, second: str) -> str:
    return f"{first} {second}" if first else second


# ─── Tokenizer ────────────────────────────────────────────────────────────────


@dataclass
class Token:
    kind: str
    value: str
    position: int
    suffix: str = ""


def tokenize(movetext: str, offset: int = 0) -> Iterator[Token]:
    """Split movetext into tokens; whitespace is dropped.

    ``offset`` is added to reported positions so errors point into the full
    PGN text.
    """
    pos = 0
    total = len(movetext)
    while pos < total:
        match = _TOKEN_RE.match(movetext, pos)
        if match is None:
            snippet = movetext[pos : pos + 12]
            if movetext[pos] == "{":
                raise StructuredParseError("unterminated comment", offset + pos)
            raise StructuredParseError(f"unexpected text {snippet!r}", offset + pos)
        kind = match.lastgroup or ""
        if kind == "suffix":
            kind = "move"
        pos = match.end()
        if kind == "space":
            continue
        if kind == "move":
            value = match.group("move").replace("0", "O")
            yield Token("move", value, offset + match.start(), match.group("suffix") or "")
            continue
        yield Token(kind, match.group(kind), offset + match.start())


# ─── Parser ───────────────────────────────────────────────────────────────────


@dataclass
class _OpenLine:
    """A line still being read: the main line or an unclosed variation."""

    moves: list[MoveTreeNode]
    opened_at: int = 0
    leading_comment: str = ""


class _MovetextParser:
    """Parser over the token stream.

    Open variations are kept on an explicit stack, so nesting depth is not
    bounded by the interpreter recursion limit.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.index = 0
        self.result = "*"

    def parse(self) -> list[MoveTreeNode]:
        mainline: list[MoveTreeNode] = []
        stack: list[_OpenLine] = [_OpenLine(mainline)]

        while self.index < len(self.tokens):
            token = self.tokens[self.index]
            self.index += 1
            line = stack[-1]

            if token.kind == "close":
                if len(stack) == 1:
                    raise StructuredParseError("unbalanced ')'", token.position)
                stack.pop()
            elif token.kind in ("comment", "line_comment"):
                text = _clean_comment(token.value[1:-1] if token.kind == "comment" else token.value[1:])
                if not text:
                    continue
                if line.moves:
                    line.moves[-1].comment = _join(line.moves[-1].comment, text)
                else:
                    line.leading_comment = _join(line.leading_comment, text)
            elif token.kind == "open":
                if not line.moves:
                    raise StructuredParseError("variation without a preceding move", token.position)
                variation: list[MoveTreeNode] = []
                line.moves[-1].variations.append(variation)
                stack.append(_OpenLine(variation, opened_at=token.position))
            elif token.kind == "move":
                node = MoveTreeNode(notation=token.value, comment_before=line.leading_comment)
                if token.suffix:
                    node.nags.append(GLYPH_NAGS[token.suffix])
                line.leading_comment = ""
                line.moves.append(node)
            elif token.kind in ("glyph", "nag"):
                if not line.moves:
                    raise StructuredParseError(f"annotation {token.value!r} without a move", token.position)
                nag = GLYPH_NAGS[token.value] if token.kind == "glyph" else int(token.value[1:])
                line.moves[-1].nags.append(nag)
            elif token.kind == "result":
                if len(stack) > 1:
                    raise StructuredParseError("game result inside a variation", token.position)
                self.result = token.value
                break
            # Move numbers carry no information.

        if len(stack) > 1:
            raise StructuredParseError("unclosed variation", stack[-1].opened_at)
        if self.index < len(self.tokens):
            token = self.tokens[self.index]
            raise StructuredParseError(f"unexpected {token.value!r} after the game result", token.position)
        return mainline


def parse_tags(pgn_text: str) -> tuple[dict[str, str], int]:
    """Read the tag pair section; return the tags and the offset of the movetext."""
    headers: dict[str, str] = {}
    pos = 0
    total = len(pgn_text)
    while pos < total:
        if pgn_text[pos].isspace():
            pos += 1
            continue
        if pgn_text[pos] != "[":
            break
        match = _TAG_RE.match(pgn_text, pos)
        if match is None:
            raise StructuredParseError("malformed tag pair", pos)
        key, raw_value = match.groups()
        headers[key] = raw_value.replace('\\"', '"').replace("\\\\", "\\")
        pos = match.end()
    return headers, pos


def parse_game(pgn_text: str) -> ParsedGame:
    """Parse one PGN game (tag pairs required) into a ``ParsedGame``."""
    headers, offset = parse_tags(pgn_text)
    if not headers:
        raise StructuredParseError("missing tag pair section", 0)

    parser = _MovetextParser(list(tokenize(pgn_text[offset:], offset)))
    moves = parser.parse()

    result = parser.result
    if result == "*" and headers.get("Result") in RESULT_TOKENS:
        result = headers["Result"]
    return ParsedGame(headers=headers, moves=moves, result=result)
