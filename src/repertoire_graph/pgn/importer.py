"""PGN importer: PGN text → laid-out repertoire graph.

Pipeline:
  1. Annotation extraction ([%cal] / [%csl] → arrows / squares per move)
  2. Tag normalization (synthetic seven-tag roster when none is present)
  3. Structured parse (``movetext.parse_game``)
  4. Graph construction over the move tree, merging transpositions
  5. Layout (``layout.reorganize_layout``)

If the structured path fails (normally step 3 rejecting the text), the
permissive fallback scanner replays every move-looking token as one linear
line instead. ``import_pgn`` reports which path was taken together with the
diagnostics; ``parse_pgn`` only returns the graph and never raises.
"""

from __future__ import annotations

import itertools
import logging
import re
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from repertoire_graph.errors import MoveApplicationError, StructuredParseError
from repertoire_graph.graph import Connection, Graph, Node, NodeId
from repertoire_graph.layout import reorganize_layout
from repertoire_graph.pgn.annotations import MOVE_TOKEN_RE, AnnotationMap, extract_annotations
from repertoire_graph.pgn.movetext import MoveTreeNode, ensure_required_tags, parse_game
from repertoire_graph.pgn.oracle import ChessBoardOracle, PositionOracle

logger = logging.getLogger(__name__)

OracleFactory = Callable[[], PositionOracle]

_BRACKETED_RE = re.compile(r"\[[^\]]*\]")
_COMMENT_RE = re.compile(r"\{[^}]*\}?")


@dataclass(frozen=True)
class ParseDiagnostic:
    """One recovered problem met during import.

    ``kind`` is ``"move"`` for a move the oracle rejected, ``"structure"`` for
    a failure of the structured path that triggered the fallback,
    ``"fallback"`` for a failure inside the fallback itself.
    """

    kind: str
    message: str
    notation: str | None = None


@dataclass
class ImportResult:
    graph: Graph
    diagnostics: list[ParseDiagnostic] = field(default_factory=list)
    used_fallback: bool = False


def _timestamp_ids(start: int | None = None) -> Iterator[int]:
    """Increasing ids seeded from the current time in milliseconds."""
    return itertools.count(time.time_ns() // 1_000_000 if start is None else start)


# ─── Graph Construction ───────────────────────────────────────────────────────


@dataclass
class _LineCursor:
    """Replay state of one line: remaining moves, its oracle and last node."""

    moves: Iterator[MoveTreeNode]
    oracle: PositionOracle
    current_id: NodeId | None


class GraphBuilder:
    """Accumulates nodes and connections for one import.

    Owns the single id counter of the import, so node and connection ids
    never collide however deeply variations nest.
    """

    def __init__(
        self,
        annotations: AnnotationMap | None = None,
        id_start: int | None = None,
    ) -> None:
        self.annotations: AnnotationMap = annotations or {}
        self.nodes: list[Node] = []
        self.connections: list[Connection] = []
        self.diagnostics: list[ParseDiagnostic] = []
        self._ids = _timestamp_ids(id_start)
        self._node_by_key: dict[str, NodeId] = {}
        self._edges: set[tuple[NodeId, NodeId]] = set()

    def graph(self) -> Graph:
        return Graph(nodes=list(self.nodes), connections=list(self.connections))

    def connect(self, from_id: NodeId | None, to_id: NodeId) -> None:
        """Add ``from_id → to_id`` unless it exists, is a self-loop, or there is no parent."""
        if from_id is None or from_id == to_id or (from_id, to_id) in self._edges:
            return
        self._edges.add((from_id, to_id))
        self.connections.append(Connection(id=f"conn-{next(self._ids)}", from_id=from_id, to_id=to_id))

    def add_position(
        self,
        parent_id: NodeId | None,
        label: str,
        oracle: PositionOracle,
        description: str = "",
        merge: bool = True,
    ) -> NodeId:
        """Node for the oracle's current position, reached from ``parent_id`` by ``label``.

        With ``merge`` an existing node for the same position key is reused
        (transposition); otherwise a new node is always created.
        """
        key = oracle.position_key()
        if merge and key in self._node_by_key:
            node_id = self._node_by_key[key]
            self.connect(parent_id, node_id)
            return node_id

        annotation = self.annotations.get(label)
        node = Node(
            id=next(self._ids),
            label=label,
            description=description,
            fen_position=oracle.fen(),
            arrows=list(annotation.arrows) if annotation else [],
            squares=list(annotation.squares) if annotation else [],
        )
        self.nodes.append(node)
        self._node_by_key.setdefault(key, node.id)
        self.connect(parent_id, node.id)
        return node.id

    def add_line(self, moves: list[MoveTreeNode], oracle: PositionOracle, parent_id: NodeId | None) -> None:
        """Replay one line of the move tree from ``parent_id`` / ``oracle``.

        ``oracle`` belongs to this line: it is advanced in place, and every
        variation gets its own copy of the pre-move position. Variations are
        replayed depth first, before the rest of their line, from an explicit
        stack of open lines.
        """
        stack: list[_LineCursor] = [_LineCursor(iter(moves), oracle, parent_id)]

        while stack:
            cursor = stack[-1]
            move = next(cursor.moves, None)
            if move is None:
                stack.pop()
                continue

            before = cursor.oracle.copy()
            branch_from = cursor.current_id

            try:
                cursor.oracle.play(move.notation)
            except MoveApplicationError as exc:
                self.skip(move.notation, exc)
            else:
                description = move.comment or move.comment_before
                cursor.current_id = self.add_position(branch_from, move.notation, cursor.oracle, description)

            for variation in reversed(move.variations):
                stack.append(_LineCursor(iter(variation), before.copy(), branch_from))

    def skip(self, notation: str, exc: MoveApplicationError) -> None:
        logger.warning("skipping move %r: %s", notation, exc)
        self.diagnostics.append(ParseDiagnostic(kind="move", message=str(exc), notation=notation))


# ─── Structured Path ──────────────────────────────────────────────────────────


def _import_structured(
    pgn_text: str,
    oracle_factory: OracleFactory,
    id_start: int | None,
) -> tuple[Graph, list[ParseDiagnostic]]:
    """Full pipeline; raises ``StructuredParseError`` if the grammar rejects the text."""
    cleaned, annotations = extract_annotations(pgn_text)
    game = parse_game(ensure_required_tags(cleaned))
    logger.debug("parsed %d mainline moves, result %s", len(game.moves), game.result)

    builder = GraphBuilder(annotations, id_start)
    builder.add_line(game.moves, oracle_factory(), None)
    return reorganize_layout(builder.graph()), builder.diagnostics


# ─── Fallback Scanner ─────────────────────────────────────────────────────────


def scan_move_tokens(pgn_text: str) -> list[str]:
    """Every move-looking token outside brackets and ``{}`` comments, in order."""
    text = _BRACKETED_RE.sub(" ", pgn_text)
    text = _COMMENT_RE.sub(" ", text)
    return [match.group(0) for match in MOVE_TOKEN_RE.finditer(text)]


def _import_fallback(
    pgn_text: str,
    oracle_factory: OracleFactory,
    id_start: int | None,
) -> tuple[Graph, list[ParseDiagnostic]]:
    """Replay all scanned tokens as one linear line; illegal tokens are dropped.

    No variations and no transposition merge: every applied move gets its
    own node, labelled with the oracle's SAN.
    """
    builder = GraphBuilder(id_start=id_start)
    oracle = oracle_factory()
    last_id: NodeId | None = None

    for notation in scan_move_tokens(pgn_text):
        try:
            san = oracle.play(notation)
        except MoveApplicationError as exc:
            builder.skip(notation, exc)
            continue
        last_id = builder.add_position(last_id, san, oracle, merge=False)

    return reorganize_layout(builder.graph()), builder.diagnostics


# ─── Public API ───────────────────────────────────────────────────────────────


def import_pgn(
    pgn_text: str,
    oracle_factory: OracleFactory = ChessBoardOracle,
    id_start: int | None = None,
) -> ImportResult:
    """Import ``pgn_text``, falling back to the token scanner when the structured path fails.

    Grammar errors are expected and logged as warnings; any other error of
    the structured path is logged with its traceback. Both are reported as a
    ``"structure"`` diagnostic.

    Never raises. If even the fallback fails the result holds an empty graph
    and a ``"fallback"`` diagnostic.
    """
    try:
        graph, diagnostics = _import_structured(pgn_text, oracle_factory, id_start)
        return ImportResult(graph=graph, diagnostics=diagnostics)
    except StructuredParseError as exc:
        logger.warning("structured PGN parse failed (%s), using fallback scanner", exc)
        structure = ParseDiagnostic(kind="structure", message=str(exc))
    except Exception as exc:
        logger.exception("structured PGN import failed unexpectedly, using fallback scanner")
        structure = ParseDiagnostic(kind="structure", message=f"{type(exc).__name__}: {exc}")

    try:
        graph, diagnostics = _import_fallback(pgn_text, oracle_factory, id_start)
    except Exception as exc:
        logger.exception("fallback PGN scanner failed")
        diagnostics = [structure, ParseDiagnostic(kind="fallback", message=str(exc))]
        return ImportResult(graph=Graph(), diagnostics=diagnostics, used_fallback=True)

    return ImportResult(graph=graph, diagnostics=[structure, *diagnostics], used_fallback=True)


def parse_pgn(pgn_text: str) -> Graph:
    """PGN text → laid-out graph. Never raises; see ``import_pgn``."""
    return import_pgn(pgn_text).graph
