"""Navigation helpers over a repertoire graph.

Used by the editor to turn a selected node into a move history (board
preview, drill mode), to decide which line to follow from a position and to
export a line as PGN.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import chess.pgn
import networkx as nx

from repertoire_graph.errors import MoveApplicationError
from repertoire_graph.graph import Graph, Node, NodeId
from repertoire_graph.pgn.oracle import ChessBoardOracle, PositionOracle

logger = logging.getLogger(__name__)


def find_node_by_id(graph: Graph, node_id: NodeId | None) -> Node | None:
    if node_id is None:
        return None
    return graph.node_map().get(node_id)


def build_node_path(graph: Graph, target_id: NodeId) -> list[Node]:
    """Nodes from the root down to ``target_id``, both included.

    Each node is followed up through one parent: the ``from_id`` of the last
    connection that targets it. The walk stops after ``len(graph.nodes)``
    steps, so a cycle cannot trap it.
    """
    parent_of: dict[NodeId, NodeId] = {conn.to_id: conn.from_id for conn in graph.connections}
    by_id = graph.node_map()

    path: list[Node] = []
    current: NodeId | None = target_id
    for _step in range(len(graph.nodes)):
        if current is None:
            break
        node = by_id.get(current)
        if node is not None:
            path.append(node)
        current = parent_of.get(current)

    path.reverse()
    return path


def find_node_by_move_index(path: list[Node], move_index: int) -> Node | None:
    """Node matching a move-history index; ``-1`` is the first node of the path."""
    if move_index == -1 or not path:
        return path[0] if path else None
    node_index = move_index + 1
    return path[node_index] if node_index < len(path) else None


def find_best_child_node(graph: Graph, parent_id: NodeId | None) -> Node | None:
    """The child to follow from ``parent_id``.

    With a single child that child is returned; with several, the one with the
    highest id (the most recently created for timestamp ids).
    """
    if parent_id is None:
        return None

    by_id = graph.node_map()
    children = [by_id[c.to_id] for c in graph.connections if c.from_id == parent_id and c.to_id in by_id]
    if not children:
        return None
    if len(children) == 1:
        return children[0]
    return max(children, key=lambda node: node.id)


def is_node_connected(graph: Graph, start_id: NodeId, target_id: NodeId) -> bool:
    """True if ``target_id`` is reachable from ``start_id`` along connections."""
    if start_id == target_id:
        return True
    digraph = graph.to_digraph()
    if start_id not in digraph or target_id not in digraph:
        return False
    return nx.has_path(digraph, start_id, target_id)


def format_move_notation(san: str, index: int) -> str:
    """``"3. Nf3"`` for white's moves, bare SAN for black's (index is the ply, from 0)."""
    move_number = index // 2 + 1
    return f"{move_number}. {san}" if index % 2 == 0 else san


# ─── Move History ─────────────────────────────────────────────────────────────


def build_move_path(graph: Graph, target_id: NodeId) -> list[str]:
    """Move labels from the root down to ``target_id``; blank labels are skipped."""
    return [node.label for node in build_node_path(graph, target_id) if node.label.strip()]


def calculate_node_depth(graph: Graph, node_id: NodeId) -> int:
    """Parent steps from ``node_id`` up to its root, 0 for a root.

    Follows the same parent as ``build_node_path`` and gives up after
    ``len(graph.nodes)`` steps on a cycle.
    """
    parent_of: dict[NodeId, NodeId] = {conn.to_id: conn.from_id for conn in graph.connections}
    depth = 0
    current = node_id
    while current in parent_of and depth < len(graph.nodes):
        current = parent_of[current]
        depth += 1
    return depth


def get_node_color(graph: Graph, node_id: NodeId) -> str:
    """``"w"`` at even depths (roots included), ``"b"`` at odd ones."""
    return "w" if calculate_node_depth(graph, node_id) % 2 == 0 else "b"


def calculate_fen_position(
    graph: Graph,
    node_id: NodeId,
    oracle_factory: Callable[[], PositionOracle] = ChessBoardOracle,
) -> str:
    """FEN reached by replaying the moves from the root to ``node_id``.

    Replay stops at the first move the oracle rejects and the position
    reached so far is returned.
    """
    oracle = oracle_factory()
    for san in build_move_path(graph, node_id):
        try:
            oracle.play(san)
        except MoveApplicationError as exc:
            logger.warning("stopping replay at %r: %s", san, exc)
            break
    return oracle.fen()


def generate_pgn(move_path: list[str]) -> str:
    """Export a move path as PGN movetext, e.g. ``"1. e4 e5 2. Nf3 *"``.

    Moves are played from the starting position until the first illegal one.
    An empty path gives ``""``.
    """
    moves = [san for san in move_path if san and san.strip()]
    if not moves:
        return ""

    game = chess.pgn.Game()
    board = game.board()
    node: chess.pgn.GameNode = game
    for san in moves:
        try:
            move = board.parse_san(san)
        except ValueError as exc:
            logger.warning("stopping PGN export at %r: %s", san, exc)
            break
        node = node.add_variation(move)
        board.push(move)

    exporter = chess.pgn.StringExporter(headers=False, variations=False, comments=False)
    return game.accept(exporter)
