"""Layout and PGN import engine for chess opening repertoire graphs."""

from repertoire_graph.analyzer import GraphClassification, analyze_graph
from repertoire_graph.errors import (
    GraphIntegrityError,
    MoveApplicationError,
    RepertoireGraphError,
    StructuredParseError,
)
from repertoire_graph.graph import Arrow, Connection, Graph, Node, SquareHighlight
from repertoire_graph.layout import normalize_positions, reorganize_layout
from repertoire_graph.pgn import import_pgn, parse_pgn

__all__ = [
    "Arrow",
    "Connection",
    "Graph",
    "GraphClassification",
    "GraphIntegrityError",
    "MoveApplicationError",
    "Node",
    "RepertoireGraphError",
    "SquareHighlight",
    "StructuredParseError",
    "analyze_graph",
    "import_pgn",
    "normalize_positions",
    "parse_pgn",
    "reorganize_layout",
]
