"""PGN import: annotations, grammar parser, chess rules oracle and graph builder."""

from repertoire_graph.pgn.annotations import Annotation, AnnotationMap, extract_annotations
from repertoire_graph.pgn.importer import ImportResult, ParseDiagnostic, import_pgn, parse_pgn
from repertoire_graph.pgn.movetext import MoveTreeNode, ParsedGame, ensure_required_tags, parse_game
from repertoire_graph.pgn.oracle import ChessBoardOracle, PositionOracle, uci_to_san

__all__ = [
    "Annotation",
    "AnnotationMap",
    "ChessBoardOracle",
    "ImportResult",
    "MoveTreeNode",
    "ParseDiagnostic",
    "ParsedGame",
    "PositionOracle",
    "ensure_required_tags",
    "extract_annotations",
    "import_pgn",
    "parse_game",
    "parse_pgn",
    "uci_to_san",
]
