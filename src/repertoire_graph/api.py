"""Plain-data entry points for the editor's canvas documents.

The canvas document is the persisted JSON shape (see ``graph``) plus any
extra keys the editor keeps alongside (for example ``annotations``). These
functions take and return plain dicts so callers never touch the dataclasses.
"""

from __future__ import annotations

from typing import Any

from repertoire_graph.graph import Graph
from repertoire_graph.layout import reorganize_layout
from repertoire_graph.pgn.importer import parse_pgn


def reorganize_canvas(data: dict[str, Any]) -> dict[str, Any]:
    """Lay out a canvas document, keeping every key other than ``nodes``.

    Documents without ``nodes`` or ``connections`` are returned unchanged.
    """
    if not data or data.get("nodes") is None or data.get("connections") is None:
        return data

    graph = reorganize_layout(Graph.from_dict(data))
    return {**data, "nodes": graph.to_dict()["nodes"]}


def import_pgn_canvas(pgn_text: str) -> dict[str, Any]:
    """Import PGN text as a new canvas document."""
    return {**parse_pgn(pgn_text).to_dict(), "annotations": []}
