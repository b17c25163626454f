"""Graph data model: nodes (positions), connections (moves) and the graph.

A ``Graph`` is the unit every operation works on. It is treated as immutable
by the layout and import code: functions build new ``Node`` objects instead of
mutating the ones they receive.

The plain-data shape produced by ``Graph.to_dict`` is the persisted canvas
shape consumed by the editor::

    {
        "nodes": [{"id", "x", "y", "label", "description", "type",
                   "fenPosition"?, "arrows"?, "squares"?}],
        "connections": [{"id", "fromId", "toId"}],
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import networkx as nx

from repertoire_graph.errors import GraphIntegrityError

NodeId = int | str

DEFAULT_NODE_TYPE = "move"


# ─── Drawing Annotations ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Arrow:
    """A coloured arrow drawn on the board, e.g. ``e2`` → ``e4`` in green."""

    from_square: str
    to_square: str
    color: str

    def to_dict(self) -> dict[str, str]:
        return {"from": self.from_square, "to": self.to_square, "color": self.color}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Arrow:
        return cls(from_square=data["from"], to_square=data["to"], color=data.get("color", "red"))


@dataclass(frozen=True)
class SquareHighlight:
    """A coloured square highlight."""

    square: str
    color: str

    def to_dict(self) -> dict[str, str]:
        return {"square": self.square, "color": self.color}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SquareHighlight:
        return cls(square=data["square"], color=data.get("color", "red"))


# ─── Nodes & Connections ──────────────────────────────────────────────────────


@dataclass
class Node:
    """One chess position, reached by ``label`` from its parent.

    Root nodes (no incoming connection) represent either the position after a
    first move or an externally created starting position; their label may be
    empty.
    """

    id: NodeId
    x: float = 0.0
    y: float = 0.0
    label: str = ""
    description: str = ""
    type: str = DEFAULT_NODE_TYPE
    fen_position: str | None = None
    arrows: list[Arrow] = field(default_factory=list)
    squares: list[SquareHighlight] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "label": self.label,
            "description": self.description,
            "type": self.type,
        }
        if self.fen_position is not None:
            data["fenPosition"] = self.fen_position
        if self.arrows:
            data["arrows"] = [arrow.to_dict() for arrow in self.arrows]
        if self.squares:
            data["squares"] = [square.to_dict() for square in self.squares]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        return cls(
            id=data["id"],
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            label=data.get("label", ""),
            description=data.get("description", ""),
            type=data.get("type", DEFAULT_NODE_TYPE),
            fen_position=data.get("fenPosition"),
            arrows=[Arrow.from_dict(a) for a in data.get("arrows") or []],
            squares=[SquareHighlight.from_dict(s) for s in data.get("squares") or []],
        )


@dataclass(frozen=True)
class Connection:
    """Directed parent → child edge: "this move leads to this position"."""

    id: str
    from_id: NodeId
    to_id: NodeId

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "fromId": self.from_id, "toId": self.to_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Connection:
        return cls(id=data["id"], from_id=data["fromId"], to_id=data["toId"])


# ─── Graph ────────────────────────────────────────────────────────────────────


@dataclass
class Graph:
    """Ordered collection of nodes and connections.

    Node order is significant: layout strategies use it as their stable
    tie-break, so the same input order always yields the same coordinates.
    """

    nodes: list[Node] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)

    def node_map(self) -> dict[NodeId, Node]:
        return {node.id: node for node in self.nodes}

    def validate(self) -> None:
        """Check the structural invariants, raising ``GraphIntegrityError``.

        - node ids are unique
        - every connection endpoint is an existing node id
        - no connection is a self-loop
        """
        seen: set[NodeId] = set()
        for node in self.nodes:
            if node.id in seen:
                raise GraphIntegrityError(f"duplicate node id {node.id!r}")
            seen.add(node.id)

        for conn in self.connections:
            if conn.from_id not in seen:
                raise GraphIntegrityError(f"connection {conn.id!r} starts at unknown node {conn.from_id!r}")
            if conn.to_id not in seen:
                raise GraphIntegrityError(f"connection {conn.id!r} ends at unknown node {conn.to_id!r}")
            if conn.from_id == conn.to_id:
                raise GraphIntegrityError(f"connection {conn.id!r} is a self-loop on {conn.from_id!r}")

    def to_digraph(self) -> nx.DiGraph:
        """Validate and convert to a ``networkx.DiGraph``.

        Node attribute ``data`` holds the ``Node``. Parallel connections between
        the same pair collapse into one DiGraph edge; callers that care about
        multiplicity (the tree check) count ``connections`` directly.
        """
        self.validate()
        g: nx.DiGraph = nx.DiGraph()
        for node in self.nodes:
            g.add_node(node.id, data=node)
        for conn in self.connections:
            g.add_edge(conn.from_id, conn.to_id, id=conn.id)
        return g

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-serializable representation (camelCase keys)."""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "connections": [conn.to_dict() for conn in self.connections],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Graph:
        return cls(
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
            connections=[Connection.from_dict(c) for c in data.get("connections") or []],
        )
