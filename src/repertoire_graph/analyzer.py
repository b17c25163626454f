"""Graph analyzer: classify a repertoire graph before layout.

The classification drives strategy selection in ``layout.reorganize_layout``:

  - tree          → hierarchical layout
  - cyclic graph  → force-directed layout
  - anything else → layered layout (DAG with transpositions)
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field

import networkx as nx

from repertoire_graph.graph import Graph, Node, NodeId

# Share of lowest in-degree nodes used as entry points when no root exists.
ENTRY_POINT_FRACTION: float = 0.1


@dataclass
class GraphClassification:
    """Derived, throw-away description of a graph's topology."""

    root_nodes: list[Node] = field(default_factory=list)
    entry_points: list[Node] = field(default_factory=list)
    is_tree: bool = False
    has_cycles: bool = False
    connected_components: list[list[NodeId]] = field(default_factory=list)


def analyze_graph(graph: Graph) -> GraphClassification:
    """Classify ``graph``. Raises ``GraphIntegrityError`` for malformed input."""
    digraph = graph.to_digraph()

    root_nodes = [node for node in graph.nodes if digraph.in_degree(node.id) == 0]
    entry_points = root_nodes if root_nodes else find_entry_points(graph, digraph)

    return GraphClassification(
        root_nodes=root_nodes,
        entry_points=entry_points,
        is_tree=check_if_tree(graph, digraph),
        has_cycles=detect_cycles(digraph),
        connected_components=find_connected_components(graph, digraph),
    )


def check_if_tree(graph: Graph, digraph: nx.DiGraph) -> bool:
    """True iff the graph has exactly n-1 connections and is connected.

    Parallel connections (same ``from_id``/``to_id`` twice) make the graph a
    non-tree even though the edge count alone could not tell.
    """
    if not graph.nodes:
        return False
    if len(graph.connections) != len(graph.nodes) - 1:
        return False

    pairs = Counter((conn.from_id, conn.to_id) for conn in graph.connections)
    if any(count > 1 for count in pairs.values()):
        return False

    # Undirected reachability walk from one node must cover every node.
    return nx.is_weakly_connected(digraph)


def detect_cycles(digraph: nx.DiGraph) -> bool:
    """True if any directed cycle exists.

    networkx checks acyclicity with an iterative topological sort, so deep
    graphs do not hit the interpreter recursion limit.
    """
    return not nx.is_directed_acyclic_graph(digraph)


def find_entry_points(graph: Graph, digraph: nx.DiGraph) -> list[Node]:
    """Lowest in-degree nodes, used as traversal starts when no root exists.

    Takes ``max(1, ceil(ENTRY_POINT_FRACTION * n))`` nodes. The sort is stable,
    so ties keep node order.
    """
    if not graph.nodes:
        return []
    ranked = sorted(graph.nodes, key=lambda node: digraph.in_degree(node.id))
    count = max(1, math.ceil(len(graph.nodes) * ENTRY_POINT_FRACTION))
    return ranked[:count]


def find_connected_components(graph: Graph, digraph: nx.DiGraph) -> list[list[NodeId]]:
    """Undirected connected components, ordered by first appearance in ``graph.nodes``."""
    order: dict[NodeId, int] = {node.id: i for i, node in enumerate(graph.nodes)}
    components = [sorted(comp, key=order.__getitem__) for comp in nx.weakly_connected_components(digraph)]
    components.sort(key=lambda comp: order[comp[0]])
    return components
