"""Layout module — repertoire canvas layout pipeline.

Strategies (picked from the graph classification):
  1. Hierarchical    — trees: BFS depth + parent/child centring
  2. Layered         — DAGs: longest-path levels + barycenter ordering
  3. Force-directed  — cyclic graphs: repulsion/spring simulation seeded
                       from the current coordinates

Every strategy returns fresh ``Node`` objects; ``normalize_positions`` then
centres the drawing on the origin. ``reorganize_layout`` runs the whole
pipeline.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, replace

import networkx as nx

from repertoire_graph.analyzer import analyze_graph
from repertoire_graph.graph import Graph, Node, NodeId

logger = logging.getLogger(__name__)

# ─── Geometry constants ───────────────────────────────────────────────────────

LEVEL_HEIGHT: float = 100.0  # vertical distance between depths / levels

HIERARCHICAL_NODE_WIDTH: float = 80.0
HIERARCHICAL_MIN_DISTANCE: float = 100.0
HIERARCHICAL_PASSES: int = 3

LAYERED_NODE_WIDTH: float = 100.0
LAYERED_MIN_DISTANCE: float = 80.0
LAYERED_PASSES: int = 2

REPULSION: float = 500.0
MAX_REPULSION: float = 10.0
ATTRACTION: float = 0.1
FORCE_ITERATIONS: int = 100
DAMPING: float = 0.9
MAX_VELOCITY: float = 5.0


# ─── Shared helpers ───────────────────────────────────────────────────────────


def spread_positions(count: int, spacing: float) -> list[float]:
    """x slots for ``count`` nodes ``spacing`` apart, centred on x=0."""
    start = -(count - 1) * spacing / 2
    return [start + i * spacing for i in range(count)]


def group_by_level(nodes: list[Node], levels: dict[NodeId, int]) -> dict[int, list[NodeId]]:
    """Group node ids by level, ascending level order, node order inside a level.

    Nodes without a level (unreachable from the traversal start) are left out.
    """
    grouped: dict[int, list[NodeId]] = {}
    for node in nodes:
        if node.id in levels:
            grouped.setdefault(levels[node.id], []).append(node.id)
    return dict(sorted(grouped.items()))


def resolve_overlaps(level_ids: list[NodeId], xs: dict[NodeId, float], min_distance: float) -> None:
    """Push same-level nodes apart so neighbours are at least ``min_distance`` apart.

    Nodes are visited left to right (stable on ``level_ids`` order for ties);
    whenever a node is too close to its left neighbour it is moved right to
    exactly ``min_distance`` from it.
    """
    ordered = sorted(level_ids, key=xs.__getitem__)
    for prev_id, curr_id in zip(ordered, ordered[1:]):
        if xs[curr_id] - xs[prev_id] < min_distance:
            xs[curr_id] = xs[prev_id] + min_distance


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def _moved(node: Node, x: float, y: float) -> Node:
    return replace(node, x=x, y=y, arrows=list(node.arrows), squares=list(node.squares))


def _apply_positions(nodes: list[Node], xs: dict[NodeId, float], ys: dict[NodeId, float]) -> list[Node]:
    """Copy ``nodes`` with new coordinates; nodes without a position keep theirs."""
    return [_moved(n, xs[n.id], ys[n.id]) if n.id in xs else _moved(n, n.x, n.y) for n in nodes]


# ─── Hierarchical Layout (trees) ──────────────────────────────────────────────


def assign_depths(digraph: nx.DiGraph, root_ids: list[NodeId]) -> dict[NodeId, int]:
    """BFS depth from the roots; the first visit of a node fixes its depth."""
    depths: dict[NodeId, int] = {}
    queue: deque[tuple[NodeId, int]] = deque((root_id, 0) for root_id in root_ids)

    while queue:
        node_id, depth = queue.popleft()
        if node_id in depths:
            continue
        depths[node_id] = depth
        for child_id in digraph.successors(node_id):
            if child_id not in depths:
                queue.append((child_id, depth + 1))

    return depths


def hierarchical_layout(graph: Graph, root_ids: list[NodeId]) -> list[Node]:
    """Top-down tree layout.

    Each depth is a row ``LEVEL_HEIGHT`` apart. Rows start evenly spread
    around x=0, then ``HIERARCHICAL_PASSES`` refinement passes pull every node
    toward the centre of its children (0.5/0.5) and toward the centre of its
    parents (0.8 own / 0.2 parents). Same-row overlaps are resolved after each
    pass.
    """
    digraph = graph.to_digraph()
    depths = assign_depths(digraph, root_ids)
    levels = group_by_level(graph.nodes, depths)

    xs: dict[NodeId, float] = {}
    ys: dict[NodeId, float] = {}
    for level, level_ids in levels.items():
        for node_id, x in zip(level_ids, spread_positions(len(level_ids), HIERARCHICAL_NODE_WIDTH)):
            xs[node_id] = x
            ys[node_id] = level * LEVEL_HEIGHT

    for _pass in range(HIERARCHICAL_PASSES):
        for node in graph.nodes:
            node_id = node.id
            if node_id not in xs:
                continue

            children = [c for c in digraph.successors(node_id) if c in xs]
            if children:
                xs[node_id] = xs[node_id] * 0.5 + _mean([xs[c] for c in children]) * 0.5

            parents = [p for p in digraph.predecessors(node_id) if p in xs]
            if parents and depths[node_id] > 0:
                xs[node_id] = xs[node_id] * 0.8 + _mean([xs[p] for p in parents]) * 0.2

        for level_ids in levels.values():
            resolve_overlaps(level_ids, xs, HIERARCHICAL_MIN_DISTANCE)

    return _apply_positions(graph.nodes, xs, ys)


# ─── Layered Layout (DAGs) ────────────────────────────────────────────────────


class LevelAssignment:
    """Result of level assignment: each node is assigned a level (row).

    Level 0 holds the entry points. A node with several parents sits one
    level below its deepest parent, so no child is drawn above an ancestor.

    Attributes:
        levels: Maps node id → level index.
        level_count: Total number of levels.
    """

    def __init__(self, levels: dict[NodeId, int], level_count: int) -> None:
        self.levels = levels
        self.level_count = level_count

    @classmethod
    def assign(cls, graph: Graph, digraph: nx.DiGraph, entry_ids: list[NodeId]) -> LevelAssignment:
        """BFS from the entry points, relaxing ``level[child] = max(level[parent] + 1)``.

        A node is re-queued whenever its level grows. Levels are capped at the
        node count so a cycle reachable from the entries cannot loop forever.
        Nodes never reached get level 0.
        """
        node_count = len(graph.nodes)
        levels: dict[NodeId, int] = {entry_id: 0 for entry_id in entry_ids}
        queue: deque[NodeId] = deque(entry_ids)

        while queue:
            node_id = queue.popleft()
            new_level = levels[node_id] + 1
            if new_level >= node_count:
                continue
            for child_id in digraph.successors(node_id):
                if child_id not in levels or new_level > levels[child_id]:
                    levels[child_id] = new_level
                    queue.append(child_id)

        for node in graph.nodes:
            levels.setdefault(node.id, 0)

        level_count = (max(levels.values()) + 1) if levels else 0
        return cls(levels=levels, level_count=level_count)


def _parent_barycenter(node_id: NodeId, digraph: nx.DiGraph, prev_index: dict[NodeId, int]) -> float:
    """Average slot of a node's parents in the previous level.

    A parent outside the previous level counts as slot 0; a node without
    parents gets 0.0, so the stable sort keeps its original order.
    """
    parents = list(digraph.predecessors(node_id))
    if not parents:
        return 0.0
    return sum(prev_index.get(p, 0) for p in parents) / len(parents)


def order_levels(levels: dict[int, list[NodeId]], digraph: nx.DiGraph) -> dict[int, list[NodeId]]:
    """Sort every level by parent barycenter, top level first."""
    ordered: dict[int, list[NodeId]] = {}
    for level, level_ids in levels.items():
        prev_index = {nid: i for i, nid in enumerate(ordered.get(level - 1, []))}
        ordered[level] = sorted(level_ids, key=lambda nid, p=prev_index: _parent_barycenter(nid, digraph, p))
    return ordered


def layered_layout(graph: Graph, entry_ids: list[NodeId]) -> list[Node]:
    """Level-based layout for DAGs with transpositions.

    Slots are ``LAYERED_NODE_WIDTH`` apart and centred on x=0. Two refinement
    passes pull each node toward its parents (0.5/0.5) then its children
    (0.7/0.3); same-level overlaps are resolved after each pass.
    """
    digraph = graph.to_digraph()
    la = LevelAssignment.assign(graph, digraph, entry_ids)
    levels = order_levels(group_by_level(graph.nodes, la.levels), digraph)

    xs: dict[NodeId, float] = {}
    ys: dict[NodeId, float] = {}
    for level, level_ids in levels.items():
        for node_id, x in zip(level_ids, spread_positions(len(level_ids), LAYERED_NODE_WIDTH)):
            xs[node_id] = x
            ys[node_id] = level * LEVEL_HEIGHT

    for _pass in range(LAYERED_PASSES):
        for node in graph.nodes:
            node_id = node.id

            parents = list(digraph.predecessors(node_id))
            if parents:
                xs[node_id] = 0.5 * xs[node_id] + 0.5 * _mean([xs[p] for p in parents])

            children = list(digraph.successors(node_id))
            if children:
                xs[node_id] = 0.7 * xs[node_id] + 0.3 * _mean([xs[c] for c in children])

        for level_ids in levels.values():
            resolve_overlaps(level_ids, xs, LAYERED_MIN_DISTANCE)

    return _apply_positions(graph.nodes, xs, ys)


# ─── Force-Directed Layout (cyclic graphs) ────────────────────────────────────


@dataclass
class _Particle:
    """Simulation state for one node; never leaves this module.

    ``fx``/``fy`` would pin a node in place. Nothing sets them yet.
    """

    id: NodeId
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    fx: float | None = None
    fy: float | None = None


def force_directed_layout(graph: Graph) -> list[Node]:
    """Spring/repulsion simulation for graphs with cycles.

    Starts from the current coordinates (no randomness), so identical input
    positions always produce identical output positions.
    """
    graph.validate()
    particles = [_Particle(id=n.id, x=n.x, y=n.y) for n in graph.nodes]
    by_id: dict[NodeId, _Particle] = {p.id: p for p in particles}

    for _iteration in range(FORCE_ITERATIONS):
        # Repulsion between every pair.
        for i, a in enumerate(particles):
            for b in particles[i + 1 :]:
                dx = b.x - a.x
                dy = b.y - a.y
                distance = math.hypot(dx, dy) or 1.0
                force = min(REPULSION / (distance * distance), MAX_REPULSION)
                fx = dx / distance * force
                fy = dy / distance * force
                a.vx -= fx
                a.vy -= fy
                b.vx += fx
                b.vy += fy

        # Attraction along every connection.
        for conn in graph.connections:
            source = by_id[conn.from_id]
            target = by_id[conn.to_id]
            dx = target.x - source.x
            dy = target.y - source.y
            distance = math.hypot(dx, dy) or 1.0
            force = distance * ATTRACTION
            fx = dx / distance * force
            fy = dy / distance * force
            source.vx += fx
            source.vy += fy
            target.vx -= fx
            target.vy -= fy

        for p in particles:
            if p.fx is not None or p.fy is not None:
                continue
            p.vx = max(-MAX_VELOCITY, min(MAX_VELOCITY, p.vx * DAMPING))
            p.vy = max(-MAX_VELOCITY, min(MAX_VELOCITY, p.vy * DAMPING))
            p.x += p.vx
            p.y += p.vy

    return [_moved(node, by_id[node.id].x, by_id[node.id].y) for node in graph.nodes]


# ─── Normalization ────────────────────────────────────────────────────────────


def normalize_positions(nodes: list[Node]) -> list[Node]:
    """Centre the bounding box of ``nodes`` on the origin."""
    if not nodes:
        return nodes

    min_x = min(n.x for n in nodes)
    max_x = max(n.x for n in nodes)
    min_y = min(n.y for n in nodes)
    max_y = max(n.y for n in nodes)
    center_x = (min_x + max_x) / 2
    center_y = (min_y + max_y) / 2

    return [_moved(n, n.x - center_x, n.y - center_y) for n in nodes]


# ─── Full Layout Pipeline ─────────────────────────────────────────────────────


def reorganize_layout(graph: Graph) -> Graph:
    """Pick a strategy for ``graph``, lay it out and centre it.

    Returns a new graph with the same nodes and connections; only ``x``/``y``
    differ. Graphs with at most one node are returned as is. Integrity
    violations propagate as ``GraphIntegrityError``.
    """
    if len(graph.nodes) <= 1:
        return graph

    classification = analyze_graph(graph)

    if classification.is_tree:
        strategy = "hierarchical"
        nodes = hierarchical_layout(graph, [n.id for n in classification.root_nodes])
    elif classification.has_cycles:
        strategy = "force-directed"
        nodes = force_directed_layout(graph)
    else:
        strategy = "layered"
        nodes = layered_layout(graph, [n.id for n in classification.entry_points])

    logger.debug("laid out %d nodes with the %s strategy", len(nodes), strategy)
    return Graph(nodes=normalize_positions(nodes), connections=list(graph.connections))
