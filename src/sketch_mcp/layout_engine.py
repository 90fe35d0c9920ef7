"""
Node placement algorithms.

- Sugiyama-style layered layout for directed graphs (the same framework as
  Graphviz ``dot``): cycle removal, longest-path ranking, virtual nodes for
  long edges, barycenter crossing reduction, coordinate assignment
- Radial layout for hub-and-spoke diagrams (mind maps)

Both return node *centers*; converting to top-left boxes and routing arrows
is done in ``sketch_mcp.layout``.

Output is fully deterministic: nodes and edges are processed in the order
the caller supplies them, ties are broken by stable sorts, and no set is
ever iterated.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Iterable

from sketch_mcp.models import Direction, Point

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class LayoutEngineConfig:
    """Spacing for the layered layout."""
    direction: Direction = Direction.TB
    nodesep: float = 80         # Gap between real nodes in the same rank
    ranksep: float = 100        # Gap between ranks
    edgesep: float = 20         # Gap reserved around edge bends (virtual nodes)
    barycenter_iterations: int = 4


@dataclass
class RadialConfig:
    center_x: float = 400
    center_y: float = 400
    ring_spacing: float = 200


# ---------------------------------------------------------------------------
# Sugiyama Layered Layout
# ---------------------------------------------------------------------------

@dataclass
class _Node:
    """Internal node representation for layout algorithms."""
    id: str
    width: float
    height: float
    rank: int = 0
    order: float = 0
    is_virtual: bool = False


def layout_sugiyama(
    node_sizes: dict[str, tuple[float, float]],
    edges: Iterable[tuple[str, str]],
    config: LayoutEngineConfig | None = None,
) -> dict[str, Point]:
    """Lay out a directed multigraph in ranks.

    Args:
        node_sizes: Mapping of node id to ``(width, height)``.  Insertion
            order is the tie-breaking order.
        edges: ``(source, target)`` pairs.  Duplicates are distinct edges,
            self-loops and edges naming unknown nodes are ignored.
        config: Direction and spacing.

    Returns:
        Mapping of node id to its center point.
    """
    cfg = config or LayoutEngineConfig()
    if not node_sizes:
        return {}

    nodes: dict[str, _Node] = {
        nid: _Node(id=nid, width=w, height=h) for nid, (w, h) in node_sizes.items()
    }
    order = list(nodes)

    edge_list: list[tuple[str, str]] = []
    adj: dict[str, list[str]] = defaultdict(list)
    for src, tgt in edges:
        if src == tgt or src not in nodes or tgt not in nodes:
            continue
        edge_list.append((src, tgt))
        adj[src].append(tgt)

    # --- Step 1: Cycle removal ---
    back_edges = _find_back_edges(order, adj)
    dag_edges = [(t, s) if (s, t) in back_edges else (s, t) for s, t in edge_list]

    # --- Step 2: Layer assignment (longest path from sources) ---
    ranks = _assign_ranks_longest_path(order, dag_edges)
    for nid, rank in ranks.items():
        nodes[nid].rank = rank

    # --- Step 3: Virtual nodes for long edges ---
    expanded_edges: list[tuple[str, str]] = []
    virtual_count = 0
    for src, tgt in dag_edges:
        prev = src
        for r in range(ranks[src] + 1, ranks[tgt]):
            vname = f"__virtual_{virtual_count}"
            virtual_count += 1
            nodes[vname] = _Node(id=vname, width=0, height=0, rank=r, is_virtual=True)
            expanded_edges.append((prev, vname))
            prev = vname
        expanded_edges.append((prev, tgt))

    # --- Step 4: Crossing minimization ---
    by_rank: dict[int, list[str]] = defaultdict(list)
    for nid, node in nodes.items():
        by_rank[node.rank].append(nid)
    max_rank = max(by_rank)

    exp_adj: dict[str, list[str]] = defaultdict(list)
    exp_rev: dict[str, list[str]] = defaultdict(list)
    for s, t in expanded_edges:
        exp_adj[s].append(t)
        exp_rev[t].append(s)

    for rank_nodes in by_rank.values():
        for i, nid in enumerate(rank_nodes):
            nodes[nid].order = float(i)

    for _ in range(cfg.barycenter_iterations):
        for r in range(1, max_rank + 1):
            _barycenter_sort(by_rank[r], nodes, exp_rev)
        for r in range(max_rank - 1, -1, -1):
            _barycenter_sort(by_rank[r], nodes, exp_adj)

    # --- Step 5: Coordinate assignment ---
    centers = _assign_coordinates(by_rank, nodes, cfg)
    logger.debug(
        "sugiyama: %d nodes, %d ranks, %d virtual, %d reversed",
        len(node_sizes), max_rank + 1, virtual_count, len(back_edges),
    )
    return {nid: centers[nid] for nid in node_sizes}


def _find_back_edges(
    order: list[str],
    adj: dict[str, list[str]],
) -> set[tuple[str, str]]:
    """Find back-edges in a directed graph using iterative DFS."""
    WHITE, GRAY, BLACK = 0, 1, 2
    color: dict[str, int] = {n: WHITE for n in order}
    back_edges: set[tuple[str, str]] = set()

    for start in order:
        if color[start] != WHITE:
            continue
        color[start] = GRAY
        stack: list[tuple[str, int]] = [(start, 0)]
        while stack:
            u, idx = stack[-1]
            neighbors = adj.get(u, [])
            if idx < len(neighbors):
                stack[-1] = (u, idx + 1)
                v = neighbors[idx]
                if color[v] == GRAY:
                    back_edges.add((u, v))
                elif color[v] == WHITE:
                    color[v] = GRAY
                    stack.append((v, 0))
            else:
                color[u] = BLACK
                stack.pop()

    return back_edges


def _assign_ranks_longest_path(
    order: list[str],
    dag_edges: list[tuple[str, str]],
) -> dict[str, int]:
    """Rank = length of the longest path from any source (Kahn order)."""
    indegree: dict[str, int] = {n: 0 for n in order}
    adj: dict[str, list[str]] = defaultdict(list)
    for s, t in dag_edges:
        adj[s].append(t)
        indegree[t] += 1

    ranks: dict[str, int] = {n: 0 for n in order}
    queue = deque(n for n in order if indegree[n] == 0)
    while queue:
        node = queue.popleft()
        for child in adj[node]:
            ranks[child] = max(ranks[child], ranks[node] + 1)
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)
    return ranks


def _barycenter_sort(
    rank_nodes: list[str],
    nodes: dict[str, _Node],
    neighbor_adj: dict[str, list[str]],
) -> None:
    """Sort nodes in a rank by barycenter of their neighbors (stable)."""
    barycenters: dict[str, float] = {}
    for nid in rank_nodes:
        neighbor_orders = [nodes[n].order for n in neighbor_adj.get(nid, [])]
        if neighbor_orders:
            barycenters[nid] = sum(neighbor_orders) / len(neighbor_orders)
        else:
            barycenters[nid] = nodes[nid].order

    rank_nodes.sort(key=lambda n: barycenters[n])
    for i, nid in enumerate(rank_nodes):
        nodes[nid].order = float(i)


def _assign_coordinates(
    by_rank: dict[int, list[str]],
    nodes: dict[str, _Node],
    cfg: LayoutEngineConfig,
) -> dict[str, Point]:
    """Assign center coordinates based on rank and order.

    Along the rank axis, each rank is as thick as its largest node and ranks
    are ``ranksep`` apart.  Across it, neighbours are separated by half of
    each one's own separation (``nodesep`` for real nodes, ``edgesep`` for
    virtual ones), and every rank is centred on the widest one.
    """
    vertical = cfg.direction.is_vertical

    def cross_size(node: _Node) -> float:
        return node.width if vertical else node.height

    def rank_size(node: _Node) -> float:
        return node.height if vertical else node.width

    def sep(node: _Node) -> float:
        return cfg.edgesep if node.is_virtual else cfg.nodesep

    # Cross-axis offsets within each rank, starting at 0
    cross_pos: dict[str, float] = {}
    extents: dict[int, float] = {}
    for rank, rank_nodes in by_rank.items():
        cursor = 0.0
        prev: _Node | None = None
        for nid in rank_nodes:
            node = nodes[nid]
            if prev is not None:
                cursor += sep(prev) / 2 + sep(node) / 2
            cross_pos[nid] = cursor + cross_size(node) / 2
            cursor += cross_size(node)
            prev = node
        extents[rank] = cursor

    widest = max(extents.values())

    # Rank-axis center line of each rank
    ordered_ranks = sorted(by_rank)
    if cfg.direction in (Direction.BT, Direction.RL):
        ordered_ranks.reverse()
    rank_pos: dict[int, float] = {}
    cumulative = 0.0
    for rank in ordered_ranks:
        thickness = max((rank_size(nodes[n]) for n in by_rank[rank]), default=0)
        rank_pos[rank] = cumulative + thickness / 2
        cumulative += thickness + cfg.ranksep

    centers: dict[str, Point] = {}
    for rank, rank_nodes in by_rank.items():
        offset = (widest - extents[rank]) / 2
        for nid in rank_nodes:
            across = cross_pos[nid] + offset
            along = rank_pos[rank]
            centers[nid] = Point(across, along) if vertical else Point(along, across)
    return centers


# ---------------------------------------------------------------------------
# Radial Layout
# ---------------------------------------------------------------------------

def find_radial_root(order: list[str], edges: Iterable[tuple[str, str]]) -> str:
    """First node with no incoming edge, else the first node."""
    targets = {t for s, t in edges if s != t}
    for nid in order:
        if nid not in targets:
            return nid
    return order[0]


def layout_radial(
    order: list[str],
    edges: Iterable[tuple[str, str]],
    config: RadialConfig | None = None,
) -> dict[str, Point]:
    """Place nodes on concentric rings around a single root.

    Rings are breadth-first distance from the root.  The root owns the full
    circle; each node's angular sector is divided evenly among its children
    (sorted by id) and a child sits at the middle of its share.  Nodes the
    root cannot reach go on one extra outer ring, evenly spaced.
    """
    cfg = config or RadialConfig()
    if not order:
        return {}

    known = set(order)
    edge_list = [(s, t) for s, t in edges if s in known and t in known and s != t]
    children: dict[str, list[str]] = defaultdict(list)
    for s, t in edge_list:
        children[s].append(t)

    root = find_radial_root(order, edge_list)

    # Breadth-first spanning tree; a node shared by several parents is
    # claimed by the first one reached.
    depth: dict[str, int] = {root: 0}
    tree: dict[str, list[str]] = defaultdict(list)
    queue = deque([root])
    while queue:
        nid = queue.popleft()
        for child in sorted(children[nid]):
            if child in depth:
                continue
            depth[child] = depth[nid] + 1
            tree[nid].append(child)
            queue.append(child)

    angles: dict[str, float] = {}
    _assign_radial_angles(root, 0.0, 2 * math.pi, tree, angles)

    positions: dict[str, Point] = {}
    for nid, angle in angles.items():
        radius = depth[nid] * cfg.ring_spacing
        positions[nid] = Point(
            cfg.center_x + math.cos(angle) * radius,
            cfg.center_y + math.sin(angle) * radius,
        )

    orphans = [nid for nid in order if nid not in depth]
    if orphans:
        radius = (max(depth.values()) + 1) * cfg.ring_spacing
        step = 2 * math.pi / len(orphans)
        for i, nid in enumerate(orphans):
            angle = step * i
            positions[nid] = Point(
                cfg.center_x + math.cos(angle) * radius,
                cfg.center_y + math.sin(angle) * radius,
            )
        logger.debug("radial: %d node(s) unreachable from root %r", len(orphans), root)

    return positions


def _assign_radial_angles(
    root: str,
    start: float,
    end: float,
    tree: dict[str, list[str]],
    angles: dict[str, float],
) -> None:
    stack = [(root, start, end)]
    while stack:
        nid, lo, hi = stack.pop()
        angles[nid] = (lo + hi) / 2
        kids = tree.get(nid, [])
        if not kids:
            continue
        share = (hi - lo) / len(kids)
        for i, child in enumerate(kids):
            stack.append((child, lo + i * share, lo + (i + 1) * share))
