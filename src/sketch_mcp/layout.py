"""
Graph → positioned shapes and routed arrows.

Resolves the per-diagram-type layout configuration, converts a validated
``Graph`` into the normalized ``Diagram`` form, runs the placement algorithm
from ``layout_engine`` and computes arrow geometry:

- connection points on shape boundaries, on the side facing the other shape
- straight 2-point lines or 4-point elbow polylines
- a 100-unit placeholder stub when an endpoint shape is missing
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Any, Optional

from sketch_mcp.graph import Graph, GraphLayout, Node
from sketch_mcp.layout_engine import LayoutEngineConfig, layout_radial, layout_sugiyama
from sketch_mcp.models import (
    ArrowSpec,
    Diagram,
    Direction,
    EdgeRouting,
    LayoutedDiagram,
    Point,
    PositionedArrow,
    PositionedShape,
    ShapeSpec,
    ShapeType,
)

logger = logging.getLogger(__name__)

DEFAULT_NODE_WIDTH = 180
DEFAULT_NODE_HEIGHT = 80
RADIAL_NODE_WIDTH = 140
RADIAL_NODE_HEIGHT = 60
PLACEHOLDER_LENGTH = 100


# ---------------------------------------------------------------------------
# Layout configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LayoutConfig:
    """Resolved layout settings for one render."""
    direction: Direction = Direction.TB
    nodesep: float = 80
    ranksep: float = 100
    edgesep: float = 20
    edge_routing: EdgeRouting = EdgeRouting.STRAIGHT

    @property
    def elbowed(self) -> bool:
        return self.edge_routing is EdgeRouting.ELBOW

    def engine_config(self) -> LayoutEngineConfig:
        return LayoutEngineConfig(
            direction=self.direction,
            nodesep=self.nodesep,
            ranksep=self.ranksep,
            edgesep=self.edgesep,
        )


DEFAULT_LAYOUT_CONFIG = LayoutConfig()

LAYOUT_CONFIGS: dict[str, LayoutConfig] = {
    "flowchart": LayoutConfig(Direction.TB, 80, 100, 20, EdgeRouting.STRAIGHT),
    "decision-tree": LayoutConfig(Direction.TB, 100, 120, 30, EdgeRouting.ELBOW),
    "architecture": LayoutConfig(Direction.TB, 100, 150, 30, EdgeRouting.ELBOW),
    "mindmap": LayoutConfig(Direction.LR, 60, 150, 20, EdgeRouting.STRAIGHT),
    "sequence": LayoutConfig(Direction.LR, 120, 80, 20, EdgeRouting.STRAIGHT),
    "state": LayoutConfig(Direction.LR, 80, 120, 20, EdgeRouting.STRAIGHT),
}


def resolve_layout_config(
    diagram_type: str,
    overrides: Optional[GraphLayout] = None,
) -> LayoutConfig:
    """Per-type defaults, replaced field by field by any caller override."""
    base = LAYOUT_CONFIGS.get(diagram_type, DEFAULT_LAYOUT_CONFIG)
    if overrides is None:
        return base
    changes: dict[str, Any] = {}
    if overrides.direction is not None:
        changes["direction"] = overrides.direction
    if overrides.nodesep is not None:
        changes["nodesep"] = overrides.nodesep
    if overrides.ranksep is not None:
        changes["ranksep"] = overrides.ranksep
    if overrides.edgesep is not None:
        changes["edgesep"] = overrides.edgesep
    if overrides.edge_routing is not None:
        changes["edge_routing"] = overrides.edge_routing
    return replace(base, **changes)


# ---------------------------------------------------------------------------
# Graph → Diagram
# ---------------------------------------------------------------------------

_ELLIPSE_KINDS = ("start", "end", "actor", "external")


def resolve_shape_type(node: Node) -> ShapeType:
    """``metadata.shape`` if valid, else a guess from the node's ``kind``."""
    metadata = node.metadata or {}
    override = metadata.get("shape")
    if override in ("rectangle", "ellipse", "diamond"):
        return ShapeType(override)

    words = re.split(r"[^a-z0-9]+", (node.kind or "").lower())
    if "decision" in words:
        return ShapeType.DIAMOND
    if any(word in _ELLIPSE_KINDS for word in words):
        return ShapeType.ELLIPSE
    return ShapeType.RECTANGLE


def _resolve_node_color(node: Node) -> Optional[str]:
    metadata = node.metadata or {}
    color = metadata.get("color", metadata.get("backgroundColor"))
    return color if isinstance(color, str) else None


def _positive_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def _sort_key(value: Optional[str]) -> str:
    return value or ""


def sort_shapes(shapes: list[ShapeSpec]) -> list[ShapeSpec]:
    return sorted(shapes, key=lambda s: s.id)


def sort_arrows(arrows: list[ArrowSpec]) -> list[ArrowSpec]:
    return sorted(
        arrows,
        key=lambda a: (a.from_id, a.to_id, _sort_key(a.label), a.id),
    )


def convert_graph_to_diagram(graph: Graph) -> Diagram:
    """Normalize a graph into sorted shapes and arrows.

    Edges without an id get ``edge_<i>_<from>_<to>``, where ``i`` is the
    edge's position after sorting.
    """
    nodes = sorted(graph.nodes, key=lambda n: n.id)
    edges = sorted(
        graph.edges,
        key=lambda e: (e.from_id, e.to_id, _sort_key(e.label), _sort_key(e.id)),
    )

    shapes = []
    for node in nodes:
        metadata = node.metadata or {}
        shapes.append(ShapeSpec(
            id=node.id,
            type=resolve_shape_type(node),
            label=node.label,
            background_color=_resolve_node_color(node),
            width=_positive_number(metadata.get("width")),
            height=_positive_number(metadata.get("height")),
        ))

    arrows = [
        ArrowSpec(
            id=edge.id or f"edge_{index}_{edge.from_id}_{edge.to_id}",
            from_id=edge.from_id,
            to_id=edge.to_id,
            label=edge.label or None,
        )
        for index, edge in enumerate(edges)
    ]
    return Diagram(shapes=shapes, arrows=arrows)


# ---------------------------------------------------------------------------
# Arrow geometry
# ---------------------------------------------------------------------------

def edge_connection_point(
    shape: PositionedShape,
    other: PositionedShape,
    is_start: bool,
    direction: Direction,
) -> Point:
    """Midpoint of the boundary edge of *shape* that faces *other*.

    Vertical layouts use the top/bottom edges, horizontal layouts the
    left/right edges.
    """
    b = shape.bounds
    ob = other.bounds

    if direction.is_vertical:
        if is_start:
            return Point(b.cx, b.bottom) if ob.cy > b.cy else Point(b.cx, b.y)
        return Point(b.cx, b.y) if ob.cy < b.cy else Point(b.cx, b.bottom)

    if is_start:
        return Point(b.right, b.cy) if ob.cx > b.cx else Point(b.x, b.cy)
    return Point(b.x, b.cy) if ob.cx < b.cx else Point(b.right, b.cy)


def elbow_points(
    start: Point,
    end: Point,
    direction: Direction,
) -> tuple[tuple[float, float], ...]:
    """4-point orthogonal polyline bending at the midpoint of the primary axis."""
    dx = end.x - start.x
    dy = end.y - start.y
    if direction.is_vertical:
        mid = dy / 2
        return ((0, 0), (0, mid), (dx, mid), (dx, dy))
    mid = dx / 2
    return ((0, 0), (mid, 0), (mid, dy), (dx, dy))


def placeholder_arrow(arrow: ArrowSpec) -> PositionedArrow:
    """Stub emitted when one of the arrow's shapes does not exist."""
    return PositionedArrow(
        id=arrow.id,
        from_id=arrow.from_id,
        to_id=arrow.to_id,
        x=0,
        y=0,
        width=PLACEHOLDER_LENGTH,
        height=0,
        points=((0, 0), (PLACEHOLDER_LENGTH, 0)),
        elbowed=False,
        label=arrow.label,
        placeholder=True,
    )


def _route_arrow(
    arrow: ArrowSpec,
    shapes: dict[str, PositionedShape],
    config: LayoutConfig,
) -> PositionedArrow:
    start_shape = shapes.get(arrow.from_id)
    end_shape = shapes.get(arrow.to_id)
    if start_shape is None or end_shape is None:
        logger.warning(
            "Arrow %r references a missing shape (%s -> %s); emitting placeholder",
            arrow.id, arrow.from_id, arrow.to_id,
        )
        return placeholder_arrow(arrow)

    start = edge_connection_point(start_shape, end_shape, True, config.direction)
    end = edge_connection_point(end_shape, start_shape, False, config.direction)

    if config.elbowed:
        points = elbow_points(start, end, config.direction)
    else:
        points = ((0, 0), (end.x - start.x, end.y - start.y))

    return PositionedArrow(
        id=arrow.id,
        from_id=arrow.from_id,
        to_id=arrow.to_id,
        x=start.x,
        y=start.y,
        width=end.x - start.x,
        height=end.y - start.y,
        points=points,
        elbowed=config.elbowed,
        label=arrow.label,
    )


def _clipped_center_arrow(
    arrow: ArrowSpec,
    shapes: dict[str, PositionedShape],
) -> PositionedArrow:
    """Straight arrow along the center line, pulled in by each half-extent."""
    start_shape = shapes.get(arrow.from_id)
    end_shape = shapes.get(arrow.to_id)
    if start_shape is None or end_shape is None:
        return placeholder_arrow(arrow)

    sb, eb = start_shape.bounds, end_shape.bounds
    dx = eb.cx - sb.cx
    dy = eb.cy - sb.cy
    dist = math.hypot(dx, dy)
    ux = dx / dist if dist > 0 else 0
    uy = dy / dist if dist > 0 else 0

    sx = sb.cx + ux * (sb.width / 2)
    sy = sb.cy + uy * (sb.height / 2)
    ex = eb.cx - ux * (eb.width / 2)
    ey = eb.cy - uy * (eb.height / 2)

    return PositionedArrow(
        id=arrow.id,
        from_id=arrow.from_id,
        to_id=arrow.to_id,
        x=sx,
        y=sy,
        width=ex - sx,
        height=ey - sy,
        points=((0, 0), (ex - sx, ey - sy)),
        elbowed=False,
        label=arrow.label,
    )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def _positioned(spec: ShapeSpec, center: Point, width: float, height: float) -> PositionedShape:
    return PositionedShape(
        id=spec.id,
        type=spec.type,
        x=center.x - width / 2,
        y=center.y - height / 2,
        width=width,
        height=height,
        label=spec.label,
        background_color=spec.background_color,
    )


def apply_radial_layout(diagram: Diagram) -> LayoutedDiagram:
    shapes = sort_shapes(diagram.shapes)
    arrows = sort_arrows(diagram.arrows)
    centers = layout_radial(
        [s.id for s in shapes],
        [(a.from_id, a.to_id) for a in arrows],
    )

    positioned = [
        _positioned(
            spec,
            centers[spec.id],
            spec.width or RADIAL_NODE_WIDTH,
            spec.height or RADIAL_NODE_HEIGHT,
        )
        for spec in shapes
    ]
    shape_map = {s.id: s for s in positioned}
    return LayoutedDiagram(
        shapes=positioned,
        arrows=[_clipped_center_arrow(a, shape_map) for a in arrows],
    )


def apply_layout(
    diagram: Diagram,
    diagram_type: str,
    overrides: Optional[GraphLayout] = None,
) -> LayoutedDiagram:
    """Position every shape and route every arrow.

    ``mindmap`` diagrams always use the radial layout; every other type runs
    the layered layout with the resolved config.
    """
    if diagram_type == "mindmap":
        return apply_radial_layout(diagram)

    config = resolve_layout_config(diagram_type, overrides)
    shapes = sort_shapes(diagram.shapes)
    arrows = sort_arrows(diagram.arrows)

    sizes = {
        s.id: (s.width or DEFAULT_NODE_WIDTH, s.height or DEFAULT_NODE_HEIGHT)
        for s in shapes
    }
    centers = layout_sugiyama(
        sizes,
        [(a.from_id, a.to_id) for a in arrows],
        config.engine_config(),
    )

    positioned = [
        _positioned(spec, centers[spec.id], *sizes[spec.id]) for spec in shapes
    ]
    shape_map = {s.id: s for s in positioned}
    return LayoutedDiagram(
        shapes=positioned,
        arrows=[_route_arrow(a, shape_map, config) for a in arrows],
    )


@dataclass
class GraphLayoutResult:
    diagram: Diagram
    layouted: LayoutedDiagram
    diagram_type: str
    overrides: Optional[GraphLayout] = None


def layout_graph(graph: Graph) -> GraphLayoutResult:
    """Convert *graph* and lay it out with its own options."""
    diagram = convert_graph_to_diagram(graph)
    diagram_type = graph.diagram_type
    overrides = graph.graph_options.layout if graph.graph_options else None
    layouted = apply_layout(diagram, diagram_type, overrides)
    return GraphLayoutResult(
        diagram=diagram,
        layouted=layouted,
        diagram_type=diagram_type,
        overrides=overrides,
    )
