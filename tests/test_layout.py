"""Tests for graph conversion, layout configuration and arrow routing."""

import pytest

from sketch_mcp.graph import GraphLayout, Node, parse_graph
from sketch_mcp.layout import (
    LAYOUT_CONFIGS,
    PLACEHOLDER_LENGTH,
    RADIAL_NODE_HEIGHT,
    RADIAL_NODE_WIDTH,
    apply_layout,
    convert_graph_to_diagram,
    edge_connection_point,
    elbow_points,
    layout_graph,
    resolve_layout_config,
    resolve_shape_type,
)
from sketch_mcp.models import (
    ArrowSpec,
    Diagram,
    Direction,
    EdgeRouting,
    Point,
    PositionedShape,
    ShapeSpec,
    ShapeType,
)


def _chain_graph(diagram_type: str = "flowchart", **layout) -> dict:
    options: dict = {"diagramType": diagram_type}
    if layout:
        options["layout"] = layout
    return {
        "nodes": [
            {"id": "a", "label": "A"},
            {"id": "b", "label": "B"},
            {"id": "c", "label": "C"},
        ],
        "edges": [
            {"fromId": "a", "toId": "b"},
            {"fromId": "b", "toId": "c"},
        ],
        "graphOptions": options,
    }


# ===================================================================
# Configuration
# ===================================================================

class TestLayoutConfig:

    def test_per_type_defaults(self) -> None:
        assert resolve_layout_config("flowchart").direction is Direction.TB
        assert resolve_layout_config("sequence").direction is Direction.LR
        assert resolve_layout_config("architecture").edge_routing is EdgeRouting.ELBOW
        assert resolve_layout_config("decision-tree").elbowed

    def test_unknown_type_uses_default(self) -> None:
        cfg = resolve_layout_config("swot")
        assert cfg.direction is Direction.TB
        assert cfg.nodesep == 80
        assert cfg.ranksep == 100
        assert not cfg.elbowed

    def test_overrides_replace_fields(self) -> None:
        cfg = resolve_layout_config(
            "architecture",
            GraphLayout(direction=Direction.LR, edge_routing=EdgeRouting.STRAIGHT),
        )
        assert cfg.direction is Direction.LR
        assert not cfg.elbowed
        assert cfg.ranksep == LAYOUT_CONFIGS["architecture"].ranksep

    def test_engine_config(self) -> None:
        engine = resolve_layout_config("architecture").engine_config()
        assert engine.nodesep == 100
        assert engine.ranksep == 150
        assert engine.edgesep == 30


# ===================================================================
# Graph → Diagram
# ===================================================================

class TestShapeResolution:

    @pytest.mark.parametrize("kind, expected", [
        ("decision", ShapeType.DIAMOND),
        ("Decision Point", ShapeType.DIAMOND),
        ("start", ShapeType.ELLIPSE),
        ("end-state", ShapeType.ELLIPSE),
        ("external_actor", ShapeType.ELLIPSE),
        ("process", ShapeType.RECTANGLE),
        ("indecisive", ShapeType.RECTANGLE),
        ("backend", ShapeType.RECTANGLE),
        (None, ShapeType.RECTANGLE),
    ])
    def test_kind_heuristic(self, kind, expected) -> None:
        assert resolve_shape_type(Node(id="n", label="N", kind=kind)) is expected

    def test_metadata_shape_wins(self) -> None:
        node = Node(id="n", label="N", kind="decision", metadata={"shape": "ellipse"})
        assert resolve_shape_type(node) is ShapeType.ELLIPSE

    def test_invalid_metadata_shape_ignored(self) -> None:
        node = Node(id="n", label="N", kind="decision", metadata={"shape": "cloud"})
        assert resolve_shape_type(node) is ShapeType.DIAMOND


class TestConvertGraph:

    def test_sorted_and_generated_edge_ids(self) -> None:
        graph = parse_graph({
            "nodes": [{"id": "c", "label": "C"}, {"id": "a", "label": "A"}, {"id": "b", "label": "B"}],
            "edges": [{"fromId": "b", "toId": "c"}, {"fromId": "a", "toId": "b", "id": "ab"}],
        })
        diagram = convert_graph_to_diagram(graph)
        assert [s.id for s in diagram.shapes] == ["a", "b", "c"]
        assert [a.id for a in diagram.arrows] == ["ab", "edge_1_b_c"]

    def test_metadata_size_and_color(self) -> None:
        graph = parse_graph({
            "nodes": [
                {"id": "a", "label": "A", "metadata": {"width": 300, "height": 40, "color": "#ffc9c9"}},
                {"id": "b", "label": "B", "metadata": {"width": -5, "backgroundColor": "#eee"}},
            ],
            "edges": [],
        })
        a, b = convert_graph_to_diagram(graph).shapes
        assert (a.width, a.height, a.background_color) == (300, 40, "#ffc9c9")
        assert b.width is None
        assert b.background_color == "#eee"

    def test_empty_label_edge_has_no_label(self) -> None:
        graph = parse_graph({
            "nodes": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}],
            "edges": [{"fromId": "a", "toId": "b", "label": ""}],
        })
        assert convert_graph_to_diagram(graph).arrows[0].label is None


# ===================================================================
# Arrow geometry
# ===================================================================

class TestArrowGeometry:

    def _shape(self, sid: str, x: float, y: float) -> PositionedShape:
        return PositionedShape(sid, ShapeType.RECTANGLE, x, y, 100, 50)

    def test_vertical_connection_points(self) -> None:
        top = self._shape("t", 0, 0)
        bottom = self._shape("b", 0, 200)
        assert edge_connection_point(top, bottom, True, Direction.TB) == Point(50, 50)
        assert edge_connection_point(bottom, top, False, Direction.TB) == Point(50, 200)

    def test_vertical_upward_edge(self) -> None:
        top = self._shape("t", 0, 0)
        bottom = self._shape("b", 0, 200)
        assert edge_connection_point(bottom, top, True, Direction.TB) == Point(50, 200)
        assert edge_connection_point(top, bottom, False, Direction.TB) == Point(50, 50)

    def test_horizontal_connection_points(self) -> None:
        left = self._shape("l", 0, 0)
        right = self._shape("r", 300, 0)
        assert edge_connection_point(left, right, True, Direction.LR) == Point(100, 25)
        assert edge_connection_point(right, left, False, Direction.LR) == Point(300, 25)

    def test_elbow_points_vertical(self) -> None:
        pts = elbow_points(Point(0, 0), Point(100, 200), Direction.TB)
        assert pts == ((0, 0), (0, 100), (100, 100), (100, 200))

    def test_elbow_points_horizontal(self) -> None:
        pts = elbow_points(Point(10, 10), Point(210, 60), Direction.LR)
        assert pts == ((0, 0), (100, 0), (100, 50), (200, 50))


# ===================================================================
# Layout
# ===================================================================

class TestApplyLayout:

    def test_left_to_right_chain(self) -> None:
        result = layout_graph(parse_graph(_chain_graph(direction="LR")))
        shapes = result.layouted.shape_map()
        centers_y = {sid: s.bounds.cy for sid, s in shapes.items()}
        assert centers_y["a"] == centers_y["b"] == centers_y["c"]
        assert shapes["a"].x < shapes["b"].x < shapes["c"].x

    def test_endpoints_snap_to_shape_boundaries(self) -> None:
        result = layout_graph(parse_graph(_chain_graph()))
        shapes = result.layouted.shape_map()
        for arrow in result.layouted.arrows:
            src = shapes[arrow.from_id].bounds
            dst = shapes[arrow.to_id].bounds
            assert arrow.start == Point(src.cx, src.bottom)
            assert arrow.end == Point(dst.cx, dst.y)

    def test_flowchart_arrows_are_straight(self) -> None:
        result = layout_graph(parse_graph(_chain_graph()))
        assert all(not a.elbowed and len(a.points) == 2 for a in result.layouted.arrows)

    def test_architecture_arrows_are_elbowed(self) -> None:
        result = layout_graph(parse_graph(_chain_graph("architecture")))
        assert all(a.elbowed and len(a.points) == 4 for a in result.layouted.arrows)

    def test_routing_override(self) -> None:
        result = layout_graph(parse_graph(_chain_graph("architecture", edgeRouting="straight")))
        assert not any(a.elbowed for a in result.layouted.arrows)

    def test_points_start_at_origin(self) -> None:
        result = layout_graph(parse_graph(_chain_graph("architecture")))
        for arrow in result.layouted.arrows:
            assert arrow.points[0] == (0, 0)
            assert arrow.width == arrow.points[-1][0]
            assert arrow.height == arrow.points[-1][1]

    def test_missing_shape_gets_placeholder(self) -> None:
        diagram = Diagram(
            shapes=[ShapeSpec(id="a")],
            arrows=[ArrowSpec(id="e", from_id="a", to_id="ghost")],
        )
        layouted = apply_layout(diagram, "flowchart")
        arrow = layouted.arrows[0]
        assert arrow.placeholder
        assert arrow.points == ((0, 0), (PLACEHOLDER_LENGTH, 0))
        assert (arrow.x, arrow.y, arrow.width, arrow.height) == (0, 0, PLACEHOLDER_LENGTH, 0)

    def test_default_node_size(self) -> None:
        layouted = apply_layout(Diagram(shapes=[ShapeSpec(id="a")]), "flowchart")
        shape = layouted.shapes[0]
        assert (shape.width, shape.height) == (180, 80)

    def test_mindmap_is_radial(self) -> None:
        diagram = Diagram(
            shapes=[ShapeSpec(id="root"), ShapeSpec(id="x"), ShapeSpec(id="y")],
            arrows=[
                ArrowSpec(id="e1", from_id="root", to_id="x"),
                ArrowSpec(id="e2", from_id="root", to_id="y"),
            ],
        )
        layouted = apply_layout(diagram, "mindmap")
        root = layouted.shape_map()["root"]
        assert (root.width, root.height) == (RADIAL_NODE_WIDTH, RADIAL_NODE_HEIGHT)
        assert (root.bounds.cx, root.bounds.cy) == (400, 400)
        for arrow in layouted.arrows:
            assert not arrow.elbowed
            assert arrow.length() == pytest.approx(200 - RADIAL_NODE_HEIGHT)

    def test_layout_is_deterministic(self) -> None:
        graph = parse_graph(_chain_graph("architecture"))
        first = layout_graph(graph).layouted
        second = layout_graph(graph).layouted
        assert first == second

    def test_layout_graph_reports_type(self) -> None:
        result = layout_graph(parse_graph(_chain_graph("sequence")))
        assert result.diagram_type == "sequence"
        assert len(result.diagram.shapes) == 3
