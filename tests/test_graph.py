"""Tests for the graph schema and edge reference checks."""

import pytest

from sketch_mcp.graph import (
    Edge,
    EdgeReferenceError,
    Graph,
    GraphSchemaError,
    Node,
    ensure_edge_references,
    parse_graph,
    validate_edge_references,
)
from sketch_mcp.models import Direction, EdgeRouting


def _graph(**options) -> dict:
    data = {
        "nodes": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}],
        "edges": [{"fromId": "a", "toId": "b"}],
    }
    if options:
        data["graphOptions"] = options
    return data


class TestParseGraph:

    def test_minimal_graph(self) -> None:
        graph = parse_graph(_graph())
        assert [n.id for n in graph.nodes] == ["a", "b"]
        assert graph.edges[0].from_id == "a"
        assert graph.edges[0].to_id == "b"
        assert graph.diagram_type == "flowchart"

    def test_options_are_parsed(self) -> None:
        graph = parse_graph(_graph(
            diagramType="architecture",
            layout={"direction": "LR", "edgeRouting": "straight", "nodesep": 40},
            style={"shapeFill": "#fff", "fontSize": 20},
        ))
        opts = graph.graph_options
        assert graph.diagram_type == "architecture"
        assert opts.layout.direction is Direction.LR
        assert opts.layout.edge_routing is EdgeRouting.STRAIGHT
        assert opts.layout.nodesep == 40
        assert opts.style.shape_fill == "#fff"
        assert opts.style.font_size == 20

    def test_graph_instance_passes_through(self) -> None:
        graph = Graph(nodes=[Node(id="a", label="A")], edges=[])
        assert parse_graph(graph) is graph

    def test_unknown_node_key_rejected(self) -> None:
        data = _graph()
        data["nodes"][0]["color"] = "red"
        with pytest.raises(GraphSchemaError) as info:
            parse_graph(data)
        issues = info.value.issues
        assert len(issues) == 1
        assert issues[0].code == "invalid-graph"
        assert issues[0].path == "nodes.0.color"

    def test_missing_fields_all_reported(self) -> None:
        with pytest.raises(GraphSchemaError) as info:
            parse_graph({"nodes": [{"id": "a"}], "edges": [{"fromId": "a"}]})
        paths = {i.path for i in info.value.issues}
        assert "nodes.0.label" in paths
        assert "edges.0.toId" in paths

    def test_unknown_diagram_type_rejected(self) -> None:
        with pytest.raises(GraphSchemaError):
            parse_graph(_graph(diagramType="poster"))

    def test_negative_spacing_rejected(self) -> None:
        with pytest.raises(GraphSchemaError):
            parse_graph(_graph(layout={"ranksep": -1}))

    def test_duplicate_node_ids(self) -> None:
        data = _graph()
        data["nodes"].append({"id": "a", "label": "again"})
        with pytest.raises(GraphSchemaError) as info:
            parse_graph(data)
        issue = info.value.issues[0]
        assert issue.code == "duplicate-node-id"
        assert issue.element_id == "a"
        assert issue.path == "nodes.2.id"

    def test_empty_node_id_rejected(self) -> None:
        data = _graph()
        data["nodes"][0]["id"] = ""
        with pytest.raises(GraphSchemaError) as info:
            parse_graph(data)
        assert [i.path for i in info.value.issues] == ["nodes.0.id"]

    def test_edge_id_collisions(self) -> None:
        data = _graph()
        data["edges"] = [
            {"id": "e", "fromId": "a", "toId": "b"},
            {"id": "e", "fromId": "b", "toId": "a"},
            {"id": "b", "fromId": "a", "toId": "b"},
            {"fromId": "a", "toId": "b"},
        ]
        with pytest.raises(GraphSchemaError) as info:
            parse_graph(data)
        issues = info.value.issues
        assert [(i.code, i.element_id, i.path) for i in issues] == [
            ("duplicate-edge-id", "e", "edges.1.id"),
            ("duplicate-edge-id", "b", "edges.2.id"),
        ]
        assert "used by a node" in issues[1].message


class TestEdgeReferences:

    def test_valid_references(self) -> None:
        graph = parse_graph(_graph())
        assert validate_edge_references(graph.nodes, graph.edges) == []
        ensure_edge_references(graph)

    def test_each_dangling_endpoint_reported(self) -> None:
        nodes = [Node(id="a", label="A")]
        edges = [Edge(id="e1", from_id="x", to_id="y"), Edge(from_id="a", to_id="z")]
        issues = validate_edge_references(nodes, edges)
        assert [i.path for i in issues] == ["edges.0.fromId", "edges.0.toId", "edges.1.toId"]
        assert all(i.code == "missing-node-reference" for i in issues)
        assert issues[0].element_id == "e1"
        assert "edges[1]" in issues[2].message

    def test_ensure_raises(self) -> None:
        graph = Graph(nodes=[Node(id="a", label="A")], edges=[Edge(from_id="a", to_id="ghost")])
        with pytest.raises(EdgeReferenceError) as info:
            ensure_edge_references(graph)
        assert len(info.value.issues) == 1


def test_to_dict_is_camel_case_without_nones() -> None:
    graph = parse_graph(_graph(diagramType="mindmap"))
    data = graph.to_dict()
    assert data["edges"] == [{"fromId": "a", "toId": "b"}]
    assert data["graphOptions"] == {"diagramType": "mindmap"}
    assert "kind" not in data["nodes"][0]
