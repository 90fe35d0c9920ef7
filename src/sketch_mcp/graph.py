"""
Graph model: the abstract node/edge description a diagram is rendered from.

The schema is strict (unknown keys are rejected at every level) because
graphs usually arrive from an LLM and must be validated before anything is
laid out.  Wire names are camelCase (``fromId``, ``graphOptions``); Python
attributes are snake_case.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from sketch_mcp.models import Direction, EdgeRouting
from sketch_mcp.validation import Issue, ValidationError, issues_from_pydantic


DiagramType = Literal[
    "flowchart",
    "mindmap",
    "orgchart",
    "sequence",
    "class",
    "er",
    "gantt",
    "timeline",
    "tree",
    "network",
    "architecture",
    "dataflow",
    "state",
    "swimlane",
    "concept",
    "fishbone",
    "swot",
    "pyramid",
    "funnel",
    "venn",
    "matrix",
    "infographic",
    "decision-tree",
]

DEFAULT_DIAGRAM_TYPE = "flowchart"


class GraphSchemaError(ValidationError):
    """The graph payload does not match the schema."""


class EdgeReferenceError(ValidationError):
    """One or more edges point at node ids that do not exist."""


class _GraphModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Node(_GraphModel):
    """A node in the graph."""
    id: str = Field(min_length=1)
    label: str
    kind: Optional[str] = None          # start, process, decision, database, ...
    description: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class Edge(_GraphModel):
    """A directed edge between two nodes."""
    id: Optional[str] = Field(default=None, min_length=1)
    from_id: str = Field(min_length=1)
    to_id: str = Field(min_length=1)
    label: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class GraphStyle(_GraphModel):
    shape_fill: Optional[str] = None
    shape_stroke: Optional[str] = None
    arrow_stroke: Optional[str] = None
    text_color: Optional[str] = None
    font_size: Optional[float] = Field(default=None, gt=0)
    font_family: Optional[int] = None


class GraphLayout(_GraphModel):
    direction: Optional[Direction] = None
    nodesep: Optional[float] = Field(default=None, ge=0)
    ranksep: Optional[float] = Field(default=None, ge=0)
    edgesep: Optional[float] = Field(default=None, ge=0)
    edge_routing: Optional[EdgeRouting] = None


class GraphOptions(_GraphModel):
    diagram_type: Optional[DiagramType] = None
    layout: Optional[GraphLayout] = None
    style: Optional[GraphStyle] = None


class Graph(_GraphModel):
    """The complete graph description: nodes, edges and graph-level options."""
    nodes: list[Node]
    edges: list[Edge]
    graph_options: Optional[GraphOptions] = None

    @property
    def diagram_type(self) -> str:
        if self.graph_options and self.graph_options.diagram_type:
            return self.graph_options.diagram_type
        return DEFAULT_DIAGRAM_TYPE

    def to_dict(self) -> dict[str, Any]:
        """Wire form (camelCase, unset optionals omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Parsing & reference checks
# ---------------------------------------------------------------------------

def parse_graph(data: Graph | dict[str, Any]) -> Graph:
    """Validate *data* against the graph schema.

    Node ids must be unique, and an explicit edge id may collide neither with
    another edge id nor with a node id (both end up as element ids).

    Raises:
        GraphSchemaError: listing every violating field, or every duplicated
            id.
    """
    if isinstance(data, Graph):
        graph = data
    else:
        try:
            graph = Graph.model_validate(data)
        except PydanticValidationError as exc:
            issues = issues_from_pydantic(exc, "invalid-graph")
            raise GraphSchemaError(
                f"Graph failed schema validation ({len(issues)} issue(s)).",
                issues,
            ) from exc

    node_ids: set[str] = set()
    duplicates: list[Issue] = []
    for index, node in enumerate(graph.nodes):
        if node.id in node_ids:
            duplicates.append(Issue(
                code="duplicate-node-id",
                message=f"Duplicate node id '{node.id}'",
                element_id=node.id,
                path=f"nodes.{index}.id",
            ))
        node_ids.add(node.id)

    edge_ids: set[str] = set()
    for index, edge in enumerate(graph.edges):
        if edge.id is None:
            continue
        if edge.id in node_ids:
            message = f"Edge id '{edge.id}' is already used by a node"
        elif edge.id in edge_ids:
            message = f"Duplicate edge id '{edge.id}'"
        else:
            edge_ids.add(edge.id)
            continue
        duplicates.append(Issue(
            code="duplicate-edge-id",
            message=message,
            element_id=edge.id,
            path=f"edges.{index}.id",
        ))

    if duplicates:
        raise GraphSchemaError(
            f"Graph has {len(duplicates)} duplicate id(s).", duplicates,
        )
    return graph


def validate_edge_references(nodes: list[Node], edges: list[Edge]) -> list[Issue]:
    """Return one issue per edge endpoint that names a missing node."""
    node_ids = {node.id for node in nodes}
    issues: list[Issue] = []
    for index, edge in enumerate(edges):
        edge_name = edge.id or f"edges[{index}]"
        if edge.from_id not in node_ids:
            issues.append(Issue(
                code="missing-node-reference",
                message=f"Edge '{edge_name}' references missing fromId node '{edge.from_id}'",
                element_id=edge.id,
                path=f"edges.{index}.fromId",
            ))
        if edge.to_id not in node_ids:
            issues.append(Issue(
                code="missing-node-reference",
                message=f"Edge '{edge_name}' references missing toId node '{edge.to_id}'",
                element_id=edge.id,
                path=f"edges.{index}.toId",
            ))
    return issues


def ensure_edge_references(graph: Graph) -> None:
    """Raise ``EdgeReferenceError`` if any edge endpoint is dangling."""
    issues = validate_edge_references(graph.nodes, graph.edges)
    if issues:
        raise EdgeReferenceError(
            f"Graph has {len(issues)} dangling edge reference(s).", issues,
        )
