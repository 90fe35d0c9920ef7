"""
Graph → element scene, in one call.

``render_graph`` is the entry point for generation: it validates the graph
(schema, then edge references), applies the diagram type's template,
lays it out and synthesizes elements.  A graph with dangling edges is never
laid out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sketch_mcp.elements import ElementBase, dump_elements
from sketch_mcp.graph import Graph, ensure_edge_references, parse_graph
from sketch_mcp.layout import layout_graph
from sketch_mcp.models import Diagram, LayoutedDiagram
from sketch_mcp.modification import check_structure
from sketch_mcp.synthesis import SynthesisStyle, convert_layouted_to_elements
from sketch_mcp.templates import apply_template_defaults, get_template
from sketch_mcp.validation import Issue, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class RenderStats:
    node_count: int = 0
    edge_count: int = 0
    shape_count: int = 0
    arrow_count: int = 0
    element_count: int = 0
    placeholder_arrow_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "shapeCount": self.shape_count,
            "arrowCount": self.arrow_count,
            "elementCount": self.element_count,
            "placeholderArrowCount": self.placeholder_arrow_count,
        }


@dataclass
class RenderResult:
    """Outcome of ``render_graph``.  ``issues`` is non-empty iff not ``ok``."""
    ok: bool
    elements: list[ElementBase] = field(default_factory=list)
    stats: RenderStats = field(default_factory=RenderStats)
    issues: list[Issue] = field(default_factory=list)
    diagram: Optional[Diagram] = None
    layouted: Optional[LayoutedDiagram] = None
    graph: Optional[Graph] = None

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"ok": False, "issues": [i.to_dict() for i in self.issues]}
        return {
            "ok": True,
            "elements": dump_elements(self.elements),
            "stats": self.stats.to_dict(),
        }


def render_graph(data: Graph | dict[str, Any]) -> RenderResult:
    """Render a graph description into drawable elements.

    Never raises for bad input: schema violations, dangling edges and
    element id collisions come back as ``RenderResult(ok=False, issues=[...])``.
    """
    try:
        graph = parse_graph(data)
        ensure_edge_references(graph)
    except ValidationError as exc:
        logger.warning("render rejected: %s", exc.message)
        return RenderResult(ok=False, issues=exc.issues)

    template = get_template(graph.diagram_type)
    enriched = apply_template_defaults(graph, template)
    laid_out = layout_graph(enriched)

    options = enriched.graph_options
    style = SynthesisStyle.resolve(
        options.style if options else None,
        arrowhead=template.arrowhead,
    )
    elements = convert_layouted_to_elements(laid_out.layouted, style)

    # Derived ids (<node>_text, <edge>_label, edge_<i>_<from>_<to>) can
    # still collide with ids chosen in the graph.
    issues = check_structure(elements)
    if issues:
        logger.warning("render rejected: %d element id collision(s)", len(issues))
        return RenderResult(ok=False, issues=issues)

    stats = RenderStats(
        node_count=len(enriched.nodes),
        edge_count=len(enriched.edges),
        shape_count=len(laid_out.diagram.shapes),
        arrow_count=len(laid_out.diagram.arrows),
        element_count=len(elements),
        placeholder_arrow_count=sum(1 for a in laid_out.layouted.arrows if a.placeholder),
    )
    logger.debug("rendered %s diagram: %s", laid_out.diagram_type, stats.to_dict())
    return RenderResult(
        ok=True,
        elements=elements,
        stats=stats,
        diagram=laid_out.diagram,
        layouted=laid_out.layouted,
        graph=enriched,
    )
