"""
Per-diagram-type templates: node sizes, color themes, arrowheads and the
mapping from a node's semantic ``kind`` to a shape.

``apply_template_defaults`` fills in whatever the graph leaves unspecified,
so a bare ``{id, label, kind}`` node still renders with the look of its
diagram type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from sketch_mcp.graph import Graph
from sketch_mcp.models import ShapeType


# ---------------------------------------------------------------------------
# Color themes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColorTheme:
    """A named color palette for consistent diagram styling."""
    fill: str
    stroke: str
    font: str = "#1e1e1e"


class Themes:
    """Pre-built color themes."""
    BLUE = ColorTheme(fill="#a5d8ff", stroke="#1971c2")
    VIOLET = ColorTheme(fill="#d0bfff", stroke="#7950f2")
    ORANGE = ColorTheme(fill="#ffc078", stroke="#fd7e14")
    GREEN = ColorTheme(fill="#b2f2bb", stroke="#40c057")


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DiagramTemplate:
    """Visual defaults for one diagram type."""
    diagram_type: str
    node_shape: ShapeType
    node_width: float
    node_height: float
    theme: ColorTheme
    arrowhead: Optional[str] = "arrow"
    kind_to_shape: dict[str, ShapeType] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "diagramType": self.diagram_type,
            "nodeDefaults": {
                "shapeType": self.node_shape.value,
                "width": self.node_width,
                "height": self.node_height,
                "fill": self.theme.fill,
                "stroke": self.theme.stroke,
            },
            "edgeDefaults": {
                "stroke": self.theme.stroke,
                "arrowhead": self.arrowhead,
            },
            "kindToShapeMap": {k: v.value for k, v in self.kind_to_shape.items()},
        }


class Templates:
    FLOWCHART = DiagramTemplate(
        diagram_type="flowchart",
        node_shape=ShapeType.RECTANGLE,
        node_width=180,
        node_height=80,
        theme=Themes.BLUE,
        kind_to_shape={
            "start": ShapeType.ELLIPSE,
            "end": ShapeType.ELLIPSE,
            "decision": ShapeType.DIAMOND,
            "process": ShapeType.RECTANGLE,
        },
    )
    ARCHITECTURE = DiagramTemplate(
        diagram_type="architecture",
        node_shape=ShapeType.RECTANGLE,
        node_width=200,
        node_height=100,
        theme=Themes.VIOLET,
        kind_to_shape={
            "component": ShapeType.RECTANGLE,
            "database": ShapeType.RECTANGLE,
            "service": ShapeType.RECTANGLE,
            "client": ShapeType.ELLIPSE,
            "external": ShapeType.ELLIPSE,
            "actor": ShapeType.ELLIPSE,
        },
    )
    # Mindmaps draw plain connectors, no arrowheads.
    MINDMAP = DiagramTemplate(
        diagram_type="mindmap",
        node_shape=ShapeType.ELLIPSE,
        node_width=150,
        node_height=60,
        theme=Themes.ORANGE,
        arrowhead=None,
        kind_to_shape={
            "root": ShapeType.ELLIPSE,
            "topic": ShapeType.ELLIPSE,
            "subtopic": ShapeType.ELLIPSE,
        },
    )
    SEQUENCE = DiagramTemplate(
        diagram_type="sequence",
        node_shape=ShapeType.RECTANGLE,
        node_width=120,
        node_height=60,
        theme=Themes.GREEN,
        kind_to_shape={
            "participant": ShapeType.RECTANGLE,
            "lifeline": ShapeType.RECTANGLE,
            "activation": ShapeType.RECTANGLE,
        },
    )


_TEMPLATES: dict[str, DiagramTemplate] = {
    "flowchart": Templates.FLOWCHART,
    "architecture": Templates.ARCHITECTURE,
    "mindmap": Templates.MINDMAP,
    "sequence": Templates.SEQUENCE,
}


def get_template(diagram_type: Optional[str]) -> DiagramTemplate:
    """Template for *diagram_type*; flowchart for anything without its own."""
    if not diagram_type:
        return Templates.FLOWCHART
    return _TEMPLATES.get(diagram_type.lower(), Templates.FLOWCHART)


def list_templates() -> list[DiagramTemplate]:
    return list(_TEMPLATES.values())


def apply_template_defaults(
    graph: Graph,
    template: Optional[DiagramTemplate] = None,
) -> Graph:
    """Return a copy of *graph* with template shape, size and colors filled in.

    Explicit values in the graph always win.  Layout options are left alone:
    per-type layout defaults are resolved by the layout engine.
    """
    tpl = template or get_template(graph.diagram_type)
    data = graph.to_dict()

    for node in data["nodes"]:
        metadata = dict(node.get("metadata") or {})
        kind = (node.get("kind") or "").lower()
        if metadata.get("shape") is None and kind in tpl.kind_to_shape:
            metadata["shape"] = tpl.kind_to_shape[kind].value
        if metadata.get("width") is None:
            metadata["width"] = tpl.node_width
        if metadata.get("height") is None:
            metadata["height"] = tpl.node_height
        node["metadata"] = metadata

    options = data.setdefault("graphOptions", {})
    options.setdefault("diagramType", graph.diagram_type)
    style = options.setdefault("style", {})
    style.setdefault("shapeFill", tpl.theme.fill)
    style.setdefault("shapeStroke", tpl.theme.stroke)
    style.setdefault("arrowStroke", tpl.theme.stroke)

    return Graph.model_validate(data)
