"""
Positioned shapes and arrows → drawable element records.

Each shape becomes a shape element plus, when labelled, a bound text
element (``<shapeId>_text``).  Each arrow becomes an arrow element bound to
its endpoint shapes plus, when labelled, a text element (``<arrowId>_label``)
centred on the arrow.  Draw-order indices come from one ``IndexSequence``
per call, in emission order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from sketch_mcp.bindings import normalize_arrow_bindings
from sketch_mcp.elements import (
    ArrowElement,
    Binding,
    BoundElement,
    DiamondElement,
    ElementBase,
    EllipseElement,
    RectangleElement,
    TextElement,
)
from sketch_mcp.graph import GraphStyle
from sketch_mcp.models import LayoutedDiagram, PositionedArrow, PositionedShape, ShapeType
from sketch_mcp.text_metrics import (
    DEFAULT_METRICS,
    TextMetrics,
    arrow_label_width,
    interior_width,
    layout_text,
)

logger = logging.getLogger(__name__)

_SHAPE_CLASSES: dict[ShapeType, type[ElementBase]] = {
    ShapeType.RECTANGLE: RectangleElement,
    ShapeType.ELLIPSE: EllipseElement,
    ShapeType.DIAMOND: DiamondElement,
}

_INDEX_RE = re.compile(r"^a(\d+)$")


# ---------------------------------------------------------------------------
# Draw order
# ---------------------------------------------------------------------------

class IndexSequence:
    """Yields draw-order indices ``a0, a1, ...``."""

    def __init__(self, start: int = 0) -> None:
        self._next = start

    @classmethod
    def after(cls, indices: Iterable[Optional[str]]) -> "IndexSequence":
        """Sequence continuing after the highest ``a<n>`` index in *indices*."""
        highest = -1
        for value in indices:
            match = _INDEX_RE.match(value) if isinstance(value, str) else None
            if match:
                highest = max(highest, int(match.group(1)))
        return cls(highest + 1)

    def next(self) -> str:
        value = f"a{self._next}"
        self._next += 1
        return value


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SynthesisStyle:
    """Resolved colors and fonts for one render."""
    shape_stroke: str = "#1971c2"
    shape_fill: str = "#a5d8ff"
    text_color: str = "#1e1e1e"
    font_size: float = 16
    font_family: int = 5
    arrow_stroke: str = "#1971c2"
    arrowhead: Optional[str] = "arrow"

    @classmethod
    def resolve(
        cls,
        style: Optional[GraphStyle] = None,
        arrowhead: Optional[str] = "arrow",
    ) -> "SynthesisStyle":
        """Fill unset graph style fields; arrows default to the shape stroke."""
        s = style or GraphStyle()
        shape_stroke = s.shape_stroke or cls.shape_stroke
        return cls(
            shape_stroke=shape_stroke,
            shape_fill=s.shape_fill or cls.shape_fill,
            text_color=s.text_color or cls.text_color,
            font_size=s.font_size or cls.font_size,
            font_family=s.font_family if s.font_family is not None else cls.font_family,
            arrow_stroke=s.arrow_stroke or shape_stroke,
            arrowhead=arrowhead,
        )


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def _label_element(
    element_id: str,
    container_id: str,
    label: str,
    center_x: float,
    center_y: float,
    max_width: float,
    style: SynthesisStyle,
    index: str,
    metrics: TextMetrics,
) -> TextElement:
    block = layout_text(label, max_width, style.font_size, metrics)
    return TextElement(
        id=element_id,
        x=center_x - block.width / 2,
        y=center_y - block.height / 2,
        width=block.width,
        height=block.height,
        stroke_color=style.text_color,
        index=index,
        text=block.text,
        original_text=label,
        font_size=style.font_size,
        font_family=style.font_family,
        container_id=container_id,
        line_height=metrics.line_height,
    )


def build_shape_elements(
    shape: PositionedShape,
    style: SynthesisStyle,
    indices: IndexSequence,
    metrics: TextMetrics = DEFAULT_METRICS,
) -> list[ElementBase]:
    cls = _SHAPE_CLASSES[shape.type]
    base = cls(
        id=shape.id,
        x=shape.x,
        y=shape.y,
        width=shape.width,
        height=shape.height,
        stroke_color=style.shape_stroke,
        background_color=shape.background_color or style.shape_fill,
        index=indices.next(),
    )
    if not shape.label:
        return [base.with_defaults()]

    text_id = f"{shape.id}_text"
    base.bound_elements = [BoundElement(id=text_id, type="text")]
    bounds = shape.bounds
    text = _label_element(
        text_id,
        shape.id,
        shape.label,
        bounds.cx,
        bounds.cy,
        interior_width(shape.type, shape.width, style.font_size, metrics),
        style,
        indices.next(),
        metrics,
    )
    return [base.with_defaults(), text.with_defaults()]


def build_arrow_elements(
    arrow: PositionedArrow,
    style: SynthesisStyle,
    indices: IndexSequence,
    shape_ids: Optional[set[str]] = None,
    metrics: TextMetrics = DEFAULT_METRICS,
) -> list[ElementBase]:
    """Arrow element plus optional label.

    When *shape_ids* is given, bindings are only written for endpoints that
    exist in it, so a placeholder arrow never points at a missing shape.
    """
    def binding(target: str) -> Optional[Binding]:
        if shape_ids is not None and target not in shape_ids:
            return None
        return Binding(element_id=target)

    label_id = f"{arrow.id}_label"
    elbow_fields = (
        {"fixedSegments": [], "startIsSpecial": False, "endIsSpecial": False}
        if arrow.elbowed else {}
    )
    element = ArrowElement(
        id=arrow.id,
        x=arrow.x,
        y=arrow.y,
        width=arrow.width,
        height=arrow.height,
        stroke_color=style.arrow_stroke,
        index=indices.next(),
        roundness=None if arrow.elbowed else {"type": 2},
        bound_elements=[BoundElement(id=label_id, type="text")] if arrow.label else None,
        points=[list(p) for p in arrow.points],
        elbowed=arrow.elbowed,
        start_binding=binding(arrow.from_id),
        end_binding=binding(arrow.to_id),
        start_arrowhead=None,
        end_arrowhead=style.arrowhead,
        **elbow_fields,
    )
    if not arrow.label:
        return [element.with_defaults()]

    label = _label_element(
        label_id,
        arrow.id,
        arrow.label,
        arrow.x + arrow.width / 2,
        arrow.y + arrow.height / 2,
        arrow_label_width(arrow.length(), style.font_size, metrics),
        style,
        indices.next(),
        metrics,
    )
    return [element.with_defaults(), label.with_defaults()]


def convert_layouted_to_elements(
    layouted: LayoutedDiagram,
    style: Optional[SynthesisStyle] = None,
    metrics: TextMetrics = DEFAULT_METRICS,
) -> list[ElementBase]:
    """Build the full element list for a laid-out diagram.

    Shapes (each followed by its label) come first, then arrows.  Arrow
    back-references are added to shapes before returning.
    """
    resolved = style or SynthesisStyle()
    indices = IndexSequence()
    shape_ids = {s.id for s in layouted.shapes}

    elements: list[ElementBase] = []
    for shape in layouted.shapes:
        elements.extend(build_shape_elements(shape, resolved, indices, metrics))
    for arrow in layouted.arrows:
        elements.extend(build_arrow_elements(arrow, resolved, indices, shape_ids, metrics))

    logger.debug(
        "synthesized %d elements from %d shapes and %d arrows",
        len(elements), len(layouted.shapes), len(layouted.arrows),
    )
    return normalize_arrow_bindings(elements)
