"""
Geometry and intermediate diagram model.

The layout pipeline works on these plain dataclasses:

- ``ShapeSpec`` / ``ArrowSpec`` / ``Diagram``: the normalized, not yet
  positioned form derived from a graph
- ``PositionedShape`` / ``PositionedArrow`` / ``LayoutedDiagram``: the
  same items with resolved coordinates and arrow polylines

Identity (shape ids, arrow endpoints) is owned by the graph; the layout
only adds geometry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ShapeType(str, Enum):
    """Drawable shape kinds produced by the layout pipeline."""
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    DIAMOND = "diamond"


class Direction(str, Enum):
    """Primary layout direction (rank axis)."""
    TB = "TB"
    BT = "BT"
    LR = "LR"
    RL = "RL"

    @property
    def is_vertical(self) -> bool:
        return self in (Direction.TB, Direction.BT)


class EdgeRouting(str, Enum):
    STRAIGHT = "straight"
    ELBOW = "elbow"


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """A 2-D coordinate."""
    x: float
    y: float


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2


# ---------------------------------------------------------------------------
# Intermediate (unpositioned) diagram
# ---------------------------------------------------------------------------

@dataclass
class ShapeSpec:
    """A node as the layout sees it: type, identity, label, optional size."""
    id: str
    type: ShapeType = ShapeType.RECTANGLE
    label: Optional[str] = None
    background_color: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass
class ArrowSpec:
    """An edge as the layout sees it."""
    id: str
    from_id: str
    to_id: str
    label: Optional[str] = None


@dataclass
class Diagram:
    """Normalized shapes and arrows, before layout."""
    shapes: list[ShapeSpec] = field(default_factory=list)
    arrows: list[ArrowSpec] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Positioned diagram
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PositionedShape:
    """A shape with resolved top-left position and size."""
    id: str
    type: ShapeType
    x: float
    y: float
    width: float
    height: float
    label: Optional[str] = None
    background_color: Optional[str] = None

    @property
    def bounds(self) -> Bounds:
        return Bounds(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class PositionedArrow:
    """An arrow with its start point and a polyline relative to it.

    ``points`` are local coordinates: the first point is always ``(0, 0)``
    and corresponds to ``(x, y)``.  ``placeholder`` marks the degenerate
    stub emitted when an endpoint shape could not be found.
    """
    id: str
    from_id: str
    to_id: str
    x: float
    y: float
    width: float
    height: float
    points: tuple[tuple[float, float], ...]
    elbowed: bool = False
    label: Optional[str] = None
    placeholder: bool = False

    @property
    def start(self) -> Point:
        return Point(self.x, self.y)

    @property
    def end(self) -> Point:
        lx, ly = self.points[-1]
        return Point(self.x + lx, self.y + ly)

    def length(self) -> float:
        """Total polyline length."""
        total = 0.0
        for (x1, y1), (x2, y2) in zip(self.points, self.points[1:]):
            total += ((x2 - x1) ** 2 + (y2 - y1) ** 2) ** 0.5
        return total


@dataclass
class LayoutedDiagram:
    shapes: list[PositionedShape] = field(default_factory=list)
    arrows: list[PositionedArrow] = field(default_factory=list)

    def shape_map(self) -> dict[str, PositionedShape]:
        return {s.id: s for s in self.shapes}
