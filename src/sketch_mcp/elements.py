"""
Drawable element records exchanged with the whiteboard rendering surface.

Every element shares a common base (position, size, stroke/fill, draw-order
``index``, ``seed``/``versionNonce`` pair, ``boundElements``).  ``text`` and
``arrow`` elements add their own fields.  Records are discriminated on
``type``; element types this package does not draw itself (lines, images,
frames, ...) are kept as generic records so foreign scenes can pass through
the diff engine untouched.

Unknown keys are preserved, and serialization emits only the keys that were
set, so a scene parsed and dumped again is unchanged.
"""

from __future__ import annotations

import random
import time
from typing import Any, Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


SHAPE_TYPES = ("rectangle", "ellipse", "diamond")


def generate_seed() -> int:
    """Random value the renderer uses to detect element regeneration."""
    return random.randint(0, 999_999_999)


def now_ms() -> int:
    return int(time.time() * 1000)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Binding(_WireModel):
    """Arrow → shape attachment."""
    element_id: str
    focus: float = 0
    gap: float = 5
    fixed_point: Optional[list[float]] = None


class BoundElement(_WireModel):
    """Shape → attached element back-reference."""
    id: str
    type: str


# ---------------------------------------------------------------------------
# Element records
# ---------------------------------------------------------------------------

class ElementBase(_WireModel):
    """Fields every drawable element carries."""
    id: str = Field(min_length=1)
    type: str
    x: float
    y: float
    width: float = 160
    height: float = 100
    angle: float = 0
    stroke_color: str = "#1971c2"
    background_color: str = "#a5d8ff"
    fill_style: str = "solid"
    stroke_width: float = 2
    stroke_style: str = "solid"
    roughness: float = 1
    opacity: float = 100
    group_ids: list[str] = Field(default_factory=list)
    frame_id: Optional[str] = None
    index: Optional[str] = None
    roundness: Optional[dict[str, Any]] = Field(default_factory=lambda: {"type": 3})
    seed: int = Field(default_factory=generate_seed)
    version: int = 1
    version_nonce: int = Field(default_factory=generate_seed)
    is_deleted: bool = False
    bound_elements: Optional[list[BoundElement]] = None
    updated: int = Field(default_factory=now_ms)
    link: Optional[str] = None
    locked: bool = False

    @property
    def is_shape(self) -> bool:
        return self.type in SHAPE_TYPES

    def references(self) -> list[tuple[str, str, str]]:
        """Ids this element points at, as ``(kind, target_id, path)``."""
        refs: list[tuple[str, str, str]] = []
        extra = self.model_extra or {}
        for key in ("start", "end"):
            legacy = extra.get(key)
            if isinstance(legacy, dict) and isinstance(legacy.get("id"), str):
                refs.append((key, legacy["id"], f"{key}.id"))
        for bound in self.bound_elements or []:
            refs.append(("boundElements", bound.id, "boundElements"))
        return refs

    def to_dict(self) -> dict[str, Any]:
        """Wire form: camelCase keys, only fields that were set."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    def with_defaults(self) -> "ElementBase":
        """Copy with every default written out explicitly."""
        data = self.model_dump(mode="json", by_alias=True)
        self._fill_defaults(data)
        return type(self).model_validate(data)

    def _fill_defaults(self, data: dict[str, Any]) -> None:
        pass


class RectangleElement(ElementBase):
    type: Literal["rectangle"] = "rectangle"


class EllipseElement(ElementBase):
    type: Literal["ellipse"] = "ellipse"


class DiamondElement(ElementBase):
    type: Literal["diamond"] = "diamond"


class TextElement(ElementBase):
    type: Literal["text"] = "text"
    width: float = 100
    height: float = 24
    background_color: str = "transparent"
    roundness: Optional[dict[str, Any]] = None
    text: str = ""
    font_size: float = 16
    font_family: int = 5
    text_align: str = "center"
    vertical_align: str = "middle"
    container_id: Optional[str] = None
    original_text: Optional[str] = None
    auto_resize: bool = True
    line_height: float = 1.25

    def references(self) -> list[tuple[str, str, str]]:
        refs = super().references()
        if self.container_id is not None:
            refs.append(("containerId", self.container_id, "containerId"))
        return refs

    def _fill_defaults(self, data: dict[str, Any]) -> None:
        if data.get("originalText") is None:
            data["originalText"] = data.get("text", "")


class ArrowElement(ElementBase):
    type: Literal["arrow"] = "arrow"
    background_color: str = "transparent"
    roundness: Optional[dict[str, Any]] = Field(default_factory=lambda: {"type": 2})
    points: list[list[float]] = Field(default_factory=list)
    elbowed: bool = False
    start_binding: Optional[Binding] = None
    end_binding: Optional[Binding] = None
    start_arrowhead: Optional[str] = None
    end_arrowhead: Optional[str] = "arrow"

    @property
    def start_id(self) -> Optional[str]:
        if self.start_binding is not None:
            return self.start_binding.element_id
        legacy = (self.model_extra or {}).get("start")
        return legacy.get("id") if isinstance(legacy, dict) else None

    @property
    def end_id(self) -> Optional[str]:
        if self.end_binding is not None:
            return self.end_binding.element_id
        legacy = (self.model_extra or {}).get("end")
        return legacy.get("id") if isinstance(legacy, dict) else None

    def references(self) -> list[tuple[str, str, str]]:
        refs: list[tuple[str, str, str]] = []
        if self.start_binding is not None:
            refs.append(("startBinding", self.start_binding.element_id, "startBinding.elementId"))
        if self.end_binding is not None:
            refs.append(("endBinding", self.end_binding.element_id, "endBinding.elementId"))
        return refs + super().references()

    def _fill_defaults(self, data: dict[str, Any]) -> None:
        if len(data.get("points") or []) < 2:
            data["points"] = [[0, 0], [data["width"], data["height"]]]


class GenericElement(ElementBase):
    """Any element type not drawn by this package (line, image, frame, ...)."""


_ELEMENT_CLASSES: dict[str, type[ElementBase]] = {
    "rectangle": RectangleElement,
    "ellipse": EllipseElement,
    "diamond": DiamondElement,
    "text": TextElement,
    "arrow": ArrowElement,
}


def element_class(kind: Any) -> type[ElementBase]:
    """Model for an element ``type``; ``GenericElement`` for anything else."""
    return _ELEMENT_CLASSES.get(kind, GenericElement) if isinstance(kind, str) else GenericElement


def parse_element(data: Any) -> ElementBase:
    """Validate one raw element record into its typed model.

    Raises:
        pydantic.ValidationError: if required fields are missing or mistyped.
    """
    if isinstance(data, ElementBase):
        return data
    kind = data.get("type") if isinstance(data, dict) else None
    return element_class(kind).model_validate(data)


def dump_elements(elements: Iterable[ElementBase]) -> list[dict[str, Any]]:
    return [element.to_dict() for element in elements]
