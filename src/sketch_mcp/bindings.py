"""
Shape ↔ arrow back-reference repair.

The renderer needs every shape to list the arrows attached to it in
``boundElements``, otherwise dragging the shape leaves its arrows behind.
"""

from __future__ import annotations

from sketch_mcp.elements import ArrowElement, BoundElement, ElementBase


def arrows_by_shape(elements: list[ElementBase]) -> dict[str, list[str]]:
    """Shape id → ids of arrows bound to it, in element order."""
    attached: dict[str, list[str]] = {}
    for element in elements:
        if not isinstance(element, ArrowElement):
            continue
        for target in (element.start_id, element.end_id):
            if not target:
                continue
            ids = attached.setdefault(target, [])
            if element.id not in ids:
                ids.append(element.id)
    return attached


def normalize_arrow_bindings(elements: list[ElementBase]) -> list[ElementBase]:
    """Return *elements* with arrow back-references added to bound shapes.

    Existing ``boundElements`` entries (labels, arrows already listed) are
    kept as they are; only missing arrow entries are appended.
    """
    attached = arrows_by_shape(elements)
    result: list[ElementBase] = []
    for element in elements:
        arrow_ids = attached.get(element.id) if element.is_shape else None
        if not arrow_ids:
            result.append(element)
            continue

        existing = list(element.bound_elements or [])
        listed = {b.id for b in existing}
        additions = [
            BoundElement(id=arrow_id, type="arrow")
            for arrow_id in arrow_ids
            if arrow_id not in listed
        ]
        if not additions:
            result.append(element)
            continue
        result.append(element.model_copy(update={"bound_elements": existing + additions}))
    return result
