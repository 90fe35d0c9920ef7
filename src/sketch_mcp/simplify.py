"""
Element scene → graph (best-effort reverse of rendering).

Shape elements become nodes, arrows whose both ends resolve to those nodes
become edges.  Scenes coming back from the whiteboard may contain debris
(deleted elements, unbound arrows, records that are not objects at all);
all of it is skipped rather than rejected.  Arrows that could not be mapped
are counted in ``droppedArrowCount``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sketch_mcp.elements import ElementBase
from sketch_mcp.graph import Edge, Graph, Node

logger = logging.getLogger(__name__)

NODE_SHAPE_TYPES = (
    "rectangle",
    "diamond",
    "ellipse",
    "roundRectangle",
    "parallelogram",
    "hexagon",
    "octagon",
    "triangle",
    "trapezoid",
)


@dataclass
class SimplifyStats:
    element_count: int = 0
    node_count: int = 0
    edge_count: int = 0
    dropped_arrow_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "elementCount": self.element_count,
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "droppedArrowCount": self.dropped_arrow_count,
        }


@dataclass
class SimplifyResult:
    graph: Graph
    stats: SimplifyStats

    def to_dict(self) -> dict[str, Any]:
        return {"graph": self.graph.to_dict(), "stats": self.stats.to_dict()}


def _as_record(element: Any) -> Optional[dict[str, Any]]:
    if isinstance(element, ElementBase):
        return element.to_dict()
    return element if isinstance(element, dict) else None


def _binding_target(record: dict[str, Any], binding_key: str, legacy_key: str) -> Optional[str]:
    binding = record.get(binding_key)
    if isinstance(binding, dict) and isinstance(binding.get("elementId"), str):
        return binding["elementId"]
    legacy = record.get(legacy_key)
    if isinstance(legacy, dict) and isinstance(legacy.get("id"), str):
        return legacy["id"]
    return None


def _container_texts(records: list[dict[str, Any]]) -> dict[str, str]:
    """Container id → label text; the unwrapped ``originalText`` wins."""
    texts: dict[str, str] = {}
    for record in records:
        if record.get("type") != "text" or record.get("isDeleted") is True:
            continue
        container = record.get("containerId")
        if not isinstance(container, str):
            continue
        original = record.get("originalText")
        text = original if isinstance(original, str) and original else record.get("text")
        if isinstance(text, str):
            texts[container] = text
    return texts


def _resolve_label(record: dict[str, Any], texts: dict[str, str], fallback: str) -> str:
    element_id = record.get("id")
    if isinstance(element_id, str) and texts.get(element_id):
        return texts[element_id]
    own = record.get("text")
    if isinstance(own, str) and own.strip():
        return own
    return fallback


def simplify_elements(elements: list[Any]) -> SimplifyResult:
    records = [r for r in (_as_record(e) for e in elements) if r is not None]
    live = [r for r in records if r.get("isDeleted") is not True]
    texts = _container_texts(records)

    nodes: dict[str, Node] = {}
    for record in live:
        kind = record.get("type")
        element_id = record.get("id")
        if kind not in NODE_SHAPE_TYPES or not isinstance(element_id, str) or not element_id:
            continue
        nodes[element_id] = Node(
            id=element_id,
            label=_resolve_label(record, texts, element_id),
            metadata={"shape": kind},
        )

    edges: list[Edge] = []
    dropped = 0
    for record in live:
        if record.get("type") != "arrow":
            continue
        from_id = _binding_target(record, "startBinding", "start")
        to_id = _binding_target(record, "endBinding", "end")
        if from_id not in nodes or to_id not in nodes:
            dropped += 1
            continue
        element_id = record.get("id")
        edges.append(Edge(
            id=element_id if isinstance(element_id, str) else None,
            from_id=from_id,
            to_id=to_id,
            label=_resolve_label(record, texts, "") or None,
        ))

    if dropped:
        logger.debug("simplify: dropped %d unbound arrow(s)", dropped)
    stats = SimplifyStats(
        element_count=len(elements),
        node_count=len(nodes),
        edge_count=len(edges),
        dropped_arrow_count=dropped,
    )
    return SimplifyResult(graph=Graph(nodes=list(nodes.values()), edges=edges), stats=stats)
