"""
Sketch MCP Server - render and edit whiteboard diagrams via Model Context Protocol.

Exposes 4 tools that let an LLM agent turn a node/edge graph into a laid-out
element scene, and change existing scenes through validated diffs.

Tools:
  1. render    - graph JSON → positioned, styled elements (+ stats)
  2. modify    - scene edits: apply_diff, explicit_edits, validate
  3. simplify  - elements → graph JSON (reverse of render)
  4. session   - scene store: create, get, save (optimistic versioning)
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from sketch_mcp.edits import apply_explicit_edits, extract_explicit_edits
from sketch_mcp.elements import dump_elements
from sketch_mcp.modification import ApplyResult, apply_diagram_diff, validate_elements
from sketch_mcp.renderer import render_graph
from sketch_mcp.sessions import SceneStore, SessionNotFoundError
from sketch_mcp.simplify import simplify_elements
from sketch_mcp.templates import list_templates
from sketch_mcp.validation import (
    ValidationError,
    format_issues,
    validate_action,
    validate_dict,
    validate_expected_version,
    validate_list,
    validate_non_empty_string,
    _MODIFY_ACTIONS,
    _SESSION_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging - suppress routine FastMCP INFO messages that clients surface
# as warnings (they go to stderr).
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("sketch-mcp")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "sketch-mcp",
    instructions=(
        "MCP server for hand-drawn style whiteboard diagrams.\n\n"
        "=== ONLY 4 TOOLS ===\n\n"
        "1. render(graph) - {nodes, edges, graphOptions?} → elements + stats.\n"
        "2. modify(action, ...) - apply_diff, explicit_edits, validate.\n"
        "3. simplify(elements) - elements → graph, to restructure a scene.\n"
        "4. session(action, ...) - create, get, save a stored scene.\n\n"
        "=== RULES ===\n"
        "- Graphs are strict: unknown keys are rejected, every edge must\n"
        "  reference existing node ids.\n"
        "- Diffs are all-or-nothing. Removing a shape means also removing or\n"
        "  rebinding every arrow and label attached to it, in the same diff.\n"
        "- Never put 'id' inside modify[].changes.\n"
        "- For literal edits write: <elementId> <field.path> = '<value>'.\n\n"
        "Read sketch://guide/agent before building complex diagrams.\n"
    ),
)

# In-memory scene store, shared by all tools.
_store = SceneStore()


# ===================================================================
# RESOURCES
# ===================================================================

@mcp.resource("sketch://templates")
def template_catalog() -> str:
    """Per-diagram-type node sizes, colors and kind → shape maps."""
    return json.dumps([t.to_dict() for t in list_templates()], indent=2)


@mcp.resource("sketch://guide/agent")
def agent_guide() -> str:
    """Guide for AI agents on how to use the sketch MCP tools effectively."""
    return """# Sketch MCP - Agent Guide

## Quick Decision Tree

1. Need a NEW diagram?  → render(graph={...})
2. Small literal change ("rect_1 strokeColor = '#e03131'")?
   → modify(action='explicit_edits', elements=..., request='...')
3. Structural change (add/remove/rewire)?
   → modify(action='apply_diff', elements=..., diff={add, remove, modify})
4. Big restructure?  → simplify(elements) → edit the graph → render(graph)
5. Persist the result?  → session(action='save', session_id, expected_version, elements)

## Graph format

```
{
  "nodes": [{"id": "a", "label": "Start", "kind": "start"},
            {"id": "b", "label": "Work"}],
  "edges": [{"fromId": "a", "toId": "b", "label": "go"}],
  "graphOptions": {
    "diagramType": "flowchart",
    "layout": {"direction": "LR", "edgeRouting": "elbow"},
    "style": {"shapeFill": "#a5d8ff", "fontSize": 16}
  }
}
```

- diagramType picks defaults: flowchart/architecture/decision-tree are
  top-to-bottom, sequence/state left-to-right, mindmap is radial.
- kind picks the shape: decision → diamond; start/end/actor/external → ellipse.
- metadata.shape / metadata.color / metadata.width / metadata.height override.

## Diff format

```
{"add": [{"id": "n", "type": "rectangle", "x": 0, "y": 0}],
 "remove": ["old_shape", "old_shape_text", "arrow_to_old"],
 "modify": [{"id": "a", "changes": {"backgroundColor": "#ffc9c9"}}]}
```

- Order: remove, then modify, then add.
- Each changed key replaces the whole field.
- Rejected diffs return every issue (code, elementId, path). Fix all of
  them and resend the complete diff.

## Sessions

- Versions start at 0. Pass the version you last read to save; a
  'conflict' means someone else saved first: get, re-apply, save again.
"""


# ===================================================================
# Helpers
# ===================================================================

def _session_elements(session_id: str) -> tuple[list[Any], int]:
    """Elements and version of a stored scene."""
    session = _store.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    scene = session.latest_scene or {}
    return list(scene.get("elements") or []), session.latest_scene_version


def _save_if_requested(
    payload: dict[str, Any],
    session_id: str,
    expected_version: int,
    elements: list[dict[str, Any]],
    app_state: dict[str, Any] | None = None,
) -> None:
    if not session_id:
        return
    try:
        saved = _store.set_latest_scene(session_id, expected_version, elements, app_state)
    except SessionNotFoundError as exc:
        payload["save"] = {"status": "failed", "reason": str(exc)}
        return
    payload["save"] = saved.to_dict()


def _apply_result_json(result: ApplyResult) -> str:
    return json.dumps(result.to_dict(), indent=2)


# ===================================================================
# TOOL 1: render - graph → elements
# ===================================================================

@mcp.tool()
def render(
    graph: dict[str, Any],
    session_id: str = "",
    expected_version: int = 0,
) -> str:
    """Render a node/edge graph into positioned whiteboard elements.

    Args:
        graph: {nodes: [{id, label, kind?, description?, metadata?}],
                edges: [{id?, fromId, toId, label?, metadata?}],
                graphOptions?: {diagramType?, layout?, style?}}.
        session_id: When set, the rendered scene is saved to this session.
        expected_version: Session version the caller last observed.

    Returns:
        JSON {elements, stats[, save]} or an error listing every issue.
    """
    try:
        validate_dict(graph, "graph")
        if session_id:
            validate_expected_version(expected_version)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    result = render_graph(graph)
    if not result.ok:
        return f"Error: graph rejected.\n{format_issues(result.issues)}"

    elements = dump_elements(result.elements)
    payload: dict[str, Any] = {"elements": elements, "stats": result.stats.to_dict()}
    _save_if_requested(payload, session_id, expected_version, elements)
    logger.info("render: %s", result.stats.to_dict())
    return json.dumps(payload, indent=2)


# ===================================================================
# TOOL 2: modify - scene edits
# ===================================================================

@mcp.tool()
def modify(
    action: str,
    elements: list[dict[str, Any]] | None = None,
    diff: dict[str, Any] | None = None,
    request: str = "",
    session_id: str = "",
    expected_version: int = -1,
) -> str:
    """Validate or change an element scene.

    Actions:
      apply_diff     - Apply {add?, remove?, modify?} atomically. Params: diff.
      explicit_edits - Apply "<id> <path> = '<value>'" assignments found in
                       request. Params: request.
      validate       - Check ids and references of a scene. No extra params.

    Elements come from ``elements`` or, when omitted, from the stored scene
    of ``session_id``.  With a session, successful changes are saved back.

    Args:
        action: One of: apply_diff, explicit_edits, validate.
        elements: Current element list.
        diff: Diff object for apply_diff.
        request: Free text for explicit_edits.
        session_id: Scene store session to read from / save to.
        expected_version: Session version for the save; defaults to the
            version the elements were read at.

    Returns:
        JSON validator result {ok, issues? | elements?, changes?}.
    """
    try:
        action = validate_action(action, "modify", _MODIFY_ACTIONS)
        if elements is not None:
            validate_list(elements, "elements")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    version = expected_version
    if elements is None:
        if not session_id:
            return "Error: 'elements' or 'session_id' is required."
        try:
            elements, stored_version = _session_elements(session_id)
        except SessionNotFoundError as exc:
            return f"Error: {exc}"
        if version < 0:
            version = stored_version

    if action == "validate":
        issues = validate_elements(elements)
        payload: dict[str, Any] = {"ok": not issues}
        if issues:
            payload["issues"] = [i.to_dict() for i in issues]
        return json.dumps(payload, indent=2)

    if action == "apply_diff":
        try:
            validate_dict(diff, "diff")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        result = apply_diagram_diff(elements, diff)

    else:  # explicit_edits
        try:
            request = validate_non_empty_string(request, "request")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        applied = apply_explicit_edits(elements, request)
        if applied is None:
            found = len(extract_explicit_edits(request))
            return (
                "Error: no explicit edits for existing elements found in request "
                f"({found} edit(s) parsed). Expected <elementId> <path> = '<value>'."
            )
        result = applied

    if not result.ok:
        logger.info("modify %s rejected: %d issue(s)", action, len(result.issues))
        return _apply_result_json(result)

    payload = result.to_dict()
    if session_id:
        if version < 0:
            return "Error: 'expected_version' is required when saving to a session."
        _save_if_requested(payload, session_id, version, payload["elements"])
    return json.dumps(payload, indent=2)


# ===================================================================
# TOOL 3: simplify - elements → graph
# ===================================================================

@mcp.tool()
def simplify(
    elements: list[Any] | None = None,
    session_id: str = "",
) -> str:
    """Reduce an element scene to a {nodes, edges} graph.

    Shapes become nodes (label from their bound text), arrows bound on both
    ends become edges; everything else is skipped and counted.

    Args:
        elements: Element list. Omit to read the stored scene of session_id.
        session_id: Scene store session.

    Returns:
        JSON {graph, stats}.
    """
    if elements is None:
        if not session_id:
            return "Error: 'elements' or 'session_id' is required."
        try:
            elements, _ = _session_elements(session_id)
        except SessionNotFoundError as exc:
            return f"Error: {exc}"
    try:
        validate_list(elements, "elements")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    return json.dumps(simplify_elements(elements).to_dict(), indent=2)


# ===================================================================
# TOOL 4: session - scene store
# ===================================================================

@mcp.tool()
def session(
    action: str,
    session_id: str = "",
    expected_version: int = 0,
    elements: list[dict[str, Any]] | None = None,
    app_state: dict[str, Any] | None = None,
) -> str:
    """Scene store with optimistic versioning.

    Actions:
      create - New empty session. Returns {sessionId}.
      get    - Stored scene and version. Params: session_id.
      save   - Store a scene. Params: session_id, expected_version,
               elements, app_state?. Returns status success | conflict | failed.

    Args:
        action: One of: create, get, save.
        session_id: Target session.
        expected_version: Version the caller last observed (save).
        elements: Scene elements (save).
        app_state: Renderer app state (save); per-user UI keys are dropped.

    Returns:
        JSON result.
    """
    try:
        action = validate_action(action, "session", _SESSION_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        return json.dumps({"sessionId": _store.create()})

    try:
        session_id = validate_non_empty_string(session_id, "session_id")
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "get":
        found = _store.get(session_id)
        if found is None:
            return f"Error: {SessionNotFoundError(session_id)}"
        return json.dumps(found.to_dict(), indent=2)

    # save
    try:
        validate_expected_version(expected_version)
        validate_list(elements, "elements")
        if app_state is not None:
            validate_dict(app_state, "app_state")
    except ValidationError as exc:
        return f"Error: {exc.message}"
    try:
        saved = _store.set_latest_scene(session_id, expected_version, elements, app_state)
    except SessionNotFoundError as exc:
        return f"Error: {exc}"
    return json.dumps(saved.to_dict(), indent=2)


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
