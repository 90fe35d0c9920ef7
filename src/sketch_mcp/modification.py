"""
Element-level diffs: validation and all-or-nothing application.

A diff is ``{add?, remove?, modify?}``.  ``apply_diagram_diff`` checks the
current scene, checks the diff against it, applies remove → modify → add on
a working copy and re-checks the result.  Any issue at any stage rejects the
whole diff; nothing is repaired automatically.  Removing a shape without
also fixing the arrows bound to it is therefore an error the caller has to
resolve in the same diff.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from sketch_mcp.elements import ArrowElement, ElementBase, dump_elements, parse_element
from sketch_mcp.synthesis import IndexSequence
from sketch_mcp.validation import Issue, issues_from_pydantic

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Diff schema
# ---------------------------------------------------------------------------

class ElementChange(BaseModel):
    """One ``modify`` entry: target id and the fields to replace."""
    model_config = ConfigDict(extra="ignore")

    id: str
    changes: dict[str, Any]


class DiagramDiff(BaseModel):
    """Unknown top-level keys are tolerated and ignored."""
    model_config = ConfigDict(extra="allow")

    add: list[dict[str, Any]] = []
    remove: list[str] = []
    modify: list[ElementChange] = []

    @property
    def is_empty(self) -> bool:
        return not (self.add or self.remove or self.modify)


@dataclass
class ChangeSet:
    added_ids: list[str] = field(default_factory=list)
    removed_ids: list[str] = field(default_factory=list)
    modified_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "addedIds": list(self.added_ids),
            "removedIds": list(self.removed_ids),
            "modifiedIds": list(self.modified_ids),
        }


@dataclass
class ApplyResult:
    ok: bool
    elements: list[ElementBase] = field(default_factory=list)
    changes: ChangeSet = field(default_factory=ChangeSet)
    issues: list[Issue] = field(default_factory=list)

    @classmethod
    def failure(cls, issues: list[Issue]) -> "ApplyResult":
        return cls(ok=False, issues=issues)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"ok": False, "issues": [i.to_dict() for i in self.issues]}
        return {
            "ok": True,
            "elements": dump_elements(self.elements),
            "changes": self.changes.to_dict(),
        }


# ---------------------------------------------------------------------------
# Scene validation
# ---------------------------------------------------------------------------

def parse_elements(raw: list[Any], prefix: str = "elements") -> tuple[list[ElementBase], list[Issue]]:
    """Parse raw records; every unparseable one becomes an ``invalid-element`` issue."""
    parsed: list[ElementBase] = []
    issues: list[Issue] = []
    for index, item in enumerate(raw):
        path = f"{prefix}.{index}"
        if not isinstance(item, (dict, ElementBase)):
            issues.append(Issue(
                code="invalid-element",
                message=f"{path}: element must be an object",
                path=path,
            ))
            continue
        try:
            parsed.append(parse_element(item))
        except PydanticValidationError as exc:
            element_id = item.get("id") if isinstance(item, dict) else None
            for issue in issues_from_pydantic(exc, "invalid-element", path):
                issues.append(Issue(
                    code=issue.code,
                    message=issue.message,
                    element_id=element_id if isinstance(element_id, str) and element_id else None,
                    path=issue.path,
                ))
    return parsed, issues


def check_structure(elements: list[ElementBase]) -> list[Issue]:
    """Unique ids and no reference to an id outside the scene."""
    issues: list[Issue] = []
    ids: set[str] = set()
    for element in elements:
        if element.id in ids:
            issues.append(Issue(
                code="duplicate-id",
                message=f"Duplicate element id '{element.id}'",
                element_id=element.id,
            ))
        ids.add(element.id)

    for element in elements:
        for kind, target, path in element.references():
            if target not in ids:
                issues.append(Issue(
                    code="dangling-reference",
                    message=(
                        f"Element '{element.id}' references missing id "
                        f"'{target}' via {kind}"
                    ),
                    element_id=element.id,
                    path=path,
                ))
    return issues


def validate_elements(raw: list[Any]) -> list[Issue]:
    """All structural problems of a scene; empty list means valid."""
    parsed, issues = parse_elements(raw)
    return issues + check_structure(parsed)


# ---------------------------------------------------------------------------
# Diff application
# ---------------------------------------------------------------------------

def _collect_diff_issues(existing_ids: set[str], diff: DiagramDiff) -> list[Issue]:
    issues: list[Issue] = []

    for remove_id in diff.remove:
        if remove_id not in existing_ids:
            issues.append(Issue(
                code="missing-element",
                message=f"Cannot remove missing element '{remove_id}'",
                element_id=remove_id,
            ))

    for index, mod in enumerate(diff.modify):
        if mod.id not in existing_ids:
            issues.append(Issue(
                code="missing-element",
                message=f"Cannot modify missing element '{mod.id}'",
                element_id=mod.id,
                path=f"modify.{index}.id",
            ))
        if "id" in mod.changes:
            issues.append(Issue(
                code="immutable-id",
                message=f"Changes for '{mod.id}' must not contain an 'id' key",
                element_id=mod.id,
                path=f"modify.{index}.changes.id",
            ))

    added: set[str] = set()
    for index, item in enumerate(diff.add):
        add_id = item.get("id")
        if not isinstance(add_id, str):
            continue
        if add_id in existing_ids:
            issues.append(Issue(
                code="duplicate-id",
                message=f"Cannot add element '{add_id}' because it already exists",
                element_id=add_id,
                path=f"add.{index}.id",
            ))
        if add_id in added:
            issues.append(Issue(
                code="duplicate-id",
                message=f"Duplicate add element id '{add_id}'",
                element_id=add_id,
                path=f"add.{index}.id",
            ))
        added.add(add_id)

    return issues


def _flip_if_reversed(
    before: ElementBase,
    after: ElementBase,
    changes: dict[str, Any],
) -> ElementBase:
    """Reverse an arrow's polyline when a modify swapped its endpoints.

    Only applies when the change did not supply its own ``points``.  The
    reversed polyline is re-anchored so it still starts at ``(0, 0)``.
    """
    if not isinstance(before, ArrowElement) or not isinstance(after, ArrowElement):
        return after
    if "points" in changes:
        return after
    ends = (before.start_id, before.end_id, after.start_id, after.end_id)
    if not all(ends) or before.start_id != after.end_id or before.end_id != after.start_id:
        return after
    if len(after.points) < 2:
        return after

    last_x, last_y = after.points[-1][0], after.points[-1][1]
    flipped = [[p[0] - last_x, p[1] - last_y] for p in reversed(after.points)]
    data = after.to_dict()
    data.update(
        x=after.x + last_x,
        y=after.y + last_y,
        width=-after.width,
        height=-after.height,
        points=flipped,
    )
    return parse_element(data)


def _build_added_element(raw: dict[str, Any], index: str) -> ElementBase:
    data = dict(raw)
    if data.get("type") == "text" and not isinstance(data.get("text"), str):
        label = data.get("label")
        if isinstance(label, dict) and "text" in label:
            data["text"] = str(label["text"] or "")
    if data.get("index") is None:
        data["index"] = index
    return parse_element(data).with_defaults()


def apply_diagram_diff(elements: list[Any], diff: Any) -> ApplyResult:
    """Apply *diff* to *elements* atomically.

    Returns ``ApplyResult(ok=True, elements, changes)`` on success, else
    ``ApplyResult(ok=False, issues)``; the input list is never mutated.
    """
    try:
        parsed_diff = diff if isinstance(diff, DiagramDiff) else DiagramDiff.model_validate(diff)
    except PydanticValidationError as exc:
        return ApplyResult.failure(issues_from_pydantic(exc, "invalid-diff"))

    current, issues = parse_elements(elements)
    issues += check_structure(current)
    if issues:
        logger.warning("diff rejected: current scene has %d issue(s)", len(issues))
        return ApplyResult.failure(issues)

    if parsed_diff.is_empty:
        return ApplyResult(ok=True, elements=current)

    element_map: dict[str, ElementBase] = {e.id: e for e in current}
    issues = _collect_diff_issues(set(element_map), parsed_diff)

    # Added records must carry id, type and coordinates.
    for index, item in enumerate(parsed_diff.add):
        try:
            parse_element(item)
        except PydanticValidationError as exc:
            add_id = item.get("id")
            for issue in issues_from_pydantic(exc, "invalid-element", f"add.{index}"):
                issues.append(Issue(
                    code=issue.code,
                    message=issue.message,
                    element_id=add_id if isinstance(add_id, str) and add_id else None,
                    path=issue.path,
                ))
    if issues:
        logger.warning("diff rejected: %d consistency issue(s)", len(issues))
        return ApplyResult.failure(issues)

    for remove_id in parsed_diff.remove:
        element_map.pop(remove_id, None)

    modified_ids: list[str] = []
    for index, mod in enumerate(parsed_diff.modify):
        before = element_map.get(mod.id)
        if before is None:
            # Removed earlier in this same diff.
            issues.append(Issue(
                code="missing-element",
                message=f"Cannot modify element '{mod.id}' removed by the same diff",
                element_id=mod.id,
                path=f"modify.{index}.id",
            ))
            continue
        merged = {**before.to_dict(), **mod.changes, "id": before.id, "type": before.type}
        try:
            after = _flip_if_reversed(before, parse_element(merged), mod.changes)
        except PydanticValidationError as exc:
            for issue in issues_from_pydantic(exc, "invalid-change", f"modify.{index}.changes"):
                issues.append(Issue(
                    code=issue.code,
                    message=issue.message,
                    element_id=mod.id,
                    path=issue.path,
                ))
            continue
        if after.to_dict() != before.to_dict():
            element_map[mod.id] = after
            if mod.id not in modified_ids:
                modified_ids.append(mod.id)
    if issues:
        return ApplyResult.failure(issues)

    indices = IndexSequence.after(e.index for e in element_map.values())
    for item in parsed_diff.add:
        added = _build_added_element(item, indices.next())
        element_map[added.id] = added

    result = list(element_map.values())
    post_issues = check_structure(result)
    if post_issues:
        logger.warning("diff rejected: result would have %d issue(s)", len(post_issues))
        return ApplyResult.failure(post_issues)

    changes = ChangeSet(
        added_ids=[str(item["id"]) for item in parsed_diff.add],
        removed_ids=list(dict.fromkeys(parsed_diff.remove)),
        modified_ids=modified_ids,
    )
    logger.debug("diff applied: %s", changes.to_dict())
    return ApplyResult(ok=True, elements=result, changes=changes)
