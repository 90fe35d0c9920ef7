"""Tests for scene validation and atomic diff application."""

import copy

import pytest

from sketch_mcp.modification import (
    DiagramDiff,
    ElementChange,
    apply_diagram_diff,
    check_structure,
    parse_elements,
    validate_elements,
)
from sketch_mcp.renderer import render_graph


def _scene() -> list[dict]:
    """a -> b flowchart: a, a_text, b, b_text, edge_0_a_b (indices a0..a4)."""
    result = render_graph({
        "nodes": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}],
        "edges": [{"fromId": "a", "toId": "b"}],
    })
    return result.to_dict()["elements"]


def _by_id(elements) -> dict:
    return {e.id: e for e in elements}


# ===================================================================
# Scene validation
# ===================================================================

class TestValidateElements:

    def test_rendered_scene_is_valid(self) -> None:
        assert validate_elements(_scene()) == []

    def test_non_object_element(self) -> None:
        issues = validate_elements([{"id": "r", "type": "rectangle", "x": 0, "y": 0}, 42])
        assert [(i.code, i.path) for i in issues] == [("invalid-element", "elements.1")]

    def test_missing_fields(self) -> None:
        issues = validate_elements([{"id": "r", "type": "rectangle"}])
        assert {i.path for i in issues} == {"elements.0.x", "elements.0.y"}
        assert all(i.element_id == "r" for i in issues)

    def test_duplicate_ids(self) -> None:
        raw = [{"id": "r", "type": "rectangle", "x": 0, "y": 0}] * 2
        assert [i.code for i in validate_elements(raw)] == ["duplicate-id"]

    def test_dangling_references(self) -> None:
        raw = [
            {"id": "t", "type": "text", "x": 0, "y": 0, "containerId": "gone"},
            {"id": "e", "type": "arrow", "x": 0, "y": 0, "endBinding": {"elementId": "gone"}},
        ]
        issues = validate_elements(raw)
        assert [(i.code, i.element_id, i.path) for i in issues] == [
            ("dangling-reference", "t", "containerId"),
            ("dangling-reference", "e", "endBinding.elementId"),
        ]

    def test_parse_elements_keeps_good_records(self) -> None:
        parsed, issues = parse_elements([{"id": "r", "type": "rectangle", "x": 0, "y": 0}, "junk"])
        assert [e.id for e in parsed] == ["r"]
        assert len(issues) == 1
        assert check_structure(parsed) == []


# ===================================================================
# Diff application
# ===================================================================

class TestApplyDiff:

    def test_empty_diff_is_noop(self) -> None:
        scene = _scene()
        result = apply_diagram_diff(scene, {})
        assert result.ok
        assert [e.to_dict() for e in result.elements] == scene
        assert result.changes.to_dict() == {"addedIds": [], "removedIds": [], "modifiedIds": []}

    def test_input_not_mutated(self) -> None:
        scene = _scene()
        before = copy.deepcopy(scene)
        apply_diagram_diff(scene, {"modify": [{"id": "a", "changes": {"strokeColor": "#000000"}}]})
        assert scene == before

    def test_modify_replaces_fields(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "modify": [{"id": "a", "changes": {"strokeColor": "#e03131", "customData": {"k": 1}}}],
        })
        assert result.ok
        data = _by_id(result.elements)["a"].to_dict()
        assert data["strokeColor"] == "#e03131"
        assert data["customData"] == {"k": 1}
        assert result.changes.modified_ids == ["a"]

    def test_unchanged_modify_not_reported(self) -> None:
        scene = _scene()
        current = next(e for e in scene if e["id"] == "a")["strokeColor"]
        result = apply_diagram_diff(scene, {"modify": [{"id": "a", "changes": {"strokeColor": current}}]})
        assert result.ok
        assert result.changes.modified_ids == []

    def test_modify_keeps_id_and_type(self) -> None:
        result = apply_diagram_diff(_scene(), {"modify": [{"id": "a", "changes": {"type": "ellipse"}}]})
        assert result.ok
        assert _by_id(result.elements)["a"].type == "rectangle"

    def test_modify_with_id_rejected(self) -> None:
        result = apply_diagram_diff(_scene(), {"modify": [{"id": "a", "changes": {"id": "z"}}]})
        assert not result.ok
        assert [(i.code, i.path) for i in result.issues] == [("immutable-id", "modify.0.changes.id")]

    def test_invalid_change_value(self) -> None:
        result = apply_diagram_diff(_scene(), {"modify": [{"id": "a", "changes": {"x": "left"}}]})
        assert not result.ok
        assert result.issues[0].code == "invalid-change"
        assert result.issues[0].element_id == "a"

    def test_missing_targets(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "remove": ["ghost"],
            "modify": [{"id": "phantom", "changes": {"x": 1}}],
        })
        assert not result.ok
        assert [(i.code, i.element_id) for i in result.issues] == [
            ("missing-element", "ghost"),
            ("missing-element", "phantom"),
        ]

    def test_modify_after_remove_rejected(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "remove": ["b_text"],
            "modify": [
                {"id": "b", "changes": {"boundElements": [{"id": "edge_0_a_b", "type": "arrow"}]}},
                {"id": "b_text", "changes": {"text": "x"}},
            ],
        })
        assert not result.ok
        assert [(i.code, i.element_id) for i in result.issues] == [("missing-element", "b_text")]

    def test_removing_bound_shape_alone_is_rejected(self) -> None:
        result = apply_diagram_diff(_scene(), {"remove": ["a"]})
        assert not result.ok
        dangling = [i for i in result.issues if i.code == "dangling-reference"]
        assert "edge_0_a_b" in {i.element_id for i in dangling}
        assert "a_text" in {i.element_id for i in dangling}

    def test_removal_with_cleanup(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "remove": ["a", "a_text", "edge_0_a_b"],
            "modify": [{"id": "b", "changes": {"boundElements": [{"id": "b_text", "type": "text"}]}}],
        })
        assert result.ok
        assert [e.id for e in result.elements] == ["b", "b_text"]
        assert result.changes.removed_ids == ["a", "a_text", "edge_0_a_b"]
        assert result.changes.modified_ids == ["b"]
        assert validate_elements([e.to_dict() for e in result.elements]) == []

    def test_repeated_remove_reported_once(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "remove": ["a", "a_text", "edge_0_a_b", "a_text", "a"],
            "modify": [{"id": "b", "changes": {"boundElements": [{"id": "b_text", "type": "text"}]}}],
        })
        assert result.ok
        assert result.changes.removed_ids == ["a", "a_text", "edge_0_a_b"]

    def test_add_gets_next_index_and_defaults(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "add": [{"id": "c", "type": "diamond", "x": 0, "y": 400}],
        })
        assert result.ok
        added = _by_id(result.elements)["c"].to_dict()
        assert added["index"] == "a5"
        assert added["width"] == 160
        assert "seed" in added
        assert result.changes.added_ids == ["c"]
        assert result.elements[-1].id == "c"

    def test_add_keeps_given_index(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "add": [{"id": "c", "type": "rectangle", "x": 0, "y": 0, "index": "a99"}],
        })
        assert _by_id(result.elements)["c"].index == "a99"

    def test_added_text_from_label(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "add": [{"id": "note", "type": "text", "x": 0, "y": 0, "label": {"text": "hi"}}],
        })
        assert result.ok
        note = _by_id(result.elements)["note"]
        assert note.text == "hi"
        assert note.original_text == "hi"

    def test_added_arrow_can_bind_existing_shapes(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "add": [{
                "id": "back", "type": "arrow", "x": 0, "y": 0,
                "startBinding": {"elementId": "b"}, "endBinding": {"elementId": "a"},
            }],
        })
        assert result.ok

    def test_added_arrow_to_missing_shape_rejected(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "add": [{"id": "x", "type": "arrow", "x": 0, "y": 0, "endBinding": {"elementId": "nope"}}],
        })
        assert not result.ok
        assert result.issues[0].code == "dangling-reference"
        assert result.issues[0].element_id == "x"

    def test_duplicate_adds(self) -> None:
        result = apply_diagram_diff(_scene(), {
            "add": [
                {"id": "a", "type": "rectangle", "x": 0, "y": 0},
                {"id": "n", "type": "rectangle", "x": 0, "y": 0},
                {"id": "n", "type": "rectangle", "x": 0, "y": 0},
            ],
        })
        assert [(i.code, i.path) for i in result.issues] == [
            ("duplicate-id", "add.0.id"),
            ("duplicate-id", "add.2.id"),
        ]

    def test_invalid_add_record(self) -> None:
        result = apply_diagram_diff(_scene(), {"add": [{"id": "n", "type": "rectangle"}]})
        assert not result.ok
        assert {i.path for i in result.issues} == {"add.0.x", "add.0.y"}

    def test_invalid_diff_shape(self) -> None:
        result = apply_diagram_diff(_scene(), {"remove": "a"})
        assert not result.ok
        assert result.issues[0].code == "invalid-diff"

    def test_unknown_diff_keys_ignored(self) -> None:
        assert apply_diagram_diff(_scene(), {"comment": "nothing to do"}).ok

    def test_invalid_current_scene_rejected(self) -> None:
        scene = _scene() + [{"id": "t", "type": "text", "x": 0, "y": 0, "containerId": "gone"}]
        result = apply_diagram_diff(scene, {})
        assert not result.ok
        assert result.issues[0].element_id == "t"

    def test_accepts_diff_model(self) -> None:
        diff = DiagramDiff(modify=[ElementChange(id="b", changes={"opacity": 50})])
        result = apply_diagram_diff(_scene(), diff)
        assert result.ok
        assert _by_id(result.elements)["b"].opacity == 50


class TestArrowFlip:

    def test_swapped_bindings_reverse_points(self) -> None:
        scene = _scene()
        before = next(e for e in scene if e["id"] == "edge_0_a_b")
        result = apply_diagram_diff(scene, {"modify": [{
            "id": "edge_0_a_b",
            "changes": {"startBinding": {"elementId": "b"}, "endBinding": {"elementId": "a"}},
        }]})
        assert result.ok
        arrow = _by_id(result.elements)["edge_0_a_b"]
        assert arrow.points == [[0, 0], [0, -before["height"]]]
        assert arrow.y == pytest.approx(before["y"] + before["height"])
        assert arrow.height == -before["height"]

    def test_explicit_points_not_flipped(self) -> None:
        result = apply_diagram_diff(_scene(), {"modify": [{
            "id": "edge_0_a_b",
            "changes": {
                "startBinding": {"elementId": "b"},
                "endBinding": {"elementId": "a"},
                "points": [[0, 0], [5, 5]],
            },
        }]})
        assert _by_id(result.elements)["edge_0_a_b"].points == [[0, 0], [5, 5]]


def test_to_dict_shapes() -> None:
    ok = apply_diagram_diff(_scene(), {}).to_dict()
    assert ok["ok"] is True
    assert set(ok) == {"ok", "elements", "changes"}
    failed = apply_diagram_diff(_scene(), {"remove": ["ghost"]}).to_dict()
    assert failed == {
        "ok": False,
        "issues": [{"code": "missing-element", "message": "Cannot remove missing element 'ghost'",
                    "elementId": "ghost"}],
    }
