"""
Explicit field assignments embedded in free-text requests.

A request such as ``make it pop: rect_1 strokeColor = '#e03131'`` contains
one edit.  The grammar is::

    edit  := IDENT PATH '=' STRING
    IDENT := [A-Za-z0-9_-]+
    PATH  := SEG ('.' SEG)*        SEG := [A-Za-z0-9_]+
    STRING:= "'" ( [^'\\] | "\\'" | "\\\\" )* "'"

Everything that does not form an edit is skipped.  When a request holds
explicit edits for elements that exist, they can be turned straight into a
diff and applied without any model in the loop.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from sketch_mcp.elements import ElementBase
from sketch_mcp.modification import ApplyResult, DiagramDiff, ElementChange, apply_diagram_diff
from sketch_mcp.validation import Issue

_IDENT_RE = re.compile(r"[A-Za-z0-9_-]+")
_PATH_RE = re.compile(r"[A-Za-z0-9_]+(?:\.[A-Za-z0-9_]+)*")
_WORD_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-.")


@dataclass(frozen=True)
class Token:
    kind: str       # WORD, EQ, STRING, OTHER
    text: str
    pos: int


@dataclass(frozen=True)
class ExplicitEdit:
    element_id: str
    path: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.element_id, "path": self.path, "value": self.value}


# ---------------------------------------------------------------------------
# Tokenizer & parser
# ---------------------------------------------------------------------------

def _read_string(text: str, start: int) -> tuple[Optional[str], int]:
    """Read a quoted string opening at *start*; ``(None, start + 1)`` if unterminated."""
    chars: list[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text) and text[i + 1] in ("'", "\\"):
            chars.append(text[i + 1])
            i += 2
            continue
        if ch == "'":
            return "".join(chars), i + 1
        chars.append(ch)
        i += 1
    return None, start + 1


def tokenize(text: str) -> Iterator[Token]:
    """Split *text* into tokens.  A quote opens a string only right after ``=``,
    so apostrophes in prose ("let's", "don't") stay ``OTHER``."""
    i = 0
    prev_kind = ""
    while i < len(text):
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch == "=":
            token = Token("EQ", ch, i)
            i += 1
        elif ch == "'" and prev_kind == "EQ":
            value, end = _read_string(text, i)
            token = Token("OTHER", ch, i) if value is None else Token("STRING", value, i)
            i = end
        elif ch in _WORD_CHARS:
            start = i
            while i < len(text) and text[i] in _WORD_CHARS:
                i += 1
            token = Token("WORD", text[start:i], start)
        else:
            token = Token("OTHER", ch, i)
            i += 1
        prev_kind = token.kind
        yield token


def extract_explicit_edits(text: str) -> list[ExplicitEdit]:
    """Every ``<id> <path> = '<value>'`` assignment in *text*, in order."""
    tokens = list(tokenize(text))
    edits: list[ExplicitEdit] = []
    i = 0
    while i + 3 < len(tokens):
        ident, path, eq, value = tokens[i:i + 4]
        if (
            ident.kind == "WORD" and _IDENT_RE.fullmatch(ident.text)
            and path.kind == "WORD" and _PATH_RE.fullmatch(path.text)
            and eq.kind == "EQ"
            and value.kind == "STRING"
        ):
            edits.append(ExplicitEdit(ident.text, path.text, value.text))
            i += 4
        else:
            i += 1
    return edits


# ---------------------------------------------------------------------------
# Edits → diff
# ---------------------------------------------------------------------------

def set_value_at_path(target: dict[str, Any], path: str, value: Any) -> None:
    """Assign *value* at a dotted *path*, creating nested dicts as needed."""
    parts = path.split(".")
    current = target
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def get_value_at_path(source: Any, path: str) -> Any:
    current = source
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def build_diff_from_edits(edits: list[ExplicitEdit]) -> DiagramDiff:
    """One ``modify`` entry per element id, in first-seen order."""
    changes_by_id: dict[str, dict[str, Any]] = {}
    for edit in edits:
        set_value_at_path(changes_by_id.setdefault(edit.element_id, {}), edit.path, edit.value)
    return DiagramDiff(
        modify=[ElementChange(id=eid, changes=changes) for eid, changes in changes_by_id.items()],
    )


def find_missing_edits(diff: DiagramDiff, edits: list[ExplicitEdit]) -> list[Issue]:
    """Edits that *diff* does not carry out (``missing-change`` issues)."""
    issues: list[Issue] = []
    for edit in edits:
        entry = next((m for m in diff.modify if m.id == edit.element_id), None)
        if entry is None:
            issues.append(Issue(
                code="missing-change",
                message=f"Missing required change for '{edit.element_id}.{edit.path}'",
                element_id=edit.element_id,
                path=edit.path,
            ))
            continue
        current = get_value_at_path(entry.changes, edit.path)
        if str(current if current is not None else "") != edit.value:
            issues.append(Issue(
                code="missing-change",
                message=f"Expected '{edit.element_id}.{edit.path}' to be '{edit.value}'",
                element_id=edit.element_id,
                path=edit.path,
            ))
    return issues


def apply_explicit_edits(elements: list[Any], request: str) -> Optional[ApplyResult]:
    """Apply the explicit edits in *request* that target existing elements.

    Returns ``None`` when the request holds no such edit, so the caller can
    fall back to another modification strategy.
    """
    known = {
        e.id if isinstance(e, ElementBase) else e.get("id")
        for e in elements
        if isinstance(e, (dict, ElementBase))
    }
    edits = [e for e in extract_explicit_edits(request) if e.element_id in known]
    if not edits:
        return None
    return apply_diagram_diff(elements, build_diff_from_edits(edits))
