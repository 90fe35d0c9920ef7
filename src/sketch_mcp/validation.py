"""
Input validation for sketch MCP server tool parameters.

Checks for the arguments LLM callers pass to the tools, each failing with a
message the caller can act on, plus the ``Issue`` record shared by
the renderer and the diff engine to report per-item problems.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Issue:
    """A single problem found while validating a graph, scene, or diff."""
    code: str
    message: str
    element_id: Optional[str] = None
    path: Optional[str] = None

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        result = {"code": self.code, "message": self.message}
        if self.element_id is not None:
            result["elementId"] = self.element_id
        if self.path:
            result["path"] = self.path
        return result


class ValidationError(Exception):
    """Bad tool input; ``issues`` holds per-item detail when there is any."""

    def __init__(self, message: str, issues: list[Issue] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.issues = list(issues or [])


def issues_from_pydantic(
    exc: PydanticValidationError,
    code: str,
    prefix: str = "",
) -> list[Issue]:
    """Turn every pydantic error into an ``Issue`` carrying its dotted path."""
    issues: list[Issue] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        path = f"{prefix}.{loc}" if prefix and loc else (prefix or loc)
        message = f"{path}: {err['msg']}" if path else err["msg"]
        issues.append(Issue(code=code, message=message, path=path or None))
    return issues


def format_issues(issues: list[Issue]) -> str:
    """One line per issue, for tool error strings."""
    return "\n".join(f"- [{i.code}] {i.message}" for i in issues)


# ---------------------------------------------------------------------------
# Parameter checks
# ---------------------------------------------------------------------------

def _kind(value: Any) -> str:
    return type(value).__name__


def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Return *value* stripped; blank strings and non-strings are rejected."""
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return text


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Integer in ``[min_val, max_val]``; ``True``/``False`` do not count."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"'{field_name}' expects an integer, not {_kind(value)}.")
    too_small = min_val is not None and value < min_val
    too_large = max_val is not None and value > max_val
    if too_small:
        raise ValidationError(f"'{field_name}' must be >= {min_val} (got {value}).")
    if too_large:
        raise ValidationError(f"'{field_name}' must be <= {max_val} (got {value}).")
    return value


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    if isinstance(value, list) and len(value) >= min_length:
        return value
    if isinstance(value, list):
        raise ValidationError(f"'{field_name}' needs at least {min_length} item(s), has {len(value)}.")
    raise ValidationError(f"'{field_name}' must be a list (JSON array), got {_kind(value)}.")


def validate_dict(value: Any, field_name: str) -> dict:
    if isinstance(value, dict):
        return value
    raise ValidationError(f"'{field_name}' must be a dict/object (JSON object), got {_kind(value)}.")


# ---------------------------------------------------------------------------
# Tool-level checks
# ---------------------------------------------------------------------------

_MODIFY_ACTIONS = {"APPLY_DIFF", "EXPLICIT_EDITS", "VALIDATE"}
_SESSION_ACTIONS = {"CREATE", "GET", "SAVE"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Lower-cased *value* when it names one of *allowed* (any case)."""
    valid = ", ".join(sorted(name.lower() for name in allowed))
    action = value.strip() if isinstance(value, str) else ""
    if not action:
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {valid}."
        )
    if action.upper() not in allowed:
        raise ValidationError(f"Unknown {tool_name} action '{value}'. Valid actions: {valid}.")
    return action.lower()


def validate_expected_version(value: Any) -> int:
    """Scene versions start at 0 and only grow."""
    return validate_int(value, "expected_version", min_val=0)
