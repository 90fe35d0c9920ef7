"""
In-memory scene store with optimistic versioning.

A session holds the latest ``(elements, appState)`` scene and a version
counter starting at 0.  Writers pass the version they last read; a stale
version gets a ``conflict`` result instead of overwriting someone else's
scene.
"""

from __future__ import annotations

import copy
import json
import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

MAX_SCENE_BYTES = 900_000

# Per-user UI state that must not be persisted with the scene.
STRIPPED_APP_STATE_KEYS = (
    "selectedElementIds",
    "selectedGroupIds",
    "editingElement",
    "openDialog",
    "collaborators",
    "cursorButton",
)


class SessionNotFoundError(KeyError):
    """No session with the given id."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(session_id)

    def __str__(self) -> str:
        return f"Session '{self.session_id}' not found."


@dataclass
class Session:
    session_id: str
    latest_scene: Optional[dict[str, Any]] = None
    latest_scene_version: int = 0
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "latestScene": self.latest_scene,
            "latestSceneVersion": self.latest_scene_version,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class SaveResult:
    status: str                         # success | conflict | failed
    latest_scene_version: Optional[int] = None
    saved_at: Optional[int] = None
    reason: Optional[str] = None
    max_bytes: Optional[int] = None
    actual_bytes: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status}
        if self.latest_scene_version is not None:
            result["latestSceneVersion"] = self.latest_scene_version
        if self.saved_at is not None:
            result["savedAt"] = self.saved_at
        if self.reason is not None:
            result["reason"] = self.reason
            result["maxBytes"] = self.max_bytes
            result["actualBytes"] = self.actual_bytes
        return result


def filter_app_state(app_state: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in app_state.items() if k not in STRIPPED_APP_STATE_KEYS}


def measure_scene_bytes(scene: dict[str, Any]) -> int:
    """UTF-8 size of the compact JSON encoding of *scene*."""
    return len(json.dumps(scene, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SceneStore:
    max_scene_bytes: int = MAX_SCENE_BYTES
    _sessions: dict[str, Session] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def create(self) -> str:
        """Create an empty session and return its 32-hex-char id."""
        now = _now_ms()
        with self._lock:
            session_id = secrets.token_hex(16)
            while session_id in self._sessions:
                session_id = secrets.token_hex(16)
            self._sessions[session_id] = Session(
                session_id=session_id, created_at=now, updated_at=now,
            )
        logger.debug("created session %s", session_id)
        return session_id

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return Session(
                session_id=session.session_id,
                latest_scene=copy.deepcopy(session.latest_scene),
                latest_scene_version=session.latest_scene_version,
                created_at=session.created_at,
                updated_at=session.updated_at,
            )

    def set_latest_scene(
        self,
        session_id: str,
        expected_version: int,
        elements: list[Any],
        app_state: Optional[dict[str, Any]] = None,
    ) -> SaveResult:
        """Store a new scene if *expected_version* is still current.

        Raises:
            SessionNotFoundError: if *session_id* is unknown.
        """
        scene = copy.deepcopy(
            {"elements": elements, "appState": filter_app_state(app_state or {})}
        )
        actual_bytes = measure_scene_bytes(scene)

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            if expected_version != session.latest_scene_version:
                logger.info(
                    "save conflict on %s: expected %d, current %d",
                    session_id, expected_version, session.latest_scene_version,
                )
                return SaveResult(
                    status="conflict",
                    latest_scene_version=session.latest_scene_version,
                )

            if actual_bytes > self.max_scene_bytes:
                return SaveResult(
                    status="failed",
                    reason="scene-too-large",
                    max_bytes=self.max_scene_bytes,
                    actual_bytes=actual_bytes,
                )

            now = _now_ms()
            session.latest_scene = scene
            session.latest_scene_version += 1
            session.updated_at = now
            return SaveResult(
                status="success",
                latest_scene_version=session.latest_scene_version,
                saved_at=now,
            )

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
