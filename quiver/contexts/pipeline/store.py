"""
Session persistence.

SessionStore keeps one JSON file per session (<session_id>.json) plus a
lightweight snapshot of get_state() (snapshot_<session_id>.json) so an
interrupted run can be resumed. Only the most recent sessions are kept.

Stored at $QUIVER_SESSIONS_PATH (default: $LOGS_PATH/sessions).

Usage:
    from quiver.contexts.pipeline.store import SessionStore

    store = SessionStore()
    store.save(controller.session)
    store.save_snapshot(controller.session.session_id, controller.get_state())

    for session in store.resumable_sessions("u-42"):
        ...
"""

import json
import os
import shutil
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from quiver.contexts.pipeline.logger import _log_debug, _log_info, _log_warning
from quiver.contexts.pipeline.session import PipelineSession
from quiver.utils.config import get_pipeline_config
from quiver.utils.event_logging import LOGS_PATH, log_pipeline_event
from quiver.utils.timestamp import now_exact

load_dotenv()
SESSIONS_PATH = Path(os.getenv("QUIVER_SESSIONS_PATH", str(LOGS_PATH / "sessions")))

_SESSION_CONFIG = get_pipeline_config()["session"]
MAX_STORED_SESSIONS = int(_SESSION_CONFIG["max_stored_sessions"])
RESUMABLE_HOURS = float(_SESSION_CONFIG["resumable_hours"])

SNAPSHOT_PREFIX = "snapshot_"


def _write_json_atomic(path: Path, data: dict) -> None:
    """Write JSON to a temp file and move it over path only once complete."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(suffix=".json", dir=path.parent, text=True)
    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)

        shutil.move(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


class SessionStore:
    """
    JSON-file store for pipeline sessions.

    Attributes:
        directory: Folder holding session and snapshot files
        max_sessions: Sessions kept after pruning
        resumable_for: Age under which a session may be resumed
    """

    def __init__(
        self,
        directory: Optional[Path] = None,
        max_sessions: int = MAX_STORED_SESSIONS,
        resumable_hours: float = RESUMABLE_HOURS,
    ):
        self.directory = Path(directory) if directory is not None else SESSIONS_PATH
        self.max_sessions = max_sessions
        self.resumable_for = timedelta(hours=resumable_hours)

    def _session_path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def _snapshot_path(self, session_id: str) -> Path:
        return self.directory / f"{SNAPSHOT_PREFIX}{session_id}.json"

    def _session_files(self) -> List[Path]:
        if not self.directory.exists():
            return []
        return [
            p for p in self.directory.glob("*.json") if not p.name.startswith(SNAPSHOT_PREFIX)
        ]

    # =========================================================================
    # SESSIONS
    # =========================================================================

    def save(self, session: PipelineSession) -> Path:
        """Persist a session, then prune the oldest beyond max_sessions."""
        path = self._session_path(session.session_id)
        data = session.to_dict()
        data["saved_at"] = now_exact()
        _write_json_atomic(path, data)
        _log_debug(f"Saved session {session.session_id} to {path}")

        self.prune()
        return path

    def load(self, session_id: str) -> Optional[PipelineSession]:
        """Load a session, or None when it is not stored."""
        path = self._session_path(session_id)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return PipelineSession.from_dict(json.load(f))

    def delete(self, session_id: str) -> bool:
        """Remove a session and its snapshot. Returns True if anything was removed."""
        removed = False
        for path in (self._session_path(session_id), self._snapshot_path(session_id)):
            if path.exists():
                path.unlink()
                removed = True
        return removed

    def all_sessions(self) -> List[PipelineSession]:
        """Every stored session, newest first."""
        sessions = []
        for path in self._session_files():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    sessions.append(PipelineSession.from_dict(json.load(f)))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                _log_warning(f"Skipping unreadable session file {path.name}: {e}")
        return sorted(sessions, key=lambda s: s.last_updated, reverse=True)

    def user_sessions(self, user_id: str) -> List[PipelineSession]:
        """Sessions belonging to a user, most recently updated first."""
        return [s for s in self.all_sessions() if s.user_id == user_id]

    def prune(self) -> List[str]:
        """Delete the oldest sessions beyond max_sessions. Returns the removed ids."""
        stale = self.all_sessions()[self.max_sessions:]
        for session in stale:
            self.delete(session.session_id)
        if stale:
            _log_info(f"Pruned {len(stale)} old session(s)")
        return [s.session_id for s in stale]

    # =========================================================================
    # RESUMPTION
    # =========================================================================

    def can_resume(self, session_id: str) -> bool:
        """True when the session is stored and younger than the resumable window."""
        session = self.load(session_id)
        if session is None:
            return False
        return datetime.now() - session.created_at < self.resumable_for

    def resumable_sessions(self, user_id: str) -> List[PipelineSession]:
        now = datetime.now()
        return [
            s for s in self.user_sessions(user_id) if now - s.created_at < self.resumable_for
        ]

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def save_snapshot(self, session_id: str, state: dict) -> Path:
        """Persist a get_state() snapshot for quick listing without loading the session."""
        path = self._snapshot_path(session_id)
        _write_json_atomic(path, {**state, "saved_at": now_exact()})
        return path

    def load_snapshot(self, session_id: str) -> Optional[dict]:
        path = self._snapshot_path(session_id)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def clear_user(self, user_id: str) -> int:
        """Delete every session of a user. Returns how many were deleted."""
        sessions = self.user_sessions(user_id)
        for session in sessions:
            self.delete(session.session_id)

        if sessions:
            log_pipeline_event(
                event_type="sessions_cleared",
                session_id=sessions[0].session_id,
                source="store",
                user_id=user_id,
                count=len(sessions),
            )
        return len(sessions)

    def stats(self) -> Dict[str, object]:
        """
        Summary of stored sessions.

        Returns:
            Dict with total, resumable, completed, by_stage (stage name -> count),
            and users
        """
        sessions = self.all_sessions()
        now = datetime.now()
        by_stage: Dict[str, int] = {}
        for session in sessions:
            by_stage[session.current_stage.name] = by_stage.get(session.current_stage.name, 0) + 1

        return {
            "total": len(sessions),
            "resumable": sum(1 for s in sessions if now - s.created_at < self.resumable_for),
            "completed": by_stage.get("COMPLETE", 0),
            "by_stage": by_stage,
            "users": len({s.user_id for s in sessions}),
        }
