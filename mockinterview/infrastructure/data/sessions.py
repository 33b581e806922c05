"""
Session hand-off to the reporting surface: one JSON blob per finished session.
"""
import json
import logging
import os
from typing import Any, Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    from ...interview.models import InterviewSession

logger = logging.getLogger("session_store")


class SessionStore:
    """Writes finished sessions as ``<sessions_dir>/<session_id>.json``."""

    def __init__(self, sessions_dir: str = "./_sessions"):
        self.sessions_dir = sessions_dir
        os.makedirs(self.sessions_dir, exist_ok=True)

    def _get_session_path(self, session_id: str) -> str:
        """Get the file path for a session."""
        return os.path.join(self.sessions_dir, f"{session_id}.json")

    def save(self, session: 'InterviewSession') -> str:
        """Write the session (with or without assessment). Returns the path."""
        path = self._get_session_path(session.session_id)
        tmp_path = path + ".tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(session.to_dict(), f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
        logger.info(f"Saved session {session.session_id} to {path}")
        return path

    def load(self, path: str) -> Dict[str, Any]:
        """Read a saved session blob back."""
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def list_sessions(self) -> List[str]:
        """Paths of all saved sessions, oldest first."""
        if not os.path.exists(self.sessions_dir):
            return []
        paths = [os.path.join(self.sessions_dir, name)
                 for name in os.listdir(self.sessions_dir) if name.endswith(".json")]
        return sorted(paths, key=os.path.getmtime)
