# rsm_insights/services/session_store.py
from __future__ import annotations
import asyncio
import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

log = logging.getLogger("store")

ANALYSIS_HISTORY = "analysisHistory"
FEEDBACK_LOOP_HISTORY = "feedbackLoopHistory"
ACTIVE_CONTACT = "activeContact"

class SessionStore:
    """
    Browser-session-style key/value store.

    Each session maps keys to JSON text. Sessions live in memory and, when a
    data directory is given, are mirrored to one file per session named by the
    sha256 of the session id. A session is only held once it has been written
    to. There is no merge between writers: the last write wins.
    """

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = Path(data_dir) if data_dir else None
        if self.data_dir:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        self._sessions: Dict[str, Dict[str, str]] = {}
        self._lock = asyncio.Lock()

    def lock(self, session_id: str) -> asyncio.Lock:
        """Lock for read-modify-write sequences; one per store, as sessions share the process."""
        return self._lock

    def get_item(self, session_id: str, key: str) -> Optional[str]:
        return self._peek(session_id).get(key)

    def set_item(self, session_id: str, key: str, value: str) -> None:
        self._session(session_id)[key] = value
        self._flush(session_id)

    def remove_item(self, session_id: str, key: str) -> None:
        if key in self._peek(session_id):
            self._session(session_id).pop(key)
            self._flush(session_id)

    def get_json(self, session_id: str, key: str):
        """Decode a stored value; a corrupt value is dropped and None returned."""
        raw = self.get_item(session_id, key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            log.error("Failed to parse %s for session=%s, resetting: %s", key, session_id, e)
            self.remove_item(session_id, key)
            return None

    def set_json(self, session_id: str, key: str, value) -> None:
        self.set_item(session_id, key, json.dumps(value))

    def session_count(self) -> int:
        return len(self._sessions)

    # ---- persistence ----

    def _peek(self, session_id: str) -> Dict[str, str]:
        """Session contents for reading; unknown sessions are not retained."""
        if session_id in self._sessions:
            return self._sessions[session_id]
        data = self._load(session_id)
        if data:
            self._sessions[session_id] = data
        return data

    def _session(self, session_id: str) -> Dict[str, str]:
        if session_id not in self._sessions:
            self._sessions[session_id] = self._load(session_id)
        return self._sessions[session_id]

    def _path(self, session_id: str) -> Optional[Path]:
        if not self.data_dir:
            return None
        digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()
        return self.data_dir / f"{digest}.json"

    def _load(self, session_id: str) -> Dict[str, str]:
        path = self._path(session_id)
        if path is None or not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.error("Session file %s unreadable, starting empty: %s", path, e)
            return {}
        if not isinstance(data, dict):
            log.error("Session file %s is not an object, starting empty", path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self, session_id: str) -> None:
        path = self._path(session_id)
        if path is None:
            return
        tmp = path.with_suffix(".json.tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(self._sessions.get(session_id, {}), f, indent=2)
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
