import threading
from typing import Dict, Optional
from ..models.tracing_session import TracingSession


class SessionRepository:
    """
    In-memory store of TracingSession objects keyed by session id.
    Sessions live for the lifetime of the process only.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, TracingSession] = {}
        self._lock = threading.Lock()

    def add(self, session: TracingSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> Optional[TracingSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
