"""In-memory per-session conversation history.

Each session keeps at most ``max_history`` turns, oldest first; appending
past the limit drops turns from the front. The system prompt is never stored.

Sessions are kept in least-recently-used order. The store holds at most
``max_sessions`` of them and ``prune_idle`` drops sessions that have not been
touched for ``idle_ttl`` seconds.
"""
import logging
import threading
import time
from collections import OrderedDict, deque
from collections.abc import Callable, Iterable

from persona_proxy.schemas.chat import ChatTurn

logger = logging.getLogger(__name__)


class _Session:
    __slots__ = ("turns", "last_access")

    def __init__(self, max_history: int, now: float):
        self.turns: deque[ChatTurn] = deque(maxlen=max_history)
        self.last_access = now


class HistoryStore:
    """Bounded, thread-safe mapping of session id to recent chat turns."""

    def __init__(
        self,
        max_history: int = 10,
        max_sessions: int | None = None,
        idle_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self.max_sessions = max_sessions
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: OrderedDict[str, _Session] = OrderedDict()
        self._lock = threading.Lock()

    def _touch(self, session_id: str) -> _Session:
        """Return the session's buffer, creating it if needed. Caller holds the lock."""
        now = self._clock()
        session = self._sessions.get(session_id)
        if session is None:
            session = _Session(self.max_history, now)
            self._sessions[session_id] = session
            self._evict_overflow()
        else:
            session.last_access = now
            self._sessions.move_to_end(session_id)
        return session

    def _evict_overflow(self) -> None:
        if self.max_sessions is None:
            return
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.debug(f"Evicted least recently used session {evicted!r}")

    def get(self, session_id: str) -> list[ChatTurn]:
        """Return the session's turns, oldest first (empty for a new session)."""
        with self._lock:
            return list(self._touch(session_id).turns)

    def append(self, session_id: str, turn: ChatTurn) -> None:
        self.extend(session_id, (turn,))

    def extend(self, session_id: str, turns: Iterable[ChatTurn]) -> None:
        """Append turns in order as one atomic update."""
        with self._lock:
            # deque(maxlen=...) discards from the left on overflow
            self._touch(session_id).turns.extend(turns)

    def prune_idle(self, now: float | None = None) -> int:
        """Drop sessions idle for longer than ``idle_ttl``. Returns the count dropped."""
        if self.idle_ttl is None:
            return 0
        now = self._clock() if now is None else now
        cutoff = now - self.idle_ttl
        removed = 0
        with self._lock:
            # Ordered by last access, so stop at the first fresh session
            while self._sessions:
                session_id, session = next(iter(self._sessions.items()))
                if session.last_access > cutoff:
                    break
                del self._sessions[session_id]
                removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
