"""
Session Locks — serialize turns that share a USSD session id.

Gateways can redeliver a request while the first delivery is still being
processed. Each session id gets its own lock for the duration of a turn;
entries are dropped again once no thread holds or waits on them.
"""
import threading
from contextlib import contextmanager


class SessionLockRegistry:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    @contextmanager
    def hold(self, session_id: str):
        with self._guard:
            lock = self._locks.setdefault(session_id, threading.Lock())
            self._users[session_id] = self._users.get(session_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[session_id] -= 1
                if self._users[session_id] == 0:
                    del self._users[session_id]
                    del self._locks[session_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
