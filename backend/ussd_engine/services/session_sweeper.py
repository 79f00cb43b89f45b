"""
Session Sweeper — periodically marks idle sessions inactive so the
dashboard's active count stays honest between calls.

Runs as a daemon thread started and stopped by the FastAPI app.
"""
import threading
from typing import Callable, Optional

import structlog

from ussd_engine.services.session_resolver import SessionResolver

logger = structlog.get_logger(__name__)


class SessionSweeper:
    def __init__(self, resolver: SessionResolver, session_factory: Callable, interval_s: float):
        self.resolver = resolver
        self.session_factory = session_factory
        self.interval_s = interval_s
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="ussd_session_sweeper", daemon=True)
        self._thread.start()
        logger.info("session_sweeper_started", interval_s=self.interval_s)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
        logger.info("session_sweeper_stopped")

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return self.resolver.sweep(db)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                self.run_once()
            except Exception as e:
                logger.error("session_sweep_error", error=str(e))
