"""Tests for per-session locking."""
import threading
import time

from ussd_engine.utils.locks import SessionLockRegistry


class TestSessionLockRegistry:
    def test_entry_dropped_after_release(self):
        locks = SessionLockRegistry()
        with locks.hold("s1"):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_same_session_is_serialized(self):
        locks = SessionLockRegistry()
        events = []

        def turn(name):
            with locks.hold("s1"):
                events.append(f"{name}-in")
                time.sleep(0.05)
                events.append(f"{name}-out")

        threads = [threading.Thread(target=turn, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # no interleaving: every "in" is immediately followed by its own "out"
        assert events[0][0] == events[1][0]
        assert events[2][0] == events[3][0]
        assert len(locks) == 0

    def test_different_sessions_do_not_block(self):
        locks = SessionLockRegistry()
        with locks.hold("s1"):
            acquired = threading.Event()

            def other():
                with locks.hold("s2"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            assert acquired.wait(1.0)
            t.join()
