"""Tests for USSD session statistics and CSV export."""
import csv
import io

from ussd_engine.constants import UserRole
from ussd_engine.services.stats_service import CSV_HEADERS, UssdStatsService

from conftest import NETWORK, Caller


def _populate(service, db, store):
    """Three sessions: one completed, one mid-flow, one unregistered."""
    done = Caller(service, db, session_id="s-done")
    done.dial()
    done.press("0")

    busy = Caller(service, db, session_id="s-busy")
    busy.dial()
    busy.press("1", "abc")

    Caller(service, db, session_id="s-stranger", phone="0799000000").dial()


class TestStatistics:
    def test_dashboard_counts(self, service, db, store, clock):
        _populate(service, db, store)
        stats = UssdStatsService(clock=clock).statistics(db)

        assert stats["total_sessions"] == 3
        assert stats["active_sessions"] == 1
        assert stats["completed_sessions"] == 1
        assert stats["sessions_today"] == 3
        assert stats["sessions_this_week"] == 3
        assert stats["sessions_this_month"] == 3
        assert stats["completion_rate"] == 33.33
        assert stats["by_role"] == {"beneficiary": 2, "unknown": 1}
        assert stats["by_language"] == {"en": 3}
        assert stats["by_network"] == {NETWORK: 3}
        assert stats["error_rate"] == 0.0
        assert stats["peak_hours"] == [{"hour": 9, "count": 3}]
        menus = {m["menu"]: m["count"] for m in stats["top_menus"]}
        assert menus == {"main_menu": 1, "tracking_income": 1, "initial": 1}

    def test_filters(self, service, db, store, clock):
        _populate(service, db, store)
        stats = UssdStatsService(clock=clock)

        assert stats.statistics(db, role="beneficiary")["total_sessions"] == 2
        assert stats.statistics(db, language="rw")["total_sessions"] == 0
        assert stats.statistics(db, network="99999")["total_sessions"] == 0

    def test_empty_log(self, db, clock):
        stats = UssdStatsService(clock=clock).statistics(db)
        assert stats["total_sessions"] == 0
        assert stats["completion_rate"] == 0.0
        assert stats["average_steps"] == 0.0

    def test_average_steps(self, service, db, store, clock):
        _populate(service, db, store)
        # done: 1 step, busy: 2 steps, stranger: 0 steps
        assert UssdStatsService(clock=clock).statistics(db)["average_steps"] == 1.0


class TestSessionLists:
    def test_pagination_and_filters(self, service, db, store):
        _populate(service, db, store)

        page = UssdStatsService.list_sessions(db, page=1, limit=2)
        assert page["total"] == 3
        assert page["pages"] == 2
        assert len(page["sessions"]) == 2

        active = UssdStatsService.list_sessions(db, is_active=True)
        assert [s.session_id for s in active["sessions"]] == ["s-busy"]

        by_phone = UssdStatsService.list_sessions(db, phone_number="0799000000")
        assert [s.session_id for s in by_phone["sessions"]] == ["s-stranger"]

    def test_daily_and_menu_summaries(self, service, db, store, clock):
        _populate(service, db, store)

        daily = UssdStatsService(clock=clock).daily_summary(db, days=7)
        assert daily == [{
            "date": "2026-10-12",
            "total": 3,
            "completed": 1,
            "active": 1,
            "errors": 0,
            "average_steps": 1.0,
        }]

        menus = {m["menu"]: m for m in UssdStatsService.menu_statistics(db)}
        assert menus["main_menu"]["sessions"] == 1
        assert menus["main_menu"]["ended_here"] == 1
        assert menus["initial"]["ended_here"] == 1
        assert menus["tracking_income"]["currently_active"] == 1


class TestExport:
    def test_csv(self, service, db, store, clock):
        store.add_user("0722000222", role=UserRole.DONOR)
        _populate(service, db, store)

        body = UssdStatsService(clock=clock).export_csv(db)
        rows = list(csv.reader(io.StringIO(body)))

        assert rows[0] == CSV_HEADERS
        assert len(rows) == 4
        done = next(r for r in rows[1:] if r[0] == "s-done")
        assert done[6] == "No"
        assert done[10] == "0"
        assert done[11] == NETWORK
        assert done[12] == "0"
        busy = next(r for r in rows[1:] if r[0] == "s-busy")
        assert busy[6] == "Yes"
        assert busy[9] == ""
