"""End-to-end USSD conversations through the service and the session table."""
import dataclasses
import threading
from contextlib import contextmanager
from datetime import timedelta

from ussd_engine.constants import AttendanceStatus, GoalType, Language, UserRole
from ussd_engine.database import SessionLocal
from ussd_engine.gateways.base import (
    GatewayRejected, GatewayUnavailable, IdentityGateway, TrackingGateway,
)
from ussd_engine.gateways.memory import MemoryContactGateway, MemoryGoalGateway
from ussd_engine.models.ussd_session import UssdSession
from ussd_engine.schemas.schemas import UssdRequest
from ussd_engine.services.session_resolver import SessionResolver
from ussd_engine.services.ussd_service import UssdService
from ussd_engine.utils.locks import SessionLockRegistry

from conftest import BENEFICIARY_ID, NETWORK, PHONE, SESSION_ID, USER_ID, Caller, FakeClock

MAIN_MENU_EN = (
    "Welcome\n1. Weekly Tracking\n2. Goals\n3. Emergency Contacts\n4. Change Language\n0. Exit"
)
GOALS_MENU_EN = "1. View My Goals\n2. Create New Goal\n0. Main Menu"
CONTACTS_MENU_EN = "1. View Emergency Contacts\n2. Add Emergency Contact\n3. Set Primary Contact\n0. Main Menu"


def latest_row(db, session_id=SESSION_ID) -> UssdSession:
    return (
        db.query(UssdSession)
        .filter(UssdSession.session_id == session_id)
        .order_by(UssdSession.created_at.desc())
        .first()
    )


class ExplodingTracking(TrackingGateway):
    def __init__(self):
        self.calls = 0

    def submit(self, beneficiary_id, payload, submitter_id, submitter_role):
        self.calls += 1
        raise GatewayUnavailable("case API down")


class RefusingGoals(MemoryGoalGateway):
    def __init__(self, store, fail_listing=False):
        super().__init__(store)
        self.fail_listing = fail_listing
        self.create_calls = 0

    def list_recent(self, beneficiary_id, limit):
        if self.fail_listing:
            raise GatewayUnavailable("case API down")
        return super().list_recent(beneficiary_id, limit)

    def create(self, beneficiary_id, goal):
        self.create_calls += 1
        raise GatewayRejected("goal refused")


class RefusingContacts(MemoryContactGateway):
    def __init__(self, store):
        super().__init__(store)
        self.create_calls = 0
        self.set_primary_calls = 0

    def create(self, beneficiary_id, contact):
        self.create_calls += 1
        raise GatewayRejected("contact refused")

    def set_primary(self, contact_id):
        self.set_primary_calls += 1
        raise GatewayUnavailable("case API down")


class TurnBeforeNextLock(SessionLockRegistry):
    """Runs one queued action just before the next lock is taken."""

    def __init__(self):
        super().__init__()
        self.queued = None

    @contextmanager
    def hold(self, key):
        action, self.queued = self.queued, None
        if action is not None:
            action()
        with super().hold(key):
            yield


class BrokenIdentity(IdentityGateway):
    def find_by_phone(self, phone):
        raise RuntimeError("identity lookup crashed")

    def update_language(self, user_id, language):
        raise RuntimeError("unreachable")


class TestMainMenu:
    def test_dial_shows_main_menu(self, caller, db):
        assert caller.dial() == f"CON {MAIN_MENU_EN}"
        row = latest_row(db)
        assert row.menu_state == "main_menu"
        assert row.user_id == USER_ID
        assert row.step_count == 0

    def test_exit_completes_session(self, caller, db):
        caller.dial()
        assert caller.press("0") == "END Thank you for using our service!"

        row = latest_row(db)
        assert not row.is_active
        assert row.completed_at is not None
        assert row.session_metadata["session_duration"] == 0

    def test_redelivery_after_end_changes_nothing(self, caller, db):
        caller.dial()
        caller.press("0")
        steps = latest_row(db).step_count

        assert caller.resend() == "END This session has ended. Please dial again."
        assert latest_row(db).step_count == steps
        assert db.query(UssdSession).count() == 1


class TestLanguageSwitch:
    def test_switch_to_kinyarwanda(self, caller, db, store, service):
        caller.dial()
        assert caller.press("4") == "CON Choose Language:\n1. English\n2. Kinyarwanda\n0. Back"

        reply = caller.press("2")
        assert reply == (
            "CON Murakaza neza\n1. Gukurikirana Buri Cyumweru\n2. Intego\n"
            "3. Nimero z'Ubutabazi\n4. Hindura Ururimi\n0. Sohoka"
        )
        assert store.language_updates == [(USER_ID, Language.RW)]
        assert latest_row(db).language == "rw"

        # the preference sticks for the next dial
        assert Caller(service, db, session_id="next-session").dial().startswith("CON Murakaza neza")

    def test_language_back_returns_to_main_menu(self, caller):
        caller.dial()
        caller.press("4")
        assert caller.press("0") == f"CON {MAIN_MENU_EN}"


class TestWeeklyTracking:
    def test_full_report(self, caller, db, store):
        caller.dial()
        assert caller.press("1") == "CON Enter Income this week (RWF):\n00. Back"
        assert caller.press("10000") == "CON Enter Expenses this week (RWF):\n00. Back"
        assert caller.press("2000") == "CON Enter Current Capital (RWF):\n00. Back"
        assert caller.press("50000") == "CON Attendance:\n1. Present\n2. Absent\n3. Late\n0. Back"
        assert caller.press("1") == (
            "CON Confirm weekly report:\nIncome: 10000 RWF\nExpenses: 2000 RWF\n"
            "Capital: 50000 RWF\nAttendance: Present\n1. Submit\n2. Edit\n0. Cancel"
        )
        assert caller.press("1") == f"CON Report Submitted Successfully!\n\n{MAIN_MENU_EN}"

        assert len(store.tracking) == 1
        record = store.tracking[0]
        assert record.beneficiary_id == BENEFICIARY_ID
        assert record.submitted_by == USER_ID
        assert record.submitter_role == UserRole.BENEFICIARY
        assert record.payload.income_this_week == 10000
        assert record.payload.expenses_this_week == 2000
        assert record.payload.current_capital == 50000
        assert record.payload.attendance == AttendanceStatus.PRESENT
        assert record.payload.week_ending == "2026-10-12"
        assert record.payload.notes == "Weekly tracking via USSD"
        assert record.payload.challenges == "Submitted via USSD"
        assert record.payload.is_offline_sync is False

        row = latest_row(db)
        assert row.menu_state == "main_menu"
        assert row.step_count == 6
        assert row.flow_data["active"] == {"kind": "none"}
        assert row.is_active

    def test_edit_keeps_draft_and_cancel_discards(self, caller, db, store):
        caller.dial()
        caller.press("1", "10000", "2000", "50000", "3")
        assert caller.press("2") == "CON Enter Income this week (RWF):\n00. Back"
        assert latest_row(db).flow_data["active"]["income_this_week"] == 10000

        caller.press("12000", "2000", "50000", "3")
        assert caller.press("0") == f"CON {MAIN_MENU_EN}"
        assert store.tracking == []

    def test_collaborator_failure_ends_session(self, store, settings, clock, db):
        tracking = ExplodingTracking()
        gateways = dataclasses.replace(store.as_gateways(), tracking=tracking)
        caller = Caller(UssdService(gateways, settings=settings, clock=clock), db)

        caller.dial()
        caller.press("1", "10000", "2000", "50000", "1")
        assert caller.press("1") == "END Error submitting report. Please try again."
        assert tracking.calls == 1

        row = latest_row(db)
        assert not row.is_active
        assert row.completed_at is None
        assert row.session_metadata["error_count"] == 1
        assert row.flow_data["active"] == {"kind": "none"}


class TestExpiry:
    def test_expired_session_offers_fresh_start(self, caller, db, clock, store, settings):
        caller.dial()
        caller.press("1", "10000")

        clock.advance(settings.USSD_TIMEOUT_SECONDS + 1)
        assert caller.press("2000") == (
            "CON Your previous session expired due to inactivity.\n"
            "Press 1 to start fresh or 0 to exit.\n1. Start Fresh\n0. Exit"
        )
        assert latest_row(db).menu_state == "expired"

        assert caller.press("1") == f"CON {MAIN_MENU_EN}"
        assert store.tracking == []
        assert db.query(UssdSession).filter(UssdSession.is_active.is_(True)).count() == 1

    def test_just_inside_timeout_continues(self, caller, clock, settings):
        caller.dial()
        caller.press("1", "10000")
        clock.advance(settings.USSD_TIMEOUT_SECONDS - 1)
        assert caller.press("2000") == "CON Enter Current Capital (RWF):\n00. Back"

    def test_exit_from_expiry_offer(self, caller, db, clock, settings):
        caller.dial()
        clock.advance(settings.USSD_TIMEOUT_SECONDS + 1)
        caller.press("1")
        assert caller.press("0") == "END Thank you for using our service!"
        assert latest_row(db).completed_at is not None


class TestGoals:
    def _to_confirm(self, caller):
        caller.dial()
        caller.press("2", "2", "1", "Buy sewing machine", "150000")
        return caller.press("2027-01-31")

    def test_create_goal_once(self, caller, store, db):
        assert self._to_confirm(caller) == (
            "CON Confirm goal:\nType: business\nDescription: Buy sewing machine\n"
            "Target: 150000 RWF\nTarget Date: 2027-01-31\n1. Save\n2. Edit\n0. Cancel"
        )
        assert caller.press("1") == f"CON Goal Created Successfully!\n\n{GOALS_MENU_EN}"

        goals = store.goals[BENEFICIARY_ID]
        assert len(goals) == 1
        assert goals[0].type == GoalType.BUSINESS
        assert goals[0].description == "Buy sewing machine"
        assert goals[0].target_amount == 150000
        assert goals[0].target_date == "2027-01-31"

        row = latest_row(db)
        assert row.menu_state == "goals_menu"
        assert row.flow_data["active"] == {"kind": "none"}

        assert caller.press("1") == "CON 1. Buy sewing mach... (0%)\nEnter number for details\n0. Back"
        assert caller.press("\u00b2").startswith("CON Invalid option. Try again.\n1. Buy sewing mach...")

    def test_cancel_creates_nothing(self, caller, store):
        self._to_confirm(caller)
        assert caller.press("0") == f"CON {GOALS_MENU_EN}"
        assert store.goals.get(BENEFICIARY_ID, []) == []

    def test_invalid_date_and_amount(self, caller):
        caller.dial()
        caller.press("2", "2", "1", "Buy sewing machine")
        assert caller.press("0").startswith("CON Invalid amount. Try again.\nEnter Target Amount (RWF):")
        caller.press("150000")
        assert caller.press("2027-02-30") == (
            "CON Invalid date. Use YYYY-MM-DD\nEnter Target Date (YYYY-MM-DD):\n00. Back"
        )

    def test_back_out_of_wizard_creates_nothing(self, caller, store, db):
        caller.dial()
        caller.press("2", "2", "1", "Buy sewing machine")
        assert caller.press("00") == "CON Enter Goal Description:\n00. Back"
        assert caller.press("00") == f"CON {MAIN_MENU_EN}"

        assert store.goals.get(BENEFICIARY_ID, []) == []
        assert latest_row(db).flow_data["active"] == {"kind": "none"}

    def test_cancel_at_type_screen(self, caller, store):
        caller.dial()
        caller.press("2", "2")
        assert caller.press("0") == f"CON {GOALS_MENU_EN}"
        assert store.goals.get(BENEFICIARY_ID, []) == []

    def test_save_failure_ends_session(self, store, settings, clock, db):
        goals = RefusingGoals(store)
        gateways = dataclasses.replace(store.as_gateways(), goals=goals)
        caller = Caller(UssdService(gateways, settings=settings, clock=clock), db)

        self._to_confirm(caller)
        assert caller.press("1") == "END Error creating goal. Please try again."
        assert goals.create_calls == 1

        row = latest_row(db)
        assert not row.is_active
        assert row.session_metadata["error_count"] == 1
        assert row.flow_data["active"] == {"kind": "none"}

    def test_listing_failure_ends_session(self, store, settings, clock, db):
        gateways = dataclasses.replace(store.as_gateways(), goals=RefusingGoals(store, fail_listing=True))
        caller = Caller(UssdService(gateways, settings=settings, clock=clock), db)

        caller.dial()
        caller.press("2")
        assert caller.press("1") == "END Could not load your records. Please try again."
        assert latest_row(db).session_metadata["error_count"] == 1


class TestContacts:
    def _to_confirm(self, caller):
        caller.dial()
        caller.press("3", "2", "Aline Uwase", "0788000111", "sister", "Kicukiro")
        return caller.press("1")

    def test_cancel_at_confirm_creates_nothing(self, caller, store, db):
        self._to_confirm(caller)
        assert caller.press("0") == f"CON {CONTACTS_MENU_EN}"
        assert store.contacts.get(BENEFICIARY_ID, []) == []
        assert latest_row(db).flow_data["active"] == {"kind": "none"}

    def test_back_out_of_wizard_creates_nothing(self, caller, store):
        caller.dial()
        caller.press("3", "2", "Aline Uwase")
        assert caller.press("00") == "CON Enter contact name:\n00. Back"
        assert caller.press("00") == f"CON {MAIN_MENU_EN}"
        assert store.contacts.get(BENEFICIARY_ID, []) == []

    def test_save_failure_ends_session(self, store, settings, clock, db):
        contacts = RefusingContacts(store)
        gateways = dataclasses.replace(store.as_gateways(), contacts=contacts)
        caller = Caller(UssdService(gateways, settings=settings, clock=clock), db)

        self._to_confirm(caller)
        assert caller.press("1") == "END Error creating contact. Please try again."
        assert contacts.create_calls == 1

        row = latest_row(db)
        assert not row.is_active
        assert row.session_metadata["error_count"] == 1

    def test_set_primary_failure_ends_session(self, store, settings, clock, db):
        store.add_contact(BENEFICIARY_ID, name="Aline", phone="0788000111")
        contacts = RefusingContacts(store)
        gateways = dataclasses.replace(store.as_gateways(), contacts=contacts)
        caller = Caller(UssdService(gateways, settings=settings, clock=clock), db)

        caller.dial()
        caller.press("3", "3")
        assert caller.press("1") == "END Error updating primary contact. Please try again."
        assert contacts.set_primary_calls == 1
        assert latest_row(db).session_metadata["error_count"] == 1

    def test_add_primary_contact(self, caller, store):
        caller.dial()
        caller.press("3", "2", "Aline Uwase")
        assert caller.press("12345") == (
            "CON Invalid phone number. Use format: 078XXXXXXX\n"
            "Enter phone number (e.g., 078XXXXXXX):\n00. Back"
        )
        caller.press("0788000111", "sister", "Kicukiro")
        assert caller.press("1") == (
            "CON Confirm contact details:\nName: Aline Uwase\nPhone: 0788000111\n"
            "Relationship: sister\nAddress: Kicukiro\nPrimary: Yes\n1. Save\n2. Edit\n0. Cancel"
        )
        assert caller.press("1").startswith("CON Contact added successfully!\n\n1. View Emergency Contacts")

        contacts = store.contacts[BENEFICIARY_ID]
        assert len(contacts) == 1
        assert contacts[0].is_primary


class TestRejectedCallers:
    def test_unregistered_phone(self, service, db):
        reply = Caller(service, db, phone="0799000000").dial()
        assert reply == "END Not registered. Please contact support.\nNtabwo wiyandikishije. Hamagara support."

        row = latest_row(db)
        assert not row.is_active
        assert row.completed_at is None

    def test_donor_is_turned_away(self, service, db, store):
        store.add_user("0722000222", role=UserRole.DONOR)
        reply = Caller(service, db, phone="0722000222").dial()
        assert reply == (
            "END Service only available for Beneficiaries.\nSerivisi ku Banyamuryango gusa."
        )

    def test_unexpected_error_is_system_error(self, store, settings, clock, db):
        gateways = dataclasses.replace(store.as_gateways(), identity=BrokenIdentity())
        caller = Caller(UssdService(gateways, settings=settings, clock=clock), db)

        assert caller.dial() == "END System Error. Please try again.\nIkosa. Ongera ugerageze."
        assert db.query(UssdSession).count() == 0


class TestDuplicateDelivery:
    def test_concurrent_duplicates_are_serialized(self, caller, service, db):
        caller.dial()
        request = UssdRequest(
            sessionId=SESSION_ID, phoneNumber=PHONE, serviceCode="*384*55#", text="2", networkCode=NETWORK,
        )
        sessions = [SessionLocal(), SessionLocal()]
        barrier = threading.Barrier(2)
        replies = []

        def deliver(session):
            barrier.wait()
            replies.append(service.handle(session, request))

        threads = [threading.Thread(target=deliver, args=(s,)) for s in sessions]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        for session in sessions:
            session.close()

        db.expire_all()
        row = latest_row(db)
        # both deliveries applied one after the other; neither overwrote the other
        assert row.step_count == 2
        assert row.flow_data["input_history"] == ["2", "2"]
        assert row.menu_state == "create_goal_type"
        assert f"CON {GOALS_MENU_EN}" in replies
        assert len(replies) == 2


class TestIdleSweep:
    def test_turn_during_sweep_keeps_session_live(self, store, settings, clock, db):
        locks = TurnBeforeNextLock()
        caller = Caller(UssdService(store.as_gateways(), settings=settings, clock=clock, locks=locks), db)
        caller.dial()
        caller.press("1")

        clock.advance(settings.USSD_TIMEOUT_SECONDS - 0.5)
        replies = []
        locks.queued = lambda: replies.append(caller.press("10000"))
        sweeper = SessionResolver(settings, clock=FakeClock(clock.now + timedelta(seconds=1)), locks=locks)

        assert sweeper.sweep(db) == 0
        assert replies == ["CON Enter Expenses this week (RWF):\n00. Back"]
        assert caller.press("2000") == "CON Enter Current Capital (RWF):\n00. Back"

        row = latest_row(db)
        assert row.is_active
        assert "swept_at" not in row.session_metadata

    def test_swept_row_inside_window_is_revived(self, caller, db):
        caller.dial()
        caller.press("1")
        row = latest_row(db)
        row.is_active = False
        row.session_metadata = {**row.session_metadata, "swept_at": "2026-10-12T09:00:00"}
        db.commit()

        assert caller.press("10000") == "CON Enter Expenses this week (RWF):\n00. Back"
        row = latest_row(db)
        assert row.is_active
        assert "swept_at" not in row.session_metadata
