"""Shared test fixtures for the USSD engine."""
import os

# Must be set before ussd_engine.database builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GATEWAY_BACKEND"] = "memory"
os.environ["SWEEP_INTERVAL_SECONDS"] = "0"

from datetime import date, datetime, timedelta

import pytest

from ussd_engine.config import get_settings
from ussd_engine.constants import UserRole
from ussd_engine.database import Base, SessionLocal, engine, init_db
from ussd_engine.gateways.memory import InMemoryCaseStore
from ussd_engine.menu.context import Identity, MenuContext, SessionSnapshot
from ussd_engine.menu.machine import MenuMachine
from ussd_engine.schemas.schemas import UssdRequest
from ussd_engine.services.translation import get_translator
from ussd_engine.services.ussd_service import UssdService

PHONE = "0788123456"
USER_ID = "usr-1"
BENEFICIARY_ID = "ben-1"
SESSION_ID = "ATUid_test_1"
NETWORK = "63510"
START = datetime(2026, 10, 12, 9, 0, 0)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class Caller:
    """A handset: keeps the '*'-joined input chain the gateway would resend."""

    def __init__(self, service: UssdService, db, session_id: str = SESSION_ID, phone: str = PHONE):
        self.service = service
        self.db = db
        self.session_id = session_id
        self.phone = phone
        self.inputs: list[str] = []

    def _send(self) -> str:
        request = UssdRequest(
            sessionId=self.session_id,
            phoneNumber=self.phone,
            serviceCode="*384*55#",
            text="*".join(self.inputs),
            networkCode=NETWORK,
        )
        return self.service.handle(self.db, request)

    def dial(self) -> str:
        self.inputs = []
        return self._send()

    def press(self, *values: str) -> str:
        reply = ""
        for value in values:
            self.inputs.append(value)
            reply = self._send()
        return reply

    def resend(self) -> str:
        return self._send()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def tables():
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryCaseStore:
    store = InMemoryCaseStore()
    store.add_user(PHONE, role=UserRole.BENEFICIARY, user_id=USER_ID, beneficiary_id=BENEFICIARY_ID)
    return store


@pytest.fixture
def service(store, settings, clock) -> UssdService:
    return UssdService(store.as_gateways(), settings=settings, clock=clock)


@pytest.fixture
def caller(service, db) -> Caller:
    return Caller(service, db)


@pytest.fixture
def menu_context(store, settings) -> MenuContext:
    return MenuContext(
        gateways=store.as_gateways(),
        translator=get_translator(),
        settings=settings,
        today=lambda: date(2026, 10, 12),
    )


@pytest.fixture
def machine(menu_context) -> MenuMachine:
    return MenuMachine(menu_context)


@pytest.fixture
def beneficiary_snapshot() -> SessionSnapshot:
    identity = Identity(user_id=USER_ID, role=UserRole.BENEFICIARY, beneficiary_id=BENEFICIARY_ID)
    return SessionSnapshot(identity=identity)
