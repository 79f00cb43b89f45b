"""
USSD Service — runs one gateway turn end to end.

    lock(session id)
      -> resolve row (expiry)          services/session_resolver.py
      -> bind identity if unbound      services/identity_binder.py
      -> state machine                 menu/machine.py
      -> write snapshot back to row
      -> single commit
    -> CON/END text                    services/response_encoder.py

Anything unexpected rolls the turn back and ends the session with a
bilingual system error.
"""
from datetime import date, datetime
from typing import Callable, Optional

import structlog
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ussd_engine.config import Settings, get_settings
from ussd_engine.constants import Language, UserRole
from ussd_engine.gateways import Gateways, get_gateways
from ussd_engine.menu.context import Identity, MenuContext, Reply, SessionSnapshot
from ussd_engine.menu.flows import FlowData
from ussd_engine.menu.machine import MenuMachine
from ussd_engine.menu.states import MenuState
from ussd_engine.models.ussd_session import UssdSession
from ussd_engine.schemas.schemas import UssdRequest
from ussd_engine.services import response_encoder
from ussd_engine.services.identity_binder import IdentityBinder
from ussd_engine.services.session_resolver import SessionResolver
from ussd_engine.services.session_store import SessionStore
from ussd_engine.services.translation import Translator, get_translator
from ussd_engine.utils.clock import utcnow
from ussd_engine.utils.locks import SessionLockRegistry

logger = structlog.get_logger(__name__)


def snapshot_from_row(row: UssdSession, default_language: str = "en") -> SessionSnapshot:
    identity = None
    if row.user_id and row.user_role:
        identity = Identity(
            user_id=row.user_id,
            role=UserRole(row.user_role),
            beneficiary_id=row.beneficiary_id,
        )

    try:
        language = Language(row.language)
    except ValueError:
        language = Language(default_language)

    return SessionSnapshot(
        menu_state=MenuState.parse(row.menu_state) or MenuState.MAIN_MENU,
        language=language,
        identity=identity,
        flow=FlowData.from_column(row.flow_data),
        step_count=row.step_count or 0,
    )


class UssdService:
    def __init__(
        self,
        gateways: Gateways,
        settings: Optional[Settings] = None,
        translator: Optional[Translator] = None,
        clock: Callable[[], datetime] = utcnow,
        today: Optional[Callable[[], date]] = None,
        locks: Optional[SessionLockRegistry] = None,
    ):
        self.settings = settings or get_settings()
        self.translator = translator or get_translator()
        self.clock = clock
        self.locks = locks or SessionLockRegistry()
        self.resolver = SessionResolver(self.settings, clock=clock, locks=self.locks)
        self.binder = IdentityBinder(gateways, self.settings)
        self.machine = MenuMachine(MenuContext(
            gateways=gateways,
            translator=self.translator,
            settings=self.settings,
            today=today or (lambda: clock().date()),
        ))

    def handle(self, db: Session, request: UssdRequest) -> str:
        log = logger.bind(session_id=request.session_id, phone=request.phone_number)

        with self.locks.hold(request.session_id):
            try:
                reply = self._turn(db, request)
                db.commit()
            except Exception as e:
                db.rollback()
                log.exception("ussd_turn_failed", error=str(e))
                return response_encoder.end(self.translator.bilingual("system_error"))

        log.info(
            "ussd_turn",
            menu_state=reply.snapshot.menu_state.value,
            step=reply.snapshot.step_count,
            end=reply.end,
        )
        return response_encoder.encode(reply)

    def _turn(self, db: Session, request: UssdRequest) -> Reply:
        resolution = self.resolver.resolve(db, request.session_id, request.phone_number, request.metadata())
        row = resolution.session

        if not row.is_active:
            # Redelivery after the session already ended: answer, change nothing.
            logger.info("ussd_session_closed_redelivery", session_id=row.session_id)
            language = row.language or self.settings.DEFAULT_LANGUAGE
            return Reply(SessionSnapshot(), self.translator.t("session_closed", language), end=True)

        self.binder.bind_if_absent(row, request.phone_number)
        snapshot = snapshot_from_row(row, self.settings.DEFAULT_LANGUAGE)

        if resolution.expired:
            reply = self.machine.offer_restart(snapshot)
        else:
            is_session_start = not (request.text or "").strip()
            reply = self.machine.process(snapshot, request.text, is_session_start)

        self._apply(db, row, reply)
        return reply

    def _apply(self, db: Session, row: UssdSession, reply: Reply) -> None:
        snapshot = reply.snapshot
        row.menu_state = snapshot.menu_state.value
        row.language = snapshot.language.value
        row.step_count = snapshot.step_count
        row.flow_data = snapshot.flow.to_column()

        metadata = dict(row.session_metadata or {})
        if reply.failed:
            metadata["error_count"] = metadata.get("error_count", 0) + 1

        if reply.end:
            row.is_active = False
            if reply.completed:
                row.completed_at = self.clock()
                metadata["session_duration"] = row.duration_seconds
        else:
            # Written unconditionally so a sweep that raced this turn cannot leave it closed.
            metadata.pop("swept_at", None)
            row.is_active = True
            flag_modified(row, "is_active")

        row.session_metadata = metadata
        SessionStore.save(db, row)


_instance: Optional[UssdService] = None


def get_ussd_service() -> UssdService:
    """FastAPI dependency: process-wide service over the configured gateways."""
    global _instance
    if _instance is None:
        _instance = UssdService(get_gateways())
    return _instance


def reset_ussd_service() -> None:
    """Reset the singleton (for testing)."""
    global _instance
    _instance = None
