"""
Session Resolver — find or create the session row for an inbound turn and
apply the inactivity timeout.

Expiry is evaluated here, before the state machine reads menu_state. An
expired row is closed and a replacement row is opened in the `expired`
state, so the caller is offered a fresh start instead of landing in the
middle of an abandoned flow.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from ussd_engine.config import Settings
from ussd_engine.menu.states import MenuState
from ussd_engine.models.ussd_session import UssdSession
from ussd_engine.services.session_store import SessionStore
from ussd_engine.utils.clock import utcnow
from ussd_engine.utils.locks import SessionLockRegistry

logger = structlog.get_logger(__name__)

# MCC+MNC as sent in networkCode
NETWORK_NAMES = {
    "63510": "MTN Rwanda",
    "63513": "Airtel Rwanda",
    "63514": "Airtel Rwanda",
}


def _describe(metadata: dict) -> dict:
    network_code = metadata.get("network_code")
    return {
        **metadata,
        "network": NETWORK_NAMES.get(network_code or "", "Unknown"),
        "device": "USSD",
    }


@dataclass
class Resolution:
    session: UssdSession
    expired: bool = False
    created: bool = False


class SessionResolver:
    """Owns session lifetime: creation, expiry and the background sweep."""

    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
        locks: Optional[SessionLockRegistry] = None,
    ):
        self.settings = settings
        self.clock = clock
        self.locks = locks or SessionLockRegistry()

    @property
    def timeout(self) -> timedelta:
        return timedelta(seconds=self.settings.USSD_TIMEOUT_SECONDS)

    def is_stale(self, row: UssdSession, now: datetime) -> bool:
        return now - row.last_interaction_at > self.timeout

    def resolve(
        self,
        db: Session,
        session_id: str,
        phone_number: str,
        metadata: Optional[dict] = None,
    ) -> Resolution:
        now = self.clock()
        row = SessionStore.find_latest(db, session_id)

        if row is None:
            return Resolution(self._open(db, session_id, phone_number, metadata, now), created=True)

        if self.is_stale(row, now):
            # A row the caller ended normally is history; a dial that reuses its id starts over.
            if not row.is_active and not (row.session_metadata or {}).get("swept_at"):
                return Resolution(self._open(db, session_id, phone_number, metadata, now), created=True)
            return Resolution(self._expire(db, row, phone_number, metadata, now), expired=True)

        metadata_now = row.session_metadata or {}
        if not row.is_active and metadata_now.get("swept_at"):
            # Swept while the caller was still inside the window: the conversation is live.
            logger.info("ussd_session_revived", session_id=row.session_id, menu_state=row.menu_state)
            row.is_active = True
            row.session_metadata = {k: v for k, v in metadata_now.items() if k != "swept_at"}

        if row.is_active:
            row.last_interaction_at = now
            row.expires_at = now + self.timeout
        return Resolution(row)

    def _open(
        self,
        db: Session,
        session_id: str,
        phone_number: str,
        metadata: Optional[dict],
        now: datetime,
        menu_state: MenuState = MenuState.INITIAL,
        extra: Optional[dict] = None,
    ) -> UssdSession:
        row = UssdSession(
            session_id=session_id,
            phone_number=phone_number,
            menu_state=menu_state.value,
            language=self.settings.DEFAULT_LANGUAGE,
            step_count=0,
            flow_data={},
            created_at=now,
            last_interaction_at=now,
            expires_at=now + self.timeout,
            is_active=True,
            session_metadata={
                **_describe(metadata or {}),
                **(extra or {}),
                "error_count": 0,
            },
        )
        SessionStore.add(db, row)
        logger.info("ussd_session_created", session_id=session_id, menu_state=menu_state.value)
        return row

    def _expire(
        self,
        db: Session,
        row: UssdSession,
        phone_number: str,
        metadata: Optional[dict],
        now: datetime,
    ) -> UssdSession:
        idle = round((now - row.last_interaction_at).total_seconds())
        logger.info(
            "ussd_session_expired",
            session_id=row.session_id,
            menu_state=row.menu_state,
            idle_seconds=idle,
        )
        row.is_active = False
        SessionStore.save(db, row)
        return self._open(
            db, row.session_id, phone_number, metadata, now,
            menu_state=MenuState.EXPIRED,
            extra={"expired_from": row.id, "expired_menu_state": row.menu_state},
        )

    def sweep(self, db: Session, now: Optional[datetime] = None) -> int:
        """Mark active rows idle past the timeout inactive. Reporting only; resolve() still
        offers those callers a fresh start.

        Each row is flipped by a conditional UPDATE under its session lock, so a turn
        that refreshed the row after the candidate scan leaves it untouched.
        """
        now = now or self.clock()
        cutoff = now - self.timeout
        candidates = (
            db.query(UssdSession.id, UssdSession.session_id, UssdSession.session_metadata)
            .filter(UssdSession.is_active.is_(True), UssdSession.last_interaction_at < cutoff)
            .all()
        )
        db.commit()

        swept = 0
        for row_id, session_id, metadata in candidates:
            with self.locks.hold(session_id):
                result = db.execute(
                    update(UssdSession)
                    .where(
                        UssdSession.id == row_id,
                        UssdSession.is_active.is_(True),
                        UssdSession.last_interaction_at < cutoff,
                    )
                    .values(
                        is_active=False,
                        session_metadata={**(metadata or {}), "swept_at": now.isoformat()},
                    )
                    .execution_options(synchronize_session="fetch")
                )
                db.commit()
            swept += result.rowcount

        if swept:
            logger.info("ussd_sessions_swept", count=swept, candidates=len(candidates))
        return swept
