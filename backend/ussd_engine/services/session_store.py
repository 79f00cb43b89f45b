"""
Session Store — persistence of USSD session rows.

A turn reads the latest row for a session id under a row lock, mutates it
in memory and writes it back as a whole when the service commits.
"""
from typing import Optional

from sqlalchemy.orm import Session

from ussd_engine.models.ussd_session import UssdSession


class SessionStore:

    @staticmethod
    def find_latest(db: Session, session_id: str, for_update: bool = True) -> Optional[UssdSession]:
        """Newest row for a gateway session id (a session id can own several rows across expiries)."""
        query = (
            db.query(UssdSession)
            .filter(UssdSession.session_id == session_id)
            .order_by(UssdSession.created_at.desc())
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def add(db: Session, row: UssdSession) -> UssdSession:
        db.add(row)
        db.flush()
        return row

    @staticmethod
    def save(db: Session, row: UssdSession) -> UssdSession:
        db.add(row)
        db.flush()
        return row
