"""
USSD Session Model — One row per gateway conversation.
Maps to the 'ussd_sessions' table.
"""
import uuid

from sqlalchemy import Column, String, DateTime, JSON, Integer, Boolean, Index

from ussd_engine.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class UssdSession(Base):
    __tablename__ = "ussd_sessions"
    __table_args__ = (
        Index("ix_ussd_sessions_session_active", "session_id", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(String(255), nullable=False, index=True)   # assigned by the gateway
    phone_number = Column(String(20), nullable=False, index=True)

    menu_state = Column(String(100), nullable=False, default="initial")

    # Resolved identity, null until bound
    user_id = Column(String(64))
    user_role = Column(String(16), index=True)   # admin | donor | beneficiary
    beneficiary_id = Column(String(64))

    language = Column(String(4), nullable=False, default="en", index=True)
    step_count = Column(Integer, nullable=False, default=0)

    flow_data = Column(JSON, default=dict)   # active flow, previous menu state, input history

    created_at = Column(DateTime, nullable=False)
    last_interaction_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    completed_at = Column(DateTime, nullable=True)

    session_metadata = Column(JSON, default=dict)   # network, service code, error count, duration

    @property
    def duration_seconds(self):
        if not self.completed_at or not self.created_at:
            return None
        return round((self.completed_at - self.created_at).total_seconds())

    def __repr__(self):
        return f"<UssdSession {self.session_id} state={self.menu_state} active={self.is_active}>"
