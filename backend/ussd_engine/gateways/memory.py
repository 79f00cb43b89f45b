"""
In-Memory Case Store — dict-based collaborators, single-process, no persistence.

One store holds users, beneficiaries, goals, contacts and tracking records;
as_gateways() wraps it in the five collaborator interfaces. Development
servers seed it at startup and tests inspect what the menu engine submitted.
"""
from __future__ import annotations

import threading
import uuid
from typing import Optional

import structlog

from ussd_engine.constants import GoalStatus, GoalType, Language, UserRole
from ussd_engine.gateways.base import (
    BeneficiaryGateway, ContactGateway, ContactRecord, GatewayRejected, Gateways, GoalGateway,
    GoalRecord, IdentityGateway, NewContact, NewGoal, TrackingGateway,
    TrackingPayload, TrackingRecord, UserRecord,
)

logger = structlog.get_logger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class InMemoryCaseStore:
    """Shared state behind the in-memory gateways."""

    def __init__(self):
        self.lock = threading.RLock()
        self.users: dict[str, UserRecord] = {}
        self.beneficiaries: dict[str, str] = {}          # user_id -> beneficiary_id
        self.goals: dict[str, list[GoalRecord]] = {}     # beneficiary_id -> oldest first
        self.contacts: dict[str, list[ContactRecord]] = {}
        self.tracking: list[TrackingRecord] = []
        self.language_updates: list[tuple[str, Language]] = []

    def add_user(
        self,
        phone: str,
        role: UserRole = UserRole.BENEFICIARY,
        language: Optional[Language] = None,
        user_id: Optional[str] = None,
        beneficiary_id: Optional[str] = None,
    ) -> UserRecord:
        user = UserRecord(id=user_id or _new_id("usr"), phone=phone, role=role, language=language)
        with self.lock:
            self.users[user.id] = user
            if role == UserRole.BENEFICIARY:
                self.beneficiaries[user.id] = beneficiary_id or _new_id("ben")
        return user

    def add_goal(self, beneficiary_id: str, **fields) -> GoalRecord:
        goal = GoalRecord(id=fields.pop("id", None) or _new_id("goal"), **fields)
        with self.lock:
            self.goals.setdefault(beneficiary_id, []).append(goal)
        return goal

    def add_contact(self, beneficiary_id: str, **fields) -> ContactRecord:
        contact = ContactRecord(id=fields.pop("id", None) or _new_id("ct"), **fields)
        with self.lock:
            self.contacts.setdefault(beneficiary_id, []).append(contact)
        return contact

    def seed_demo(self) -> None:
        """A single Kinyarwanda-speaking beneficiary with one goal, for local trials."""
        user = self.add_user("0781234567", language=Language.RW, user_id="usr-demo")
        beneficiary_id = self.beneficiaries[user.id]
        self.add_goal(
            beneficiary_id,
            type=GoalType.BUSINESS,
            description="Expand tailoring shop",
            target_amount=200000,
            current_progress=50000,
            status=GoalStatus.IN_PROGRESS,
            target_date="2027-06-30",
        )
        self.add_contact(
            beneficiary_id, name="Aline", phone="0788000111",
            relationship="sister", address="Kicukiro", is_primary=True,
        )
        logger.info("memory_store_seeded", user_id=user.id, beneficiary_id=beneficiary_id)

    def as_gateways(self) -> Gateways:
        return Gateways(
            identity=MemoryIdentityGateway(self),
            beneficiaries=MemoryBeneficiaryGateway(self),
            goals=MemoryGoalGateway(self),
            contacts=MemoryContactGateway(self),
            tracking=MemoryTrackingGateway(self),
        )


class MemoryIdentityGateway(IdentityGateway):

    def __init__(self, store: InMemoryCaseStore):
        self.store = store

    def find_by_phone(self, phone: str) -> Optional[UserRecord]:
        with self.store.lock:
            for user in self.store.users.values():
                if user.phone == phone:
                    return user
        return None

    def update_language(self, user_id: str, language: Language) -> None:
        with self.store.lock:
            user = self.store.users.get(user_id)
            if user is not None:
                self.store.users[user_id] = user.model_copy(update={"language": language})
            self.store.language_updates.append((user_id, language))


class MemoryBeneficiaryGateway(BeneficiaryGateway):

    def __init__(self, store: InMemoryCaseStore):
        self.store = store

    def find_beneficiary_by_user_id(self, user_id: str) -> Optional[str]:
        return self.store.beneficiaries.get(user_id)


class MemoryGoalGateway(GoalGateway):

    def __init__(self, store: InMemoryCaseStore):
        self.store = store

    def list_recent(self, beneficiary_id: str, limit: int) -> list[GoalRecord]:
        with self.store.lock:
            return list(reversed(self.store.goals.get(beneficiary_id, [])))[:limit]

    def create(self, beneficiary_id: str, goal: NewGoal) -> GoalRecord:
        created = self.store.add_goal(
            beneficiary_id,
            type=goal.type,
            description=goal.description,
            target_amount=goal.target_amount,
            target_date=goal.target_date,
        )
        logger.info("memory_goal_created", beneficiary_id=beneficiary_id, goal_id=created.id)
        return created


class MemoryContactGateway(ContactGateway):

    def __init__(self, store: InMemoryCaseStore):
        self.store = store

    def list_recent(self, beneficiary_id: str, limit: int) -> list[ContactRecord]:
        with self.store.lock:
            return list(reversed(self.store.contacts.get(beneficiary_id, [])))[:limit]

    def create(self, beneficiary_id: str, contact: NewContact) -> ContactRecord:
        with self.store.lock:
            if contact.is_primary:
                existing = self.store.contacts.get(beneficiary_id, [])
                existing[:] = [c.model_copy(update={"is_primary": False}) for c in existing]
            created = self.store.add_contact(beneficiary_id, **contact.model_dump())
        logger.info("memory_contact_created", beneficiary_id=beneficiary_id, contact_id=created.id)
        return created

    def set_primary(self, contact_id: str) -> None:
        with self.store.lock:
            for contacts in self.store.contacts.values():
                if any(c.id == contact_id for c in contacts):
                    contacts[:] = [
                        c.model_copy(update={"is_primary": c.id == contact_id}) for c in contacts
                    ]
                    return
        raise GatewayRejected(f"unknown contact {contact_id}")


class MemoryTrackingGateway(TrackingGateway):

    def __init__(self, store: InMemoryCaseStore):
        self.store = store

    def submit(
        self,
        beneficiary_id: str,
        payload: TrackingPayload,
        submitter_id: str,
        submitter_role: UserRole,
    ) -> TrackingRecord:
        record = TrackingRecord(
            id=_new_id("trk"),
            beneficiary_id=beneficiary_id,
            submitted_by=submitter_id,
            submitter_role=submitter_role,
            payload=payload,
        )
        with self.store.lock:
            self.store.tracking.append(record)
        logger.info("memory_tracking_submitted", beneficiary_id=beneficiary_id, record_id=record.id)
        return record
