"""
Collaborator Gateways — Interfaces to the case-management services.

The menu engine never touches beneficiary, goal, contact or tracking storage
directly. It talks to these interfaces; implementations live in
gateways/memory.py (single process, no persistence) and gateways/http.py
(case-management REST API).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from ussd_engine.constants import AttendanceStatus, GoalStatus, GoalType, Language, UserRole


class GatewayError(Exception):
    """A collaborator could not complete the requested operation."""


class GatewayUnavailable(GatewayError):
    """Transport failure or 5xx from the collaborator."""


class GatewayRejected(GatewayError):
    """The collaborator refused the payload (4xx)."""


# ──────────────── Records ────────────────

class UserRecord(BaseModel):
    id: str
    phone: str
    role: UserRole
    language: Optional[Language] = None


class GoalRecord(BaseModel):
    id: str
    type: GoalType
    description: str
    target_amount: float
    current_progress: float = 0
    status: GoalStatus = GoalStatus.NOT_STARTED
    target_date: str

    @property
    def progress_percent(self) -> int:
        if self.target_amount <= 0:
            return 0
        return round(self.current_progress / self.target_amount * 100)


class ContactRecord(BaseModel):
    id: str
    name: str
    phone: str
    relationship: str = ""
    address: str = ""
    is_primary: bool = False


class NewGoal(BaseModel):
    type: GoalType
    description: str
    target_amount: float
    target_date: str


class NewContact(BaseModel):
    name: str
    phone: str
    relationship: str
    address: str
    is_primary: bool = False


class TrackingPayload(BaseModel):
    week_ending: str
    attendance: AttendanceStatus
    income_this_week: float
    expenses_this_week: float
    current_capital: float
    challenges: str = ""
    solutions_implemented: str = ""
    notes: str = ""
    is_offline_sync: bool = False


class TrackingRecord(BaseModel):
    id: str
    beneficiary_id: str
    submitted_by: str
    submitter_role: UserRole
    payload: TrackingPayload


# ──────────────── Interfaces ────────────────

class IdentityGateway(ABC):

    @abstractmethod
    def find_by_phone(self, phone: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def update_language(self, user_id: str, language: Language) -> None:
        ...


class BeneficiaryGateway(ABC):

    @abstractmethod
    def find_beneficiary_by_user_id(self, user_id: str) -> Optional[str]:
        """Return the beneficiary id attached to a user, if any."""
        ...


class GoalGateway(ABC):

    @abstractmethod
    def list_recent(self, beneficiary_id: str, limit: int) -> list[GoalRecord]:
        ...

    @abstractmethod
    def create(self, beneficiary_id: str, goal: NewGoal) -> GoalRecord:
        ...


class ContactGateway(ABC):

    @abstractmethod
    def list_recent(self, beneficiary_id: str, limit: int) -> list[ContactRecord]:
        ...

    @abstractmethod
    def create(self, beneficiary_id: str, contact: NewContact) -> ContactRecord:
        ...

    @abstractmethod
    def set_primary(self, contact_id: str) -> None:
        ...


class TrackingGateway(ABC):

    @abstractmethod
    def submit(
        self,
        beneficiary_id: str,
        payload: TrackingPayload,
        submitter_id: str,
        submitter_role: UserRole,
    ) -> TrackingRecord:
        ...


@dataclass(frozen=True)
class Gateways:
    """The collaborator set handed to the menu engine."""

    identity: IdentityGateway
    beneficiaries: BeneficiaryGateway
    goals: GoalGateway
    contacts: ContactGateway
    tracking: TrackingGateway

