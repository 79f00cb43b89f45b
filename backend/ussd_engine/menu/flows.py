"""
Flow Accumulators — per-flow data carried between turns.

At most one flow is active per session. Each variant only carries the
fields of its own flow; the discriminator `kind` is what lands in the
session's flow_data JSON column.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ussd_engine.constants import AttendanceStatus, GoalType
from ussd_engine.gateways.base import ContactRecord, GoalRecord


class _Flow(BaseModel):
    model_config = ConfigDict(frozen=True)

    def missing_fields(self) -> list[str]:
        return [name for name in self.required_fields() if getattr(self, name) is None]

    @classmethod
    def required_fields(cls) -> tuple[str, ...]:
        return ()


class NoActiveFlow(_Flow):
    kind: Literal["none"] = "none"


class TrackingDraft(_Flow):
    kind: Literal["tracking"] = "tracking"
    income_this_week: Optional[float] = None
    expenses_this_week: Optional[float] = None
    current_capital: Optional[float] = None
    attendance: Optional[AttendanceStatus] = None

    @classmethod
    def required_fields(cls):
        return ("income_this_week", "expenses_this_week", "current_capital", "attendance")


class GoalDraft(_Flow):
    kind: Literal["goal_draft"] = "goal_draft"
    type: Optional[GoalType] = None
    description: Optional[str] = None
    target_amount: Optional[float] = None
    target_date: Optional[str] = None

    @classmethod
    def required_fields(cls):
        return ("type", "description", "target_amount", "target_date")


class ContactDraft(_Flow):
    kind: Literal["contact_draft"] = "contact_draft"
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None
    address: Optional[str] = None
    is_primary: Optional[bool] = None

    @classmethod
    def required_fields(cls):
        return ("name", "phone", "relationship", "address", "is_primary")


class GoalListing(_Flow):
    """Recent goals fetched once so a numbered choice maps to the same goal."""
    kind: Literal["goal_listing"] = "goal_listing"
    goals: tuple[GoalRecord, ...] = ()
    selected_index: Optional[int] = None

    @property
    def selected(self) -> Optional[GoalRecord]:
        if self.selected_index is None or not 0 <= self.selected_index < len(self.goals):
            return None
        return self.goals[self.selected_index]


class ContactListing(_Flow):
    kind: Literal["contact_listing"] = "contact_listing"
    contacts: tuple[ContactRecord, ...] = ()


ActiveFlow = Annotated[
    Union[NoActiveFlow, TrackingDraft, GoalDraft, ContactDraft, GoalListing, ContactListing],
    Field(discriminator="kind"),
]

FLOW_TYPES = {
    "none": NoActiveFlow,
    "tracking": TrackingDraft,
    "goal_draft": GoalDraft,
    "contact_draft": ContactDraft,
    "goal_listing": GoalListing,
    "contact_listing": ContactListing,
}


class FlowData(BaseModel):
    """Everything the engine keeps in the session's flow_data column."""
    model_config = ConfigDict(frozen=True)

    active: ActiveFlow = Field(default_factory=NoActiveFlow)
    previous_menu_state: Optional[str] = None
    input_history: tuple[str, ...] = ()

    @classmethod
    def from_column(cls, raw) -> "FlowData":
        if not raw:
            return cls()
        return cls.model_validate(raw)

    def to_column(self) -> dict:
        return self.model_dump(mode="json")
