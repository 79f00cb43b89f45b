"""
Menu Context — the values a state handler sees and returns.

Handlers never touch the ORM row. The USSD service converts the row to a
SessionSnapshot, the machine returns a Reply carrying the next snapshot,
and the service writes that back once per turn.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from ussd_engine.config import Settings
from ussd_engine.constants import Language, UserRole
from ussd_engine.gateways.base import Gateways
from ussd_engine.menu.flows import FlowData, NoActiveFlow
from ussd_engine.menu.states import MenuState
from ussd_engine.services.translation import Translator


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: UserRole
    beneficiary_id: Optional[str] = None


class SessionSnapshot(BaseModel):
    """Immutable view of the state-machine fields of one session."""
    model_config = ConfigDict(frozen=True)

    menu_state: MenuState = MenuState.INITIAL
    language: Language = Language.EN
    identity: Optional[Identity] = None
    flow: FlowData = FlowData()
    step_count: int = 0

    def at(self, state: MenuState) -> "SessionSnapshot":
        return self.model_copy(update={"menu_state": state})

    def with_flow(self, active) -> "SessionSnapshot":
        return self.model_copy(update={"flow": self.flow.model_copy(update={"active": active})})

    def clear_flow(self) -> "SessionSnapshot":
        return self.with_flow(NoActiveFlow())

    def with_previous(self, state: Optional[MenuState]) -> "SessionSnapshot":
        value = state.value if state is not None else None
        return self.model_copy(update={"flow": self.flow.model_copy(update={"previous_menu_state": value})})

    def record_input(self, text: str, limit: int) -> "SessionSnapshot":
        history = (self.flow.input_history + (text,))[-limit:] if limit > 0 else ()
        return self.model_copy(update={
            "step_count": self.step_count + 1,
            "flow": self.flow.model_copy(update={"input_history": history}),
        })


@dataclass(frozen=True)
class Transition:
    """What a handler decided: the next snapshot and, optionally, fixed text.

    With no text the machine renders the next state, prefixed by banner
    when one is given.
    """

    snapshot: SessionSnapshot
    banner: Optional[str] = None
    text: Optional[str] = None
    end: bool = False
    completed: bool = False     # normal exit, sets completed_at
    failed: bool = False        # a collaborator call failed this turn


@dataclass(frozen=True)
class Reply:
    """Outcome of one turn: final snapshot plus the text to show."""

    snapshot: SessionSnapshot
    text: str
    end: bool = False
    completed: bool = False
    failed: bool = False


class InvalidInput(ValueError):
    """Input rejected by a handler; the current screen is shown again."""

    def __init__(self, message_key: str = "invalid"):
        super().__init__(message_key)
        self.message_key = message_key


@dataclass
class MenuContext:
    """Collaborators and settings available to handlers for one turn."""

    gateways: Gateways
    translator: Translator
    settings: Settings
    today: Callable[[], date] = field(default=date.today)

    def t(self, key: str, snapshot: SessionSnapshot, **params) -> str:
        return self.translator.t(key, snapshot.language, **params)
