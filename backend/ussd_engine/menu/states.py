"""
Menu States — every screen the engine can park a session on, and the flow
family each one belongs to.
"""
from enum import Enum
from typing import Optional


class MenuState(str, Enum):
    INITIAL = "initial"
    EXPIRED = "expired"
    MAIN_MENU = "main_menu"

    # Goals
    GOALS_MENU = "goals_menu"
    VIEW_GOALS = "view_goals"
    GOAL_DETAILS = "goal_details"
    CREATE_GOAL_TYPE = "create_goal_type"
    CREATE_GOAL_DESC = "create_goal_desc"
    CREATE_GOAL_AMOUNT = "create_goal_amount"
    CREATE_GOAL_DATE = "create_goal_date"
    CREATE_GOAL_CONFIRM = "create_goal_confirm"

    # Emergency contacts
    CONTACTS_MENU = "contacts_menu"
    VIEW_CONTACTS = "view_contacts"
    ADD_CONTACT_NAME = "add_contact_name"
    ADD_CONTACT_PHONE = "add_contact_phone"
    ADD_CONTACT_RELATIONSHIP = "add_contact_relationship"
    ADD_CONTACT_ADDRESS = "add_contact_address"
    ADD_CONTACT_PRIMARY = "add_contact_primary"
    ADD_CONTACT_CONFIRM = "add_contact_confirm"
    SELECT_PRIMARY_CONTACT = "select_primary_contact"

    # Weekly tracking
    TRACKING_INCOME = "tracking_income"
    TRACKING_EXPENSES = "tracking_expenses"
    TRACKING_CAPITAL = "tracking_capital"
    TRACKING_ATTENDANCE = "tracking_attendance"
    TRACKING_CONFIRM = "tracking_confirm"

    LANGUAGE_SELECT = "language_select"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["MenuState"]:
        try:
            return cls(value)
        except ValueError:
            return None


# Flow kind (see menu/flows.py) owned by each state; states not listed own none.
STATE_FAMILY: dict[MenuState, str] = {
    MenuState.TRACKING_INCOME: "tracking",
    MenuState.TRACKING_EXPENSES: "tracking",
    MenuState.TRACKING_CAPITAL: "tracking",
    MenuState.TRACKING_ATTENDANCE: "tracking",
    MenuState.TRACKING_CONFIRM: "tracking",

    MenuState.CREATE_GOAL_TYPE: "goal_draft",
    MenuState.CREATE_GOAL_DESC: "goal_draft",
    MenuState.CREATE_GOAL_AMOUNT: "goal_draft",
    MenuState.CREATE_GOAL_DATE: "goal_draft",
    MenuState.CREATE_GOAL_CONFIRM: "goal_draft",

    MenuState.GOALS_MENU: "goal_listing",
    MenuState.VIEW_GOALS: "goal_listing",
    MenuState.GOAL_DETAILS: "goal_listing",

    MenuState.ADD_CONTACT_NAME: "contact_draft",
    MenuState.ADD_CONTACT_PHONE: "contact_draft",
    MenuState.ADD_CONTACT_RELATIONSHIP: "contact_draft",
    MenuState.ADD_CONTACT_ADDRESS: "contact_draft",
    MenuState.ADD_CONTACT_PRIMARY: "contact_draft",
    MenuState.ADD_CONTACT_CONFIRM: "contact_draft",

    MenuState.CONTACTS_MENU: "contact_listing",
    MenuState.VIEW_CONTACTS: "contact_listing",
    MenuState.SELECT_PRIMARY_CONTACT: "contact_listing",
}

# Families that need an (empty) accumulator as soon as one of their states is entered
DRAFT_FAMILIES = ("tracking", "goal_draft", "contact_draft")
