"""
Menu Table — one entry per MenuState: how to draw it, how to handle input
on it, and which flow family it belongs to.
"""
from typing import Callable, NamedTuple, Optional

from ussd_engine.menu import contacts, goals, root, tracking
from ussd_engine.menu.context import MenuContext, SessionSnapshot, Transition
from ussd_engine.menu.states import STATE_FAMILY, MenuState

Renderer = Callable[[MenuContext, SessionSnapshot], str]
Handler = Callable[[MenuContext, SessionSnapshot, str], Transition]


class MenuEntry(NamedTuple):
    render: Renderer
    handle: Handler
    family: Optional[str] = None


_HANDLERS: dict[MenuState, tuple[Renderer, Handler]] = {
    MenuState.INITIAL: (root.render_main_menu, root.handle_main_menu),
    MenuState.MAIN_MENU: (root.render_main_menu, root.handle_main_menu),
    MenuState.EXPIRED: (root.render_expired, root.handle_expired),
    MenuState.LANGUAGE_SELECT: (root.render_language_select, root.handle_language_select),

    MenuState.TRACKING_INCOME: (tracking.render_income, tracking.handle_income),
    MenuState.TRACKING_EXPENSES: (tracking.render_expenses, tracking.handle_expenses),
    MenuState.TRACKING_CAPITAL: (tracking.render_capital, tracking.handle_capital),
    MenuState.TRACKING_ATTENDANCE: (tracking.render_attendance, tracking.handle_attendance),
    MenuState.TRACKING_CONFIRM: (tracking.render_confirm, tracking.handle_confirm),

    MenuState.GOALS_MENU: (goals.render_goals_menu, goals.handle_goals_menu),
    MenuState.VIEW_GOALS: (goals.render_view_goals, goals.handle_view_goals),
    MenuState.GOAL_DETAILS: (goals.render_goal_details, goals.handle_goal_details),
    MenuState.CREATE_GOAL_TYPE: (goals.render_goal_type, goals.handle_goal_type),
    MenuState.CREATE_GOAL_DESC: (goals.render_goal_desc, goals.handle_goal_desc),
    MenuState.CREATE_GOAL_AMOUNT: (goals.render_goal_amount, goals.handle_goal_amount),
    MenuState.CREATE_GOAL_DATE: (goals.render_goal_date, goals.handle_goal_date),
    MenuState.CREATE_GOAL_CONFIRM: (goals.render_goal_confirm, goals.handle_goal_confirm),

    MenuState.CONTACTS_MENU: (contacts.render_contacts_menu, contacts.handle_contacts_menu),
    MenuState.VIEW_CONTACTS: (contacts.render_view_contacts, contacts.handle_view_contacts),
    MenuState.ADD_CONTACT_NAME: (contacts.render_contact_name, contacts.handle_contact_name),
    MenuState.ADD_CONTACT_PHONE: (contacts.render_contact_phone, contacts.handle_contact_phone),
    MenuState.ADD_CONTACT_RELATIONSHIP: (contacts.render_contact_relationship, contacts.handle_contact_relationship),
    MenuState.ADD_CONTACT_ADDRESS: (contacts.render_contact_address, contacts.handle_contact_address),
    MenuState.ADD_CONTACT_PRIMARY: (contacts.render_contact_primary, contacts.handle_contact_primary),
    MenuState.ADD_CONTACT_CONFIRM: (contacts.render_contact_confirm, contacts.handle_contact_confirm),
    MenuState.SELECT_PRIMARY_CONTACT: (contacts.render_select_primary, contacts.handle_select_primary),
}

MENU: dict[MenuState, MenuEntry] = {
    state: MenuEntry(render, handle, STATE_FAMILY.get(state))
    for state, (render, handle) in _HANDLERS.items()
}

missing = set(MenuState) - set(MENU)
if missing:
    raise RuntimeError(f"Menu states without an entry: {sorted(s.value for s in missing)}")
del missing
