"""
Menu State Machine — turns one keypad input into the next screen.

process() is the only entry point used by the USSD service. It works on an
immutable SessionSnapshot and returns a Reply with the snapshot to persist;
it never touches the database.
"""
from typing import Optional

import structlog

from ussd_engine.menu.context import InvalidInput, MenuContext, Reply, SessionSnapshot, Transition
from ussd_engine.menu.flows import FLOW_TYPES
from ussd_engine.menu.states import DRAFT_FAMILIES, STATE_FAMILY, MenuState
from ussd_engine.menu.table import MENU, MenuEntry

logger = structlog.get_logger(__name__)


def latest_input(raw_text: Optional[str], separator: str = "*") -> str:
    """The gateway resends the whole input chain ("1*2*500"); only the last segment is new."""
    if not raw_text:
        return ""
    return raw_text.split(separator)[-1].strip()


def normalize_flow(snapshot: SessionSnapshot) -> SessionSnapshot:
    """Keep the active flow consistent with the state the session is parked on.

    Leaving a family drops its accumulator; entering a draft family with no
    accumulator starts an empty one.
    """
    family = STATE_FAMILY.get(snapshot.menu_state)
    active = snapshot.flow.active
    if active.kind != "none" and active.kind != family:
        snapshot = snapshot.clear_flow()
        active = snapshot.flow.active
    if family in DRAFT_FAMILIES and active.kind == "none":
        snapshot = snapshot.with_flow(FLOW_TYPES[family]())
    return snapshot


class MenuMachine:
    def __init__(self, ctx: MenuContext, menu: dict[MenuState, MenuEntry] = MENU):
        self.ctx = ctx
        self.menu = menu

    def render(self, snapshot: SessionSnapshot) -> str:
        return self.menu[snapshot.menu_state].render(self.ctx, snapshot)

    def check_identity(self, snapshot: SessionSnapshot) -> Optional[Reply]:
        """END reply for unknown callers and unsupported roles, shown in both languages."""
        translator = self.ctx.translator
        if snapshot.identity is None:
            return Reply(snapshot, translator.bilingual("not_registered"), end=True)
        if snapshot.identity.role.value != self.ctx.settings.SUPPORTED_ROLE:
            logger.info("ussd_role_not_supported", user_id=snapshot.identity.user_id,
                        role=snapshot.identity.role.value)
            return Reply(snapshot, translator.bilingual("role_not_supported"), end=True)
        return None

    def offer_restart(self, snapshot: SessionSnapshot) -> Reply:
        """First turn after an expiry: the caller picks fresh start or exit."""
        return self.check_identity(snapshot) or Reply(snapshot, self.render(snapshot))

    def process(self, snapshot: SessionSnapshot, raw_text: Optional[str], is_session_start: bool) -> Reply:
        settings = self.ctx.settings
        text = latest_input(raw_text, settings.USSD_INPUT_SEPARATOR)

        if not is_session_start:
            snapshot = snapshot.record_input(text, settings.USSD_HISTORY_LIMIT)

        rejected = self.check_identity(snapshot)
        if rejected:
            return rejected

        if is_session_start:
            started = normalize_flow(snapshot.at(MenuState.MAIN_MENU).with_previous(None))
            return Reply(started, self.render(started))

        if text == settings.USSD_BACK_SENTINEL:
            return self.back(snapshot)

        return self.dispatch(snapshot, text)

    def back(self, snapshot: SessionSnapshot) -> Reply:
        target = MenuState.parse(snapshot.flow.previous_menu_state) or MenuState.MAIN_MENU
        restored = normalize_flow(snapshot.at(target).with_previous(None))
        logger.debug("ussd_back", from_state=snapshot.menu_state.value, to_state=target.value)
        return Reply(restored, self.render(restored))

    def dispatch(self, snapshot: SessionSnapshot, text: str) -> Reply:
        current = snapshot.menu_state
        entry = self.menu[current]
        prepared = snapshot.with_previous(current)

        try:
            transition = entry.handle(self.ctx, prepared, text)
        except InvalidInput as e:
            logger.debug("ussd_invalid_input", menu_state=current.value, reason=e.message_key)
            prefix = self.ctx.t(e.message_key, snapshot)
            return Reply(snapshot, f"{prefix}\n{entry.render(self.ctx, snapshot)}")

        return self._finish(transition)

    def _finish(self, transition: Transition) -> Reply:
        snapshot = transition.snapshot
        if transition.end:
            return Reply(snapshot, transition.text or "", end=True,
                         completed=transition.completed, failed=transition.failed)

        snapshot = normalize_flow(snapshot)
        text = transition.text if transition.text is not None else self.render(snapshot)
        if transition.banner:
            text = f"{transition.banner}\n\n{text}"
        return Reply(snapshot, text, failed=transition.failed)
