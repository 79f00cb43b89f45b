"""
Root screens: main menu, expired-session offer and language selection.
"""
import structlog

from ussd_engine.constants import Language
from ussd_engine.gateways.base import GatewayError
from ussd_engine.menu.common import collaborator_failed, exit_session, go
from ussd_engine.menu.context import InvalidInput, MenuContext, SessionSnapshot, Transition
from ussd_engine.menu.states import MenuState

logger = structlog.get_logger(__name__)

MAIN_MENU_CHOICES = {
    "1": MenuState.TRACKING_INCOME,
    "2": MenuState.GOALS_MENU,
    "3": MenuState.CONTACTS_MENU,
    "4": MenuState.LANGUAGE_SELECT,
}

LANGUAGE_CHOICES = {
    "1": Language.EN,
    "2": Language.RW,
}


def render_main_menu(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return f"{ctx.t('welcome', snapshot)}\n{ctx.t('main_menu', snapshot)}"


def handle_main_menu(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "0":
        return exit_session(ctx, snapshot)
    target = MAIN_MENU_CHOICES.get(text)
    if target is None:
        raise InvalidInput()
    return go(snapshot, target)


def render_expired(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return ctx.t("expired", snapshot)


def handle_expired(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "1":
        return go(snapshot, MenuState.MAIN_MENU)
    if text == "0":
        return exit_session(ctx, snapshot)
    raise InvalidInput()


def render_language_select(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return ctx.t("lang_select", snapshot)


def handle_language_select(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "0":
        return go(snapshot, MenuState.MAIN_MENU)

    language = LANGUAGE_CHOICES.get(text)
    if language is None:
        raise InvalidInput()

    try:
        ctx.gateways.identity.update_language(snapshot.identity.user_id, language)
    except GatewayError as e:
        return collaborator_failed(ctx, snapshot, "save_failed_language", "update_language", e)

    logger.info("ussd_language_changed", user_id=snapshot.identity.user_id, language=language.value)
    switched = snapshot.model_copy(update={"language": language})
    return go(switched, MenuState.MAIN_MENU)
