"""
Shared helpers for menu renderers and handlers.
"""
from typing import Optional

import structlog

from ussd_engine.gateways.base import GatewayError
from ussd_engine.menu.context import MenuContext, SessionSnapshot, Transition
from ussd_engine.menu.states import MenuState

logger = structlog.get_logger(__name__)


def format_amount(value: Optional[float]) -> str:
    """10000.0 -> '10000', 12.5 -> '12.5'."""
    if value is None:
        return "0"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0")


def input_prompt(ctx: MenuContext, snapshot: SessionSnapshot, key: str) -> str:
    """A free-text prompt followed by the back hint."""
    back = ctx.t("back", snapshot)
    return f"{ctx.t(key, snapshot)}\n{ctx.settings.USSD_BACK_SENTINEL}. {back}"


def go(snapshot: SessionSnapshot, state: MenuState, banner: Optional[str] = None) -> Transition:
    return Transition(snapshot=snapshot.at(state), banner=banner)


def exit_session(ctx: MenuContext, snapshot: SessionSnapshot) -> Transition:
    return Transition(snapshot=snapshot.clear_flow(), text=ctx.t("exit", snapshot), end=True, completed=True)


def collaborator_failed(ctx: MenuContext, snapshot: SessionSnapshot, message_key: str,
                        operation: str, error: GatewayError) -> Transition:
    """End the turn after a collaborator call failed; the draft is dropped."""
    identity = snapshot.identity
    logger.error(
        "ussd_collaborator_failed",
        operation=operation,
        menu_state=snapshot.menu_state.value,
        user_id=identity.user_id if identity else None,
        error=str(error),
        error_type=type(error).__name__,
    )
    return Transition(
        snapshot=snapshot.clear_flow(),
        text=ctx.t(message_key, snapshot),
        end=True,
        failed=True,
    )


def beneficiary_missing(ctx: MenuContext, snapshot: SessionSnapshot) -> Transition:
    logger.warning("ussd_beneficiary_missing", user_id=snapshot.identity.user_id if snapshot.identity else None)
    return Transition(
        snapshot=snapshot.clear_flow(),
        text=ctx.t("beneficiary_not_found", snapshot),
        end=True,
        failed=True,
    )
