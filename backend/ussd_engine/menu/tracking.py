"""
Weekly tracking flow: income -> expenses -> capital -> attendance -> confirm.
"""
import structlog

from ussd_engine.constants import USSD_SOURCE_NOTE, USSD_TRACKING_NOTE, AttendanceStatus
from ussd_engine.gateways.base import GatewayError, TrackingPayload
from ussd_engine.menu.common import (
    beneficiary_missing, collaborator_failed, format_amount, go, input_prompt,
)
from ussd_engine.menu.context import InvalidInput, MenuContext, SessionSnapshot, Transition
from ussd_engine.menu.flows import TrackingDraft
from ussd_engine.menu.states import MenuState
from ussd_engine.utils.validators import parse_amount

logger = structlog.get_logger(__name__)

ATTENDANCE_CHOICES = {
    "1": AttendanceStatus.PRESENT,
    "2": AttendanceStatus.ABSENT,
    "3": AttendanceStatus.LATE,
}


def _draft(snapshot: SessionSnapshot) -> TrackingDraft:
    active = snapshot.flow.active
    return active if isinstance(active, TrackingDraft) else TrackingDraft()


def _store(snapshot: SessionSnapshot, next_state: MenuState, **fields) -> Transition:
    draft = _draft(snapshot).model_copy(update=fields)
    return go(snapshot.with_flow(draft), next_state)


def _amount(text: str) -> float:
    amount = parse_amount(text, allow_zero=True)
    if amount is None:
        raise InvalidInput("invalid_amount")
    return amount


# ──────────────── Amount steps ────────────────

def render_income(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return input_prompt(ctx, snapshot, "tracking_income")


def handle_income(ctx, snapshot, text):
    return _store(snapshot, MenuState.TRACKING_EXPENSES, income_this_week=_amount(text))


def render_expenses(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return input_prompt(ctx, snapshot, "tracking_expenses")


def handle_expenses(ctx, snapshot, text):
    return _store(snapshot, MenuState.TRACKING_CAPITAL, expenses_this_week=_amount(text))


def render_capital(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return input_prompt(ctx, snapshot, "tracking_capital")


def handle_capital(ctx, snapshot, text):
    return _store(snapshot, MenuState.TRACKING_ATTENDANCE, current_capital=_amount(text))


# ──────────────── Attendance ────────────────

def render_attendance(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return ctx.t("tracking_attendance", snapshot)


def handle_attendance(ctx, snapshot, text):
    if text == "0":
        return go(snapshot, MenuState.TRACKING_CAPITAL)
    attendance = ATTENDANCE_CHOICES.get(text)
    if attendance is None:
        raise InvalidInput()
    return _store(snapshot, MenuState.TRACKING_CONFIRM, attendance=attendance)


# ──────────────── Confirm ────────────────

def render_confirm(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    draft = _draft(snapshot)
    attendance = ctx.t(f"attendance_{draft.attendance.value}", snapshot) if draft.attendance else ""
    summary = ctx.t(
        "tracking_confirm",
        snapshot,
        income=format_amount(draft.income_this_week),
        expenses=format_amount(draft.expenses_this_week),
        capital=format_amount(draft.current_capital),
        attendance=attendance,
    )
    return f"{summary}\n{ctx.t('submit_options', snapshot)}"


def handle_confirm(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "2":
        return go(snapshot, MenuState.TRACKING_INCOME)
    if text == "0":
        return go(snapshot.clear_flow(), MenuState.MAIN_MENU)
    if text != "1":
        raise InvalidInput()

    draft = _draft(snapshot)
    if draft.missing_fields():
        logger.warning("ussd_tracking_incomplete", missing=draft.missing_fields())
        return go(snapshot, MenuState.TRACKING_INCOME, banner=ctx.t("incomplete", snapshot))

    identity = snapshot.identity
    if not identity.beneficiary_id:
        return beneficiary_missing(ctx, snapshot)

    payload = TrackingPayload(
        week_ending=ctx.today().isoformat(),
        attendance=draft.attendance,
        income_this_week=draft.income_this_week,
        expenses_this_week=draft.expenses_this_week,
        current_capital=draft.current_capital,
        challenges=USSD_SOURCE_NOTE,
        solutions_implemented=USSD_SOURCE_NOTE,
        notes=USSD_TRACKING_NOTE,
        is_offline_sync=False,
    )
    try:
        record = ctx.gateways.tracking.submit(
            identity.beneficiary_id, payload, identity.user_id, identity.role,
        )
    except GatewayError as e:
        return collaborator_failed(ctx, snapshot, "save_failed_tracking", "submit_tracking", e)

    logger.info("ussd_tracking_submitted", beneficiary_id=identity.beneficiary_id, tracking_id=record.id)
    return go(snapshot.clear_flow(), MenuState.MAIN_MENU, banner=ctx.t("tracking_submitted", snapshot))
