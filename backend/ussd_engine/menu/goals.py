"""
Goals screens: listing, details and the create-goal wizard.

The recent-goals list is fetched once when the caller asks to view goals and
cached in the session as a GoalListing, so renders never call a collaborator
and a numbered choice always refers to the goal that was on screen.
"""
import structlog

from ussd_engine.constants import USSD_SOURCE_NOTE, GoalType
from ussd_engine.gateways.base import GatewayError, NewGoal
from ussd_engine.menu.common import (
    beneficiary_missing, collaborator_failed, format_amount, go, input_prompt,
)
from ussd_engine.menu.context import InvalidInput, MenuContext, SessionSnapshot, Transition
from ussd_engine.menu.flows import GoalDraft, GoalListing
from ussd_engine.menu.states import MenuState
from ussd_engine.utils.validators import parse_amount, parse_choice, sanitize_text, validate_iso_date

logger = structlog.get_logger(__name__)

GOAL_TYPE_CHOICES = {
    "1": GoalType.BUSINESS,
    "2": GoalType.PERSONAL,
    "3": GoalType.FINANCIAL,
}

DESCRIPTION_PREVIEW = 15


def _listing(snapshot: SessionSnapshot) -> GoalListing:
    active = snapshot.flow.active
    return active if isinstance(active, GoalListing) else GoalListing()


def _draft(snapshot: SessionSnapshot) -> GoalDraft:
    active = snapshot.flow.active
    return active if isinstance(active, GoalDraft) else GoalDraft()


def _store(snapshot: SessionSnapshot, next_state: MenuState, **fields) -> Transition:
    return go(snapshot.with_flow(_draft(snapshot).model_copy(update=fields)), next_state)


# ──────────────── Goals menu ────────────────

def render_goals_menu(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return ctx.t("goals_menu", snapshot)


def handle_goals_menu(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "0":
        return go(snapshot, MenuState.MAIN_MENU)
    if text == "2":
        return go(snapshot, MenuState.CREATE_GOAL_TYPE)
    if text != "1":
        raise InvalidInput()

    beneficiary_id = snapshot.identity.beneficiary_id
    if not beneficiary_id:
        return beneficiary_missing(ctx, snapshot)
    try:
        goals = ctx.gateways.goals.list_recent(beneficiary_id, ctx.settings.GOALS_LIST_LIMIT)
    except GatewayError as e:
        return collaborator_failed(ctx, snapshot, "load_failed", "list_goals", e)

    return go(snapshot.with_flow(GoalListing(goals=tuple(goals))), MenuState.VIEW_GOALS)


# ──────────────── Listing & details ────────────────

def render_view_goals(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    goals = _listing(snapshot).goals
    if not goals:
        return ctx.t("no_goals", snapshot)

    lines = [
        ctx.t(
            "goal_list_item",
            snapshot,
            index=i,
            description=goal.description[:DESCRIPTION_PREVIEW],
            progress=goal.progress_percent,
        )
        for i, goal in enumerate(goals, start=1)
    ]
    lines.append(ctx.t("goal_list_hint", snapshot))
    lines.append(ctx.t("back_option", snapshot))
    return "\n".join(lines)


def handle_view_goals(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "0":
        return go(snapshot, MenuState.GOALS_MENU)

    listing = _listing(snapshot)
    if not listing.goals:
        if text == "1":
            return go(snapshot, MenuState.CREATE_GOAL_TYPE)
        raise InvalidInput()

    index = parse_choice(text, len(listing.goals))
    if index is None:
        raise InvalidInput()
    return go(snapshot.with_flow(listing.model_copy(update={"selected_index": index})), MenuState.GOAL_DETAILS)


def render_goal_details(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    goal = _listing(snapshot).selected
    if goal is None:
        return f"{ctx.t('invalid', snapshot)}\n{ctx.t('back_option', snapshot)}"

    details = ctx.t(
        "goal_details",
        snapshot,
        description=goal.description,
        progress=format_amount(goal.current_progress),
        target=format_amount(goal.target_amount),
        percent=goal.progress_percent,
        status=goal.status.value.replace("_", " "),
        target_date=goal.target_date,
    )
    return f"{details}\n{ctx.t('back_option', snapshot)}"


def handle_goal_details(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "0":
        return go(snapshot, MenuState.VIEW_GOALS)
    raise InvalidInput()


# ──────────────── Create goal ────────────────

def render_goal_type(ctx, snapshot):
    return ctx.t("enter_goal_type", snapshot)


def handle_goal_type(ctx, snapshot, text):
    if text == "0":
        return go(snapshot.clear_flow(), MenuState.GOALS_MENU)
    goal_type = GOAL_TYPE_CHOICES.get(text)
    if goal_type is None:
        raise InvalidInput()
    return _store(snapshot, MenuState.CREATE_GOAL_DESC, type=goal_type)


def render_goal_desc(ctx, snapshot):
    return input_prompt(ctx, snapshot, "enter_goal_desc")


def handle_goal_desc(ctx, snapshot, text):
    description = sanitize_text(text)
    if not description:
        raise InvalidInput()
    return _store(snapshot, MenuState.CREATE_GOAL_AMOUNT, description=description)


def render_goal_amount(ctx, snapshot):
    return input_prompt(ctx, snapshot, "enter_goal_amount")


def handle_goal_amount(ctx, snapshot, text):
    amount = parse_amount(text, allow_zero=False)
    if amount is None:
        raise InvalidInput("invalid_amount")
    return _store(snapshot, MenuState.CREATE_GOAL_DATE, target_amount=amount)


def render_goal_date(ctx, snapshot):
    return input_prompt(ctx, snapshot, "enter_goal_date")


def handle_goal_date(ctx, snapshot, text):
    if not validate_iso_date(text):
        raise InvalidInput("invalid_date")
    return _store(snapshot, MenuState.CREATE_GOAL_CONFIRM, target_date=text.strip())


def render_goal_confirm(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    draft = _draft(snapshot)
    summary = ctx.t(
        "goal_confirm",
        snapshot,
        type=draft.type.value if draft.type else "",
        description=draft.description or "",
        target=format_amount(draft.target_amount),
        target_date=draft.target_date or "",
    )
    return f"{summary}\n{ctx.t('save_options', snapshot)}"


def handle_goal_confirm(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "2":
        return go(snapshot, MenuState.CREATE_GOAL_TYPE)
    if text == "0":
        return go(snapshot.clear_flow(), MenuState.GOALS_MENU)
    if text != "1":
        raise InvalidInput()

    draft = _draft(snapshot)
    if draft.missing_fields():
        logger.warning("ussd_goal_incomplete", missing=draft.missing_fields())
        return go(snapshot, MenuState.CREATE_GOAL_TYPE, banner=ctx.t("incomplete", snapshot))

    beneficiary_id = snapshot.identity.beneficiary_id
    if not beneficiary_id:
        return beneficiary_missing(ctx, snapshot)

    new_goal = NewGoal(
        type=draft.type,
        description=draft.description,
        target_amount=draft.target_amount,
        target_date=draft.target_date,
    )
    try:
        goal = ctx.gateways.goals.create(beneficiary_id, new_goal)
    except GatewayError as e:
        return collaborator_failed(ctx, snapshot, "save_failed_goal", "create_goal", e)

    logger.info("ussd_goal_created", beneficiary_id=beneficiary_id, goal_id=goal.id, source=USSD_SOURCE_NOTE)
    return go(snapshot.clear_flow(), MenuState.GOALS_MENU, banner=ctx.t("goal_created", snapshot))
