"""
Emergency contact screens: listing, add-contact wizard and primary selection.
"""
import structlog

from ussd_engine.gateways.base import GatewayError, NewContact
from ussd_engine.menu.common import beneficiary_missing, collaborator_failed, go, input_prompt
from ussd_engine.menu.context import InvalidInput, MenuContext, SessionSnapshot, Transition
from ussd_engine.menu.flows import ContactDraft, ContactListing
from ussd_engine.menu.states import MenuState
from ussd_engine.utils.validators import parse_choice, sanitize_text, validate_rw_phone

logger = structlog.get_logger(__name__)


def _listing(snapshot: SessionSnapshot) -> ContactListing:
    active = snapshot.flow.active
    return active if isinstance(active, ContactListing) else ContactListing()


def _draft(snapshot: SessionSnapshot) -> ContactDraft:
    active = snapshot.flow.active
    return active if isinstance(active, ContactDraft) else ContactDraft()


def _store(snapshot: SessionSnapshot, next_state: MenuState, **fields) -> Transition:
    return go(snapshot.with_flow(_draft(snapshot).model_copy(update=fields)), next_state)


def _load(ctx: MenuContext, snapshot: SessionSnapshot, limit: int, next_state: MenuState) -> Transition:
    beneficiary_id = snapshot.identity.beneficiary_id
    if not beneficiary_id:
        return beneficiary_missing(ctx, snapshot)
    try:
        contacts = ctx.gateways.contacts.list_recent(beneficiary_id, limit)
    except GatewayError as e:
        return collaborator_failed(ctx, snapshot, "load_failed", "list_contacts", e)
    # nothing to choose from: show the empty listing instead
    if not contacts:
        next_state = MenuState.VIEW_CONTACTS
    return go(snapshot.with_flow(ContactListing(contacts=tuple(contacts))), next_state)


# ──────────────── Contacts menu ────────────────

def render_contacts_menu(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    return ctx.t("contacts_menu", snapshot)


def handle_contacts_menu(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "0":
        return go(snapshot, MenuState.MAIN_MENU)
    if text == "1":
        return _load(ctx, snapshot, ctx.settings.CONTACTS_LIST_LIMIT, MenuState.VIEW_CONTACTS)
    if text == "2":
        return go(snapshot, MenuState.ADD_CONTACT_NAME)
    if text == "3":
        return _load(ctx, snapshot, ctx.settings.PRIMARY_CONTACT_LIST_LIMIT, MenuState.SELECT_PRIMARY_CONTACT)
    raise InvalidInput()


def render_view_contacts(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    contacts = _listing(snapshot).contacts
    if not contacts:
        return ctx.t("no_contacts", snapshot)

    lines = [
        ctx.t(
            "contact_list_item",
            snapshot,
            index=i,
            name=contact.name,
            phone=contact.phone,
            primary=ctx.t("primary_tag", snapshot) if contact.is_primary else "",
        )
        for i, contact in enumerate(contacts, start=1)
    ]
    lines.append(ctx.t("back_option", snapshot))
    return "\n".join(lines)


def handle_view_contacts(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "0":
        return go(snapshot, MenuState.CONTACTS_MENU)
    if text == "1" and not _listing(snapshot).contacts:
        return go(snapshot, MenuState.ADD_CONTACT_NAME)
    raise InvalidInput()


# ──────────────── Primary contact ────────────────

def render_select_primary(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    lines = [ctx.t("select_primary_contact", snapshot)]
    for i, contact in enumerate(_listing(snapshot).contacts, start=1):
        tag = ctx.t("current_primary_tag", snapshot) if contact.is_primary else ""
        lines.append(f"{i}. {contact.name}{tag}")
    lines.append(ctx.t("back_option", snapshot))
    return "\n".join(lines)


def handle_select_primary(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "0":
        return go(snapshot, MenuState.CONTACTS_MENU)

    contacts = _listing(snapshot).contacts
    index = parse_choice(text, len(contacts))
    if index is None:
        raise InvalidInput()

    contact = contacts[index]
    try:
        ctx.gateways.contacts.set_primary(contact.id)
    except GatewayError as e:
        return collaborator_failed(ctx, snapshot, "save_failed_primary", "set_primary_contact", e)

    logger.info("ussd_primary_contact_set", contact_id=contact.id)
    return go(snapshot.clear_flow(), MenuState.CONTACTS_MENU, banner=ctx.t("primary_contact_updated", snapshot))


# ──────────────── Add contact ────────────────

def render_contact_name(ctx, snapshot):
    return input_prompt(ctx, snapshot, "enter_contact_name")


def handle_contact_name(ctx, snapshot, text):
    name = sanitize_text(text)
    if not name:
        raise InvalidInput()
    return _store(snapshot, MenuState.ADD_CONTACT_PHONE, name=name)


def render_contact_phone(ctx, snapshot):
    return input_prompt(ctx, snapshot, "enter_contact_phone")


def handle_contact_phone(ctx, snapshot, text):
    if not validate_rw_phone(text):
        raise InvalidInput("invalid_phone")
    return _store(snapshot, MenuState.ADD_CONTACT_RELATIONSHIP, phone=text.strip())


def render_contact_relationship(ctx, snapshot):
    return input_prompt(ctx, snapshot, "enter_contact_relationship")


def handle_contact_relationship(ctx, snapshot, text):
    relationship = sanitize_text(text)
    if not relationship:
        raise InvalidInput()
    return _store(snapshot, MenuState.ADD_CONTACT_ADDRESS, relationship=relationship)


def render_contact_address(ctx, snapshot):
    return input_prompt(ctx, snapshot, "enter_contact_address")


def handle_contact_address(ctx, snapshot, text):
    address = sanitize_text(text)
    if not address:
        raise InvalidInput()
    return _store(snapshot, MenuState.ADD_CONTACT_PRIMARY, address=address)


def render_contact_primary(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    question = f"{ctx.t('set_as_primary', snapshot)}\n{ctx.t('yes_no', snapshot)}"
    return f"{question}\n{ctx.settings.USSD_BACK_SENTINEL}. {ctx.t('back', snapshot)}"


def handle_contact_primary(ctx, snapshot, text):
    if text not in ("1", "2"):
        raise InvalidInput()
    return _store(snapshot, MenuState.ADD_CONTACT_CONFIRM, is_primary=text == "1")


def render_contact_confirm(ctx: MenuContext, snapshot: SessionSnapshot) -> str:
    draft = _draft(snapshot)
    summary = ctx.t(
        "contact_confirm",
        snapshot,
        name=draft.name or "",
        phone=draft.phone or "",
        relationship=draft.relationship or "",
        address=draft.address or "",
        primary=ctx.t("yes" if draft.is_primary else "no", snapshot),
    )
    return f"{summary}\n{ctx.t('save_options', snapshot)}"


def handle_contact_confirm(ctx: MenuContext, snapshot: SessionSnapshot, text: str) -> Transition:
    if text == "2":
        return go(snapshot, MenuState.ADD_CONTACT_NAME)
    if text == "0":
        return go(snapshot.clear_flow(), MenuState.CONTACTS_MENU)
    if text != "1":
        raise InvalidInput()

    draft = _draft(snapshot)
    if draft.missing_fields():
        logger.warning("ussd_contact_incomplete", missing=draft.missing_fields())
        return go(snapshot, MenuState.ADD_CONTACT_NAME, banner=ctx.t("incomplete", snapshot))

    beneficiary_id = snapshot.identity.beneficiary_id
    if not beneficiary_id:
        return beneficiary_missing(ctx, snapshot)

    new_contact = NewContact(
        name=draft.name,
        phone=draft.phone,
        relationship=draft.relationship,
        address=draft.address,
        is_primary=draft.is_primary,
    )
    try:
        contact = ctx.gateways.contacts.create(beneficiary_id, new_contact)
    except GatewayError as e:
        return collaborator_failed(ctx, snapshot, "save_failed_contact", "create_contact", e)

    logger.info("ussd_contact_created", beneficiary_id=beneficiary_id, contact_id=contact.id)
    return go(snapshot.clear_flow(), MenuState.CONTACTS_MENU, banner=ctx.t("contact_created", snapshot))
