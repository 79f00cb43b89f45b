"""
Identity Binder — attaches the caller's user record to a session row once.
"""
import structlog

from ussd_engine.config import Settings
from ussd_engine.constants import UserRole
from ussd_engine.gateways.base import Gateways
from ussd_engine.models.ussd_session import UssdSession

logger = structlog.get_logger(__name__)


class IdentityBinder:
    def __init__(self, gateways: Gateways, settings: Settings):
        self.gateways = gateways
        self.settings = settings

    def bind_if_absent(self, row: UssdSession, phone_number: str) -> bool:
        """Look the caller up by phone when the row has no identity yet.

        Returns True when an identity was bound on this call. An unknown
        phone leaves the row unbound; the state machine turns that into an
        END reply.
        """
        if row.user_id:
            return False

        user = self.gateways.identity.find_by_phone(phone_number)
        if user is None:
            logger.info("ussd_caller_unknown", session_id=row.session_id, phone=phone_number)
            return False

        row.user_id = user.id
        row.user_role = user.role.value
        row.language = (user.language.value if user.language else None) or self.settings.DEFAULT_LANGUAGE

        if user.role == UserRole.BENEFICIARY:
            row.beneficiary_id = self.gateways.beneficiaries.find_beneficiary_by_user_id(user.id)

        logger.info(
            "ussd_identity_bound",
            session_id=row.session_id,
            user_id=user.id,
            role=user.role.value,
            beneficiary_id=row.beneficiary_id,
        )
        return True
