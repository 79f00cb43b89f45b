from ussd_engine.utils.clock import utcnow
from ussd_engine.utils.locks import SessionLockRegistry
from ussd_engine.utils.validators import (
    parse_amount, parse_choice, sanitize_text, validate_iso_date, validate_rw_phone,
)

__all__ = [
    "utcnow", "SessionLockRegistry",
    "parse_amount", "parse_choice", "sanitize_text", "validate_iso_date", "validate_rw_phone",
]
