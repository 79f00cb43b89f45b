"""
Validators — Regex and rule-based checks for keypad input.
"""
import math
import re
from datetime import date
from typing import Optional

ISO_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
RW_MOBILE_RE = re.compile(r"^(\+250|250|0)[78][0-9]{8}$")
AMOUNT_RE = re.compile(r"^[0-9]+(\.[0-9]+)?$")
CHOICE_RE = re.compile(r"^[0-9]+$")


def parse_amount(text: str | None, allow_zero: bool = True) -> Optional[float]:
    """Parse a keypad amount. Rejects signs, letters, NaN and infinities."""
    if not text:
        return None
    cleaned = text.strip()
    if not AMOUNT_RE.match(cleaned):
        return None
    amount = float(cleaned)
    if math.isinf(amount):
        return None
    if amount < 0 or (amount == 0 and not allow_zero):
        return None
    return amount


def validate_iso_date(text: str | None) -> bool:
    """YYYY-MM-DD that is also a real calendar date (no 2025-02-30)."""
    if not text or not ISO_DATE_RE.match(text.strip()):
        return False
    try:
        date.fromisoformat(text.strip())
    except ValueError:
        return False
    return True


def validate_rw_phone(phone: str | None) -> bool:
    """Rwandan mobile number: 07XXXXXXXX, 2507XXXXXXXX or +2507XXXXXXXX (MTN/Airtel ranges)."""
    if not phone:
        return False
    return bool(RW_MOBILE_RE.match(phone.strip()))


def parse_choice(text: str | None, count: int) -> Optional[int]:
    """1-based menu choice to a 0-based index, or None when out of range."""
    if not text or not CHOICE_RE.match(text.strip()):
        return None
    index = int(text.strip()) - 1
    if 0 <= index < count:
        return index
    return None


def sanitize_text(text: str | None) -> str:
    """Basic sanitization for free text: strip and collapse whitespace."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.strip())
