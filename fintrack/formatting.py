"""
Display formatting helpers.

Amounts are shown with the configured currency symbol and two decimals.
Numeric text inputs are sanitized as the user types: only digits and a
single decimal point survive.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from fintrack.models.entities import Profile


Number = Union[int, float, Decimal]

_NON_NUMERIC = re.compile(r"[^\d.]")
_THOUSANDS = re.compile(r"\B(?=(\d{3})+(?!\d))")


def format_currency(value: Optional[Number], symbol: str = "₱") -> str:
    """
    Format an amount as money, e.g. 1234.5 -> "₱1,234.50".

    None is shown as zero; negative amounts keep the sign in front.
    """
    amount = Decimal(str(value or 0)).quantize(Decimal("0.01"))
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def sanitize_number_input(text: str) -> str:
    """Keep digits and the first decimal point; later points are dropped."""
    sanitized = _NON_NUMERIC.sub("", text or "")
    head, dot, tail = sanitized.partition(".")
    if not dot:
        return head
    return f"{head}.{tail.replace('.', '')}"


def format_number_input(text: str) -> str:
    """Add thousands separators to the integer part of a sanitized input."""
    if not text:
        return ""
    integer, dot, decimals = text.partition(".")
    grouped = _THOUSANDS.sub(",", integer)
    return f"{grouped}{dot}{decimals}"


def parse_amount(text: str) -> Optional[Decimal]:
    """
    Parse an amount as typed, thousands separators allowed.

    Returns None for anything that is not a finite number.
    """
    cleaned = (text or "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def full_name(profile: Optional[Profile]) -> str:
    if not profile:
        return "User"
    name = " ".join(part for part in (profile.first_name, profile.last_name) if part)
    return name or profile.email


def initials(profile: Optional[Profile]) -> str:
    """Avatar initials: first letters of first and last name, else of the email."""
    if not profile:
        return "U"
    if profile.first_name or profile.last_name:
        letters = [(part or "")[:1] for part in (profile.first_name, profile.last_name)]
        return "".join(letters).upper()
    return (profile.email or "U")[:1].upper()


def short_date(value: Union[date, datetime, None]) -> str:
    """e.g. "Mar 5"."""
    if value is None:
        return ""
    return f"{value.strftime('%b')} {value.day}"


def long_date(value: Union[date, datetime, None]) -> str:
    """e.g. "March 5, 2025", or "Not provided"."""
    if value is None:
        return "Not provided"
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def masked_card_number(account_id) -> str:
    """Cards show the first four characters of their id, masked."""
    return f"•••• {str(account_id)[:4]}"
