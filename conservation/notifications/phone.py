"""
Phone number helpers for SMS delivery.
"""

import re

_E164 = re.compile(r"^\+[1-9]\d{6,14}$")
_NOT_DIGIT_OR_PLUS = re.compile(r"[^0-9+]")


def normalize_phone(raw: str) -> str:
    """
    Normalize a US phone number to E.164 (+1XXXXXXXXXX).
    Handles formats from contact pickers, Twilio webhooks and user input.
    Returns the stripped digits when the number can't be normalized.
    """
    digits = _NOT_DIGIT_OR_PLUS.sub("", raw or "")

    if digits.startswith("+"):
        return digits
    if digits.startswith("1") and len(digits) == 11:
        return "+" + digits
    if len(digits) == 10:
        return "+1" + digits
    return digits


def is_valid_e164(phone: str) -> bool:
    return bool(_E164.match(phone or ""))
