from __future__ import annotations

import re
from typing import Optional

_NON_DIGIT_RE = re.compile(r"\D")


def phone_key(raw: Optional[str]) -> Optional[str]:
    """
    Last 10 digits of a phone number (country code dropped).

    "+7 (912) 345-67-89" -> "9123456789"
    """
    digits = _NON_DIGIT_RE.sub("", raw or "")
    if len(digits) < 10:
        return None
    return digits[-10:]


def card_last4(raw: Optional[str]) -> Optional[str]:
    """"220024******2091" / "*2091" -> "2091"."""
    digits = _NON_DIGIT_RE.sub("", raw or "")
    if len(digits) < 4:
        return None
    return digits[-4:]


def wallet_matches(wallet: Optional[str], *, phone: Optional[str] = None, card: Optional[str] = None) -> bool:
    """
    Whether a payout wallet (phone or card number) points at the receipt recipient.

    Phones compare by their last 10 digits, cards by the last 4.
    """
    if not wallet:
        return False
    if phone:
        a, b = phone_key(wallet), phone_key(phone)
        return a is not None and a == b
    if card:
        a, b = card_last4(wallet), card_last4(card)
        return a is not None and a == b
    return False
