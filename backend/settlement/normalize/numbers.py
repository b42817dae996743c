from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

# Денежное число в чеке:
#  - разделители тысяч пробелами/NBSP/узким NBSP ("4 500", "1 000 000")
#  - копейки через "," или "." ("1 000,50")
_MONEY_TOKEN = r"(?P<int>\d{1,3}(?:[ \u00A0\u202F]\d{3})+|\d+)(?:[.,](?P<dec>\d{1,2}))?"
_MONEY_TOKEN_RE = re.compile(_MONEY_TOKEN)
# вся строка целиком: "1 0000" или "12 34" не сумма, а мусор текстового слоя
_MONEY_EXACT_RE = re.compile(rf"^{_MONEY_TOKEN}$")

# Маркер валюты. "i": так PDF-шрифт Т-Банка иногда отдаёт знак рубля.
_CURRENCY = r"(?:₽|i|руб\.?|RUB|р\.)"

# "4 500 ₽", "1 000,50 i", "300 руб."
_MONEY_WITH_CURRENCY_RE = re.compile(
    rf"^(?P<num>\d[\d \u00A0\u202F]*(?:[.,]\d{{1,2}})?)\s*{_CURRENCY}$"
)


def parse_money(raw: str) -> Decimal:
    """
    Parse the first money-like token of a string into Decimal.

    Accepts:
      - "4 500"
      - "4 500 ₽"
      - "1 000,50 i"
    """
    if raw is None:
        raise ValueError("money is None")

    s = str(raw).strip()
    m = _MONEY_TOKEN_RE.search(s)
    if not m:
        raise ValueError(f"money token not found: {raw!r}")

    int_part = re.sub(r"[ \u00A0\u202F]", "", m.group("int"))
    dec_part = m.group("dec")

    try:
        if dec_part:
            return Decimal(f"{int_part}.{dec_part}")
        return Decimal(int_part)
    except InvalidOperation as e:
        raise ValueError(f"invalid money token: {raw!r}") from e


def parse_money_exact(raw: str) -> Optional[Decimal]:
    """
    Decimal only if the whole string is one well-formed money number
    (thousands grouped strictly by 3). Anything else -> None, never a guess.
    """
    if not _MONEY_EXACT_RE.match((raw or "").strip()):
        return None
    return parse_money(raw)


def money_with_currency(line: str) -> Optional[Decimal]:
    """Money value only if the whole line is "<number> <currency marker>"."""
    m = _MONEY_WITH_CURRENCY_RE.match((line or "").strip())
    if not m:
        return None
    return parse_money_exact(m.group("num"))


def money_to_str(value: Decimal) -> str:
    """Normalize money to JSON string "12345.67"."""
    return f"{Decimal(value):.2f}"
