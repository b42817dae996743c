from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ...contracts.receipt import SUCCESS_STATUS, TransferVariant
from ...normalize.numbers import money_with_currency, parse_money_exact
from ...normalize.wallets import card_last4
from ..errors import StructureUnrecognized
from . import receipt_meta as meta
from .layout import ALL_LABELS, FIELD_LABELS, LayoutKind, ordered_labels

logger = logging.getLogger(__name__)

# Сколько строк после лейбла просматриваем в последовательном шаблоне.
VALUE_WINDOW = 5

_PHONE_RE = re.compile(r"^\+7[\d\s()\-]{10,}$")
_MASKED_CARD_RE = re.compile(r"^\d{4,6}\*{4,}\d{4}$")
_CARD_SUFFIX_RE = re.compile(r"^\*\d{4}$")
_MASKED_ACCOUNT_RE = re.compile(r"^\d{3,}\*{2,}\d{4}$")
# "Иван П.", "Пётр Сергеевич С.", "Анна-Мария К."
_NAME_RE = re.compile(r"^[А-ЯЁA-Z][а-яёa-z]+(?:[ \-][А-ЯЁA-Z](?:[а-яёa-z]+|\.)?)*$")

# Короткие названия банков без слова "банк"
_BANK_SHORT_NAMES = ("ВТБ", "Сбер", "Альфа", "Озон", "Ozon", "Яндекс", "Райффайзен", "Газпромбанк", "Почта")

_NOT_A_NAME = frozenset(
    {SUCCESS_STATUS, meta.NO_COMMISSION, "Перевод", "Квитанция", "Сумма", "Итого", "Статус"}
)

_CLIENT_CARD_RE = re.compile(r"Карта получателя\s*\n?\s*(\*\d{4})")
_CLIENT_NAME_RE = re.compile(r"Получатель\s*\n\s*([^\n]+)")


@dataclass(frozen=True)
class PartialFields:
    """Whatever could be read from a transcript; every field may be absent."""

    timestamp: Optional[datetime] = None
    amount: Optional[Decimal] = None
    total: Optional[Decimal] = None
    status: Optional[str] = None
    variant: Optional[TransferVariant] = None
    transfer_marker: Optional[str] = None

    sender_name: Optional[str] = None
    sender_account: Optional[str] = None
    commission: Optional[Decimal] = None

    recipient_phone: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_bank: Optional[str] = None
    recipient_card: Optional[str] = None

    operation_id: Optional[str] = None
    sbp_code: Optional[str] = None
    receipt_number: Optional[str] = None

    warnings: Tuple[str, ...] = field(default=())


# ----------------------------
# Value recognizers
# ----------------------------

def is_bank(value: str) -> bool:
    low = value.lower()
    if "банк" in low or "bank" in low:
        return True
    return value.startswith(_BANK_SHORT_NAMES)


def is_person_name(value: str) -> bool:
    if value in _NOT_A_NAME or is_bank(value):
        return False
    return bool(_NAME_RE.match(value))


def _commission_value(value: str) -> Optional[Decimal]:
    if value == meta.NO_COMMISSION:
        return Decimal("0")
    amount = parse_money_exact(value)
    if amount is None:
        amount = money_with_currency(value)
    return amount


def match_value(field_name: str, value: str) -> Optional[Any]:
    """
    The value converted for `field_name` if the line looks like one, else None.
    A line that is itself a label never matches.
    """
    if value in ALL_LABELS or meta.is_label(value):
        return None

    if field_name == "commission":
        return _commission_value(value)
    if field_name in ("sender_name", "recipient_name"):
        return value if is_person_name(value) else None
    if field_name == "recipient_phone":
        return value if _PHONE_RE.match(value) else None
    if field_name == "recipient_bank":
        return value if is_bank(value) else None
    if field_name == "sender_account":
        return value if _MASKED_ACCOUNT_RE.match(value) else None
    if field_name == "recipient_card":
        if _MASKED_CARD_RE.match(value) or _CARD_SUFFIX_RE.match(value):
            return value
        return None
    raise KeyError(field_name)


# ----------------------------
# Layout strategies
# ----------------------------

def _columnar(lines: Sequence[str]) -> Dict[str, Any]:
    """Labels grouped together, values follow in the same order."""
    found = ordered_labels(lines)
    values: Dict[str, Any] = {}
    if not found:
        return values

    values_start = found[-1][1] + 1
    for pos, (field_name, _idx) in enumerate(found):
        j = values_start + pos
        if j >= len(lines) or meta.is_footer(lines[j]):
            break
        v = match_value(field_name, lines[j])
        if v is not None:
            values[field_name] = v
    return values


def _sequential(lines: Sequence[str]) -> Dict[str, Any]:
    """
    Each label is followed (not always immediately) by its value.

    Pass 1: for every label look at the next VALUE_WINDOW lines.
    Pass 2: sweep the lines after the last label for whatever is still missing.
    Both stop at the footer block.
    """
    found = ordered_labels(lines)
    values: Dict[str, Any] = {}
    consumed: Set[int] = set()

    for field_name, idx in found:
        for j in range(idx + 1, min(idx + 1 + VALUE_WINDOW, len(lines))):
            ln = lines[j]
            if meta.is_footer(ln):
                break
            if j in consumed:
                continue
            v = match_value(field_name, ln)
            if v is not None:
                values[field_name] = v
                consumed.add(j)
                break

    if not found:
        return values

    present = {f for f, _ in found}
    # порядок полей как в шаблоне: первое подходящее поле забирает строку
    missing = [f for f, _ in FIELD_LABELS if f in present]
    last_label = found[-1][1]

    for j in range(last_label + 1, len(lines)):
        ln = lines[j]
        if meta.is_footer(ln):
            break
        if j in consumed:
            continue
        for field_name in missing:
            if field_name in values:
                continue
            v = match_value(field_name, ln)
            if v is not None:
                values[field_name] = v
                consumed.add(j)
                break

    return values


# ----------------------------
# Variant-specific rules
# ----------------------------

def _client_rules(lines: Sequence[str], values: Dict[str, Any]) -> None:
    text = "\n".join(lines)

    card = values.get("recipient_card")
    if card and not _CARD_SUFFIX_RE.match(card):
        # полный номер не показывается клиенту банка, только "*1234"
        values["recipient_card"] = f"*{card_last4(card)}"
    elif not card:
        m = _CLIENT_CARD_RE.search(text)
        if m:
            values["recipient_card"] = m.group(1)

    if not values.get("recipient_name"):
        m = _CLIENT_NAME_RE.search(text)
        if m and is_person_name(m.group(1).strip()):
            values["recipient_name"] = m.group(1).strip()


def _card_rules(lines: Sequence[str], values: Dict[str, Any]) -> None:
    card = values.get("recipient_card")
    if card and _MASKED_CARD_RE.match(card):
        return

    values.pop("recipient_card", None)
    label_idx = next((i for i, ln in enumerate(lines) if ln == "Карта получателя"), None)
    start = label_idx + 1 if label_idx is not None else 0
    for ln in lines[start:]:
        if meta.is_footer(ln):
            break
        if ln == values.get("sender_account"):
            continue
        if _MASKED_CARD_RE.match(ln):
            values["recipient_card"] = ln
            return


def _phone_rules(lines: Sequence[str], values: Dict[str, Any]) -> None:
    if values.get("recipient_phone"):
        return
    for ln in lines:
        if meta.is_footer(ln):
            break
        if _PHONE_RE.match(ln):
            values["recipient_phone"] = ln
            return


_VARIANT_RULES = {
    TransferVariant.BY_PHONE: _phone_rules,
    TransferVariant.TO_PLATFORM_CLIENT: _client_rules,
    TransferVariant.TO_CARD: _card_rules,
}


def extract_fields(
    lines: Sequence[str],
    layout: LayoutKind,
    variant: Optional[TransferVariant],
) -> PartialFields:
    """
    Transcript lines -> PartialFields. Never raises for absent fields: deciding
    what is required belongs to the assembler.
    """
    warnings: List[str] = []

    if layout == LayoutKind.COLUMNAR:
        values = _columnar(lines)
        # группировка есть, но значения не совпали с ожидаемыми: пробуем по-другому
        if len(values) < 2:
            logger.debug("columnar strategy found %d values, falling back to sequential", len(values))
            values = {**_sequential(lines), **values}
    else:
        if layout == LayoutKind.UNRECOGNIZED:
            warnings.append(str(StructureUnrecognized("no known field labels found, using sequential strategy")))
        values = _sequential(lines)

    if variant is not None:
        _VARIANT_RULES[variant](lines, values)

    commission = values.get("commission")
    if commission is None and meta.has_no_commission_marker(lines):
        commission = Decimal("0")

    return PartialFields(
        timestamp=meta.extract_timestamp(lines),
        amount=meta.extract_amount(lines),
        total=meta.extract_total(lines),
        status=meta.extract_status(lines),
        variant=variant,
        transfer_marker=meta.extract_transfer_marker(lines),
        sender_name=values.get("sender_name"),
        sender_account=values.get("sender_account"),
        commission=commission,
        recipient_phone=values.get("recipient_phone"),
        recipient_name=values.get("recipient_name"),
        recipient_bank=values.get("recipient_bank"),
        recipient_card=values.get("recipient_card"),
        operation_id=meta.extract_operation_id(lines),
        sbp_code=meta.extract_sbp_code(lines),
        receipt_number=meta.extract_receipt_number(lines),
        warnings=tuple(warnings),
    )
