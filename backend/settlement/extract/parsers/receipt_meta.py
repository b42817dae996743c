from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from ...contracts.receipt import SUCCESS_STATUS, TransferVariant
from ...normalize.dates import parse_receipt_datetime
from ...normalize.numbers import money_with_currency
from .layout import ALL_LABELS

# Лейблы "шапки" чека: значение идёт следующей строкой (иногда через пустую).
AMOUNT_LABEL = "Сумма"
TOTAL_LABEL = "Итого"
STATUS_LABEL = "Статус"
TRANSFER_LABEL = "Перевод"
HEADER_LABELS = frozenset({AMOUNT_LABEL, TOTAL_LABEL, STATUS_LABEL, TRANSFER_LABEL})

NO_COMMISSION = "Без комиссии"

# Сколько строк после лейбла шапки смотрим в поисках значения.
HEADER_WINDOW = 3

_FOOTER_PREFIXES = ("Идентификатор операции", "СБП", "Квитанция")

TRANSFER_MARKERS: Tuple[Tuple[str, TransferVariant], ...] = (
    ("По номеру телефона", TransferVariant.BY_PHONE),
    ("Клиенту Т-Банка", TransferVariant.TO_PLATFORM_CLIENT),
    ("Клиенту Тинькофф", TransferVariant.TO_PLATFORM_CLIENT),
    ("На карту", TransferVariant.TO_CARD),
)

_NUM = r"\d[\d \u00A0\u202F]*(?:[.,]\d{1,2})?"
# "16 000 iСумма": старый шаблон, значение перед лейблом в той же строке
_AMOUNT_BEFORE_LABEL_RE = re.compile(rf"^(?P<val>{_NUM}\s*(?:₽|i))\s*Сумма$")
_AMOUNT_AFTER_LABEL_RE = re.compile(r"^Сумма\s*:?\s+(?P<val>.+)$")
_TOTAL_BEFORE_LABEL_RE = re.compile(rf"^(?P<val>{_NUM}\s*(?:₽|i))\s*Итого$")
_TOTAL_AFTER_LABEL_RE = re.compile(r"^Итого\s*:?\s+(?P<val>.+)$")
_STATUS_INLINE_RE = re.compile(r"^Статус\s*:?\s+(?P<val>.+)$")

_OPERATION_ID_RE = re.compile(r"^Идентификатор операции\s*:?\s*(?P<val>\S*)$")
_SBP_CODE_RE = re.compile(r"^[A-Za-z0-9]{6,}$")
_RECEIPT_NO_RE = re.compile(r"Квитанция\s*№\s*([\d-]+)")


def is_footer(line: str) -> bool:
    """Service lines after the field block: identifiers, receipt number, support contacts."""
    return line.startswith(_FOOTER_PREFIXES) or "@" in line or "поддержк" in line.lower()


def is_label(line: str) -> bool:
    return line in ALL_LABELS or line in HEADER_LABELS


def extract_timestamp(lines: Sequence[str]) -> Optional[datetime]:
    return parse_receipt_datetime("\n".join(lines))


def _money_after_label(lines: Sequence[str], idx: int) -> Optional[Decimal]:
    for j in range(idx + 1, min(idx + 1 + HEADER_WINDOW, len(lines))):
        ln = lines[j]
        # значение другого лейбла не берём: "Итого" включает комиссию
        if is_label(ln):
            return None
        value = money_with_currency(ln)
        if value is not None:
            return value
    return None


def _extract_labelled_money(lines: Sequence[str], label: str, before_re, after_re) -> Optional[Decimal]:
    for i, ln in enumerate(lines):
        if ln == label:
            value = _money_after_label(lines, i)
            if value is not None:
                return value
            continue

        m = before_re.match(ln) or after_re.match(ln)
        if m:
            value = money_with_currency(m.group("val"))
            if value is not None:
                return value
    return None


def extract_amount(lines: Sequence[str]) -> Optional[Decimal]:
    """Transfer amount: the money value adjacent to "Сумма" (never the "Итого" value)."""
    return _extract_labelled_money(lines, AMOUNT_LABEL, _AMOUNT_BEFORE_LABEL_RE, _AMOUNT_AFTER_LABEL_RE)


def extract_total(lines: Sequence[str]) -> Optional[Decimal]:
    return _extract_labelled_money(lines, TOTAL_LABEL, _TOTAL_BEFORE_LABEL_RE, _TOTAL_AFTER_LABEL_RE)


def extract_status(lines: Sequence[str]) -> Optional[str]:
    for i, ln in enumerate(lines):
        m = _STATUS_INLINE_RE.match(ln)
        if m:
            return m.group("val").strip()
        if ln != STATUS_LABEL:
            continue
        for j in range(i + 1, min(i + 1 + HEADER_WINDOW, len(lines))):
            if is_label(lines[j]):
                continue
            return lines[j]

    # шаблоны без лейбла "Статус": достаточно отдельной строки "Успешно"
    if SUCCESS_STATUS in lines:
        return SUCCESS_STATUS
    return None


def detect_variant(lines: Sequence[str]) -> Optional[TransferVariant]:
    marker = extract_transfer_marker(lines)
    if marker is None:
        return None
    for phrase, variant in TRANSFER_MARKERS:
        if phrase in marker:
            return variant
    return None


def extract_transfer_marker(lines: Sequence[str]) -> Optional[str]:
    for ln in lines:
        for phrase, _variant in TRANSFER_MARKERS:
            if phrase in ln:
                return ln
    return None


def extract_operation_id(lines: Sequence[str]) -> Optional[str]:
    for i, ln in enumerate(lines):
        m = _OPERATION_ID_RE.match(ln)
        if not m:
            continue
        if m.group("val"):
            return m.group("val")
        if i + 1 < len(lines) and not is_footer(lines[i + 1]):
            return lines[i + 1]
    return None


def extract_sbp_code(lines: Sequence[str]) -> Optional[str]:
    for i, ln in enumerate(lines):
        if ln == "СБП" and i + 1 < len(lines) and _SBP_CODE_RE.match(lines[i + 1]):
            return lines[i + 1]
    return None


def extract_receipt_number(lines: Sequence[str]) -> Optional[str]:
    m = _RECEIPT_NO_RE.search("\n".join(lines))
    return m.group(1) if m else None


def has_no_commission_marker(lines: Sequence[str]) -> bool:
    return NO_COMMISSION in lines
