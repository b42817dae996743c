from __future__ import annotations

from enum import Enum
from typing import Dict, List, Sequence, Tuple


class LayoutKind(str, Enum):
    # все лейблы подряд, затем все значения в том же порядке
    COLUMNAR = "columnar"
    # каждый лейбл сразу (или почти сразу) со своим значением
    SEQUENTIAL = "sequential"
    UNRECOGNIZED = "unrecognized"


# Порядок совпадает с порядком лейблов в шаблоне чека Т-Банка.
# field name -> варианты написания лейбла
FIELD_LABELS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("commission", ("Комиссия",)),
    ("sender_name", ("Отправитель",)),
    ("recipient_phone", ("Телефон получателя",)),
    ("recipient_name", ("Получатель",)),
    ("recipient_bank", ("Банк получателя",)),
    ("sender_account", ("Счет списания", "Счёт списания")),
    ("recipient_card", ("Карта получателя",)),
)

ALL_LABELS = frozenset(label for _, labels in FIELD_LABELS for label in labels)

# Ниже этого числа найденных лейблов группировку не доказать.
COLUMNAR_MIN_LABELS = 4


def find_labels(lines: Sequence[str]) -> Dict[str, int]:
    """field name -> index of its label line (first occurrence, exact match)."""
    found: Dict[str, int] = {}
    for field_name, labels in FIELD_LABELS:
        for i, ln in enumerate(lines):
            if ln in labels:
                found[field_name] = i
                break
    return found


def ordered_labels(lines: Sequence[str]) -> List[Tuple[str, int]]:
    """Found (field, index) pairs sorted by position in the transcript."""
    return sorted(find_labels(lines).items(), key=lambda kv: kv[1])


def classify(lines: Sequence[str]) -> LayoutKind:
    indices = sorted(find_labels(lines).values())

    if not indices:
        return LayoutKind.UNRECOGNIZED
    if len(indices) < COLUMNAR_MIN_LABELS:
        return LayoutKind.SEQUENTIAL

    consecutive = all(b == a + 1 for a, b in zip(indices, indices[1:]))
    return LayoutKind.COLUMNAR if consecutive else LayoutKind.SEQUENTIAL
