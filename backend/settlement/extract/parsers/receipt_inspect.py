# backend/settlement/extract/parsers/receipt_inspect.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from ...contracts.receipt import SUCCESS_STATUS
from ...normalize.numbers import money_to_str
from ..errors import ExtractError
from .receipt_fields import PartialFields
from .receipt_parser import assemble, read_fields

# Признаки хорошо прочитанного чека и их вес в оценке уверенности.
_CONFIDENCE_WEIGHTS: Tuple[Tuple[str, float], ...] = (
    ("amount", 2.0),
    ("timestamp", 2.0),
    ("status", 2.0),
    ("sender", 1.0),
    ("variant", 1.0),
    ("success_marker", 1.0),
    ("bank_marker", 1.0),
    ("operation_id", 0.5),
    ("receipt_number", 0.5),
)

LOW_CONFIDENCE = 0.7
SHORT_TRANSCRIPT = 100

_ISSUER_MARKERS = ("Т-Банк", "Тинькофф")


def confidence_score(fields: PartialFields, text: str) -> float:
    checks = {
        "amount": fields.amount is not None and fields.amount > 0,
        "timestamp": fields.timestamp is not None,
        "status": fields.status == SUCCESS_STATUS,
        "sender": bool(fields.sender_name),
        "variant": fields.variant is not None,
        "success_marker": SUCCESS_STATUS in text,
        "bank_marker": any(m in text for m in _ISSUER_MARKERS),
        "operation_id": bool(fields.operation_id),
        "receipt_number": bool(fields.receipt_number),
    }
    total = sum(w for _, w in _CONFIDENCE_WEIGHTS)
    score = sum(w for name, w in _CONFIDENCE_WEIGHTS if checks[name])
    return round(score / total, 2)


def inspect_receipt(lines: Sequence[str], *, filename: Optional[str] = None) -> Dict:
    """
    Quick look at a transcript for batch triage and the inspect endpoint.
    Must be resilient for batch usage: does not raise.
    """
    lines = list(lines)
    text = "\n".join(lines)
    warnings: List[str] = []

    layout, variant, fields = read_fields(lines)
    warnings.extend(fields.warnings)

    if len(text) < SHORT_TRANSCRIPT:
        warnings.append("transcript is suspiciously short")
    if not any(m in text for m in _ISSUER_MARKERS):
        warnings.append("issuer bank name not found in transcript")

    confidence = confidence_score(fields, text)
    if confidence < LOW_CONFIDENCE:
        warnings.append("low parsing confidence")

    error: Optional[str] = None
    try:
        assemble(text, layout, variant, fields)
    except ExtractError as e:
        error = f"{e.code}: {e}"

    return {
        "filename": filename,
        "layout": layout.value,
        "variant": variant.value if variant else None,
        "amount": money_to_str(fields.amount) if fields.amount is not None else None,
        "status": fields.status,
        "confidence": confidence,
        "warnings": warnings,
        "error": error,
    }
