from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple

from pydantic import ValidationError

from ...contracts.receipt import RECEIPT_MODELS, SUCCESS_STATUS, ParsedReceipt, TransferVariant
from ..errors import FieldMissing, ParseError, RejectedDocument
from .layout import LayoutKind, classify
from .receipt_fields import PartialFields, extract_fields
from .receipt_meta import detect_variant

logger = logging.getLogger(__name__)

# Поля, без которых чек данного варианта не собрать.
REQUIRED_BY_VARIANT: Dict[TransferVariant, Tuple[str, ...]] = {
    TransferVariant.BY_PHONE: ("recipient_phone",),
    TransferVariant.TO_PLATFORM_CLIENT: ("recipient_name", "recipient_card"),
    TransferVariant.TO_CARD: ("recipient_card",),
}

# Поля получателя, которые попадают в модель варианта.
RECIPIENT_FIELDS: Dict[TransferVariant, Tuple[str, ...]] = {
    TransferVariant.BY_PHONE: ("recipient_phone", "recipient_name", "recipient_bank"),
    TransferVariant.TO_PLATFORM_CLIENT: ("recipient_name", "recipient_card"),
    TransferVariant.TO_CARD: ("recipient_card",),
}


def assemble(
    transcript: str,
    layout: LayoutKind,
    variant: Optional[TransferVariant],
    fields: PartialFields,
    *,
    fingerprint: Optional[str] = None,
) -> ParsedReceipt:
    """
    PartialFields -> validated receipt of exactly one variant.

    Check order (first failure wins):
      1) status must be "Успешно"           -> RejectedDocument
      2) amount > 0                         -> FieldMissing("amount")
      3) sender name                        -> FieldMissing("sender")
      4) transfer variant                   -> FieldMissing("transfer_type")
      5) fields required by the variant     -> FieldMissing(<field>)
    """
    if fields.status != SUCCESS_STATUS:
        raise RejectedDocument(fields.status)

    if fields.amount is None or fields.amount <= 0:
        raise FieldMissing("amount")

    if not (fields.sender_name or "").strip():
        raise FieldMissing("sender")

    if variant is None:
        raise FieldMissing("transfer_type", "transfer type marker not found")

    for name in REQUIRED_BY_VARIANT[variant]:
        if not getattr(fields, name):
            raise FieldMissing(name)

    common = dict(
        timestamp=fields.timestamp,
        amount=fields.amount,
        total=fields.total,
        status=SUCCESS_STATUS,
        sender_name=fields.sender_name,
        sender_account=fields.sender_account,
        commission=fields.commission,
        operation_id=fields.operation_id,
        sbp_code=fields.sbp_code,
        receipt_number=fields.receipt_number,
        fingerprint=fingerprint,
        transcript=transcript,
    )

    recipient = {name: getattr(fields, name) for name in RECIPIENT_FIELDS[variant]}
    try:
        receipt = RECEIPT_MODELS[variant](**common, **recipient)
    except ValidationError as e:
        raise ParseError(f"receipt validation failed: {e.errors()[0].get('msg')}") from e

    logger.debug("assembled %s receipt (layout=%s, amount=%s)", variant.value, layout.value, fields.amount)
    return receipt


def read_fields(lines: Sequence[str]) -> Tuple[LayoutKind, Optional[TransferVariant], PartialFields]:
    """classify -> detect variant -> extract fields. Does not raise."""
    layout = classify(lines)
    variant = detect_variant(lines)
    fields = extract_fields(lines, layout, variant)
    for w in fields.warnings:
        logger.info("receipt structure warning: %s", w)
    return layout, variant, fields


def parse_receipt(lines: Sequence[str], *, fingerprint: Optional[str] = None) -> ParsedReceipt:
    lines = list(lines)
    layout, variant, fields = read_fields(lines)
    return assemble("\n".join(lines), layout, variant, fields, fingerprint=fingerprint)
