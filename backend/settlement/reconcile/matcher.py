from __future__ import annotations

import logging
from typing import List, Optional

from ..contracts.payment import LinkDecision, PaymentState, PendingPayment, ReceiptPaymentLink
from ..contracts.receipt import ParsedReceipt
from ..normalize.dates import msk_date
from ..normalize.wallets import wallet_matches
from .ledger import PaymentLedger

logger = logging.getLogger(__name__)


class BindingRejected(Exception):
    """Operator-chosen binding cannot be applied."""

    code = "BINDING_REJECTED"
    stage = "reconcile"


def candidates_for(receipt: ParsedReceipt, pool: PaymentLedger) -> List[PendingPayment]:
    """
    Payments a receipt may settle: same amount, awaiting confirmation, unbound,
    and not created on a later day (MSK) than the receipt itself.
    """
    receipt_day = msk_date(receipt.timestamp) if receipt.timestamp else None

    out: List[PendingPayment] = []
    for p in pool.find(receipt.amount, state=PaymentState.AWAITING_CONFIRMATION):
        if p.bound_receipt is not None:
            continue
        if receipt_day is not None and msk_date(p.created_at) > receipt_day:
            continue
        out.append(p)

    out.sort(key=lambda p: (p.created_at, p.id))
    return out


def _suggested(receipt: ParsedReceipt, candidates: List[PendingPayment]) -> List[str]:
    phone = receipt.recipient_phone_or_none
    card = receipt.recipient_card_or_none
    return [p.id for p in candidates if wallet_matches(p.wallet, phone=phone, card=card)]


def _matched(fingerprint: str, payment_id: str) -> ReceiptPaymentLink:
    return ReceiptPaymentLink(
        receipt_fingerprint=fingerprint,
        decision=LinkDecision.MATCHED,
        payment_id=payment_id,
    )


def reconcile(
    receipt: ParsedReceipt,
    pool: PaymentLedger,
    *,
    fingerprint: Optional[str] = None,
) -> ReceiptPaymentLink:
    """
    Bind a receipt to exactly one pending payment, or report why not.

    Ambiguity is never resolved automatically: with several candidates the
    receipt stays unbound and wallet matches are returned only as suggestions.
    Safe to call again for the same receipt.
    """
    fp = fingerprint or receipt.fingerprint
    if not fp:
        raise ValueError("receipt has no fingerprint")

    while True:
        bound = pool.bound_to(fp)
        if bound is not None:
            return _matched(fp, bound.id)

        candidates = candidates_for(receipt, pool)

        if len(candidates) != 1:
            # параллельный вызов для этого же чека мог успеть его привязать
            bound = pool.bound_to(fp)
            if bound is not None:
                return _matched(fp, bound.id)

        if not candidates:
            logger.info("receipt %s: no pending payment for amount %s", fp[:12], receipt.amount)
            return ReceiptPaymentLink(receipt_fingerprint=fp, decision=LinkDecision.UNMATCHED)

        if len(candidates) > 1:
            ids = tuple(p.id for p in candidates)
            logger.info("receipt %s: %d candidates for amount %s, manual review", fp[:12], len(ids), receipt.amount)
            return ReceiptPaymentLink(
                receipt_fingerprint=fp,
                decision=LinkDecision.AMBIGUOUS,
                candidate_ids=ids,
                suggested_ids=tuple(_suggested(receipt, candidates)),
            )

        target = candidates[0]
        if pool.claim(target.id, fp):
            return _matched(fp, target.id)

        # claim проигран: пересчитываем кандидатов
        logger.debug("receipt %s lost claim on %s, recomputing candidates", fp[:12], target.id)


def resolve(fingerprint: str, payment_id: str, pool: PaymentLedger) -> ReceiptPaymentLink:
    """Apply an operator's choice for an ambiguous (or unmatched) receipt."""
    bound = pool.bound_to(fingerprint)
    if bound is not None:
        if bound.id == payment_id:
            return _matched(fingerprint, payment_id)
        raise BindingRejected(f"receipt is already bound to payment {bound.id}")

    payment = pool.get(payment_id)
    if payment is None:
        raise KeyError(payment_id)

    if not pool.claim(payment_id, fingerprint):
        raise BindingRejected(
            f"payment {payment_id} cannot be bound (state={payment.state.value}, bound_receipt={payment.bound_receipt})"
        )
    return _matched(fingerprint, payment_id)
