from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PaymentState(str, Enum):
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PendingPayment(BaseModel):
    """
    Payout owed to a counterparty. Owned by the ledger; the engine only reads
    amount/state/created_at and writes bound_receipt.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    currency: str = "RUB"
    state: PaymentState = PaymentState.AWAITING_CONFIRMATION
    created_at: datetime
    bound_receipt: Optional[str] = None  # fingerprint чека

    # Дискриминанты для ручного разбора неоднозначностей
    wallet: Optional[str] = None  # телефон или номер карты получателя
    bank: Optional[str] = None


class LinkDecision(str, Enum):
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"  # кандидатов > 1
    UNMATCHED = "unmatched"  # кандидатов нет


class ReceiptPaymentLink(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    receipt_fingerprint: str
    decision: LinkDecision
    payment_id: Optional[str] = None
    candidate_ids: Tuple[str, ...] = ()
    # кандидаты, у которых wallet совпал с получателем из чека; только подсказка
    suggested_ids: Tuple[str, ...] = ()

    @model_validator(mode="after")
    def _payment_only_when_matched(self) -> "ReceiptPaymentLink":
        if self.decision == LinkDecision.MATCHED and not self.payment_id:
            raise ValueError("matched link requires payment_id")
        if self.decision != LinkDecision.MATCHED and self.payment_id:
            raise ValueError(f"{self.decision.value} link must not carry payment_id")
        return self
