# backend/settlement/api/payments.py
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..contracts.payment import PendingPayment
from ..services.processing_service import ReceiptProcessingService
from .deps import get_service

router = APIRouter(prefix="/payments", tags=["payments"])


class PaymentCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    currency: str = "RUB"
    created_at: Optional[datetime] = None  # по умолчанию момент регистрации
    wallet: Optional[str] = None
    bank: Optional[str] = None


@router.post("", response_model=PendingPayment, status_code=201)
def create_payment(
    body: PaymentCreateRequest,
    svc: ReceiptProcessingService = Depends(get_service),
) -> PendingPayment:
    payment = PendingPayment(
        id=body.id,
        amount=body.amount,
        currency=body.currency,
        created_at=body.created_at or datetime.now(timezone.utc),
        wallet=body.wallet,
        bank=body.bank,
    )
    try:
        return svc.register_payment(payment)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


@router.get("", response_model=List[PendingPayment])
def list_payments(svc: ReceiptProcessingService = Depends(get_service)) -> List[PendingPayment]:
    return svc.payments()
