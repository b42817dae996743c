from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter


class TransferVariant(str, Enum):
    BY_PHONE = "by-phone"  # По номеру телефона
    TO_PLATFORM_CLIENT = "to-platform-client"  # Клиенту Т-Банка
    TO_CARD = "to-card"  # На карту


SUCCESS_STATUS = "Успешно"


# ----------------------------
# Common scalar types
# ----------------------------

PhoneStr = Annotated[
    str,
    StringConstraints(pattern=r"^\+7[\d\s()\-]{10,}$", strip_whitespace=True),
]

# 220024******2091
MaskedCardStr = Annotated[
    str,
    StringConstraints(pattern=r"^\d{4,6}\*{4,}\d{4}$", strip_whitespace=True),
]

# *4207
CardSuffixStr = Annotated[
    str,
    StringConstraints(pattern=r"^\*\d{4}$", strip_whitespace=True),
]

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# ----------------------------
# Receipt variants
# ----------------------------

class ReceiptBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    timestamp: Optional[datetime] = None  # время из чека, MSK
    amount: Decimal = Field(gt=0)  # "Сумма", не "Итого"
    total: Optional[Decimal] = None  # "Итого" (с комиссией)
    status: Literal["Успешно"]
    sender_name: NonEmptyStr
    sender_account: Optional[str] = None
    commission: Optional[Decimal] = Field(default=None, ge=0)
    operation_id: Optional[str] = None
    sbp_code: Optional[str] = None
    receipt_number: Optional[str] = None

    fingerprint: Optional[str] = None
    transcript: str

    @property
    def variant(self) -> TransferVariant:
        return TransferVariant(self.transfer_type)  # type: ignore[attr-defined]

    @property
    def recipient_phone_or_none(self) -> Optional[str]:
        return getattr(self, "recipient_phone", None)

    @property
    def recipient_card_or_none(self) -> Optional[str]:
        return getattr(self, "recipient_card", None)


class PhoneTransferReceipt(ReceiptBase):
    transfer_type: Literal["by-phone"] = "by-phone"
    recipient_phone: PhoneStr
    recipient_name: Optional[str] = None
    recipient_bank: Optional[str] = None


class ClientTransferReceipt(ReceiptBase):
    transfer_type: Literal["to-platform-client"] = "to-platform-client"
    recipient_name: NonEmptyStr
    recipient_card: CardSuffixStr


class CardTransferReceipt(ReceiptBase):
    transfer_type: Literal["to-card"] = "to-card"
    recipient_card: MaskedCardStr


ParsedReceipt = Annotated[
    Union[PhoneTransferReceipt, ClientTransferReceipt, CardTransferReceipt],
    Field(discriminator="transfer_type"),
]

ParsedReceiptAdapter: TypeAdapter = TypeAdapter(ParsedReceipt)

RECEIPT_MODELS = {
    TransferVariant.BY_PHONE: PhoneTransferReceipt,
    TransferVariant.TO_PLATFORM_CLIENT: ClientTransferReceipt,
    TransferVariant.TO_CARD: CardTransferReceipt,
}
