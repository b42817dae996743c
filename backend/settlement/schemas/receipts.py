"""
Receipt-related request/response schemas.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .common import ErrorResponse


class IngestItemResponse(BaseModel):
    fingerprint: str
    filename: Optional[str] = None
    outcome: str = Field(..., description="matched | ambiguous | unmatched | duplicate | rejected | failed")
    receipt: Optional[Dict[str, Any]] = None
    link: Optional[Dict[str, Any]] = None
    error: Optional[ErrorResponse] = None


class IngestResponse(BaseModel):
    items: List[IngestItemResponse]


class InspectItemResponse(BaseModel):
    filename: Optional[str] = None
    fingerprint: Optional[str] = None
    method: Optional[str] = None
    layout: Optional[str] = None
    variant: Optional[str] = None
    amount: Optional[str] = None
    status: Optional[str] = None
    confidence: Optional[float] = None
    warnings: List[str] = []
    error: Optional[str] = None


class InspectResponse(BaseModel):
    items: List[InspectItemResponse]


class StoredReceiptResponse(BaseModel):
    fingerprint: str
    receipt: Dict[str, Any]
    meta: Dict[str, Any]
    link: Optional[Dict[str, Any]] = None


class ResolveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    payment_id: str = Field(..., min_length=1)


class RetryResponse(BaseModel):
    links: List[Dict[str, Any]]
