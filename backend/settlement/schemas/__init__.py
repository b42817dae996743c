"""
Schemas - Pydantic models for request/response validation.

This module contains all data validation schemas used in API endpoints.
Domain models (receipts, payments, links) live in settlement.contracts.
"""

from .receipts import (
    IngestItemResponse,
    IngestResponse,
    InspectItemResponse,
    InspectResponse,
    ResolveRequest,
    RetryResponse,
    StoredReceiptResponse,
)
from .common import ErrorResponse

__all__ = [
    # Receipt schemas
    "IngestItemResponse",
    "IngestResponse",
    "InspectItemResponse",
    "InspectResponse",
    "ResolveRequest",
    "RetryResponse",
    "StoredReceiptResponse",
    # Common schemas
    "ErrorResponse",
]
