"""
Services layer - Business logic orchestration.

This layer coordinates the receipt parser, the receipt store and the payment
ledger into the ingest / retry / resolve workflows.
"""

from .processing_service import IngestOutcome, IngestResult, ReceiptProcessingService
from .receipt_store import ReceiptStore, StoredReceipt

__all__ = [
    "IngestOutcome",
    "IngestResult",
    "ReceiptProcessingService",
    "ReceiptStore",
    "StoredReceipt",
]
