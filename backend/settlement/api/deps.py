from __future__ import annotations

from functools import lru_cache

from ..services.processing_service import ReceiptProcessingService


@lru_cache(maxsize=1)
def get_service() -> ReceiptProcessingService:
    """One service (ledger + store) per process; override in tests via dependency_overrides."""
    return ReceiptProcessingService()
