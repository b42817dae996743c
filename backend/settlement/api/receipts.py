# backend/settlement/api/receipts.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ..core.errors import to_user_facing
from ..extract.types import DocumentMeta
from ..reconcile.matcher import BindingRejected
from ..schemas.receipts import (
    IngestItemResponse,
    IngestResponse,
    InspectItemResponse,
    InspectResponse,
    ResolveRequest,
    RetryResponse,
    StoredReceiptResponse,
)
from ..services.processing_service import ReceiptProcessingService
from .deps import get_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.post("", response_model=IngestResponse)
async def upload_receipts(
    files: List[UploadFile] = File(...),
    message_id: Optional[str] = Form(None),
    svc: ReceiptProcessingService = Depends(get_service),
) -> IngestResponse:
    items = []
    for f in files:
        data = await f.read()
        if not data:
            raise HTTPException(status_code=422, detail=f"uploaded file is empty: {f.filename!r}")
        items.append((data, DocumentMeta(message_id=message_id, filename=f.filename or "receipt.pdf")))

    results = await svc.ingest_batch(items)
    return IngestResponse(items=[IngestItemResponse(**r.to_dict()) for r in results])


@router.post("/inspect", response_model=InspectResponse)
async def inspect_receipts(
    files: List[UploadFile] = File(...),
    svc: ReceiptProcessingService = Depends(get_service),
) -> InspectResponse:
    items: List[InspectItemResponse] = []

    for f in files:
        filename = f.filename or "receipt.pdf"
        try:
            data = await f.read()
            result = svc.inspect(data, DocumentMeta(filename=filename))
            items.append(InspectItemResponse(**result))
        except Exception as e:
            # Resilient: per-file failure shouldn't crash the whole batch
            logger.exception("inspect failed for %s", filename)
            items.append(InspectItemResponse(filename=filename, error=f"inspect endpoint error: {e!r}"))

    return InspectResponse(items=items)


@router.post("/retry", response_model=RetryResponse)
def retry_unmatched(svc: ReceiptProcessingService = Depends(get_service)) -> RetryResponse:
    links = svc.retry_unmatched()
    return RetryResponse(links=[link.model_dump(mode="json") for link in links])


@router.get("/{fingerprint}", response_model=StoredReceiptResponse)
def get_receipt(fingerprint: str, svc: ReceiptProcessingService = Depends(get_service)) -> StoredReceiptResponse:
    record = svc.get_receipt(fingerprint)
    if record is None:
        raise HTTPException(status_code=404, detail="receipt not found")
    return StoredReceiptResponse(**record.to_dict())


@router.post("/{fingerprint}/resolve")
def resolve_receipt(
    fingerprint: str,
    body: ResolveRequest,
    svc: ReceiptProcessingService = Depends(get_service),
) -> dict:
    try:
        link = svc.resolve(fingerprint, body.payment_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"not found: {e.args[0]}") from e
    except BindingRejected as e:
        raise HTTPException(status_code=409, detail=to_user_facing(e).to_dict()) from e
    return link.model_dump(mode="json")
