# backend/settlement/services/processing_service.py

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..contracts.payment import PendingPayment, ReceiptPaymentLink
from ..contracts.receipt import ParsedReceipt
from ..core.config import Settings, get_settings
from ..core.errors import DuplicateReceipt, UserFacingError, to_user_facing
from ..extract.errors import ExtractError, ExtractionFailure, RejectedDocument
from ..extract.types import DocumentMeta, RawDocument, fingerprint_of
from ..pipeline.pdf_to_receipt import MethodChain, inspect_document, parse_document
from ..reconcile.ledger import PaymentLedger
from ..reconcile.matcher import BindingRejected, reconcile, resolve
from .receipt_store import ReceiptStore, StoredReceipt

logger = logging.getLogger(__name__)


class IngestOutcome(str, Enum):
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    UNMATCHED = "unmatched"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"  # статус перевода не "Успешно"
    FAILED = "failed"  # текст не извлечён или не хватает полей


@dataclass(frozen=True)
class IngestResult:
    fingerprint: str
    outcome: IngestOutcome
    filename: Optional[str] = None
    receipt: Optional[ParsedReceipt] = None
    link: Optional[ReceiptPaymentLink] = None
    error: Optional[UserFacingError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "filename": self.filename,
            "outcome": self.outcome.value,
            "receipt": self.receipt.model_dump(mode="json", exclude={"transcript"}) if self.receipt else None,
            "link": self.link.model_dump(mode="json") if self.link else None,
            "error": self.error.to_dict() if self.error else None,
        }


class ReceiptProcessingService:
    """
    Facade for the receipt flow:
      bytes -> dedup -> extract/parse -> store -> reconcile against the ledger

    Parsing problems are reported in IngestResult, not raised: a batch of
    uploads must not fail because of one bad file.
    """

    def __init__(
        self,
        ledger: Optional[PaymentLedger] = None,
        store: Optional[ReceiptStore] = None,
        *,
        settings: Optional[Settings] = None,
        extract_methods: MethodChain = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._ledger = ledger if ledger is not None else PaymentLedger()
        self._store = store if store is not None else ReceiptStore(self._settings.data_dir)
        self._methods = extract_methods

    @property
    def ledger(self) -> PaymentLedger:
        return self._ledger

    @property
    def store(self) -> ReceiptStore:
        return self._store

    # -----------------------------
    # Payments
    # -----------------------------
    def register_payment(self, payment: PendingPayment) -> PendingPayment:
        return self._ledger.add(payment)

    def payments(self) -> List[PendingPayment]:
        return self._ledger.all()

    # -----------------------------
    # Receipts
    # -----------------------------
    def ingest(self, data: bytes, meta: Optional[DocumentMeta] = None) -> IngestResult:
        doc = RawDocument.from_bytes(data, meta)
        fp = doc.fingerprint
        filename = doc.meta.filename

        try:
            self._store.reserve(fp)
        except DuplicateReceipt as e:
            logger.info("duplicate receipt %s (%s)", fp[:12], filename)
            existing = self._store.get(fp)
            return IngestResult(
                fingerprint=fp,
                outcome=IngestOutcome.DUPLICATE,
                filename=filename,
                receipt=existing.receipt if existing else None,
                link=existing.link if existing else None,
                error=to_user_facing(e),
            )

        try:
            receipt = parse_document(doc, timeout=self._settings.extract_tool_timeout, methods=self._methods)
        except RejectedDocument as e:
            self._store.release(fp)
            logger.info("receipt %s rejected: status=%r", fp[:12], e.status)
            return IngestResult(fp, IngestOutcome.REJECTED, filename, error=to_user_facing(e))
        except ExtractError as e:
            self._store.release(fp)
            logger.warning("receipt %s (%s) failed at %s: %s", fp[:12], filename, e.stage, e)
            return IngestResult(fp, IngestOutcome.FAILED, filename, error=to_user_facing(e))
        except Exception:
            self._store.release(fp)
            logger.exception("unexpected error while parsing receipt %s", fp[:12])
            raise

        self._store.save(fp, receipt, doc.meta)
        link = reconcile(receipt, self._ledger, fingerprint=fp)
        self._store.set_link(fp, link)

        return IngestResult(
            fingerprint=fp,
            outcome=IngestOutcome(link.decision.value),
            filename=filename,
            receipt=receipt,
            link=link,
        )

    async def ingest_batch(
        self, items: Sequence[Tuple[bytes, Optional[DocumentMeta]]]
    ) -> List[IngestResult]:
        """Parse in worker threads (bounded by PARSE_MAX_WORKERS); order of results follows input."""
        sem = asyncio.Semaphore(self._settings.parse_max_workers)

        async def _one(data: bytes, meta: Optional[DocumentMeta]) -> IngestResult:
            async with sem:
                try:
                    return await asyncio.to_thread(self.ingest, data, meta)
                except Exception as e:
                    # Resilient: one broken file must not drop results of the others
                    fp = fingerprint_of(data)
                    logger.warning("batch item %s failed unexpectedly: %r", fp[:12], e)
                    return IngestResult(
                        fingerprint=fp,
                        outcome=IngestOutcome.FAILED,
                        filename=meta.filename if meta else None,
                        error=to_user_facing(e),
                    )

        results = await asyncio.gather(*(_one(data, meta) for data, meta in items))
        return list(results)

    def inspect(self, data: bytes, meta: Optional[DocumentMeta] = None) -> Dict[str, Any]:
        doc = RawDocument.from_bytes(data, meta)
        try:
            return inspect_document(doc, timeout=self._settings.extract_tool_timeout, methods=self._methods)
        except ExtractionFailure as e:
            return {
                "filename": doc.meta.filename,
                "fingerprint": doc.fingerprint,
                "error": f"{e.code}: {e}",
                "warnings": [f"{name}: {outcome}" for name, outcome in e.attempts],
            }

    def get_receipt(self, fingerprint: str) -> Optional[StoredReceipt]:
        return self._store.get(fingerprint)

    def retry_unmatched(self) -> List[ReceiptPaymentLink]:
        """Re-run reconciliation for every stored receipt that is not bound yet."""
        links: List[ReceiptPaymentLink] = []
        for record in self._store.pending():
            link = reconcile(record.receipt, self._ledger, fingerprint=record.fingerprint)
            # set_link отдаёт актуальную запись: параллельный resolve мог успеть раньше
            stored = self._store.set_link(record.fingerprint, link)
            links.append(stored.link)
        logger.info("retry: %d receipts re-reconciled", len(links))
        return links

    def resolve(self, fingerprint: str, payment_id: str) -> ReceiptPaymentLink:
        """Operator binds an ambiguous/unmatched receipt to a chosen payment."""
        record = self._store.get(fingerprint)
        if record is None:
            raise KeyError(fingerprint)

        payment = self._ledger.get(payment_id)
        if payment is None:
            raise KeyError(payment_id)
        if payment.amount != record.receipt.amount:
            raise BindingRejected(
                f"amount mismatch: receipt {record.receipt.amount}, payment {payment.amount}"
            )

        link = resolve(fingerprint, payment_id, self._ledger)
        self._store.set_link(fingerprint, link)
        return link
