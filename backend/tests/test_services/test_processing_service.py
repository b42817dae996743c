"""
Tests for ReceiptProcessingService.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from settlement.contracts.payment import LinkDecision, PendingPayment, ReceiptPaymentLink
from settlement.core.config import Settings
from settlement.core.errors import DuplicateReceipt
from settlement.extract.parsers.receipt_parser import parse_receipt
from settlement.extract.types import DocumentMeta, fingerprint_of
from settlement.reconcile.matcher import BindingRejected
from settlement.services import processing_service
from settlement.services.processing_service import IngestOutcome, ReceiptProcessingService
from settlement.services.receipt_store import ReceiptStore


def _payment(pid: str, amount: str = "4500", **kw) -> PendingPayment:
    return PendingPayment(
        id=pid,
        amount=Decimal(amount),
        created_at=datetime(2025, 6, 1, tzinfo=timezone.utc),
        **kw,
    )


class TestReceiptProcessingService:
    """Test suite for ReceiptProcessingService."""

    @pytest.fixture
    def service(self, utf8_methods):
        """Service with in-memory store; "PDF" bytes are UTF-8 transcripts."""
        return ReceiptProcessingService(
            settings=Settings(parse_max_workers=2),
            extract_methods=utf8_methods,
        )

    def test_ingest_matches_single_payment(self, service, transcript_bytes):
        service.register_payment(_payment("p1"))
        data = transcript_bytes("phone_columnar")

        result = service.ingest(data, DocumentMeta(filename="a.pdf", message_id="m1"))

        assert result.outcome == IngestOutcome.MATCHED
        assert result.fingerprint == fingerprint_of(data)
        assert result.link.payment_id == "p1"
        assert result.receipt.fingerprint == result.fingerprint
        assert service.get_receipt(result.fingerprint).meta.message_id == "m1"

    def test_duplicate_bytes_detected_before_reconcile(self, service, transcript_bytes):
        service.register_payment(_payment("p1"))
        data = transcript_bytes("phone_columnar")

        first = service.ingest(data)
        second = service.ingest(data)

        assert first.outcome == IngestOutcome.MATCHED
        assert second.outcome == IngestOutcome.DUPLICATE
        assert second.error.code == "DUPLICATE_RECEIPT"
        assert second.link == first.link

    def test_rejected_receipt_never_reconciled(self, service, transcript_bytes):
        service.register_payment(_payment("p1"))
        result = service.ingest(transcript_bytes("rejected"))

        assert result.outcome == IngestOutcome.REJECTED
        assert result.error.code == "REJECTED_DOCUMENT"
        assert result.receipt is None
        assert service.ledger.get("p1").bound_receipt is None
        assert result.fingerprint not in service.store

    def test_unreadable_document_fails(self, service):
        data = "Т-Банк\nУспешно\nбез суммы".encode("utf-8")
        result = service.ingest(data)

        assert result.outcome == IngestOutcome.FAILED
        assert result.error.code == "FIELD_MISSING"
        assert result.error.details == {"field": "amount"}

        # неудачная попытка не блокирует повторную загрузку тех же байтов
        again = service.ingest(data)
        assert again.outcome != IngestOutcome.DUPLICATE

    def test_ambiguous_then_resolve(self, service, transcript_bytes):
        service.register_payment(_payment("p1", wallet="+79123456789"))
        service.register_payment(_payment("p2"))

        result = service.ingest(transcript_bytes("phone_columnar"))
        assert result.outcome == IngestOutcome.AMBIGUOUS
        assert result.link.suggested_ids == ("p1",)

        link = service.resolve(result.fingerprint, "p1")
        assert link.decision == LinkDecision.MATCHED
        assert service.get_receipt(result.fingerprint).link == link

    def test_resolve_checks_amount(self, service, transcript_bytes):
        service.register_payment(_payment("p1"))
        service.register_payment(_payment("p2"))
        service.register_payment(_payment("other", "100"))
        result = service.ingest(transcript_bytes("phone_columnar"))

        with pytest.raises(BindingRejected):
            service.resolve(result.fingerprint, "other")
        with pytest.raises(KeyError):
            service.resolve("unknown-fp", "p1")

    def test_retry_unmatched_after_payment_arrives(self, service, transcript_bytes):
        result = service.ingest(transcript_bytes("card_transfer"))
        assert result.outcome == IngestOutcome.UNMATCHED

        service.register_payment(_payment("p3", "3000"))
        links = service.retry_unmatched()

        assert [link.decision for link in links] == [LinkDecision.MATCHED]
        assert service.get_receipt(result.fingerprint).link.payment_id == "p3"
        # повторный retry ничего не трогает
        assert service.retry_unmatched() == []

    @pytest.mark.asyncio
    async def test_ingest_batch_binds_each_payment_once(self, service, transcript_bytes):
        service.register_payment(_payment("p1"))
        items = [
            (transcript_bytes("phone_columnar"), DocumentMeta(filename="a.pdf")),
            (transcript_bytes("phone_sequential"), DocumentMeta(filename="b.pdf")),
            (transcript_bytes("client_transfer"), DocumentMeta(filename="c.pdf")),
        ]

        results = await service.ingest_batch(items)

        assert [r.filename for r in results] == ["a.pdf", "b.pdf", "c.pdf"]
        outcomes = sorted(r.outcome.value for r in results[:2])
        # две разные квитанции на одну сумму: одна привязана, вторая нет
        assert outcomes == ["matched", "unmatched"]
        assert results[2].outcome == IngestOutcome.UNMATCHED


    def test_retry_keeps_binding_made_by_concurrent_resolve(self, service, transcript_bytes, monkeypatch):
        service.register_payment(_payment("p1"))
        service.register_payment(_payment("p2"))
        result = service.ingest(transcript_bytes("phone_columnar"))
        assert result.outcome == IngestOutcome.AMBIGUOUS

        real_reconcile = processing_service.reconcile

        def reconcile_then_operator_resolves(receipt, pool, *, fingerprint=None):
            link = real_reconcile(receipt, pool, fingerprint=fingerprint)
            # оператор привязал чек, пока retry держит старый результат
            service.resolve(fingerprint, "p2")
            return link

        monkeypatch.setattr(processing_service, "reconcile", reconcile_then_operator_resolves)
        links = service.retry_unmatched()

        stored = service.get_receipt(result.fingerprint).link
        assert service.ledger.bound_to(result.fingerprint).id == "p2"
        assert stored.decision == LinkDecision.MATCHED
        assert stored.payment_id == "p2"
        assert links == [stored]

    @pytest.mark.asyncio
    async def test_ingest_batch_isolates_unexpected_errors(self, service, transcript_bytes, monkeypatch):
        service.register_payment(_payment("p1"))
        real_parse = processing_service.parse_document

        def parse_or_crash(doc, **kwargs):
            if doc.data == b"crash":
                raise RuntimeError("parser crashed")
            return real_parse(doc, **kwargs)

        monkeypatch.setattr(processing_service, "parse_document", parse_or_crash)
        results = await service.ingest_batch(
            [
                (b"crash", DocumentMeta(filename="bad.pdf")),
                (transcript_bytes("phone_columnar"), DocumentMeta(filename="a.pdf")),
            ]
        )

        bad, good = results
        assert bad.outcome == IngestOutcome.FAILED
        assert bad.filename == "bad.pdf"
        assert bad.error.code == "INTERNAL_ERROR"
        assert bad.fingerprint not in service.store
        assert good.outcome == IngestOutcome.MATCHED
        assert good.link.payment_id == "p1"
    def test_inspect(self, service, transcript_bytes):
        info = service.inspect(transcript_bytes("client_transfer"), DocumentMeta(filename="c.pdf"))
        assert info["variant"] == "to-platform-client"
        assert info["method"] == "utf8"
        assert info["filename"] == "c.pdf"

    def test_inspect_empty_document(self, service):
        info = service.inspect(b"")
        assert info["error"].startswith("EXTRACTION_FAILED")


class TestReceiptStore:
    def test_persisted_records_survive_restart(self, tmp_path, utf8_methods, transcript_bytes):
        svc = ReceiptProcessingService(
            store=ReceiptStore(tmp_path),
            settings=Settings(data_dir=tmp_path),
            extract_methods=utf8_methods,
        )
        svc.register_payment(_payment("p1"))
        result = svc.ingest(transcript_bytes("phone_columnar"), DocumentMeta(filename="a.pdf"))

        assert (tmp_path / "receipts" / f"{result.fingerprint}.json").exists()

        reloaded = ReceiptStore(tmp_path)
        record = reloaded.get(result.fingerprint)
        assert record.receipt.model_dump() == result.receipt.model_dump()
        assert record.link.model_dump() == result.link.model_dump()
        assert record.meta.filename == "a.pdf"

    def test_reserve_blocks_concurrent_duplicate(self):
        store = ReceiptStore()
        store.reserve("fp")

        with pytest.raises(DuplicateReceipt):
            store.reserve("fp")
        store.release("fp")
        store.reserve("fp")

    def test_matched_link_is_not_replaced_by_stale_result(self, transcript_lines):
        store = ReceiptStore()
        store.save("fp", parse_receipt(transcript_lines("phone_columnar"), fingerprint="fp"), DocumentMeta())
        matched = ReceiptPaymentLink(receipt_fingerprint="fp", decision=LinkDecision.MATCHED, payment_id="p1")
        store.set_link("fp", matched)

        stale = ReceiptPaymentLink(receipt_fingerprint="fp", decision=LinkDecision.AMBIGUOUS, candidate_ids=("p1", "p2"))
        record = store.set_link("fp", stale)

        assert record.link == matched
        assert store.get("fp").link == matched
        assert store.pending() == []
