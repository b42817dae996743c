# backend/settlement/services/receipt_store.py

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from ..contracts.payment import LinkDecision, ReceiptPaymentLink
from ..contracts.receipt import ParsedReceipt, ParsedReceiptAdapter
from ..core.errors import DuplicateReceipt
from ..extract.types import DocumentMeta

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredReceipt:
    fingerprint: str
    receipt: ParsedReceipt
    meta: DocumentMeta
    link: Optional[ReceiptPaymentLink] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "receipt": self.receipt.model_dump(mode="json"),
            "meta": {
                "message_id": self.meta.message_id,
                "received_at": self.meta.received_at.isoformat() if self.meta.received_at else None,
                "filename": self.meta.filename,
            },
            "link": self.link.model_dump(mode="json") if self.link else None,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StoredReceipt":
        meta = payload.get("meta") or {}
        received_at = meta.get("received_at")
        link = payload.get("link")
        return cls(
            fingerprint=payload["fingerprint"],
            receipt=ParsedReceiptAdapter.validate_python(payload["receipt"]),
            meta=DocumentMeta(
                message_id=meta.get("message_id"),
                received_at=datetime.fromisoformat(received_at) if received_at else None,
                filename=meta.get("filename"),
            ),
            link=ReceiptPaymentLink.model_validate(link) if link else None,
        )


class ReceiptStore:
    """
    Parsed receipts + their latest reconciliation link, keyed by fingerprint.

    With `data_dir` every record is also written to <data_dir>/receipts/<fp>.json
    and reloaded on start. A fingerprint is reserved before parsing so that two
    concurrent uploads of the same bytes cannot both get through.
    """

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, StoredReceipt] = {}
        self._in_flight: Set[str] = set()

        self._dir: Optional[Path] = None
        if data_dir is not None:
            self._dir = Path(data_dir) / "receipts"
            self._dir.mkdir(parents=True, exist_ok=True)
            self._load()

    # -----------------------------
    # Dedup
    # -----------------------------
    def reserve(self, fingerprint: str) -> None:
        with self._lock:
            if fingerprint in self._records or fingerprint in self._in_flight:
                raise DuplicateReceipt(fingerprint)
            self._in_flight.add(fingerprint)

    def release(self, fingerprint: str) -> None:
        """Drop a reservation whose document did not produce a receipt."""
        with self._lock:
            self._in_flight.discard(fingerprint)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._records

    # -----------------------------
    # Records
    # -----------------------------
    def save(self, fingerprint: str, receipt: ParsedReceipt, meta: DocumentMeta) -> StoredReceipt:
        record = StoredReceipt(fingerprint=fingerprint, receipt=receipt, meta=meta)
        with self._lock:
            self._in_flight.discard(fingerprint)
            self._records[fingerprint] = record
        self._persist(record)
        return record

    def set_link(self, fingerprint: str, link: ReceiptPaymentLink) -> StoredReceipt:
        """
        Store the latest link. A matched link is final: a stale ambiguous/unmatched
        result computed before a concurrent binding never replaces it.
        """
        with self._lock:
            record = self._records.get(fingerprint)
            if record is None:
                raise KeyError(fingerprint)
            current = record.link
            if (
                current is not None
                and current.decision == LinkDecision.MATCHED
                and link.decision != LinkDecision.MATCHED
            ):
                logger.info(
                    "receipt %s already matched to %s, ignoring stale %s link",
                    fingerprint[:12], current.payment_id, link.decision.value,
                )
                return record
            record = replace(record, link=link)
            self._records[fingerprint] = record
        self._persist(record)
        return record

    def get(self, fingerprint: str) -> Optional[StoredReceipt]:
        with self._lock:
            return self._records.get(fingerprint)

    def all(self) -> List[StoredReceipt]:
        with self._lock:
            return list(self._records.values())

    def pending(self) -> List[StoredReceipt]:
        """Receipts that are not bound yet (unmatched or ambiguous)."""
        return [r for r in self.all() if r.link is None or r.link.decision != LinkDecision.MATCHED]

    # -----------------------------
    # Persistence
    # -----------------------------
    def _path(self, fingerprint: str) -> Path:
        assert self._dir is not None
        return self._dir / f"{fingerprint}.json"

    def _persist(self, record: StoredReceipt) -> None:
        if self._dir is None:
            return
        path = self._path(record.fingerprint)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(record.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(path)

    def _load(self) -> None:
        assert self._dir is not None
        for path in sorted(self._dir.glob("*.json")):
            try:
                record = StoredReceipt.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except Exception as e:  # noqa: BLE001
                logger.warning("receipt record %s is invalid, skipping: %s", path.name, e)
                continue
            self._records[record.fingerprint] = record
        logger.info("loaded %d receipt records from %s", len(self._records), self._dir)
