from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple


def fingerprint_of(data: bytes) -> str:
    """SHA-256 of the document bytes (hex)."""
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class DocumentMeta:
    message_id: Optional[str] = None
    received_at: Optional[datetime] = None
    filename: Optional[str] = None


@dataclass(frozen=True)
class RawDocument:
    data: bytes = field(repr=False)
    fingerprint: str
    meta: DocumentMeta = field(default_factory=DocumentMeta)

    @classmethod
    def from_bytes(cls, data: bytes, meta: Optional[DocumentMeta] = None) -> "RawDocument":
        return cls(data=data, fingerprint=fingerprint_of(data), meta=meta or DocumentMeta())


@dataclass(frozen=True)
class ExtractedText:
    lines: Tuple[str, ...]
    method: str

    @property
    def text(self) -> str:
        return "\n".join(self.lines)
