from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

from ..contracts.receipt import ParsedReceipt
from ..extract.parsers.receipt_inspect import inspect_receipt
from ..extract.parsers.receipt_parser import parse_receipt
from ..extract.pdf_reader import ExtractMethod, extract_text
from ..extract.types import RawDocument

MethodChain = Optional[Sequence[Tuple[str, ExtractMethod]]]


def parse_document(
    doc: RawDocument,
    *,
    timeout: Optional[float] = None,
    methods: MethodChain = None,
) -> ParsedReceipt:
    """RawDocument -> ParsedReceipt (fingerprint attached). Raises ExtractError subclasses."""
    extracted = extract_text(doc, timeout=timeout, methods=methods)
    return parse_receipt(extracted.lines, fingerprint=doc.fingerprint)


def inspect_document(
    doc: RawDocument,
    *,
    timeout: Optional[float] = None,
    methods: MethodChain = None,
) -> Dict:
    extracted = extract_text(doc, timeout=timeout, methods=methods)
    result = inspect_receipt(extracted.lines, filename=doc.meta.filename)
    result["fingerprint"] = doc.fingerprint
    result["method"] = extracted.method
    return result
