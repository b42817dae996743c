from __future__ import annotations

from typing import List, Optional, Tuple


class ExtractError(Exception):
    """Base error for receipt text extraction / parsing."""

    code = "EXTRACT_ERROR"
    stage = "extract"


class ExtractionFailure(ExtractError):
    """No extraction method produced text."""

    code = "EXTRACTION_FAILED"

    def __init__(self, message: str, attempts: Optional[List[Tuple[str, str]]] = None) -> None:
        super().__init__(message)
        # (method, outcome) в порядке попыток
        self.attempts: List[Tuple[str, str]] = list(attempts or [])


class StructureUnrecognized(ExtractError):
    """
    No known label block found. Never raised by the parser: it is recorded as a
    warning and parsing continues with the sequential strategy.
    """

    code = "STRUCTURE_UNRECOGNIZED"
    stage = "classify"


class ParseError(ExtractError):
    code = "PARSE_ERROR"
    stage = "parse"


class FieldMissing(ParseError):
    code = "FIELD_MISSING"

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"required field not found: {field}")
        self.field = field


class RejectedDocument(ParseError):
    """Transfer status is not successful; the receipt never takes part in settlement."""

    code = "REJECTED_DOCUMENT"

    def __init__(self, status: Optional[str]) -> None:
        shown = status if status else "<нет статуса>"
        super().__init__(f"receipt rejected: status is {shown!r}, expected 'Успешно'")
        self.status = status
