from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class UserFacingError(Exception):
    """
    An error that is safe and useful to show directly in UI.
    """
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    stage: Optional[str] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.stage:
            out["stage"] = self.stage
        if self.details:
            out["details"] = self.details
        return out


class DuplicateReceipt(Exception):
    """Byte-identical document was already ingested."""

    code = "DUPLICATE_RECEIPT"
    stage = "dedup"

    def __init__(self, fingerprint: str) -> None:
        super().__init__(f"receipt {fingerprint[:12]} was already ingested")
        self.fingerprint = fingerprint


def to_user_facing(exc: Exception) -> UserFacingError:
    """
    Engine exception -> UserFacingError. Known errors carry `code`/`stage`;
    anything else becomes INTERNAL_ERROR without leaking details.
    """
    if isinstance(exc, UserFacingError):
        return exc

    code = getattr(exc, "code", None)
    if not code:
        return UserFacingError(code="INTERNAL_ERROR", message="Внутренняя ошибка обработки чека")

    details: dict[str, Any] = {}
    for attr in ("field", "status", "fingerprint", "attempts"):
        value = getattr(exc, attr, None)
        if value:
            details[attr] = value

    return UserFacingError(
        code=code,
        message=str(exc),
        details=details or None,
        stage=getattr(exc, "stage", None),
    )
