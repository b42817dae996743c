from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

# Время в чеках Т-Банка московское.
MSK = timezone(timedelta(hours=3), name="MSK")

# Порядок важен: самый строгий формат первым, самый "разрешающий" последним.
_DATETIME_RES = (
    # "09.06.2025 17:10:18"
    re.compile(r"(\d{2})\.(\d{2})\.(\d{4})\s+(\d{2}):(\d{2}):(\d{2})"),
    # "09.06.2025 17:10"
    re.compile(r"(\d{2})\.(\d{2})\.(\d{4})\s+(\d{2}):(\d{2})"),
    # "09 . 06 . 2025 17 : 10 : 18" (разорванный текстовый слой)
    re.compile(r"(\d{2})\s*\.\s*(\d{2})\s*\.\s*(\d{4})\s+(\d{2})\s*:\s*(\d{2})\s*:\s*(\d{2})"),
    re.compile(r"(\d{2})\s*\.\s*(\d{2})\s*\.\s*(\d{4})\s+(\d{2})\s*:\s*(\d{2})"),
)

_DATE_ONLY_RE = re.compile(r"(\d{2})\.(\d{2})\.(\d{4})")


def parse_receipt_datetime(text: str) -> Optional[datetime]:
    """
    First date/time found in the transcript, as an aware MSK datetime.

    A bare date (no time) is read as noon of that day.
    """
    s = text or ""
    for rx in _DATETIME_RES:
        for m in rx.finditer(s):
            dt = _build(m.groups())
            if dt is not None:
                return dt

    for m in _DATE_ONLY_RE.finditer(s):
        dt = _build(m.groups() + ("12", "00"))
        if dt is not None:
            return dt

    return None


def _build(groups) -> Optional[datetime]:
    dd, mm, yyyy, hh, mi = (int(g) for g in groups[:5])
    ss = int(groups[5]) if len(groups) > 5 and groups[5] is not None else 0
    try:
        return datetime(yyyy, mm, dd, hh, mi, ss, tzinfo=MSK)
    except ValueError:
        # 31.02.2025 и т.п.: мусор в текстовом слое, ищем дальше
        return None


def msk_date(dt: datetime):
    """Calendar date in Moscow time. Naive datetimes are treated as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(MSK).date()
