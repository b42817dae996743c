from __future__ import annotations

import io
import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from ..core.config import get_settings
from .blocks.lines import split_transcript
from .errors import ExtractionFailure
from .types import ExtractedText, RawDocument

logger = logging.getLogger(__name__)

ExtractMethod = Callable[[bytes], Optional[str]]

# Ключевые слова, по которым последний метод отбирает куски "сырых" байтов.
_RAW_KEYWORDS_RE = re.compile(r"(Успешно|Сумма|Итого|₽|руб)")
# Печатаемые прогоны длиной от 4 символов (аналог `strings`).
_PRINTABLE_RUN_RE = re.compile(r"[^\x00-\x08\x0b-\x1f\x7f]{4,}")


def extract_with_pymupdf(data: bytes) -> Optional[str]:
    """Native text layer via PyMuPDF."""
    import fitz  # PyMuPDF

    doc = fitz.open(stream=data, filetype="pdf")
    try:
        parts: List[str] = []
        for i in range(doc.page_count):
            page = doc.load_page(i)
            parts.append(page.get_text("text") or "")
    finally:
        doc.close()
    return "\n".join(parts)


def extract_with_pdfplumber(data: bytes) -> Optional[str]:
    import pdfplumber

    parts: List[str] = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            txt = page.extract_text()
            if txt:
                parts.append(txt)
    return "\n".join(parts)


def extract_with_pdftotext(
    data: bytes,
    *,
    binary: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Optional[str]:
    """
    poppler `pdftotext` on a temp copy of the bytes.

    Missing binary, non-zero exit or timeout -> None.
    """
    settings = get_settings()
    binary = binary or settings.pdftotext_bin
    timeout = timeout if timeout is not None else settings.extract_tool_timeout

    exe = shutil.which(binary)
    if not exe:
        logger.debug("pdftotext binary %r not found, skipping", binary)
        return None

    # каталог удаляется всегда, и при успехе, и при ошибке
    with tempfile.TemporaryDirectory(prefix="receipt_") as tmp_dir:
        pdf_path = Path(tmp_dir) / "receipt.pdf"
        pdf_path.write_bytes(data)
        try:
            p = subprocess.run(
                [exe, "-enc", "UTF-8", str(pdf_path), "-"],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("pdftotext timed out after %.1fs", timeout)
            return None

    if p.returncode != 0:
        logger.info("pdftotext failed (rc=%s): %s", p.returncode, p.stderr.decode("utf-8", "replace").strip())
        return None
    return p.stdout.decode("utf-8", "replace")


def scan_raw_bytes(data: bytes) -> Optional[str]:
    """
    Last resort: printable runs of the raw bytes that mention a currency or
    status keyword.
    """
    decoded = data.decode("utf-8", "ignore")
    found: List[str] = []
    for run in _PRINTABLE_RUN_RE.findall(decoded):
        for ln in run.split("\n"):
            if _RAW_KEYWORDS_RE.search(ln):
                found.append(ln)
    return "\n".join(found) if found else None


def default_methods(timeout: Optional[float] = None) -> List[Tuple[str, ExtractMethod]]:
    return [
        ("pymupdf", extract_with_pymupdf),
        ("pdfplumber", extract_with_pdfplumber),
        ("pdftotext", lambda data: extract_with_pdftotext(data, timeout=timeout)),
        ("raw-scan", scan_raw_bytes),
    ]


def extract_text(
    doc: RawDocument,
    *,
    timeout: Optional[float] = None,
    methods: Optional[Sequence[Tuple[str, ExtractMethod]]] = None,
) -> ExtractedText:
    """
    PDF bytes -> transcript lines. Methods are tried in order; the first one that
    yields non-empty text wins.
    """
    if not doc.data:
        raise ExtractionFailure("document is empty (0 bytes)")

    chain = list(methods) if methods is not None else default_methods(timeout)
    attempts: List[Tuple[str, str]] = []

    for name, method in chain:
        try:
            raw = method(doc.data)
        except Exception as e:  # noqa: BLE001
            logger.info("extract method %s failed for %s: %s", name, doc.fingerprint[:12], e)
            attempts.append((name, f"error: {e}"))
            continue

        lines = split_transcript(raw or "")
        if not lines:
            attempts.append((name, "empty"))
            continue

        logger.debug("extract method %s succeeded for %s (%d lines)", name, doc.fingerprint[:12], len(lines))
        return ExtractedText(lines=tuple(lines), method=name)

    summary = ", ".join(f"{n}: {o}" for n, o in attempts)
    raise ExtractionFailure(
        f"Не удалось извлечь текст из PDF: все методы не вернули текст ({summary})",
        attempts=attempts,
    )
