from __future__ import annotations

import stat
import sys
import tempfile
import time
from pathlib import Path

import fitz  # PyMuPDF
import pytest

from settlement.extract.errors import ExtractionFailure
from settlement.extract.pdf_reader import (
    extract_text,
    extract_with_pdftotext,
    extract_with_pymupdf,
    scan_raw_bytes,
)
from settlement.extract.types import RawDocument


def _pdf_bytes(*lines: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    y = 72
    for ln in lines:
        page.insert_text((72, y), ln)
        y += 18
    data = doc.tobytes()
    doc.close()
    return data


def _boom(data: bytes):
    raise RuntimeError("broken")


def test_pymupdf_reads_text_layer() -> None:
    text = extract_with_pymupdf(_pdf_bytes("Receipt", "4500 RUB"))
    assert "Receipt" in text
    assert "4500 RUB" in text


def test_extract_text_default_chain_on_real_pdf() -> None:
    doc = RawDocument.from_bytes(_pdf_bytes("Receipt", "  4500   RUB  "))
    extracted = extract_text(doc)
    assert extracted.method == "pymupdf"
    assert extracted.lines == ("Receipt", "4500 RUB")


def test_empty_bytes_fail_fast() -> None:
    with pytest.raises(ExtractionFailure):
        extract_text(RawDocument.from_bytes(b""))


def test_first_non_empty_method_wins() -> None:
    methods = [
        ("broken", _boom),
        ("blank", lambda data: "  \n \n"),
        ("good", lambda data: "Сумма\n4 500 ₽"),
        ("never", lambda data: "other"),
    ]
    extracted = extract_text(RawDocument.from_bytes(b"x"), methods=methods)
    assert extracted.method == "good"
    assert extracted.lines == ("Сумма", "4 500 ₽")


def test_all_methods_fail_with_attempt_log() -> None:
    methods = [("broken", _boom), ("none", lambda data: None)]
    with pytest.raises(ExtractionFailure) as ei:
        extract_text(RawDocument.from_bytes(b"x"), methods=methods)

    attempts = ei.value.attempts
    assert [name for name, _ in attempts] == ["broken", "none"]
    assert attempts[0][1].startswith("error:")
    assert attempts[1][1] == "empty"


def test_raw_scan_keeps_keyword_runs_only() -> None:
    data = b"\x00\x01garbage\x00" + "Сумма 4 500 ₽".encode("utf-8") + b"\x00zzzz"
    assert scan_raw_bytes(data) == "Сумма 4 500 ₽"
    assert scan_raw_bytes(b"\x00nothing here\x00") is None


def test_pdftotext_missing_binary_is_skipped() -> None:
    assert extract_with_pdftotext(b"%PDF-1.4", binary="no-such-pdftotext-binary") is None


# ----------------------------
# pdftotext: timeout, exit codes, temp files
# ----------------------------

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="stub binaries are sh scripts")


@pytest.fixture
def isolated_tmp(tmp_path: Path, monkeypatch) -> Path:
    """All tempfile directories go here, so leftovers are visible."""
    root = tmp_path / "tmp"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


def _stub(tmp_path: Path, name: str, body: str) -> str:
    p = tmp_path / name
    p.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    p.chmod(p.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(p)


@posix_only
def test_pdftotext_reads_temp_copy_and_cleans_up(tmp_path: Path, isolated_tmp: Path) -> None:
    # аргументы: -enc UTF-8 <pdf> -  -> $3 это временная копия документа
    binary = _stub(tmp_path, "fake-pdftotext", 'cat "$3"')
    data = "Сумма\n4 500 ₽\n".encode("utf-8")

    assert extract_with_pdftotext(data, binary=binary, timeout=5) == "Сумма\n4 500 ₽\n"
    assert list(isolated_tmp.iterdir()) == []


@posix_only
def test_pdftotext_nonzero_exit_is_none_and_cleans_up(tmp_path: Path, isolated_tmp: Path) -> None:
    binary = _stub(tmp_path, "failing-pdftotext", "echo 'Syntax Error' >&2\nexit 3")

    assert extract_with_pdftotext(b"%PDF-1.4", binary=binary, timeout=5) is None
    assert list(isolated_tmp.iterdir()) == []


@posix_only
def test_pdftotext_timeout_falls_through_to_next_method(tmp_path: Path, isolated_tmp: Path) -> None:
    binary = _stub(tmp_path, "slow-pdftotext", "exec sleep 10")
    methods = [
        ("pdftotext", lambda data: extract_with_pdftotext(data, binary=binary, timeout=0.3)),
        ("fallback", lambda data: "Успешно"),
    ]

    started = time.monotonic()
    extracted = extract_text(RawDocument.from_bytes(b"%PDF-1.4"), methods=methods)

    assert extracted.method == "fallback"
    assert time.monotonic() - started < 5
    assert list(isolated_tmp.iterdir()) == []
