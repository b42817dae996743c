"""
Tests for the batch orchestrator.
"""

import json
from pathlib import Path

import fitz  # PyMuPDF
import pytest

from settlement.extract import pdf_reader
from settlement.pipeline.orchestrator import PipelineOrchestrator, run_batch, run_single


@pytest.fixture
def utf8_chain(monkeypatch, utf8_methods):
    """Default extraction chain replaced: files in these tests are UTF-8 transcripts named *.pdf."""
    monkeypatch.setattr(pdf_reader, "default_methods", lambda timeout=None: utf8_methods)


@pytest.fixture
def pdf_dir(tmp_path: Path, fixtures_dir: Path) -> Path:
    src = tmp_path / "pdf"
    (src / "nested").mkdir(parents=True)
    for name in ("phone_columnar", "card_transfer"):
        (src / f"{name}.pdf").write_bytes((fixtures_dir / "transcripts" / f"{name}.txt").read_bytes())
    (src / "nested" / "rejected.pdf").write_bytes((fixtures_dir / "transcripts" / "rejected.txt").read_bytes())
    return src


class TestRunBatch:
    def test_report_counts_and_outputs(self, utf8_chain, pdf_dir: Path, temp_output_dir: Path):
        report = run_batch(str(pdf_dir), str(temp_output_dir))

        assert report["count_total"] == 3
        assert report["count_ok"] == 2
        assert report["count_fail"] == 1

        saved = json.loads((temp_output_dir / "batch_report.json").read_text(encoding="utf-8"))
        assert saved == report

        failed = [it for it in report["items"] if not it["ok"]]
        assert failed[0]["error_code"] == "REJECTED_DOCUMENT"

        card = json.loads((temp_output_dir / "card_transfer.json").read_text(encoding="utf-8"))
        assert card["transfer_type"] == "to-card"
        assert card["amount"] == "3000"

    def test_stale_json_removed_on_failure(self, utf8_chain, pdf_dir: Path, temp_output_dir: Path):
        stale = temp_output_dir / "rejected.json"
        stale.write_text("{}", encoding="utf-8")

        run_batch(str(pdf_dir), str(temp_output_dir))

        assert not stale.exists()

    def test_empty_dir(self, tmp_path: Path, temp_output_dir: Path):
        report = run_batch(str(tmp_path), str(temp_output_dir))
        assert report["count_total"] == 0


def test_real_pdf_without_receipt_fields_fails(tmp_path: Path, temp_output_dir: Path):
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "Invoice 42")
    (tmp_path / "invoice.pdf").write_bytes(doc.tobytes())
    doc.close()

    report = run_batch(str(tmp_path), str(temp_output_dir))

    assert report["count_fail"] == 1
    # ни статуса, ни суммы: документ отклоняется на первой проверке
    assert report["items"][0]["error_code"] == "REJECTED_DOCUMENT"


def test_run_single_and_orchestrator_agree(utf8_chain, pdf_dir: Path, temp_output_dir: Path):
    pdf = pdf_dir / "phone_columnar.pdf"
    data = run_single(str(pdf), str(temp_output_dir / "a.json"))

    same = PipelineOrchestrator().process_and_save(str(pdf), str(temp_output_dir / "b.json"))

    assert data == same
    assert data["fingerprint"] is not None
    assert (temp_output_dir / "b.json").exists()


def test_process_dir_is_run_batch(utf8_chain, pdf_dir: Path, temp_output_dir: Path):
    report = PipelineOrchestrator().process_dir(str(pdf_dir), str(temp_output_dir))
    assert report["count_total"] == 3
    assert (temp_output_dir / "phone_columnar.json").exists()
