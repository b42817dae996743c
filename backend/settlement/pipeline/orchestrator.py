from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..extract.errors import ExtractError
from ..extract.types import DocumentMeta, RawDocument
from .pdf_to_receipt import parse_document


@dataclass
class BatchItemResult:
    pdf: str
    ok: bool
    fingerprint: Optional[str] = None
    error_code: Optional[str] = None
    error: Optional[str] = None
    out_json: Optional[str] = None


def load_document(pdf_path: str) -> RawDocument:
    p = Path(pdf_path)
    return RawDocument.from_bytes(p.read_bytes(), DocumentMeta(filename=p.name))


def run_single(pdf_path: str, out_json_path: str) -> Dict:
    receipt = parse_document(load_document(pdf_path))
    data = receipt.model_dump(mode="json")
    p = Path(out_json_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    return data


def run_batch(pdf_dir: str, out_dir: str) -> Dict:
    src = Path(pdf_dir)
    dst = Path(out_dir)
    dst.mkdir(parents=True, exist_ok=True)

    pdfs = sorted([p for p in src.rglob("*.pdf") if p.is_file()])

    items: List[BatchItemResult] = []
    for p in pdfs:
        out_json = dst / f"{p.stem}.json"
        try:
            data = run_single(str(p), str(out_json))
            items.append(
                BatchItemResult(pdf=str(p), ok=True, fingerprint=data.get("fingerprint"), out_json=str(out_json))
            )

        except ExtractError as e:
            # КРИТИЧНО: если JSON уже был, удаляем, чтобы не залип старый
            if out_json.exists():
                out_json.unlink()

            items.append(BatchItemResult(pdf=str(p), ok=False, error_code=e.code, error=str(e)))

        except Exception as e:
            if out_json.exists():
                out_json.unlink()

            items.append(BatchItemResult(pdf=str(p), ok=False, error=f"Unhandled: {e}"))

    report = {
        "pdf_dir": str(src),
        "out_dir": str(dst),
        "count_total": len(items),
        "count_ok": sum(1 for x in items if x.ok),
        "count_fail": sum(1 for x in items if not x.ok),
        "items": [x.__dict__ for x in items],
    }

    (dst / "batch_report.json").write_text(
        json.dumps(report, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return report


class PipelineOrchestrator:
    """Thin object wrapper over run_single/run_batch for callers that want one."""

    def process_pdf(self, pdf_path: str) -> Dict:
        return parse_document(load_document(pdf_path)).model_dump(mode="json")

    def save_json(self, data: Dict, out_json_path: str) -> None:
        p = Path(out_json_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def process_and_save(self, pdf_path: str, out_json_path: str) -> Dict:
        data = self.process_pdf(pdf_path)
        self.save_json(data, out_json_path)
        return data

    def process_dir(self, pdf_dir: str, out_dir: str) -> Dict:
        return run_batch(pdf_dir, out_dir)
