from __future__ import annotations

import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from settlement.extract.parsers.layout import classify
from settlement.extract.parsers.receipt_inspect import inspect_receipt
from settlement.extract.pdf_reader import extract_text
from settlement.pipeline.orchestrator import load_document


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python debug_dump_text.py <pdf_path> [--lines N]")
        sys.exit(1)

    pdf_path = sys.argv[1]
    n = 250
    if "--lines" in sys.argv:
        i = sys.argv.index("--lines")
        if i + 1 < len(sys.argv):
            n = int(sys.argv[i + 1])

    doc = load_document(pdf_path)
    extracted = extract_text(doc)
    lines = list(extracted.lines)

    print(f"[INFO] method={extracted.method} lines={len(lines)} layout={classify(lines).value}")
    print(f"[INFO] fingerprint={doc.fingerprint}")
    print("----- FIRST LINES -----")
    for i, ln in enumerate(lines[:n]):
        print(f"{i:3d}  {ln}")

    print("----- INSPECT -----")
    for k, v in inspect_receipt(lines, filename=doc.meta.filename).items():
        print(f"{k}: {v}")


if __name__ == "__main__":
    main()
