from __future__ import annotations

import sys
from collections import Counter
from pathlib import Path

# Гарантируем импорт settlement/, даже если запуск из корня репо
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from settlement.pipeline.orchestrator import run_batch


def main() -> None:
    """
    Разбор папки чеков в JSON:
      python batch_extract.py <pdf_dir> <out_dir>

    Печатает сводку по кодам ошибок, чтобы было видно, какой шаблон чека
    чаще всего не читается.
    """
    if len(sys.argv) < 3:
        print("Usage:")
        print("  python batch_extract.py <pdf_dir> <out_dir>")
        sys.exit(1)

    pdf_dir, out_dir = sys.argv[1], sys.argv[2]
    print(f"[INFO] PDF dir: {pdf_dir}")
    print(f"[INFO] OUT dir: {out_dir}")

    report = run_batch(pdf_dir, out_dir)
    failed = [it for it in report["items"] if not it["ok"]]

    print()
    print("[RESULT]")
    print(f"  total: {report['count_total']}")
    print(f"  ok:    {report['count_ok']}")
    print(f"  fail:  {report['count_fail']}")

    if failed:
        print()
        print("[FAILURES BY CODE]")
        for code, cnt in Counter(it["error_code"] or "UNHANDLED" for it in failed).most_common():
            print(f"  {code}: {cnt}")
        print()
        for it in failed:
            print(f"  {Path(it['pdf']).name}: {it['error']}")

    print(f"\n  report saved to: {Path(out_dir) / 'batch_report.json'}")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
