from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest


def pytest_sessionstart(session):
    """
    Гарантируем, что backend/ (где лежит пакет settlement/) есть в sys.path,
    даже если pytest запущен из корня репозитория.
    """
    backend_dir = Path(__file__).resolve().parents[1]  # .../backend
    p = str(backend_dir)
    if p not in sys.path:
        sys.path.insert(0, p)


FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _decode_utf8(data: bytes) -> Optional[str]:
    return data.decode("utf-8")


# Цепочка извлечения для тестов: "PDF" здесь просто UTF-8 текст чека.
UTF8_METHODS = [("utf8", _decode_utf8)]


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES


@pytest.fixture
def transcript_lines() -> Callable[[str], List[str]]:
    """Loader: fixture name (without .txt) -> normalized transcript lines."""
    from settlement.extract.blocks.lines import split_transcript

    def _load(name: str) -> List[str]:
        return split_transcript((FIXTURES / "transcripts" / f"{name}.txt").read_text(encoding="utf-8"))

    return _load


@pytest.fixture
def transcript_bytes() -> Callable[[str], bytes]:
    def _load(name: str) -> bytes:
        return (FIXTURES / "transcripts" / f"{name}.txt").read_bytes()

    return _load


@pytest.fixture
def utf8_methods():
    return list(UTF8_METHODS)


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """
    Временная папка для тестов batch/вывода.
    """
    out = tmp_path / "out"
    out.mkdir(parents=True, exist_ok=True)
    return out
