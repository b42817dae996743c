from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


def _parse_cors_origins(env_value: Optional[str]) -> List[str]:
    """
    Parses comma-separated origins:
      CORS_ALLOW_ORIGINS="http://localhost:5173,http://127.0.0.1:5173"
    Empty/None -> default list.
    """
    if not env_value:
        return [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    parts = [p.strip() for p in env_value.split(",")]
    return [p for p in parts if p]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    # None -> хранилище чеков только в памяти
    data_dir: Optional[Path] = None
    pdftotext_bin: str = "pdftotext"
    # секунды на один вызов внешней утилиты
    extract_tool_timeout: float = 15.0
    parse_max_workers: int = 4
    cors_allow_origins: List[str] = field(default_factory=lambda: _parse_cors_origins(None))

    @classmethod
    def from_env(cls) -> "Settings":
        data_dir = os.getenv("SETTLEMENT_DATA_DIR")
        return cls(
            data_dir=Path(data_dir) if data_dir else None,
            pdftotext_bin=os.getenv("PDFTOTEXT_BIN") or "pdftotext",
            extract_tool_timeout=_env_float("EXTRACT_TOOL_TIMEOUT", 15.0),
            parse_max_workers=_env_int("PARSE_MAX_WORKERS", 4),
            cors_allow_origins=_parse_cors_origins(os.getenv("CORS_ALLOW_ORIGINS")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
