"""Path helpers for local-first storage."""

from __future__ import annotations

import os
from pathlib import Path


ROOT_DIR = Path(__file__).resolve().parents[3]
DATA_DIR = Path(os.getenv("POLYTAX_DATA_DIR", str(ROOT_DIR / "data"))).expanduser()
EXPORTS_DIR = DATA_DIR / "exports"


def ensure_data_dirs() -> None:
    for directory in (DATA_DIR, EXPORTS_DIR):
        directory.mkdir(parents=True, exist_ok=True)


def default_db_path() -> Path:
    return DATA_DIR / "polytax.db"
