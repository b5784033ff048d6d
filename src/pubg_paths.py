"""Location of the dashboard's writable files (settings.json)."""

import os
from pathlib import Path


def data_dir() -> Path:
    return Path(os.getenv("PUBG_DATA_DIR", ".")).expanduser().resolve()


def data_path(name: str, create: bool = False) -> Path:
    """Path of ``name`` inside the data directory; ``create`` makes the directory."""
    base = data_dir()
    if create:
        base.mkdir(parents=True, exist_ok=True)
    return base / name
