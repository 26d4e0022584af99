"""File system helpers shared by the storage layers."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def ensure_dir(path: str | Path) -> Path:
    """Create the directory if it does not exist."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def atomic_write(path: str | Path, content: bytes) -> Path:
    """Write binary content to disk atomically.

    Each call stages into its own temp file next to the target, so concurrent
    writers never rename each other's data.
    """
    target = Path(path)
    ensure_dir(target.parent)
    handle = tempfile.NamedTemporaryFile(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp", delete=False
    )
    temp_path = Path(handle.name)
    try:
        with handle:
            handle.write(content)
        os.replace(temp_path, target)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
    return target


def write_json(path: str | Path, data: Any) -> Path:
    """Serialize a Python object as JSON and write it atomically."""
    payload = json.dumps(data, indent=2, ensure_ascii=False)
    return atomic_write(path, payload.encode("utf-8"))


def read_json(path: str | Path) -> Any:
    """Load JSON from disk; raises OSError or ValueError on failure."""
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)
