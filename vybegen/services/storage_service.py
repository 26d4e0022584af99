"""File storage helpers for history image assets."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

from vybegen.utils.files import atomic_write, ensure_dir

logger = logging.getLogger(__name__)


class StorageService:
    """Handle saving, loading and deleting generated assets."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, filename: str) -> Path:
        name = Path(filename).name
        if not name or name != filename:
            raise ValueError(f"Invalid asset filename: {filename!r}")
        return self.output_dir / name

    def save_image(self, data: bytes, filename: str) -> Path:
        """Persist image bytes and return the file path."""
        ensure_dir(self.output_dir)
        return atomic_write(self.path_for(filename), data)

    def load_image(self, filename: str) -> bytes:
        """Read image bytes; raises OSError when the asset is missing."""
        return self.path_for(filename).read_bytes()

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).exists()

    def delete_image(self, filename: str) -> bool:
        """Remove an asset. Returns False when it was already gone."""
        path = self.path_for(filename)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def list_images(self) -> List[str]:
        if not self.output_dir.exists():
            return []
        return sorted(
            child.name
            for child in self.output_dir.iterdir()
            if child.is_file() and not child.name.endswith(".tmp")
        )

    def cleanup(self, keep: Iterable[str]) -> int:
        """Delete every stored asset not named in ``keep``; returns the count removed."""
        referenced = set(keep)
        removed = 0
        for name in self.list_images():
            if name in referenced:
                continue
            try:
                if self.delete_image(name):
                    removed += 1
            except OSError as exc:
                logger.warning("Failed to delete orphaned asset %s: %s", name, exc)
        return removed
