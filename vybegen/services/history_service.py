"""Generation history tracking."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vybegen.services.preferences import PreferenceStore
from vybegen.services.storage_service import StorageService
from vybegen.utils.image_utils import guess_extension

logger = logging.getLogger(__name__)

HISTORY_KEY = "imageHistory"
MAX_ENTRIES = 50


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """A persisted generation together with its image assets."""

    entry_id: str
    prompt: str
    created_at: float
    image: bytes = field(repr=False)
    image_filename: str
    source_image: Optional[bytes] = field(default=None, repr=False)
    source_image_filename: Optional[str] = None

    @classmethod
    def create(
        cls,
        image: bytes,
        prompt: str,
        source_image: Optional[bytes] = None,
        created_at: Optional[float] = None,
        entry_id: Optional[str] = None,
    ) -> "HistoryEntry":
        entry_id = entry_id or str(uuid.uuid4())
        source_filename = None
        if source_image is not None:
            source_filename = f"{entry_id}_source.{guess_extension(source_image)}"
        return cls(
            entry_id=entry_id,
            prompt=prompt,
            created_at=time.time() if created_at is None else created_at,
            image=image,
            image_filename=f"{entry_id}_image.{guess_extension(image)}",
            source_image=source_image,
            source_image_filename=source_filename,
        )

    def to_record(self) -> Dict[str, Any]:
        """Compact index record; image bytes live in the asset files."""
        return {
            "id": self.entry_id,
            "prompt": self.prompt,
            "date": self.created_at,
            "imageFilename": self.image_filename,
            "sourceImageFilename": self.source_image_filename,
        }


def _record_filenames(record: Dict[str, Any]) -> List[str]:
    names = [record.get("imageFilename"), record.get("sourceImageFilename")]
    return [name for name in names if isinstance(name, str) and name]


class HistoryStore:
    """Capacity-bounded, newest-first history of generations.

    The index lives under a single key of the preference store; image bytes are
    kept as asset files managed by ``StorageService``. Disk failures are logged
    and absorbed, so readers may see a smaller or stale history.
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        storage: StorageService,
        max_entries: int = MAX_ENTRIES,
        index_key: str = HISTORY_KEY,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.preferences = preferences
        self.storage = storage
        self.max_entries = max_entries
        self.index_key = index_key

    # Index ---------------------------------------------------------------
    def _load_index(self) -> List[Dict[str, Any]]:
        raw = self.preferences.get(self.index_key, [])
        if not isinstance(raw, list):
            logger.warning("History index under %r is not a list; ignoring it", self.index_key)
            return []
        return [record for record in raw if isinstance(record, dict)]

    def _save_index(self, records: List[Dict[str, Any]]) -> bool:
        try:
            self.preferences.set(self.index_key, records)
        except OSError as exc:
            logger.error("Failed to write history index: %s", exc)
            return False
        return True

    def _delete_assets(self, filenames: List[str]) -> None:
        for name in filenames:
            try:
                self.storage.delete_image(name)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to delete history asset %s: %s", name, exc)

    # Public API ----------------------------------------------------------
    def append(self, entry: HistoryEntry) -> bool:
        """Persist ``entry`` at the head of the history.

        Assets are written before the index. If either step fails the assets
        written for this entry are removed again, so the index never points at
        a half-written entry. Returns whether the entry was stored.
        """
        written: List[str] = []
        assets = [(entry.image, entry.image_filename)]
        if entry.source_image is not None and entry.source_image_filename:
            assets.append((entry.source_image, entry.source_image_filename))

        for data, filename in assets:
            try:
                self.storage.save_image(data, filename)
            except (OSError, ValueError) as exc:
                logger.error("Failed to write history asset %s: %s", filename, exc)
                self._delete_assets(written)
                return False
            written.append(filename)

        records = [record for record in self._load_index() if record.get("id") != entry.entry_id]
        records.insert(0, entry.to_record())
        evicted = records[self.max_entries:]
        records = records[: self.max_entries]

        if not self._save_index(records):
            self._delete_assets(written)
            return False

        for record in evicted:
            logger.info("Evicting history entry %s", record.get("id"))
            self._delete_assets(_record_filenames(record))
        return True

    def read_all(self) -> List[HistoryEntry]:
        """Return every readable entry, newest first."""
        entries: List[HistoryEntry] = []
        for record in self._load_index():
            entry = self._entry_from_record(record)
            if entry is not None:
                entries.append(entry)
        return entries

    def _entry_from_record(self, record: Dict[str, Any]) -> Optional[HistoryEntry]:
        entry_id = record.get("id")
        image_filename = record.get("imageFilename")
        if not isinstance(entry_id, str) or not isinstance(image_filename, str):
            logger.warning("Skipping malformed history record: %r", record)
            return None
        try:
            created_at = float(record.get("date", 0.0))
        except (TypeError, ValueError):
            created_at = 0.0

        try:
            image = self.storage.load_image(image_filename)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping history entry %s: %s", entry_id, exc)
            return None

        source_image: Optional[bytes] = None
        source_filename = record.get("sourceImageFilename")
        if isinstance(source_filename, str) and source_filename:
            try:
                source_image = self.storage.load_image(source_filename)
            except (OSError, ValueError) as exc:
                logger.warning("Source asset missing for history entry %s: %s", entry_id, exc)
                source_filename = None
        else:
            source_filename = None

        return HistoryEntry(
            entry_id=entry_id,
            prompt=str(record.get("prompt", "")),
            created_at=created_at,
            image=image,
            image_filename=image_filename,
            source_image=source_image,
            source_image_filename=source_filename,
        )

    def remove(self, entry: HistoryEntry) -> None:
        """Delete the entry's assets and its index record."""
        records = self._load_index()
        filenames = {entry.image_filename}
        if entry.source_image_filename:
            filenames.add(entry.source_image_filename)
        remaining = []
        for record in records:
            if record.get("id") == entry.entry_id:
                filenames.update(_record_filenames(record))
            else:
                remaining.append(record)

        self._delete_assets(sorted(filenames))
        if len(remaining) != len(records):
            self._save_index(remaining)

    def clear(self) -> None:
        """Delete every referenced asset, then empty the index."""
        for record in self._load_index():
            self._delete_assets(_record_filenames(record))
        self._save_index([])

    def prune_orphans(self) -> int:
        """Remove asset files that no index record references."""
        referenced: List[str] = []
        for record in self._load_index():
            referenced.extend(_record_filenames(record))
        removed = self.storage.cleanup(referenced)
        if removed:
            logger.info("Removed %d orphaned history assets", removed)
        return removed

    def __len__(self) -> int:
        return len(self._load_index())
