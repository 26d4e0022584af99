"""HistoryStore persistence tests."""

from __future__ import annotations

import pytest

from helpers import encode_image
from vybegen.services.history_service import HISTORY_KEY, HistoryEntry, HistoryStore
from vybegen.services.preferences import PreferenceStore
from vybegen.services.storage_service import StorageService


@pytest.fixture
def preferences(tmp_path):
    return PreferenceStore(tmp_path / "preferences.json")


@pytest.fixture
def storage(tmp_path):
    return StorageService(tmp_path / "history")


@pytest.fixture
def store(preferences, storage):
    return HistoryStore(preferences, storage)


def make_entry(index: int, with_source: bool = True) -> HistoryEntry:
    image = encode_image((index % 256, 10, 10))
    source = encode_image((10, index % 256, 10), fmt="JPEG") if with_source else None
    return HistoryEntry.create(image=image, prompt=f"prompt {index}", source_image=source, created_at=1000.0 + index)


def test_append_then_read_round_trips(store):
    entry = make_entry(1)

    assert store.append(entry) is True
    [loaded] = store.read_all()

    assert loaded.entry_id == entry.entry_id
    assert loaded.prompt == "prompt 1"
    assert loaded.created_at == 1000.0 + 1
    assert loaded.image == entry.image
    assert loaded.source_image == entry.source_image


def test_asset_filenames_follow_entry_id(store, storage):
    entry = make_entry(2)
    store.append(entry)

    assert entry.image_filename == f"{entry.entry_id}_image.png"
    assert entry.source_image_filename == f"{entry.entry_id}_source.jpg"
    assert storage.list_images() == sorted([entry.image_filename, entry.source_image_filename])


def test_text_entry_has_no_source_asset(store, storage):
    entry = make_entry(3, with_source=False)
    store.append(entry)

    [loaded] = store.read_all()
    assert loaded.source_image is None
    assert storage.list_images() == [entry.image_filename]


def test_entries_are_newest_first_and_reads_are_stable(store):
    for index in range(3):
        store.append(make_entry(index))

    first = [entry.prompt for entry in store.read_all()]
    second = [entry.prompt for entry in store.read_all()]

    assert first == ["prompt 2", "prompt 1", "prompt 0"]
    assert first == second


def test_capacity_evicts_oldest_with_assets(store, storage):
    entries = [make_entry(index) for index in range(51)]
    for entry in entries:
        store.append(entry)

    loaded = store.read_all()
    assert len(loaded) == 50
    assert loaded[0].entry_id == entries[-1].entry_id
    assert entries[0].entry_id not in {entry.entry_id for entry in loaded}
    assert not storage.exists(entries[0].image_filename)
    assert not storage.exists(entries[0].source_image_filename)
    assert len(storage.list_images()) == 100


def test_custom_capacity(preferences, storage):
    store = HistoryStore(preferences, storage, max_entries=2)
    for index in range(4):
        store.append(make_entry(index))

    assert [entry.prompt for entry in store.read_all()] == ["prompt 3", "prompt 2"]
    assert len(store) == 2


def test_invalid_capacity_is_rejected(preferences, storage):
    with pytest.raises(ValueError):
        HistoryStore(preferences, storage, max_entries=0)


def test_remove_deletes_record_and_files(store, storage):
    keep, drop = make_entry(1), make_entry(2)
    store.append(keep)
    store.append(drop)

    store.remove(drop)

    assert [entry.entry_id for entry in store.read_all()] == [keep.entry_id]
    assert not storage.exists(drop.image_filename)
    assert not storage.exists(drop.source_image_filename)


def test_remove_unknown_entry_is_harmless(store):
    store.append(make_entry(1))
    store.remove(make_entry(9))
    assert len(store.read_all()) == 1


def test_clear_removes_everything(store, storage, preferences):
    for index in range(3):
        store.append(make_entry(index))

    store.clear()

    assert store.read_all() == []
    assert storage.list_images() == []
    assert preferences.get(HISTORY_KEY) == []


def test_entry_with_missing_image_is_skipped(store, storage):
    broken, intact = make_entry(1), make_entry(2)
    store.append(broken)
    store.append(intact)
    storage.delete_image(broken.image_filename)

    assert [entry.entry_id for entry in store.read_all()] == [intact.entry_id]


def test_missing_source_asset_keeps_entry(store, storage):
    entry = make_entry(1)
    store.append(entry)
    storage.delete_image(entry.source_image_filename)

    [loaded] = store.read_all()
    assert loaded.source_image is None
    assert loaded.source_image_filename is None


def test_failed_index_write_rolls_back_assets(store, storage, preferences, monkeypatch):
    existing = make_entry(1)
    store.append(existing)

    def broken_set(key, value):
        raise OSError("disk full")

    monkeypatch.setattr(preferences, "set", broken_set)
    failed = make_entry(2)

    assert store.append(failed) is False
    assert not storage.exists(failed.image_filename)
    assert not storage.exists(failed.source_image_filename)
    assert [entry.entry_id for entry in store.read_all()] == [existing.entry_id]


def test_failed_asset_write_leaves_index_alone(store, storage, monkeypatch):
    entry = make_entry(1)
    original_save = storage.save_image

    def flaky_save(data, filename):
        if filename.endswith("_source.jpg"):
            raise OSError("no space left")
        return original_save(data, filename)

    monkeypatch.setattr(storage, "save_image", flaky_save)

    assert store.append(entry) is False
    assert storage.list_images() == []
    assert store.read_all() == []


def test_corrupt_index_reads_as_empty(store, preferences):
    preferences.set(HISTORY_KEY, {"not": "a list"})
    assert store.read_all() == []


def test_malformed_records_are_skipped(store, preferences):
    entry = make_entry(1)
    store.append(entry)
    records = preferences.get(HISTORY_KEY)
    records.append({"prompt": "no id"})
    records.append("garbage")
    preferences.set(HISTORY_KEY, records)

    assert [loaded.entry_id for loaded in store.read_all()] == [entry.entry_id]


def test_prune_orphans_removes_unreferenced_files(store, storage):
    entry = make_entry(1)
    store.append(entry)
    storage.save_image(b"stale", "leftover_image.png")

    assert store.prune_orphans() == 1
    assert storage.list_images() == sorted([entry.image_filename, entry.source_image_filename])


def test_index_record_shape(store, preferences):
    entry = make_entry(4)
    store.append(entry)

    [record] = preferences.get(HISTORY_KEY)
    assert record == {
        "id": entry.entry_id,
        "prompt": "prompt 4",
        "date": 1004.0,
        "imageFilename": entry.image_filename,
        "sourceImageFilename": entry.source_image_filename,
    }
