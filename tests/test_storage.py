"""StorageService and PreferenceStore tests."""

import os
import threading

import pytest

from vybegen.services.preferences import PreferenceStore
from vybegen.services.storage_service import StorageService
from vybegen.utils.files import atomic_write


def test_storage_save_load_delete(tmp_path):
    storage = StorageService(tmp_path / "assets")

    path = storage.save_image(b"\x89PNG data", "abc_image.png")

    assert path == tmp_path / "assets" / "abc_image.png"
    assert storage.load_image("abc_image.png") == b"\x89PNG data"
    assert storage.delete_image("abc_image.png") is True
    assert storage.delete_image("abc_image.png") is False
    with pytest.raises(OSError):
        storage.load_image("abc_image.png")


@pytest.mark.parametrize("name", ["../escape.png", "nested/file.png", ""])
def test_storage_rejects_path_components(tmp_path, name):
    with pytest.raises(ValueError):
        StorageService(tmp_path).path_for(name)


def test_storage_cleanup_keeps_referenced(tmp_path):
    storage = StorageService(tmp_path)
    for name in ("a.png", "b.png", "c.png"):
        storage.save_image(b"x", name)

    assert storage.cleanup(["b.png"]) == 2
    assert storage.list_images() == ["b.png"]


def test_list_images_on_missing_directory(tmp_path):
    assert StorageService(tmp_path / "missing").list_images() == []


def test_preferences_persist_across_instances(tmp_path):
    path = tmp_path / "prefs.json"
    store = PreferenceStore(path)
    store.set("count", 2)
    store.set("items", [{"id": "1"}])

    reloaded = PreferenceStore(path)

    assert reloaded.get("count") == 2
    assert reloaded.get("items") == [{"id": "1"}]
    assert "count" in reloaded
    assert sorted(reloaded.keys()) == ["count", "items"]


def test_preferences_return_copies(tmp_path):
    store = PreferenceStore(tmp_path / "prefs.json")
    store.set("items", [1, 2])

    store.get("items").append(3)

    assert store.get("items") == [1, 2]


def test_corrupt_preferences_load_empty(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")

    store = PreferenceStore(path)

    assert store.keys() == []
    assert store.get("missing", "default") == "default"


def test_failed_write_rolls_back(tmp_path, monkeypatch):
    store = PreferenceStore(tmp_path / "prefs.json")
    store.set("count", 1)

    def broken_write(path, data):
        raise OSError("disk full")

    monkeypatch.setattr("vybegen.services.preferences.write_json", broken_write)

    with pytest.raises(OSError):
        store.set("count", 2)
    with pytest.raises(OSError):
        store.remove("count")

    assert store.get("count") == 1


def test_concurrent_writers_keep_every_key(tmp_path):
    path = tmp_path / "prefs.json"
    store = PreferenceStore(path)
    errors = []

    def writer(name):
        try:
            for index in range(25):
                store.set(name, index)
        except OSError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=writer, args=(f"key{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    reloaded = PreferenceStore(path)
    assert {name: reloaded.get(name) for name in reloaded.keys()} == {f"key{n}": 24 for n in range(4)}
    assert [p.name for p in tmp_path.iterdir()] == ["prefs.json"]


def test_atomic_write_uses_distinct_temp_files(tmp_path, monkeypatch):
    staged = []
    real_replace = os.replace

    def recording_replace(src, dst):
        staged.append(os.fspath(src))
        return real_replace(src, dst)

    monkeypatch.setattr("vybegen.utils.files.os.replace", recording_replace)

    atomic_write(tmp_path / "a.json", b"1")
    atomic_write(tmp_path / "a.json", b"2")

    assert len(set(staged)) == 2
    assert (tmp_path / "a.json").read_bytes() == b"2"
