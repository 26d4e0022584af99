import pytest

from helpers import encode_image
from vybegen.services.errors import PermissionDeniedError, SaveFailedError
from vybegen.services.image_capture import LocalPhotoLibrary, PermissionStatus


def test_first_save_requests_permission(tmp_path):
    library = LocalPhotoLibrary(tmp_path / "photos")
    image = encode_image(fmt="JPEG")

    path = library.save_image_to_library(image)

    assert library.check_photo_library_permission() is PermissionStatus.AUTHORIZED
    assert path.suffix == ".jpg"
    assert path.read_bytes() == image
    assert library.is_saving is False


@pytest.mark.parametrize("status", [PermissionStatus.DENIED, PermissionStatus.RESTRICTED])
def test_denied_permission_blocks_saving(tmp_path, status):
    library = LocalPhotoLibrary(tmp_path / "photos", permission=status)

    with pytest.raises(PermissionDeniedError):
        library.save_image_to_library(encode_image())

    assert not (tmp_path / "photos").exists()


def test_limited_permission_allows_saving(tmp_path):
    library = LocalPhotoLibrary(tmp_path / "photos", permission=PermissionStatus.LIMITED)
    assert library.save_image_to_library(encode_image()).exists()


def test_empty_image_fails(tmp_path):
    library = LocalPhotoLibrary(tmp_path / "photos", permission=PermissionStatus.AUTHORIZED)
    with pytest.raises(SaveFailedError):
        library.save_image_to_library(b"")


def test_write_failure_is_reported(tmp_path, monkeypatch):
    library = LocalPhotoLibrary(tmp_path / "photos", permission=PermissionStatus.AUTHORIZED)

    def broken_write(path, content):
        raise OSError("read-only file system")

    monkeypatch.setattr("vybegen.services.image_capture.atomic_write", broken_write)

    with pytest.raises(SaveFailedError):
        library.save_image_to_library(encode_image())
    assert library.is_saving is False
