"""Export of generated images to the user's photo library."""

from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Protocol

from vybegen.services.errors import PermissionDeniedError, SaveFailedError
from vybegen.utils.files import atomic_write
from vybegen.utils.image_utils import guess_extension

logger = logging.getLogger(__name__)


class PermissionStatus(str, Enum):
    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    LIMITED = "limited"
    DENIED = "denied"
    RESTRICTED = "restricted"

    @property
    def allows_saving(self) -> bool:
        return self in (PermissionStatus.AUTHORIZED, PermissionStatus.LIMITED)


class ImageCaptureService(Protocol):
    """Platform collaborator that stores images outside the app."""

    def check_photo_library_permission(self) -> PermissionStatus:
        ...

    def request_permission(self) -> bool:
        ...

    def save_image_to_library(self, image: bytes) -> Path:
        ...


class LocalPhotoLibrary:
    """Photo library backed by a plain directory."""

    def __init__(self, directory: Path, permission: PermissionStatus = PermissionStatus.NOT_DETERMINED) -> None:
        self.directory = Path(directory)
        self.permission = permission
        self.is_saving = False

    def check_photo_library_permission(self) -> PermissionStatus:
        return self.permission

    def request_permission(self) -> bool:
        # An undecided local library grants access on first request.
        if self.permission is PermissionStatus.NOT_DETERMINED:
            self.permission = PermissionStatus.AUTHORIZED
        return self.permission.allows_saving

    def save_image_to_library(self, image: bytes) -> Path:
        self.is_saving = True
        try:
            if not self.request_permission():
                raise PermissionDeniedError()
            if not image:
                raise SaveFailedError()
            filename = f"vybe_{time.strftime('%Y%m%d_%H%M%S')}_{time.time_ns() % 1_000_000:06d}"
            target = self.directory / f"{filename}.{guess_extension(image)}"
            try:
                atomic_write(target, image)
            except OSError as exc:
                logger.error("Saving image to %s failed: %s", target, exc)
                raise SaveFailedError() from exc
            logger.info("Saved image to %s", target)
            return target
        finally:
            self.is_saving = False
