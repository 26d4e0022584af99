"""Generation request, status and result models."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from vybegen.config.settings import DEFAULT_PROMPT


class GenerationMode(str, Enum):
    """Which remote endpoint a request targets."""

    EDIT = "edit"
    CREATE = "create"


@dataclass(slots=True)
class GenerationRequest:
    """Request data for one generation call."""

    prompt: str
    source_image: Optional[bytes] = None
    created_at: float = field(default_factory=time.time)

    @property
    def mode(self) -> GenerationMode:
        return GenerationMode.EDIT if self.source_image is not None else GenerationMode.CREATE


class StatusKind(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class GenerationStatus:
    """Tagged status value; ``error`` is only set for the failed kind.

    ``==`` compares kind and error (type and message). Use ``same_kind`` when
    only the kind matters, e.g. for change detection in a view.
    """

    kind: StatusKind = StatusKind.IDLE
    error: Optional[Exception] = field(default=None, compare=False)

    @classmethod
    def idle(cls) -> "GenerationStatus":
        return cls(StatusKind.IDLE)

    @classmethod
    def uploading(cls) -> "GenerationStatus":
        return cls(StatusKind.UPLOADING)

    @classmethod
    def processing(cls) -> "GenerationStatus":
        return cls(StatusKind.PROCESSING)

    @classmethod
    def completed(cls) -> "GenerationStatus":
        return cls(StatusKind.COMPLETED)

    @classmethod
    def failed(cls, error: Exception) -> "GenerationStatus":
        return cls(StatusKind.FAILED, error)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenerationStatus):
            return NotImplemented
        return self.kind == other.kind and _error_key(self.error) == _error_key(other.error)

    def __hash__(self) -> int:
        return hash((self.kind, _error_key(self.error)))

    def same_kind(self, other: "GenerationStatus") -> bool:
        return self.kind == other.kind

    @property
    def is_loading(self) -> bool:
        return self.kind in (StatusKind.UPLOADING, StatusKind.PROCESSING)

    @property
    def can_download(self) -> bool:
        return self.kind is StatusKind.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.kind is StatusKind.FAILED

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__


def _error_key(error: Optional[Exception]) -> Optional[tuple]:
    if error is None:
        return None
    return (type(error), str(error))


@dataclass(slots=True)
class GenerationModel:
    """Observable state of the current generation.

    Only the orchestrator mutates it, through the transition helpers, which
    keep ``generated_image`` set exactly when the status is completed.
    """

    source_image: Optional[bytes] = None
    prompt: str = DEFAULT_PROMPT
    generated_image: Optional[bytes] = None
    status: GenerationStatus = field(default_factory=GenerationStatus.idle)
    created_at: float = field(default_factory=time.time)
    model_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def mark_uploading(self) -> None:
        self.generated_image = None
        self.status = GenerationStatus.uploading()

    def mark_processing(self) -> None:
        if self.status.kind is StatusKind.UPLOADING:
            self.status = GenerationStatus.processing()

    def mark_completed(self, image: bytes) -> None:
        if not image:
            raise ValueError("completed generation requires image bytes")
        self.generated_image = image
        self.status = GenerationStatus.completed()

    def mark_failed(self, error: Exception) -> None:
        self.generated_image = None
        self.status = GenerationStatus.failed(error)

    @property
    def error_message(self) -> Optional[str]:
        return self.status.error_message
