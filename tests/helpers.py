"""Test doubles shared across test modules."""

from __future__ import annotations

import io
from typing import Any, List, Optional

from PIL import Image


def encode_image(
    color: tuple[int, int, int] = (200, 30, 30),
    size: tuple[int, int] = (8, 8),
    fmt: str = "PNG",
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


class DummyResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(self, status_code: int = 200, json_data: Any = None, content: bytes = b"") -> None:
        self.status_code = status_code
        self._json = json_data
        self.content = content

    def json(self) -> Any:
        if self._json is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._json


class DummySession:
    """Replays queued responses and records every request."""

    def __init__(self, post: Optional[List[Any]] = None, get: Optional[List[Any]] = None) -> None:
        self._post = list(post or [])
        self._get = list(get or [])
        self.posts: List[dict] = []
        self.gets: List[dict] = []

    def post(self, url: str, **kwargs: Any) -> DummyResponse:
        self.posts.append({"url": url, **kwargs})
        return self._next(self._post)

    def get(self, url: str, **kwargs: Any) -> DummyResponse:
        self.gets.append({"url": url, **kwargs})
        return self._next(self._get)

    @staticmethod
    def _next(queue: List[Any]) -> DummyResponse:
        if not queue:
            raise AssertionError("unexpected request")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def success_session(image: bytes, url: str = "https://cdn.example.com/result.png") -> DummySession:
    return DummySession(
        post=[DummyResponse(200, {"created": 1, "data": [{"url": url}]})],
        get=[DummyResponse(200, content=image)],
    )


class StubGenerator:
    """Generation client double with scripted outcomes."""

    def __init__(self, result: Optional[bytes] = None, error: Optional[Exception] = None) -> None:
        self.result = result
        self.error = error
        self.is_generating = False
        self.calls: List[tuple] = []

    def _respond(self, on_submitted: Any) -> bytes:
        if self.error is not None:
            raise self.error
        if on_submitted is not None:
            on_submitted()
        assert self.result is not None
        return self.result

    def generate_from_image(self, source_image: bytes, prompt: str, on_submitted: Any = None) -> bytes:
        self.calls.append(("image", source_image, prompt))
        return self._respond(on_submitted)

    def generate_from_text(self, prompt: str, on_submitted: Any = None) -> bytes:
        self.calls.append(("text", prompt))
        return self._respond(on_submitted)
