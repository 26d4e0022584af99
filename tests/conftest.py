"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from helpers import encode_image


@pytest.fixture
def png_bytes() -> bytes:
    return encode_image()
