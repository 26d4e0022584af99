"""Client for the remote OpenAI-compatible image generation API."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import requests

from vybegen.config.settings import AppConfig
from vybegen.services.errors import (
    GenerationError,
    InvalidCredentialError,
    InvalidImageError,
    InvalidPromptError,
    InvalidResponseError,
    RateLimitedError,
    RemoteError,
    ServerError,
    TransportError,
    UnknownGenerationError,
)
from vybegen.utils.image_utils import encode_jpeg, is_valid_image

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "dall-e-3"
DEFAULT_SIZE = "1024x1024"

SubmittedCallback = Callable[[], None]


class GenerationClient:
    """Turns one prompt (and optional source image) into one generated image.

    Every call makes two sequential round trips: the generation request, then
    a GET for the first result URL. There is no caching and no retry. The
    ``is_generating`` flag tracks the most recent call only; overlapping calls
    must be prevented by the caller.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        size: str = DEFAULT_SIZE,
        quality: str = "hd",
        style: str = "vivid",
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._base_url = base_url.rstrip("/")
        self.model = model
        self.size = size
        self.quality = quality
        self.style = style
        self._timeout = timeout
        self._session = session or requests.Session()
        self.is_generating = False

    @classmethod
    def from_config(cls, config: AppConfig, session: Optional[requests.Session] = None) -> "GenerationClient":
        return cls(
            api_key=config.openai_key,
            base_url=config.openai_base_url,
            model=config.image_model,
            size=config.image_size,
            quality=config.image_quality,
            style=config.image_style,
            timeout=config.request_timeout,
            session=session,
        )

    # Public API ----------------------------------------------------------
    def generate_from_image(
        self,
        source_image: bytes,
        prompt: str,
        on_submitted: Optional[SubmittedCallback] = None,
    ) -> bytes:
        """Edit ``source_image`` according to ``prompt``; returns image bytes."""
        self.is_generating = True
        try:
            self._ensure_credential()
            self._ensure_prompt(prompt)
            upload = self._encode_source(source_image)
            fields = {
                "model": self.model,
                "prompt": prompt,
                "size": self.size,
                "n": "1",
            }
            files = {"image": ("image.jpg", upload, "image/jpeg")}
            response = self._post("images/edits", data=fields, files=files)
            return self._complete(response, on_submitted)
        finally:
            self.is_generating = False

    def generate_from_text(
        self,
        prompt: str,
        on_submitted: Optional[SubmittedCallback] = None,
    ) -> bytes:
        """Create a new image from ``prompt``; returns image bytes."""
        self.is_generating = True
        try:
            self._ensure_credential()
            self._ensure_prompt(prompt)
            payload = {
                "model": self.model,
                "prompt": prompt,
                "n": 1,
                "size": self.size,
                "quality": self.quality,
                "style": self.style,
                "response_format": "url",
            }
            response = self._post("images/generations", json=payload)
            return self._complete(response, on_submitted)
        finally:
            self.is_generating = False

    # Request helpers -----------------------------------------------------
    def _ensure_credential(self) -> None:
        if not self._api_key:
            raise InvalidCredentialError()

    @staticmethod
    def _ensure_prompt(prompt: str) -> None:
        if not prompt or not prompt.strip():
            raise InvalidPromptError()

    @staticmethod
    def _encode_source(source_image: bytes) -> bytes:
        if not source_image:
            raise InvalidImageError()
        try:
            return encode_jpeg(source_image, quality=80)
        except (ValueError, TypeError, OSError) as exc:
            raise InvalidImageError() from exc

    def _resolve_endpoint(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _post(self, path: str, **kwargs: Any) -> requests.Response:
        url = self._resolve_endpoint(path)
        logger.info("POST %s", url)
        try:
            response = self._session.post(url, headers=self._headers(), timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise TransportError(f"Network error: {exc}") from exc
        self._raise_for_status(response)
        return response

    # Response handling ---------------------------------------------------
    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        logger.warning("Image API returned HTTP %s", status)
        if status == 401:
            raise InvalidCredentialError()
        if status == 429:
            raise RateLimitedError()
        if 500 <= status < 600:
            raise ServerError(status_code=status)

        message = GenerationClient._extract_error_message(response)
        if message:
            raise RemoteError(message, status_code=status)
        raise UnknownGenerationError(status_code=status)

    @staticmethod
    def _extract_error_message(response: requests.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return None

    @staticmethod
    def _extract_result_url(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError as exc:
            raise InvalidResponseError() from exc

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list) or not data:
            raise InvalidResponseError()
        first = data[0]
        url = first.get("url") if isinstance(first, dict) else None
        if not isinstance(url, str) or not url.strip():
            raise InvalidResponseError()
        return url.strip()

    def _complete(self, response: requests.Response, on_submitted: Optional[SubmittedCallback]) -> bytes:
        url = self._extract_result_url(response)
        if on_submitted is not None:
            on_submitted()
        return self._download(url)

    def _download(self, url: str) -> bytes:
        logger.info("Downloading generated image")
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Network error: {exc}") from exc
        if not 200 <= response.status_code < 300:
            logger.warning("Result download returned HTTP %s", response.status_code)
            raise InvalidResponseError()
        content = response.content
        if not content or not is_valid_image(content):
            raise InvalidResponseError()
        return content


__all__ = ["GenerationClient", "GenerationError", "DEFAULT_BASE_URL", "DEFAULT_MODEL"]
