"""Configuration helpers for the Vybe image generator."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_PROMPT = "Viral-style, ultra-realistic transformation"
# requests rejects a zero timeout outright.
MIN_REQUEST_TIMEOUT = 1.0


@dataclass(slots=True)
class AppConfig:
    """Centralized application configuration."""

    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    openai_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"
    image_quality: str = "hd"
    image_style: str = "vivid"
    request_timeout: float = 60.0
    free_generations: int = 3
    history_limit: int = 50
    use_mock: bool = False
    mock_delay: float = 0.0
    log_level: str = "INFO"
    default_prompt: str = DEFAULT_PROMPT

    @property
    def preferences_path(self) -> Path:
        return Path(self.data_dir) / "preferences.json"

    @property
    def history_dir(self) -> Path:
        return Path(self.data_dir) / "history"

    @property
    def photo_library_dir(self) -> Path:
        return Path(self.data_dir) / "photos"


def _load_env_file(path: Path) -> None:
    """Populate environment variables from a simple KEY=VALUE .env file."""
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ[key.strip()] = value.strip().strip('"').strip("'")


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        return default


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, float(raw))
    except ValueError:
        return default


def _resolve_mock_mode(raw: Optional[str], api_key: Optional[str]) -> bool:
    """Mock generation runs when explicitly enabled, or in auto mode without a key."""
    value = (raw or "auto").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return not api_key


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Return an AppConfig instance with environment-aware settings."""
    env_path = Path(config_path) if config_path else Path(".env")
    _load_env_file(env_path)

    data_dir = Path(os.getenv("VYBE_DATA_DIR", "data")).expanduser().resolve()
    log_dir = Path(os.getenv("VYBE_LOG_DIR") or data_dir / "logs").expanduser()

    openai_key = (os.getenv("OPENAI_API_KEY") or "").strip() or None
    defaults = AppConfig()

    base_url = os.getenv("OPENAI_BASE_URL")

    return AppConfig(
        data_dir=data_dir,
        log_dir=log_dir,
        openai_key=openai_key,
        openai_base_url=(base_url or defaults.openai_base_url).rstrip("/"),
        image_model=os.getenv("VYBE_IMAGE_MODEL") or defaults.image_model,
        image_quality=os.getenv("VYBE_IMAGE_QUALITY") or defaults.image_quality,
        image_style=os.getenv("VYBE_IMAGE_STYLE") or defaults.image_style,
        request_timeout=_env_float("VYBE_REQUEST_TIMEOUT", defaults.request_timeout, minimum=MIN_REQUEST_TIMEOUT),
        free_generations=_env_int("VYBE_FREE_GENERATIONS", defaults.free_generations),
        history_limit=_env_int("VYBE_HISTORY_LIMIT", defaults.history_limit, minimum=1),
        use_mock=_resolve_mock_mode(os.getenv("VYBE_ENABLE_MOCKS"), openai_key),
        mock_delay=_env_float("VYBE_MOCK_DELAY", defaults.mock_delay),
        log_level=(os.getenv("VYBE_LOG_LEVEL") or defaults.log_level).strip().upper(),
    )
