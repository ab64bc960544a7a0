"""Application settings loaded once from the environment."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "mistralai/mistral-7b-instruct:free"
DEFAULT_VISION_MODEL = "qwen/qwen2.5-vl-72b-instruct"


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")


def _str(env: Mapping[str, str], key: str, default: str = "") -> str:
    return (env.get(key) or "").strip() or default


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, built at startup and passed to collaborators."""

    # LLM provider
    api_key: str = ""
    llm_api_url: str = DEFAULT_API_URL
    chat_model: str = DEFAULT_MODEL
    categorize_model: str = DEFAULT_MODEL
    vision_model: str = DEFAULT_VISION_MODEL
    llm_timeout_seconds: float = 60
    llm_max_retries: int = 0
    llm_retry_delay_seconds: float = 1

    # Server
    port: int = 3000
    log_level: str = "INFO"
    app_version: str = "dev"

    # Image storage
    storage_backend: str = "local"
    uploads_dir: Path = ROOT / "uploads"
    public_base_url: str = ""
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "spendsense"
    storage_timeout_seconds: float = 60

    @property
    def has_cloudinary(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``env`` (defaults to ``os.environ`` after loading ``.env``)."""
        if env is None:
            load_dotenv()
            env = os.environ

        chat_model = _str(env, "OPENROUTER_MODEL", DEFAULT_MODEL)
        max_retries = min(max(_int(env, "LLM_MAX_RETRIES", 0), 0), 1)

        cloud_name = _str(env, "CLOUDINARY_CLOUD_NAME")
        cloud_key = _str(env, "CLOUDINARY_API_KEY")
        cloud_secret = _str(env, "CLOUDINARY_API_SECRET")
        auto_backend = "cloudinary" if (cloud_name and cloud_key and cloud_secret) else "local"
        backend = _str(env, "STORAGE_BACKEND", auto_backend).lower()
        if backend not in ("local", "cloudinary"):
            raise ConfigError(f"Unknown STORAGE_BACKEND: {backend}")

        return cls(
            api_key=_str(env, "OPENROUTER_API_KEY"),
            llm_api_url=_str(env, "OPENROUTER_API_URL", DEFAULT_API_URL),
            chat_model=chat_model,
            categorize_model=_str(env, "CATEGORIZE_MODEL", chat_model),
            vision_model=_str(env, "VISION_MODEL", DEFAULT_VISION_MODEL),
            llm_timeout_seconds=_float(env, "LLM_TIMEOUT_SECONDS", 60),
            llm_max_retries=max_retries,
            llm_retry_delay_seconds=_float(env, "LLM_RETRY_DELAY_SECONDS", 1),
            port=_int(env, "PORT", 3000),
            log_level=_str(env, "LOG_LEVEL", "INFO").upper(),
            app_version=_str(env, "APP_VERSION", "dev"),
            storage_backend=backend,
            uploads_dir=Path(_str(env, "UPLOADS_DIR") or (ROOT / "uploads")),
            public_base_url=_str(env, "PUBLIC_BASE_URL").rstrip("/"),
            cloudinary_cloud_name=cloud_name,
            cloudinary_api_key=cloud_key,
            cloudinary_api_secret=cloud_secret,
            cloudinary_folder=_str(env, "CLOUDINARY_FOLDER", "spendsense"),
            storage_timeout_seconds=_float(env, "STORAGE_TIMEOUT_SECONDS", 60),
        )
