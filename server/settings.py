import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

SERVER_DIR = Path(__file__).resolve().parent
# shipped as package data of functions/
DEFAULT_PROMPT_PATH = SERVER_DIR / "functions" / "prompt.txt"

UPLOAD_FORMATS = ("docx", "md")
EXPORT_FORMATS = ("docx", "md")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and never mutated."""
    ollama_host: str = "https://ollama.com"
    ollama_api_key: Optional[str] = None
    port: int = 3000
    default_model: str = "qwen3-coder:480b-cloud"
    serve_static: bool = True
    static_dir: str = "web/dist"
    prompt_path: str = str(DEFAULT_PROMPT_PATH)
    upload_format: str = "docx"
    google_export_format: str = "docx"
    max_upload_bytes: int = 10 * 1024 * 1024
    log_level: str = "INFO"

    def __post_init__(self):
        if self.upload_format not in UPLOAD_FORMATS:
            raise ValueError(f"UPLOAD_FORMAT must be one of {UPLOAD_FORMATS}, got {self.upload_format!r}")
        if self.google_export_format not in EXPORT_FORMATS:
            raise ValueError(
                f"GOOGLE_EXPORT_FORMAT must be one of {EXPORT_FORMATS}, got {self.google_export_format!r}"
            )
        if self.max_upload_bytes <= 0:
            raise ValueError("MAX_UPLOAD_BYTES must be positive")

    @property
    def upload_extension(self) -> str:
        return f".{self.upload_format}"

    @property
    def auth_headers(self) -> dict:
        if not self.ollama_api_key:
            return {}
        return {"Authorization": f"Bearer {self.ollama_api_key}"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_settings() -> Settings:
    """Load settings from the environment, merging a local .env file first."""
    load_dotenv()
    defaults = Settings()
    return Settings(
        ollama_host=os.getenv("OLLAMA_HOST") or defaults.ollama_host,
        ollama_api_key=os.getenv("OLLAMA_API_KEY") or None,
        port=_env_int("PORT", defaults.port),
        default_model=os.getenv("DEFAULT_MODEL") or defaults.default_model,
        serve_static=_env_bool("SERVE_STATIC", defaults.serve_static),
        static_dir=os.getenv("STATIC_DIR") or defaults.static_dir,
        prompt_path=os.getenv("PROMPT_PATH") or defaults.prompt_path,
        upload_format=(os.getenv("UPLOAD_FORMAT") or defaults.upload_format).lower(),
        google_export_format=(os.getenv("GOOGLE_EXPORT_FORMAT") or defaults.google_export_format).lower(),
        max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", defaults.max_upload_bytes),
        log_level=(os.getenv("LOG_LEVEL") or defaults.log_level).upper(),
    )
