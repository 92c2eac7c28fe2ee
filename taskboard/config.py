from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()

BACKEND_HTTP = "http"
BACKEND_SQL = "sql"


def load_env() -> None:
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for base in candidates:
        env_path = base / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            break

    for base in candidates:
        env_specific = base / f".env.{env_name}"
        if env_specific.exists():
            load_dotenv(env_specific, override=True)
            break


@dataclass(frozen=True)
class Settings:
    backend: str = BACKEND_HTTP
    api_base_url: str = "http://127.0.0.1:8000/api"
    api_token: str | None = None
    database_url: str | None = None
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 1.0
    progress_debounce_ms: int = 500
    current_user_id: int | None = None
    log_level: str = "INFO"
    log_dir: str = "logs"

    def check(self) -> None:
        if self.backend not in (BACKEND_HTTP, BACKEND_SQL):
            raise RuntimeError(f"TASK_BACKEND must be '{BACKEND_HTTP}' or '{BACKEND_SQL}'.")
        if self.backend == BACKEND_SQL and not self.database_url:
            raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")
        if self.backend == BACKEND_HTTP and not self.api_base_url:
            raise RuntimeError("API_BASE_URL is not set.")


def _optional_int(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


def load_settings() -> Settings:
    load_env()
    return Settings(
        backend=os.getenv("TASK_BACKEND", BACKEND_HTTP).strip().lower(),
        api_base_url=os.getenv("API_BASE_URL", "http://127.0.0.1:8000/api").strip(),
        api_token=os.getenv("API_TOKEN", "").strip() or None,
        database_url=os.getenv("DATABASE_URL", "").strip() or None,
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
        max_retries=int(os.getenv("MAX_RETRIES", "3")),
        retry_backoff=float(os.getenv("RETRY_BACKOFF", "1.0")),
        progress_debounce_ms=int(os.getenv("PROGRESS_DEBOUNCE_MS", "500")),
        current_user_id=_optional_int("CURRENT_USER_ID"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "logs"),
    )


SETTINGS = load_settings()
