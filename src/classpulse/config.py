"""Summary: Application configuration for ClassPulse.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for the provider client, API and storage.

    Importance: Ensures all services derive settings from a single source of truth.
    Alternatives: Store settings in a shared config file and parse at startup.
    """

    api_host: str
    api_port: int
    api_key: str
    log_level: str
    gmail_base_url: str
    student_domains: list[str]
    default_window_days: int
    page_size: int
    daily_page_size: int
    thread_limit: int
    max_concurrency: int
    request_timeout: float
    max_retries: int
    retry_base_delay: float
    retry_max_delay: float
    timezone: str
    case_note_backend: str
    db_path: str
    case_note_capacity: int
    gmail_access_token: str

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            api_host=os.getenv("CLASSPULSE_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("CLASSPULSE_API_PORT", defaults["api_port"])),
            api_key=os.getenv("CLASSPULSE_API_KEY", defaults["api_key"]),
            log_level=os.getenv("CLASSPULSE_LOG_LEVEL", defaults["log_level"]),
            gmail_base_url=os.getenv("GMAIL_API_BASE_URL", defaults["gmail_base_url"]),
            student_domains=parse_list(
                os.getenv("CLASSPULSE_STUDENT_DOMAINS", defaults["student_domains"])
            ),
            default_window_days=int(
                os.getenv("CLASSPULSE_DEFAULT_WINDOW_DAYS", defaults["default_window_days"])
            ),
            page_size=int(os.getenv("CLASSPULSE_PAGE_SIZE", defaults["page_size"])),
            daily_page_size=int(
                os.getenv("CLASSPULSE_DAILY_PAGE_SIZE", defaults["daily_page_size"])
            ),
            thread_limit=int(os.getenv("CLASSPULSE_THREAD_LIMIT", defaults["thread_limit"])),
            max_concurrency=int(
                os.getenv("CLASSPULSE_MAX_CONCURRENCY", defaults["max_concurrency"])
            ),
            request_timeout=float(
                os.getenv("CLASSPULSE_REQUEST_TIMEOUT", defaults["request_timeout"])
            ),
            max_retries=int(os.getenv("CLASSPULSE_MAX_RETRIES", defaults["max_retries"])),
            retry_base_delay=float(
                os.getenv("CLASSPULSE_RETRY_BASE_DELAY", defaults["retry_base_delay"])
            ),
            retry_max_delay=float(
                os.getenv("CLASSPULSE_RETRY_MAX_DELAY", defaults["retry_max_delay"])
            ),
            timezone=os.getenv("CLASSPULSE_TIMEZONE", defaults["timezone"]),
            case_note_backend=os.getenv(
                "CLASSPULSE_CASE_NOTE_BACKEND", defaults["case_note_backend"]
            ),
            db_path=os.getenv("CLASSPULSE_DB_PATH", defaults["db_path"]),
            case_note_capacity=int(
                os.getenv("CLASSPULSE_CASE_NOTE_CAPACITY", defaults["case_note_capacity"])
            ),
            gmail_access_token=os.getenv("GMAIL_ACCESS_TOKEN", defaults["gmail_access_token"]),
        )

    def zone(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)


def parse_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())
