import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from inbox_digest.errors import ConfigError

# Load .env once, globally
load_dotenv()


def _env_str(env_key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(env_key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_number(env_key: str, default: float, *, cast=float):
    """
    Read a numeric setting from ENV.
    Empty values fall back to the default, garbage is a configuration error.
    """
    raw = _env_str(env_key)
    if raw is None:
        return cast(default)
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{env_key} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{env_key} must not be negative, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_redirect_uri: str = "http://localhost:8080/auth/callback"
    session_secret: Optional[str] = None
    client_url: str = "http://localhost:3000"
    production: bool = False

    openai_api_key: Optional[str] = None
    openai_assistant_id: Optional[str] = None

    page_size: int = 10
    ai_timeout_seconds: float = 30.0
    poll_interval_seconds: float = 1.0
    # 0 means "the whole page in one prompt".
    batch_size: int = 0
    batch_delay_seconds: float = 1.0
    fetch_workers: int = 8

    log_level: str = "INFO"

    @property
    def enrichment_enabled(self) -> bool:
        return bool(self.openai_api_key and self.openai_assistant_id)

    def require_oauth(self) -> None:
        missing = [
            name
            for name, value in (
                ("GOOGLE_CLIENT_ID", self.google_client_id),
                ("GOOGLE_CLIENT_SECRET", self.google_client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required environment variable(s): {', '.join(missing)}")


def load_settings() -> Settings:
    page_size = _env_number("INBOX_DIGEST_PAGE_SIZE", 10, cast=int)
    if page_size < 1:
        raise ConfigError("INBOX_DIGEST_PAGE_SIZE must be a positive integer")

    return Settings(
        google_client_id=_env_str("GOOGLE_CLIENT_ID"),
        google_client_secret=_env_str("GOOGLE_CLIENT_SECRET"),
        google_redirect_uri=_env_str("GOOGLE_REDIRECT_URI", Settings.google_redirect_uri),
        session_secret=_env_str("SESSION_SECRET"),
        client_url=_env_str("CLIENT_URL", Settings.client_url),
        production=_env_str("ENV", "") == "production",
        openai_api_key=_env_str("OPENAI_API_KEY"),
        openai_assistant_id=_env_str("OPENAI_ASSISTANT_ID"),
        page_size=page_size,
        ai_timeout_seconds=_env_number("INBOX_DIGEST_AI_TIMEOUT", 30.0),
        poll_interval_seconds=_env_number("INBOX_DIGEST_POLL_INTERVAL", 1.0),
        batch_size=_env_number("INBOX_DIGEST_BATCH_SIZE", 0, cast=int),
        batch_delay_seconds=_env_number("INBOX_DIGEST_BATCH_DELAY", 1.0),
        fetch_workers=max(1, _env_number("INBOX_DIGEST_FETCH_WORKERS", 8, cast=int)),
        log_level=(_env_str("INBOX_DIGEST_LOG_LEVEL", "INFO") or "INFO").upper(),
    )
