"""Simplified configuration management."""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


def _load_env_file() -> None:
    """Load .env from root directory if present."""
    env_path = Path(__file__).parent.parent / ".env"
    if not env_path.is_file():
        return
    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                key, value = stripped.split("=", 1)
                key, value = key.strip(), value.strip().strip("'\"")
                if key and value and key not in os.environ:
                    os.environ[key] = value
    except Exception:
        pass


_load_env_file()


DEFAULT_APP_NAME = "Group Chat Hub"
DEFAULT_APP_VERSION = "0.1.0"


def _env_float(name: str, fallback: float) -> float:
    try:
        return float(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


def _get_port() -> int:
    """Get server port, checking the platform PORT first, then CHATHUB_PORT."""
    port = os.getenv("PORT") or os.getenv("CHATHUB_PORT")
    if port:
        try:
            return int(port)
        except ValueError:
            pass
    return 3000


def _get_session_id() -> Optional[str]:
    value = (os.getenv("CHATHUB_SESSION_ID") or "").strip()
    return value or None


class Settings(BaseModel):
    """Application settings with lightweight env fallbacks."""

    # App metadata
    app_name: str = Field(default=DEFAULT_APP_NAME)
    app_version: str = Field(default=DEFAULT_APP_VERSION)

    # Server runtime
    server_host: str = Field(default_factory=lambda: os.getenv("CHATHUB_HOST", "0.0.0.0"))
    server_port: int = Field(default_factory=_get_port)

    # HTTP behaviour
    cors_allow_origins_raw: str = Field(default_factory=lambda: os.getenv("CHATHUB_CORS_ALLOW_ORIGINS", "*"))
    enable_docs: bool = Field(default_factory=lambda: os.getenv("CHATHUB_ENABLE_DOCS", "1") != "0")
    docs_url: Optional[str] = Field(default_factory=lambda: os.getenv("CHATHUB_DOCS_URL", "/docs"))

    # Memory service
    memory_base_url: str = Field(default_factory=lambda: os.getenv("HONCHO_BASE_URL", "http://localhost:8000"))
    memory_workspace_id: str = Field(default_factory=lambda: os.getenv("HONCHO_WORKSPACE_ID", "default"))
    memory_api_key: Optional[str] = Field(default_factory=lambda: os.getenv("HONCHO_API_KEY"))
    memory_timeout_seconds: float = Field(default_factory=lambda: _env_float("HONCHO_TIMEOUT", 60.0))
    session_id: Optional[str] = Field(default_factory=_get_session_id)

    # History controls
    history_capacity: int = Field(default=1000, ge=1)
    history_snapshot_size: int = Field(default=50, ge=0)
    history_default_limit: int = Field(default=100, ge=1)
    agent_context_size: int = Field(default=10, ge=0)
    closed_connection_limit: int = Field(default=1024, ge=1)

    # Summary controls
    summary_token_budget: int = Field(default=2000, ge=1)
    summary_short_length: int = Field(default=150, ge=1)
    summary_initial_delay_seconds: float = Field(default=2.0, ge=0)
    summary_refresh_interval_seconds: float = Field(default=30.0, gt=0)
    summary_refresh_on_chat: bool = Field(default=True)

    # Insight controls
    knowledge_topic_limit: int = Field(default=5, ge=0)
    knowledge_recent_window_seconds: float = Field(default=300.0, ge=0)
    relationship_description_length: int = Field(default=100, ge=1)

    @property
    def cors_allow_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if self.cors_allow_origins_raw.strip() in {"", "*"}:
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins_raw.split(",") if origin.strip()]

    @property
    def resolved_docs_url(self) -> Optional[str]:
        """Return documentation URL when docs are enabled."""
        return (self.docs_url or "/docs") if self.enable_docs else None

    @property
    def session_provided(self) -> bool:
        """Flag indicating an existing upstream session should be resumed."""
        return self.session_id is not None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
