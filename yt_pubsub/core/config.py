from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HUB_URL = "https://pubsubhubbub.appspot.com/"


class ConfigurationError(ValueError):
    """Raised when the subscriber is constructed with unusable options."""


class Settings(BaseSettings):
    """Subscriber configuration loaded from environment variables."""

    callback_url: str | None = None
    hub_url: str = DEFAULT_HUB_URL
    secret: str | None = None
    host: str = "0.0.0.0"
    port: int = 3000
    path: str = "/"
    lease_seconds: int | None = None
    request_timeout: float = 10.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="YT_PUBSUB_", env_file_encoding="utf-8")

    @field_validator("path", mode="before")
    @classmethod
    def _normalise_path(cls, value: str | None) -> str:
        value = (value or "").strip()
        if not value.startswith("/"):
            value = "/" + value
        return value


@lru_cache

def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()


settings = get_settings()


@dataclass(frozen=True, slots=True)
class SubscriberConfig:
    """Immutable options a subscriber instance is built with."""

    callback_url: str
    hub_url: str = DEFAULT_HUB_URL
    secret: str | None = None
    host: str = "0.0.0.0"
    port: int = 3000
    path: str = "/"
    lease_seconds: int | None = None
    request_timeout: float = 10.0

    def __post_init__(self) -> None:
        if not isinstance(self.callback_url, str) or not self.callback_url.strip():
            raise ConfigurationError("You need to provide the callback URL.")
        if not self.hub_url:
            object.__setattr__(self, "hub_url", DEFAULT_HUB_URL)
        if not self.path:
            object.__setattr__(self, "path", "/")
        elif not self.path.startswith("/"):
            object.__setattr__(self, "path", "/" + self.path)

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> SubscriberConfig:
        """Build a config from environment-backed settings."""

        source = source or settings
        return cls(
            callback_url=source.callback_url or "",
            hub_url=source.hub_url,
            secret=source.secret or None,
            host=source.host,
            port=source.port,
            path=source.path,
            lease_seconds=source.lease_seconds,
            request_timeout=source.request_timeout,
        )
