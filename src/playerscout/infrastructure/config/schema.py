"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

DEFAULT_RELAY_HOST = "https://cors.apn.monster"


def _normalize_host(value: Any) -> Any:
    """Strip trailing slashes so path joins never produce ``//``."""
    if isinstance(value, str):
        return value.strip().rstrip("/")
    return value


class SourceConfig(BaseModel):
    """Settings shared by every backend."""

    enabled: bool = Field(default=True, description="Register this source.")
    relay_host: Optional[str] = Field(
        default=DEFAULT_RELAY_HOST,
        description="CORS relay prefixed to the base URL. None = direct.",
    )
    proxies: list[str] = Field(
        default_factory=list,
        description="Outbound proxies tried round-robin (empty = direct).",
    )
    cache_ttl_seconds: Optional[float] = Field(
        default=None,
        description="TTL for cached player results. None = global cache TTL.",
    )

    @field_validator("relay_host", mode="before")
    @classmethod
    def _validate_relay(cls, v: Any) -> Any:
        if v == "":
            return None
        return _normalize_host(v)

    @field_validator("cache_ttl_seconds")
    @classmethod
    def _validate_ttl(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")
        return v


class RezkaConfig(SourceConfig):
    """Scraped-HTML backend (HDRezka-style site)."""

    host: str = Field(default="https://hdrezka.ag")
    translator_id: int = Field(
        default=1, description="Translator (voice track) requested by default."
    )
    hls: bool = Field(
        default=True,
        description="Rewrite progressive URLs to the HLS re-muxing endpoint.",
    )
    real_ip: Optional[str] = Field(
        default=None, description="Sent as X-Real-IP / X-Forwarded-For."
    )
    x_app: bool = Field(default=False, description="Send X-App-Hdrezka-App: 1.")

    @field_validator("host", mode="before")
    @classmethod
    def _validate_host(cls, v: Any) -> Any:
        return _normalize_host(v)


class CollapsConfig(SourceConfig):
    """Token-gated JSON API backend."""

    api_host: str = Field(default="https://api.bhcesh.me")
    token: str = Field(default="eedefb541aeba871dcfc756e6b31c02e")
    use_dash: bool = Field(default=False, description="Prefer DASH over HLS.")
    two: bool = Field(
        default=True, description="Honour use_dash (two-format mode)."
    )

    @field_validator("api_host", mode="before")
    @classmethod
    def _validate_api_host(cls, v: Any) -> Any:
        return _normalize_host(v)


class VideoHubConfig(SourceConfig):
    """Two-stage JSON API backend."""

    api_host: str = Field(default="https://plapi.cdnvideohub.com/api/v1/player/sv")
    pub: str = Field(default="12", description="Publisher id.")
    aggr: str = Field(default="kp", description="Id aggregator (kp / imdb).")
    relay_host: Optional[str] = Field(default=None)
    max_candidates: int = Field(
        default=8, description="Max playlist candidates resolved per request."
    )
    max_concurrent: int = Field(
        default=3, description="Parallel /video requests per resolution."
    )

    @field_validator("api_host", mode="before")
    @classmethod
    def _validate_api_host(cls, v: Any) -> Any:
        return _normalize_host(v)

    @field_validator("max_candidates", "max_concurrent")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


class SourcesConfig(BaseModel):
    priority: list[str] = Field(
        default_factory=lambda: ["collaps", "videohub", "rezka"],
        description="Default fallback order.",
    )
    rezka: RezkaConfig = Field(default_factory=RezkaConfig)
    collaps: CollapsConfig = Field(default_factory=CollapsConfig)
    videohub: VideoHubConfig = Field(default_factory=VideoHubConfig)


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/cache/search/sources).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="playerscout", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Connect/read/write timeout for outbound requests.",
    )
    http_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="Desktop browser User-Agent sent to every backend.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # Cache (YAML section: cache.*)
    cache_ttl_seconds: float = Field(
        default=600.0,
        validation_alias=AliasChoices(
            "cache_ttl_seconds",
            AliasPath("cache", "ttl_seconds"),
        ),
        description="Fallback TTL for cached player results.",
    )
    cache_failure_ttl_seconds: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices(
            "cache_failure_ttl_seconds",
            AliasPath("cache", "failure_ttl_seconds"),
        ),
        description="TTL for failed results. None = same as success, 0 = never cache.",
    )

    # Search fan-out (YAML section: search.*)
    search_timeout_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices(
            "search_timeout_seconds",
            AliasPath("search", "timeout_seconds"),
        ),
        description="Per-source timeout for parallel search.",
    )

    sources: SourcesConfig = Field(default_factory=SourcesConfig)

    @field_validator("http_timeout_seconds", "search_timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v

    @field_validator("cache_ttl_seconds")
    @classmethod
    def _validate_cache_ttl(cls, v: float) -> float:
        if v < 0:
            raise ValueError("cache_ttl_seconds must be >= 0")
        return v

    @field_validator("cache_failure_ttl_seconds")
    @classmethod
    def _validate_failure_ttl(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("cache_failure_ttl_seconds must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "cache": {
                "ttl_seconds": self.cache_ttl_seconds,
                "failure_ttl_seconds": self.cache_failure_ttl_seconds,
            },
            "search": {"timeout_seconds": self.search_timeout_seconds},
            "sources": self.sources.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read PLAYERSCOUT_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - PLAYERSCOUT_HTTP_TIMEOUT_SECONDS
    - PLAYERSCOUT_LOG_LEVEL
    - PLAYERSCOUT_COLLAPS_TOKEN
    - PLAYERSCOUT_RELAY_HOST
    """

    model_config = SettingsConfigDict(
        env_prefix="PLAYERSCOUT_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    cache_ttl_seconds: Optional[float] = None
    cache_failure_ttl_seconds: Optional[float] = None

    search_timeout_seconds: Optional[float] = None

    relay_host: Optional[str] = None
    rezka_host: Optional[str] = None
    collaps_token: Optional[str] = None
    videohub_pub: Optional[str] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
