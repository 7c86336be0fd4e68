"""Settings for the Digit Flow Pro server.

Sources, highest priority first:

1. Environment variables: ``DFP_<FIELD>`` at the top level and
   ``DFP_<SECTION>__<FIELD>`` inside a section (``DFP_AUTH__ADMIN_KEY``).
2. A YAML file named by ``DFP_CONFIG_PATH`` or passed to
   :meth:`AppConfig.from_yaml`; nested mappings merge section by section.
3. The defaults below.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _section(name: str) -> SettingsConfigDict:
    return SettingsConfigDict(env_prefix=f"DFP_{name.upper()}__", case_sensitive=False)


class DatabaseEngine(enum.StrEnum):
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class ServerConfig(BaseSettings):
    """uvicorn bind address and CORS."""

    model_config = _section("server")

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    log_level: str = "info"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class DatabaseConfig(BaseSettings):
    """Where the access key tables live."""

    model_config = _section("db")

    engine: DatabaseEngine = DatabaseEngine.SQLITE
    dsn: str = Field(
        default="sqlite+aiosqlite:///./digitflow.db",
        description="SQLAlchemy async URL (sqlite+aiosqlite or postgresql+asyncpg)",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False


class AuthConfig(BaseSettings):
    """Access keys, the session cookie and the admin secret."""

    model_config = _section("auth")

    admin_key: str = Field(
        default="",
        description="Shared secret for the admin API; empty disables admin access",
    )
    cookie_name: str = "dfp_session"
    cookie_max_age: int = 30 * 24 * 3600
    login_path: str = "/login"
    # Prefixes the session gate lets through without a cookie.
    public_paths: list[str] = Field(
        default_factory=lambda: ["/login", "/api/", "/health", "/metrics", "/docs", "/openapi.json"]
    )
    key_prefix: str = "DFP"
    default_expiry_months: int = Field(default=12, ge=1)
    default_device_limit: int | None = Field(
        default=None,
        ge=1,
        description="Device limit for new keys; None issues single-device keys",
    )


class FeedConfig(BaseSettings):
    """The public tick feed."""

    model_config = _section("feed")

    app_id: int = 69948
    base_url: str = "wss://ws.binaryws.com/websockets/v3"

    @property
    def url(self) -> str:
        return f"{self.base_url}?app_id={self.app_id}"


class AnalysisConfig(BaseSettings):
    """Window bounds, prediction cadence and idle reaping for analysis sessions."""

    model_config = _section("analysis")

    default_max_ticks: int = Field(default=100, ge=10, le=500)
    min_max_ticks: int = Field(default=10, ge=1)
    max_max_ticks: int = 500
    prediction_interval: float = Field(default=30.0, gt=0)
    min_ticks_for_prediction: int = 10
    match_log_size: int = Field(default=50, ge=1)
    idle_timeout: float = 15 * 60.0
    reaper_period: float = Field(default=60.0, gt=0)

    @model_validator(mode="after")
    def _check_window_bounds(self) -> Self:
        if not self.min_max_ticks <= self.default_max_ticks <= self.max_max_ticks:
            msg = (
                f"default_max_ticks {self.default_max_ticks} is outside "
                f"[{self.min_max_ticks}, {self.max_max_ticks}]"
            )
            raise ValueError(msg)
        return self


class ScannerConfig(BaseSettings):
    """How long a multi-market scan listens and how often it reports."""

    model_config = _section("scanner")

    duration: float = Field(default=60.0, ge=0)
    poll_interval: float = Field(default=0.5, gt=0)


class MetricsConfig(BaseSettings):
    model_config = _section("metrics")

    enabled: bool = True


class TaskConfig(BaseSettings):
    """Engine housekeeping cron jobs (idle reaping, gauges)."""

    model_config = _section("task")

    enabled: bool = True


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping; a missing or empty file reads as ``{}``."""
    p = Path(path)
    if not p.exists():
        return {}
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def _merge_under(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Overlay *overrides* on *defaults*, merging nested mappings key by key."""
    merged = dict(defaults)
    for key, value in overrides.items():
        if value is None:
            continue
        base = merged.get(key)
        if isinstance(base, dict) and isinstance(value, dict):
            merged[key] = _merge_under(base, value)
        else:
            merged[key] = value
    return merged


class AppConfig(BaseSettings):
    """Every setting the server reads."""

    model_config = SettingsConfigDict(
        env_prefix="DFP_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)

    @model_validator(mode="before")
    @classmethod
    def _apply_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        # Env values are already in *values*; the file only fills gaps.
        path = values.get("config_path")
        if not path:
            return values
        return _merge_under(_load_yaml(path), values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load *path* as the base layer; environment variables still win."""
        return cls(config_path=str(path))
