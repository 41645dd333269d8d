"""
Configuration Management

Centralized configuration using Pydantic Settings, plus the backend
configuration model consumed by ``QueryFacade.open()``.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tabquery.shared.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Library settings, overridable through TABQUERY_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="TABQUERY_", env_file=".env", case_sensitive=False)

    # Logging
    log_level: str = "WARNING"

    # Remote backend
    default_timeout_seconds: int = Field(default=10, ge=1)

    # Schema registry
    allow_re_register: bool = False

    # Embedded backend
    duckdb_database: str = ":memory:"


# Global settings instance
settings = Settings()


BackendKind = Literal["embedded", "remote"]


class BackendConfig(BaseModel):
    """
    Backend selection for a connection.

    Config options:
        kind: "embedded" (DuckDB, in-process) or "remote" (SQLAlchemy DSN)
        dsn: Database URL, required iff kind is "remote"
        timeoutSeconds: Seconds to wait for a remote statement (default: 10)
        database: DuckDB database path (embedded only, default: ":memory:")

    Example:
        BackendConfig.parse({"kind": "remote", "dsn": "sqlite://", "timeoutSeconds": 5})
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    kind: BackendKind
    dsn: Optional[str] = None
    timeout_seconds: int = Field(
        default_factory=lambda: settings.default_timeout_seconds,
        alias="timeoutSeconds",
        ge=1,
    )
    database: str = Field(default_factory=lambda: settings.duckdb_database)

    @model_validator(mode="after")
    def _check_dsn(self) -> "BackendConfig":
        if self.kind == "remote" and not self.dsn:
            raise ValueError("dsn is required when kind is 'remote'")
        if self.kind == "embedded" and self.dsn:
            raise ValueError("dsn is only accepted when kind is 'remote'")
        return self

    @classmethod
    def parse(cls, config: Union["BackendConfig", Dict[str, Any]]) -> "BackendConfig":
        """
        Validate a raw config dict.

        Raises:
            ConfigurationError: If the config is invalid
        """
        if isinstance(config, cls):
            return config

        try:
            return cls.model_validate(config)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid backend configuration: {e.errors()[0]['msg']}",
                details={"config": _redact(config), "errors": [err["msg"] for err in e.errors()]},
                suggestion="Use kind='embedded', or kind='remote' with a dsn",
            ) from e


def _redact(config: Any) -> Any:
    """Hide credentials embedded in a DSN before it lands in an error."""
    if not isinstance(config, dict):
        return config

    safe = dict(config)
    dsn = safe.get("dsn")
    if isinstance(dsn, str) and "@" in dsn:
        scheme, _, rest = dsn.partition("://")
        safe["dsn"] = f"{scheme}://***@{rest.split('@', 1)[1]}"
    return safe
