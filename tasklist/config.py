from __future__ import annotations

import os
from typing import Any, List

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator

# HMAC algorithms the token authenticator knows how to verify
SUPPORTED_JWT_ALGORITHMS = ("HS256", "HS384", "HS512")


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseModel):
    """Runtime settings for the task-list service."""

    jwt_secret: str | None = env_field(
        None,
        "JWT_SECRET",
        validate_default=True,
        description="Pre-shared HMAC secret used to verify bearer tokens",
    )
    jwt_algorithms: List[str] = env_field(
        ["HS256"],
        "JWT_ALGORITHMS",
        description="Token algorithms accepted by the authenticator (comma separated)",
    )
    jwt_leeway_seconds: int = env_field(
        0,
        "JWT_LEEWAY_SECONDS",
        ge=0,
        description="Allowed clock skew when checking the exp claim",
    )
    memstore_path: str = env_field("/srv/tasklist/memstore.json", "MEMSTORE_PATH")
    snapshot_interval_seconds: int = env_field(
        0,
        "SNAPSHOT_INTERVAL_SECONDS",
        ge=0,
        description="Periodic snapshot interval; 0 snapshots only on shutdown",
    )
    conceal_foreign_tasks: bool = env_field(
        False,
        "CONCEAL_FOREIGN_TASKS",
        description="Report tasks owned by someone else as not found on every operation",
    )
    cors_allow_origins: List[str] = env_field(["*"], "CORS_ALLOW_ORIGINS")
    host: str = env_field("0.0.0.0", "TODO_ADDR")
    port: int = env_field(3030, "TODO_PORT", ge=1, le=65535)

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("jwt_secret")
    @classmethod
    def _require_jwt_secret(cls, value: str | None) -> str:
        # Tokens are minted elsewhere with the same secret, so generating one
        # locally would reject every caller.
        if not value:
            raise ValueError("JWT_SECRET must be set to the token signing secret")
        return value

    @field_validator("jwt_algorithms", mode="before")
    @classmethod
    def _parse_algorithms(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("jwt_algorithms")
    @classmethod
    def _validate_algorithms(cls, value: List[str]) -> List[str]:
        normalized = [alg.upper() for alg in value]
        if not normalized:
            raise ValueError("at least one JWT algorithm must be allowed")
        unsupported = [alg for alg in normalized if alg not in SUPPORTED_JWT_ALGORITHMS]
        if unsupported:
            raise ValueError(f"unsupported JWT algorithm(s): {', '.join(unsupported)}")
        return normalized

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("host", mode="before")
    @classmethod
    def _default_empty_host(cls, value: Any) -> Any:
        return value or "0.0.0.0"

    @field_validator("port", mode="before")
    @classmethod
    def _default_empty_port(cls, value: Any) -> Any:
        return value if value not in (None, "") else 3030


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
