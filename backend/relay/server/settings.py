"""Relay server configuration via environment variables."""

from __future__ import annotations

import json
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from pairing.codes import KEYSPACE_SIZE


class RelayServerSettings(BaseSettings):
    model_config = {"env_prefix": "RELAY_"}

    code_pool_size: int = Field(default=1000, ge=0, le=KEYSPACE_SIZE)
    code_max_attempts: int = Field(default=10_000, ge=1)
    room_ttl_seconds: int = Field(default=600, ge=10)  # unjoined rooms only

    max_message_bytes: int = Field(default=64 * 1024, ge=256)
    max_decode_errors: int = Field(default=5, ge=1)
    rate_limit_per_second: float = Field(default=50.0, gt=0)
    rate_limit_burst: int = Field(default=80, ge=1)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    # Raw env string reaches the validator, so both CSV and a JSON array work.
    cors_origins: Annotated[list[str], NoDecode] = ["http://localhost:8720"]
    ws_allowed_origin: str | None = None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @field_validator("log_format", mode="before")
    @classmethod
    def lower_log_format(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            v = json.loads(v) if v.lstrip().startswith("[") else [part.strip() for part in v.split(",")]
        origins = [origin for origin in v if origin]
        if not origins:
            raise ValueError("at least one CORS origin is required")
        return origins
