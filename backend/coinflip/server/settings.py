"""Server configuration via environment variables."""

import json
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


def parse_origin_list(value: str | list[str]) -> list[str]:
    """Parse CORS origins from a list, a JSON array string, or a comma-separated string."""
    if isinstance(value, list):
        return value

    stripped = value.strip()
    if not stripped:
        return []

    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        return parsed

    return [origin.strip() for origin in stripped.split(",") if origin.strip()]


class ServerSettings(BaseSettings):
    model_config = {"env_prefix": "COINFLIP_", "env_file": ".env", "extra": "ignore"}

    debug: bool = False
    storage_backend: Literal["sqlite", "memory"] = "sqlite"
    database_path: str = Field(default="backend/data/coinflip.db", min_length=1)
    log_dir: str | None = "backend/logs"
    # NoDecode hands the raw env string to the validator, which accepts JSON or CSV.
    cors_origins: Annotated[list[str], NoDecode] = ["http://localhost:3000"]

    auto_start_delay_seconds: float = Field(default=2.0, ge=0)
    flip_animation_seconds: float = Field(default=3.0, ge=0)
    replay_delay_seconds: float = Field(default=1.0, ge=0)
    # Legacy clients read the raw server seed from the room; off by default so
    # the seed stays committed (hash only) until a flip reveals it.
    reveal_server_seed: bool = False

    http_rate_limit_requests: int = Field(default=100, ge=1)
    http_rate_limit_window_seconds: float = Field(default=900, gt=0)  # 15 minutes
    ws_rate_limit_rate: float = Field(default=10.0, gt=0)
    ws_rate_limit_burst: int = Field(default=20, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_origin_list(v)
