"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables (prefix GAMEHUB_) or a local .env file.

The module-level `settings` instance is only used by the process entry point.
Components receive the settings object through their constructors so tests
can build them with their own values.
"""

from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    """
    Server configuration with environment variable bindings.

    Each field maps to an environment variable with the GAMEHUB_ prefix.
    For example, `signing_key` reads from GAMEHUB_SIGNING_KEY.
    """

    # --- Server settings ---

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "info"

    # "dev" mounts the developer routes (token signing/decoding, unprotected catalog).
    mode: str = "prod"

    # Comma-separated in the environment: GAMEHUB_ALLOWED_ORIGINS=http://a,http://b
    allowed_origins: Annotated[list[str], NoDecode] = []

    public_dir: Path = Path("public")

    # --- Token settings ---

    # Default is for local development only.
    signing_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"

    access_token_ttl_hours: float = Field(default=1.0, gt=0)
    refresh_token_ttl_hours: float = Field(default=168.0, gt=0)

    # Added to cookie expiry so a client with a slightly fast clock keeps the cookie.
    cookie_expiry_buffer_seconds: int = Field(default=60, ge=0)
    dev_cookie_lifetime_seconds: int = Field(default=120, gt=0)

    # --- Password settings ---

    # bcrypt cost factor; bcrypt only accepts 4..31.
    work_factor: int = Field(default=12, ge=4, le=31)

    # --- Document store settings ---

    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_app_name: str = "gamehub"
    mongodb_username: str | None = None
    mongodb_password: str | None = None
    mongodb_database: str = "gamehub"
    mongodb_users_collection: str = "users"
    mongodb_games_collection: str = "games"

    id_allocation_attempts: int = Field(default=3, ge=1)

    model_config = {
        "env_prefix": "GAMEHUB_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @model_validator(mode="after")
    def _ttls_cover_a_second(self):
        # Tokens are stamped in whole seconds; a TTL that rounds to 0 is expired on issue.
        for field, seconds in (
            ("access_token_ttl_hours", self.access_token_ttl_seconds),
            ("refresh_token_ttl_hours", self.refresh_token_ttl_seconds),
        ):
            if seconds < 1:
                raise ValueError(f"{field} must amount to at least one second")
        return self

    @property
    def access_token_ttl_seconds(self) -> int:
        return int(self.access_token_ttl_hours * 3600)

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return int(self.refresh_token_ttl_hours * 3600)

    @property
    def dev_mode(self) -> bool:
        return self.mode == "dev"


# Read once at import time by the entry point (gamehub.server).
settings = Settings()
