import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else default


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings(BaseModel):
    app_name: str = "SWYFT Ride API"
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    redis_host: Optional[str] = Field(default_factory=lambda: os.getenv("REDIS_HOST"))
    redis_port: Optional[int] = Field(default_factory=lambda: _env_int("REDIS_PORT"))
    redis_channel: str = Field(default_factory=lambda: os.getenv("REDIS_CHANNEL", "ride_updates"))

    secret_key: str = Field(default_factory=lambda: os.getenv("SECRET_KEY", "supersecretjwtkey"))
    jwt_algorithm: str = Field(default_factory=lambda: os.getenv("JWT_ALGORITHM", "HS256"))
    access_token_expire_minutes: int = Field(
        default_factory=lambda: _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60)
    )

    # Bind websocket room membership to the JWT subject instead of the client-supplied email.
    ws_require_auth: bool = Field(default_factory=lambda: _env_bool("WS_REQUIRE_AUTH"))

    cors_origins: List[str] = Field(default_factory=lambda: _env_list("CORS_ORIGINS", "*"))


@lru_cache
def get_settings() -> Settings:
    return Settings()
