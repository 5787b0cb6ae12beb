"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with HUBRELAY_ prefix.
Read once at process start; create_app() stores the instance on app.state
so handlers never re-read the environment per request.
"""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings
from starlette.requests import HTTPConnection


class Settings(BaseSettings):
    """All app configuration. Set via HUBRELAY_* env vars."""

    # Hub
    hub_name: str = "taxidata"
    broadcast_target: str = "notify"

    # Broker ("memory" is single-process only)
    broker: Literal["redis", "memory"] = "redis"
    redis_url: str = "redis://localhost:6379/0"

    # Base URL clients use to reach the /client/ WebSocket endpoint.
    # Empty means negotiate cannot hand out connection info.
    public_url: str = "ws://localhost:8000"

    # Auth
    function_key: str = ""
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    connection_token_expire_minutes: int = 60

    # Server
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS (browsers call negotiate cross-origin)
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    model_config = {"env_prefix": "HUBRELAY_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure secrets are set in non-development environments."""
        if self.environment == "development":
            return self
        if self.jwt_secret == "change-me-in-production":
            raise ValueError(
                "HUBRELAY_JWT_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        if not self.function_key:
            raise ValueError(
                "HUBRELAY_FUNCTION_KEY must be set in non-development "
                "environments; /api/message would otherwise be open."
            )
        return self


# Singleton, import this everywhere
settings = Settings()


def get_settings(conn: HTTPConnection) -> Settings:
    """FastAPI dependency — the Settings instance create_app() was built with."""
    return conn.app.state.settings
