from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

load_dotenv()


class Settings(BaseModel):
    GOOGLE_SHEET_ID: str = Field(..., description="The spreadsheet backing the dashboard")
    GOOGLE_CREDENTIALS: Optional[str] = Field(default=None, description="inline service account JSON")
    GOOGLE_CREDENTIALS_FILE: Optional[str] = Field(default=None)
    GOOGLE_CLIENT_EMAIL: Optional[str] = Field(default=None)
    GOOGLE_PRIVATE_KEY: Optional[str] = Field(default=None)
    GOOGLE_PROJECT_ID: Optional[str] = Field(default=None)
    FIREBASE_CREDENTIALS: Optional[str] = Field(default=None)
    FIREBASE_CREDENTIALS_FILE: Optional[str] = Field(default=None)
    FIREBASE_CLIENT_EMAIL: Optional[str] = Field(default=None)
    FIREBASE_PRIVATE_KEY: Optional[str] = Field(default=None)
    FIREBASE_PROJECT_ID: Optional[str] = Field(default=None)
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3001)
    CORS_ALLOW_ORIGINS: str = Field(default="http://localhost:3000")
    APP_ENV: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")
    CACHE_TTL_SECONDS: int = Field(default=30)
    CACHE_STALE_SECONDS: int = Field(default=3600)
    PERFORMANCE_RANGE: str = Field(default="Trade-History!H1:N1")
    TRADE_HISTORY_RANGE: str = Field(default="Trade-History!B2:E")
    BALANCE_RANGE: str = Field(default="User-Balance!A2:G")
    PNL_POINTS: int = Field(default=20)
    TEST_LOGIN_ENABLED: bool = Field(default=False)
    TEST_USERS: str = Field(default="", description="email:password:Name, comma-separated")
    JWT_SECRET: str = Field(default="", description="required when TEST_LOGIN_ENABLED is set")
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_EXPIRE_MINUTES: int = Field(default=60)
    NGROK_AUTH_TOKEN: Optional[str] = Field(default=None)
    NGROK_URL: Optional[str] = Field(default=None)
    NGROK_REGION: str = Field(default="us")
    CLIENT_ENV_PATH: str = Field(default="../client/.env")
    CLIENT_ENV_VAR: str = Field(default="REACT_APP_API_URL")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.strip().lower() == "production"

    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(",") if o.strip()]


def _env_values(existing: Settings | None) -> dict[str, Any]:
    """Environment wins; unset names fall back to ``existing`` when reloading."""
    values: dict[str, Any] = {}
    for name in Settings.model_fields:
        raw = os.getenv(name)
        if raw is not None:
            values[name] = raw
        elif existing is not None:
            values[name] = getattr(existing, name)
    return values


def _load_settings(existing: Settings | None = None) -> Settings:
    try:
        return Settings(**_env_values(existing))
    except ValidationError as exc:
        missing = sorted({str(err["loc"][0]) for err in exc.errors() if err["type"] == "missing"})
        if not missing:
            raise
        raise RuntimeError("Missing required environment variables: " + ", ".join(missing)) from exc


settings = _load_settings()


def reload_settings() -> Settings:
    fresh = _load_settings(settings)
    settings.__dict__.update(fresh.__dict__)
    return settings
