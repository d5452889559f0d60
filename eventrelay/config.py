from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

load_dotenv()


class Settings(BaseModel):
    LOG_LEVEL: str = Field(default="INFO")
    MAX_LISTENERS: int = Field(default=10, ge=0, description="0 disables the leak warning")
    HTTP_TIMEOUT_SECONDS: Optional[float] = Field(default=None, gt=0)
    EVENTS_PATH: str = Field(default="/events", description="inbound event endpoint")
    TARGETS_JSON: str = Field(default="", description="JSON array of targets to register on startup")
    API_TOKEN: str = Field(default="dev_token")  # simple bearer for admin routes
    API_KEYS: str = Field(default="", description="comma-separated API keys")
    CORS_ALLOW_ORIGINS: str = Field(default="*")

    @field_validator("HTTP_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def _load_settings(existing: Settings | None = None) -> Settings:
    values: dict[str, Any] = {}
    for name, field in Settings.model_fields.items():
        env_value = os.getenv(name)
        if env_value is None:
            if existing is not None and hasattr(existing, name):
                values[name] = getattr(existing, name)
                continue
            values[name] = field.get_default(call_default_factory=True)
        else:
            values[name] = env_value

    try:
        return Settings(**values)
    except ValidationError as exc:
        problems = ", ".join(
            f"{error['loc'][0]}: {error['msg']}" for error in exc.errors() if error.get("loc")
        )
        raise RuntimeError(f"Invalid configuration: {problems}") from exc


settings = _load_settings()


def reload_settings() -> Settings:
    global settings
    fresh = _load_settings(settings)
    settings.__dict__.update(fresh.__dict__)
    return settings
