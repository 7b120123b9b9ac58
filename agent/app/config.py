from functools import lru_cache
import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_WINDOW_SECONDS = 1.0
DEFAULT_PEER_DUMP_TIMEOUT = 10.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="G3000_AGENT_",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "G3000 Agent"
    version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    bind_host: str = "0.0.0.0"
    bind_port: int = 5665

    sample_window_seconds: float = DEFAULT_WINDOW_SECONDS
    include_swap: bool = False

    wg_command: str = "wg"
    wg_interface: str = "wg0"
    peer_dump_timeout_seconds: float | None = DEFAULT_PEER_DUMP_TIMEOUT

    @field_validator("sample_window_seconds", mode="before")
    @classmethod
    def _validate_window(cls, value: float | str | None) -> float:
        if value in (None, ""):
            return DEFAULT_WINDOW_SECONDS
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return DEFAULT_WINDOW_SECONDS
        if numeric <= 0:
            return DEFAULT_WINDOW_SECONDS
        return numeric

    @field_validator("peer_dump_timeout_seconds", mode="before")
    @classmethod
    def _validate_peer_timeout(cls, value: float | str | None) -> float | None:
        if value in (None, ""):
            return None
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            return DEFAULT_PEER_DUMP_TIMEOUT
        # zero or negative disables the bound
        return numeric if numeric > 0 else None

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str | None) -> str:
        level = str(value or "").strip().upper()
        if level not in logging.getLevelNamesMapping():
            return "INFO"
        return level

    @field_validator("wg_interface", mode="before")
    @classmethod
    def _normalize_interface(cls, value: str | None) -> str:
        name = str(value or "").strip()
        return name or "wg0"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
