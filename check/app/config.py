from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Defaults for the check flags, overridable from the environment or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="G3000_CHECK_",
        case_sensitive=False,
        extra="ignore",
    )

    program_name: str = "check_g3000"
    version: str = "0.1.0"

    hostname: str = "192.168.25.10"
    port: int = 5665
    timeout_seconds: int = 90


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings = get_settings()
