import os
from functools import lru_cache
from typing import Optional


class ConfigError(ValueError):
    """Raised when the process environment cannot run the front end."""


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    MODEL_HOST: Optional[str]
    MODEL_TIMEOUT: float
    LOG_LEVEL: str
    SESSION_SWEEP_INTERVAL: float
    HOST: str
    PORT: int

    def __init__(self) -> None:
        model_host = os.getenv("MODEL_HOST")
        self.MODEL_HOST = model_host.strip() if model_host is not None else None
        self.MODEL_TIMEOUT = _float_env("MODEL_TIMEOUT", 10.0)
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.SESSION_SWEEP_INTERVAL = _float_env("SESSION_SWEEP_INTERVAL", 0.0)
        self.HOST = os.getenv("HOST", "0.0.0.0")
        self.PORT = _int_env("PORT", 8080)

    def validate(self) -> None:
        """Raise ConfigError unless MODEL_HOST is a usable base URL."""
        if not self.MODEL_HOST:
            raise ConfigError("ENV variable MODEL_HOST is null or empty")
        if "://" not in self.MODEL_HOST:
            raise ConfigError(
                f'ENV variable MODEL_HOST is missing protocol, like "http://..." (was: "{self.MODEL_HOST}")'
            )


@lru_cache
def get_settings() -> Settings:
    return Settings()
