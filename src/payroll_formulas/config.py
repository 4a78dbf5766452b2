"""Configuration management for the payroll formula engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    engine_version: str
    log_level: str
    debug: bool
    metrics_enabled: bool

    @property
    def DEBUG(self) -> bool:
        """Alias for debug."""
        return self.debug

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        debug = _env_bool("DEBUG", "false")
        return cls(
            engine_version=os.getenv("ENGINE_VERSION", "1.0.0"),
            log_level=os.getenv("LOG_LEVEL", "DEBUG" if debug else "WARNING").upper(),
            debug=debug,
            metrics_enabled=_env_bool("FORMULA_METRICS_ENABLED", "true"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
