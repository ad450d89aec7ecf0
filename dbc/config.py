import logging
import sys
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Keys accepted in a plain config mapping in addition to the field names.
_ALIASES = {
    "connectionLimit": "connection_limit",
    "queueLimit": "queue_limit",
    "acquireTimeout": "acquire_timeout",
    "logLevel": "log_level",
}


class DatabaseSettings(BaseSettings):
    """Connection pool configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="DB_", extra="ignore"
    )

    host: str = Field("localhost", description="Database server host")
    port: int = Field(3306, description="Database server port")
    user: Optional[str] = Field(None, description="Login user")
    password: Optional[str] = Field(None, description="Login password")
    database: str = Field(":memory:", description="Database name or SQLite file path")
    connection_limit: int = Field(20, ge=1, description="Maximum concurrent sessions")
    queue_limit: int = Field(10, ge=0, description="Maximum waiting callers, 0 for unbounded")
    acquire_timeout: Optional[float] = Field(30.0, gt=0, description="Checkout timeout in seconds")
    log_level: str = Field("INFO", description="Logging level")
    options: Dict[str, Any] = Field(default_factory=dict, description="Pass-through driver options")

    @property
    def log_level_value(self) -> int:
        """Return the numeric value of the log level."""
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_mapping(cls, info: Mapping[str, Any]) -> "DatabaseSettings":
        """
        Build settings from a plain config record.

        Recognized keys (and their camelCase aliases) become fields, everything
        else is collected into ``options`` and handed to the driver untouched.
        """
        known: Dict[str, Any] = {}
        options: Dict[str, Any] = dict(info.get("options") or {})
        for key, value in info.items():
            if key == "options":
                continue
            name = _ALIASES.get(key, key)
            if name in cls.model_fields:
                known[name] = value
            else:
                options[key] = value
        return cls(**known, options=options)


@lru_cache
def get_settings() -> DatabaseSettings:
    """Load settings from the environment (``DB_*``) and ``.env``."""
    return DatabaseSettings()


def configure_logging(settings: Optional[DatabaseSettings] = None) -> None:
    """Configure root logging the same way for every process using the pool."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level_value,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )
