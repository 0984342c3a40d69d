"""Runtime configuration."""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings read from ``ZKT_*`` environment variables or a local ``.env`` file.

    The Merkle depth is not configurable: both proving systems are compiled
    against depth 20.
    """

    model_config = SettingsConfigDict(env_prefix="ZKT_", env_file=".env", extra="ignore")

    hash_backend: str = "sha256"
    strict_field_modulus: bool = False
    database_url: str = "sqlite:///zk_transfer.db"
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


def configure_logging(settings: Settings) -> None:
    """Apply the configured level to the package logger."""
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("zkt").setLevel(settings.log_level)
