"""
Runtime configuration for the performance pipeline.

Values that come from the environment rather than from flags: how to reach
the container engine, the builder reuse override and logging.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeSettings(BaseSettings):
    """
    Environment-level settings.
    """

    # Container engine connection
    DOCKER_HOST: Optional[str] = Field(default=None, description="Remote engine (tcp://host:port)")
    DOCKER_CERT_PATH: Optional[str] = Field(
        default=None, description="Directory holding ca.pem, cert.pem and key.pem"
    )
    DOCKER_SOCKET: str = Field(default="/var/run/docker.sock", description="Local engine socket")

    # Reuse an already built application instead of running the builder
    APP_BUILDER_CONTAINER: Optional[str] = Field(
        default=None, description="Existing builder container id (never removed)"
    )

    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_CONFIG_PATH: str = Field(default="logging.yml", description="YAML logging config path")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    @property
    def is_remote(self) -> bool:
        return bool(self.DOCKER_HOST and self.DOCKER_CERT_PATH)
