"""
Configuration settings for PAM CLI.

This module defines the immutable configuration record produced by
ConfigResolver and the environment-only secrets that are read at the moment
they are needed rather than at startup.
"""

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_URL = "https://pam-production-service-925072200586.us-central1.run.app"

# Keys that `pam config set` may change.
SETTABLE_KEYS = (
    "api_url",
    "gcs_bucket",
    "user_email",
    "db_host",
    "db_port",
    "db_name",
    "db_user",
)

_SECRET_KEYS = ("db_password", "cli_api_key")


class PamConfig(BaseModel):
    """
    Resolved configuration for one PAM CLI invocation.

    Every field has a compiled-in default so an absent config file and an
    empty environment still produce a usable record. Instances are frozen;
    `pam config set` rewrites the file instead of mutating a live record.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    # API Configuration
    api_url: str = Field(
        default=DEFAULT_API_URL,
        min_length=1,
        description="PAM API base URL"
    )

    gcs_bucket: str = Field(
        default="pam-context-files",
        description="GCS bucket holding the context bundle"
    )

    user_email: Optional[str] = Field(
        default=None,
        description="Default user email"
    )

    # Database Configuration
    db_host: str = Field(default="localhost", description="Database host")
    db_port: int = Field(default=5433, gt=0, le=65535, description="Database port")
    db_name: str = Field(default="pam_pm_knowledge", description="Database name")
    db_user: str = Field(default="postgres", description="Database user")
    db_password: Optional[str] = Field(
        default=None,
        description="Database password (prefer PAM_DB_PASSWORD)"
    )

    # Authentication
    cli_api_key: Optional[str] = Field(
        default=None,
        description="CLI API key (prefer PAM_CLI_API_KEY)"
    )

    def db_connection_string(self) -> str:
        """Build a libpq-style connection string."""
        password = self.db_password or os.environ.get("PAM_DB_PASSWORD", "")
        return (
            f"host={self.db_host} port={self.db_port} dbname={self.db_name} "
            f"user={self.db_user} password={password}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary, masking sensitive data."""
        data = self.model_dump()
        for key in _SECRET_KEYS:
            if data.get(key):
                data[key] = "***masked***"
        return data


class CliSecrets(BaseSettings):
    """
    Secrets that only ever come from the environment.

    Instantiated at call time so a key exported mid-session is picked up by
    the next chat turn.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAM_",
        case_sensitive=False,
        extra="ignore",
    )

    cli_api_key: Optional[str] = None
