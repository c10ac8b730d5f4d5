"""Runtime configuration for upcrelay.

Settings are read once from the environment (and an optional ``.env`` file
in the working directory) and cached for the life of the process.
"""

import logging
import sys
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TOKEN_URL = "https://api.ebay.com/identity/v1/oauth2/token"
BROWSE_URL = "https://api.ebay.com/buy/browse/v1"
API_SCOPE = "https://api.ebay.com/oauth/api_scope"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    """eBay credentials, endpoints and server options."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ebay_client_id: str = Field("", description="OAuth client id (App ID)")
    ebay_client_secret: str = Field("", description="OAuth client secret (Cert ID)")
    #: Without a refresh token the client-credentials grant is used instead.
    ebay_refresh_token: str | None = None
    ebay_marketplace_id: str = "EBAY_US"
    ebay_scope: str = API_SCOPE
    ebay_token_url: str = TOKEN_URL
    ebay_browse_url: str = BROWSE_URL
    ebay_timeout: float = Field(15.0, gt=0, description="Outbound request timeout in seconds")
    ebay_search_limit: int = Field(10, ge=1, le=200)
    port: int = 3000
    log_level: str = "INFO"

    @field_validator("ebay_refresh_token")
    @classmethod
    def _blank_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings object."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
