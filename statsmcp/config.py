from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__
from .exceptions import ConfigurationError

PLACEHOLDER_APP_ID = "YOUR_ESTAT_API_KEY"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # e-Stat (Japanese government statistics portal)
    estat_base_url: str = Field(default="https://api.e-stat.go.jp/rest/3.0", alias="ESTAT_BASE_URL")
    estat_app_id: str | None = Field(default=None, alias="ESTAT_API_KEY")
    # None means "enabled when an application id is configured"
    estat_enabled: bool | None = Field(default=None, alias="ESTAT_ENABLED")

    worldbank_base_url: str = Field(default="https://api.worldbank.org/v2", alias="WORLDBANK_BASE_URL")
    worldbank_enabled: bool = Field(default=True, alias="WORLDBANK_ENABLED")

    oecd_base_url: str = Field(default="https://sdmx.oecd.org/public/rest", alias="OECD_BASE_URL")
    oecd_enabled: bool = Field(default=True, alias="OECD_ENABLED")

    eurostat_base_url: str = Field(
        default="https://ec.europa.eu/eurostat/api/dissemination/statistics/1.0",
        alias="EUROSTAT_BASE_URL",
    )
    eurostat_enabled: bool = Field(default=True, alias="EUROSTAT_ENABLED")

    server_name: str = Field(default="statsmcp", alias="SERVER_NAME")
    server_version: str = Field(default=__version__, alias="SERVER_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    disable_mcp: bool = Field(default=False, alias="DISABLE_MCP")
    request_timeout: float = Field(
        default=30.0,
        alias="REQUEST_TIMEOUT",
        description="Total timeout in seconds for a single upstream HTTP attempt",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,  # Treat empty strings as not set
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return str(v).upper() if v else "INFO"

    @model_validator(mode="after")
    def validate_sources(self):
        """Resolve the e-Stat default and check every enabled source is usable."""
        if self.estat_enabled is None:
            self.estat_enabled = bool(self.estat_app_id) and self.estat_app_id != PLACEHOLDER_APP_ID

        if self.estat_enabled and (not self.estat_app_id or self.estat_app_id == PLACEHOLDER_APP_ID):
            raise ConfigurationError(
                "e-Stat is enabled but API key is not configured. "
                "Please set the ESTAT_API_KEY environment variable."
            )

        for source in self.enabled_sources():
            if not getattr(self, f"{source}_base_url").strip():
                raise ConfigurationError(f"{source} is enabled but baseUrl is not configured")

        if not self.server_name or not self.server_version:
            raise ConfigurationError("Server name and version must be configured")
        return self

    def enabled_sources(self) -> List[str]:
        """Identifiers of the enabled data sources, in a stable order."""
        flags = {
            "estat": self.estat_enabled,
            "worldbank": self.worldbank_enabled,
            "oecd": self.oecd_enabled,
            "eurostat": self.eurostat_enabled,
        }
        return [source for source, enabled in flags.items() if enabled]


@lru_cache
def get_settings() -> Settings:
    return Settings()
