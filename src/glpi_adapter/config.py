"""Configuration for the GLPI adapter."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional, Set

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="glpi-adapter")

    glpi_url: str = Field(default="http://localhost")
    glpi_username: str = Field(default="")
    glpi_password: str = Field(default="")
    glpi_client_id: str = Field(default="")
    glpi_client_secret: str = Field(default="")
    glpi_scope: str = Field(default="api")
    glpi_ignore_ssl_issues: bool = Field(default=False)
    glpi_timeout_seconds: float = Field(default=30)
    glpi_token_cache_enabled: bool = Field(default=False)

    glpi_openapi_path: Optional[str] = Field(default=None)
    glpi_openapi_url: Optional[str] = Field(default=None)
    adapter_openapi_cache_seconds: int = Field(default=3600)

    adapter_transport: str = Field(default="streamable-http")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8000)
    adapter_auth_token: Optional[str] = Field(default=None)
    adapter_operation_allowlist: Optional[str] = Field(default=None)

    adapter_log_level: str = Field(default="INFO")

    def openapi_url(self) -> str:
        if self.glpi_openapi_url:
            return self.glpi_openapi_url
        return self.glpi_url.rstrip("/") + "/api.php/doc.json"

    def missing_glpi_settings(self) -> List[str]:
        """Environment variables the GLPI connection cannot work without."""
        required = {
            "GLPI_URL": self.glpi_url,
            "GLPI_USERNAME": self.glpi_username,
            "GLPI_PASSWORD": self.glpi_password,
        }
        return [name for name, value in required.items() if not value.strip()]

    def operation_allowlist(self) -> Set[str]:
        if not self.adapter_operation_allowlist:
            return set()
        return {
            item.strip()
            for item in self.adapter_operation_allowlist.split(",")
            if item.strip()
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
