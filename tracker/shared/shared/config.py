"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

StoreSemantics = Literal["overwrite", "append"]


class StoreConfig(BaseModel):
    """Connection and write-strategy options for the shared location store."""

    model_config = ConfigDict(frozen=True)

    endpoint: str
    auth_token: str = ""
    semantics: StoreSemantics = "overwrite"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Shared location store (Redis)
    redis_url: str = "redis://redis:6379"
    store_auth_token: str = ""
    # "overwrite" keeps one record per agent, "append" keeps a stream per agent
    store_semantics: StoreSemantics = "overwrite"

    # Tracked agent
    agent_id: str = "agent"

    # Route anchors
    start_lat: float = 23.013487532235562
    start_lon: float = 72.50403242503077
    end_lat: float = 23.164423073637163
    end_lon: float = 72.8092796894774

    # Geocoding / search
    geocoding_provider: Literal["nominatim", "openrouteservice"] = "nominatim"
    geocoding_api_key: str = ""
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    ors_url: str = "https://api.openrouteservice.org"

    # Routing
    osrm_url: str = "http://router.project-osrm.org"
    osrm_profile: str = "driving"
    # Commit a successful leg even when the other leg failed
    route_partial_updates: bool = False

    # HTTP
    http_timeout: float = 10.0
    user_agent: str = "LiveRouteTracker/1.0"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def store_config(self) -> StoreConfig:
        """Build the immutable store configuration handed to the publisher."""
        return StoreConfig(
            endpoint=self.redis_url,
            auth_token=self.store_auth_token,
            semantics=self.store_semantics,
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
