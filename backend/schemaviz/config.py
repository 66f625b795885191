from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from schemaviz.models.graph import LayoutKind


class Settings(BaseSettings):
    """Service configuration, read from ``SCHEMAVIZ_*`` environment variables or ``.env``."""

    metadata_base_url: str = "http://localhost:3000"
    api_token: Optional[str] = None
    database_id: Optional[int] = None
    default_schema: Optional[str] = "public"

    # When set, serve samples/<sample>.json instead of calling the metadata API
    sample: Optional[str] = None

    max_concurrency: int = 8
    request_timeout: float = 10.0  # per table structure request
    http_timeout: float = 30.0
    default_layout: LayoutKind = LayoutKind.GRID

    cors_origins: list[str] = ["http://localhost:5173"]

    model_config = SettingsConfigDict(env_prefix="SCHEMAVIZ_", env_file=".env", extra="ignore")


settings = Settings()
