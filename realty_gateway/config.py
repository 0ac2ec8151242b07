from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from a .env file if present (local dev only)
load_dotenv()

DEFAULT_IMAGE_SIZES: dict[str, tuple[int, int]] = {
    "small": (64, 64),
    "medium": (128, 128),
    "large": (256, 256),
    "x-large": (512, 512),
    "xx-large": (864, 864),
}

DEFAULT_RESIZABLE_FILE_TYPES: list[str] = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # General
    project_id: Optional[str] = Field(default=None, description="GCP project ID")

    # Firebase (CRM record store)
    firebase_credentials_json: Optional[str] = Field(
        default=None,
        validation_alias="GOOGLE_APPLICATION_CREDENTIALS",
        description="Path to service-account JSON file or JSON string itself.",
    )

    # File storage
    storage_backend: Literal["local", "gcs"] = Field("local", description="Where originals and thumbnails live.")
    upload_dir: str = Field("data/upload", description="Root directory for originals when storage_backend=local.")
    bucket_name: str = Field("realty-uploads")
    upload_prefix: str = Field("upload", description="Object prefix for originals when storage_backend=gcs.")

    # Thumbnails
    thumbs_namespace: str = Field("thumbs", description="Cache key namespace for generated thumbnails.")
    thumbs_root: str = Field("data/upload", description="Directory the file cache resolves keys against.")
    image_sizes: dict[str, tuple[int, int]] = Field(default_factory=lambda: dict(DEFAULT_IMAGE_SIZES))
    resizable_file_types: list[str] = Field(default_factory=lambda: list(DEFAULT_RESIZABLE_FILE_TYPES))

    # Public image access
    public_image_fields: list[str] = Field(default_factory=lambda: ["images", "cPrimaryImage"])
    property_entity_type: str = Field("RealEstateProperty")
    published_status: str = Field("Listed")

    # Logging
    log_level: str = Field("DEBUG")
    log_handlers: list[str] = Field(default_factory=lambda: ["default", "database"])
    log_database_handler: bool = Field(True)
    log_database_handler_level: str = Field("DEBUG")
    log_database_loggers: list[str] = Field(default_factory=lambda: ["realty_gateway"])
    log_print_trace: bool = Field(True, description="Include tracebacks in formatted log records.")


@lru_cache()
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached Settings instance so it is only parsed once."""

    return Settings()
