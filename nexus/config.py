from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_SIZE_UNITS = {"kb": 1024, "mb": 1024 * 1024, "gb": 1024 * 1024 * 1024}


def parse_size(value: str, default: int) -> int:
    """Parse sizes such as ``"50mb"`` or ``"1024"`` into bytes."""
    raw = value.strip().lower()
    multiplier = 1
    for suffix, unit in _SIZE_UNITS.items():
        if raw.endswith(suffix):
            raw = raw[: -len(suffix)].strip()
            multiplier = unit
            break
    if not raw.isdigit():
        return default
    return int(raw) * multiplier


def split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core
    environment: str = Field(default="development")
    app_name: str = Field(default="Nexus API")
    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3002)
    cors_origin: str = Field(default="http://localhost:5173")
    max_upload_size: str = Field(default="10mb")

    # Database
    database_url: str = Field(default="sqlite:///./var/nexus.db")

    # Demo login token
    jwt_secret: str = Field(default="dev-secret-change-me")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_min: int = Field(default=60)

    # Uploads
    max_file_size: str = Field(default="50mb")
    max_upload_files: int = Field(default=10)
    allowed_image_types: str = Field(default="image/jpeg,image/png,image/gif,image/webp")
    allowed_file_types: str = Field(
        default=(
            "application/pdf,application/msword,"
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document,text/plain"
        )
    )

    # Object storage
    object_storage_backend: str = Field(default="local")
    object_storage_root: str = Field(default="data/object_storage")
    object_storage_bucket: str = Field(default="nexus-app-uploads")
    object_storage_region: str = Field(default="us-east-1")
    object_storage_signing_secret: str = Field(default="dev-storage-secret")
    object_storage_public_url: str = Field(default="http://localhost:3002/api/upload/objects")
    object_storage_url_ttl_seconds: int = Field(default=3600)

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"

    @property
    def image_types(self) -> list[str]:
        return split_csv(self.allowed_image_types)

    @property
    def file_types(self) -> list[str]:
        return split_csv(self.allowed_file_types)

    @property
    def max_file_size_bytes(self) -> int:
        return parse_size(self.max_file_size, 50 * 1024 * 1024)

    @property
    def max_upload_size_bytes(self) -> int:
        return parse_size(self.max_upload_size, 10 * 1024 * 1024)


@lru_cache
def get_settings() -> Settings:
    return Settings()
