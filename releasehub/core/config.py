from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Critical variables should be provided via environment in production.
    """

    app_name: str = "Release Hub"
    environment: str = "development"
    log_level: str = "INFO"

    # Identity (uploadedBy)
    jwt_secret_key: str = "change-me-in-prod"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expires_minutes: int = 60 * 24  # 24 hours
    require_auth: bool = False
    default_uploader: str = "admin"

    # Database
    sqlite_path: str = "data/releasehub.sqlite3"
    data_dir: str = "data"

    # Blob store
    blob_backend: str = "local"  # local | http
    blob_root: str = "data/blobs"
    blob_base_url: str | None = None  # http 后端的 PUT 目标前缀
    public_base_url: str = "http://127.0.0.1:8000/blobs"
    blob_http_timeout_seconds: int = 300

    # Release rules
    release_key_template: str = "releases/{version_name}"
    artifact_extension: str = ".apk"
    max_artifact_bytes: int = 100 * 1024 * 1024
    transfer_chunk_size: int = 1024 * 1024

    # WebSocket
    ws_heartbeat_timeout_seconds: int = 35
    ws_max_messages_per_minute: int = 240
    subscriber_queue_size: int = 16

    model_config = SettingsConfigDict(env_prefix="APP_", env_file=".env", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


# 全局设置实例
settings = get_settings()
