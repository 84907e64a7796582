# filevault/core/config.py
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    data_dir: Path = Path("data")
    database_url: str | None = None  # defaults to a SQLite file in data_dir

    # Blob storage: "local" keeps blobs in blob_dir, "s3" in aws_s3_bucket_name
    blob_backend: Literal["local", "s3"] = "local"
    blob_dir: Path | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_region: str | None = None
    aws_s3_bucket_name: str | None = None

    secret_key: str = "change-me-in-production"
    session_max_age: int = 24 * 60 * 60  # seconds
    https_only: bool = False

    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_extensions: list[str] = ["jpg", "jpeg", "png", "gif", "pdf", "txt", "doc", "docx", "zip"]

    # Anything werkzeug.security.generate_password_hash accepts, e.g. "pbkdf2:sha256:600000"
    password_hash_method: str = "scrypt"

    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    # Tell pydantic-settings to load from .env at project root
    model_config = SettingsConfigDict(
        env_prefix="FILEVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any extra stuff in .env
    )

    @model_validator(mode="after")
    def set_storage_defaults(self) -> "Settings":
        if not self.database_url:
            self.database_url = f"sqlite:///{self.data_dir / 'filevault.db'}"
        if self.blob_dir is None:
            self.blob_dir = self.data_dir / "uploads"
        if self.blob_backend == "s3" and not self.aws_s3_bucket_name:
            raise ValueError("aws_s3_bucket_name is required when blob_backend is 's3'")
        self.allowed_extensions = [ext.lower().lstrip(".") for ext in self.allowed_extensions]
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
