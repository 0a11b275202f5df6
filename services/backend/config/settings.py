"""Application settings and configuration."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application metadata
    app_name: str = Field(
        default="Mission Media Service",
        description="Application name"
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version"
    )
    environment: Literal["local", "dev", "stage", "prod"] = Field(
        default="local",
        description="Deployment environment"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # API Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Store Configuration
    storage_type: Literal["aws", "memory"] = Field(
        default="aws",
        description="Backend for the mission table and image bucket"
    )
    aws_region: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("aws_region", "aws_default_region"),
        description="AWS region (falls back to the SDK's default resolution)"
    )
    aws_endpoint_url: Optional[str] = Field(
        default=None,
        description="Override endpoint for local stacks such as LocalStack or MinIO"
    )
    mission_table: str = Field(
        default="missions",
        description="Key-value table holding mission records"
    )
    sat_images_bucket: str = Field(
        default="sat-images",
        description="Blob bucket holding mission imagery"
    )
    image_key_prefix: str = Field(
        default="images/",
        description="Prefix prepended to an image id to build its object key"
    )
    image_key_suffix: str = Field(
        default=".jpg",
        description="Suffix appended to an image id to build its object key"
    )

    # Image Delivery Configuration
    transform_output_format: Literal["jpeg", "source"] = Field(
        default="jpeg",
        description="Encoding of transformed images: always JPEG, or the source container"
    )
    jpeg_quality: int = Field(
        default=95,
        ge=1,
        le=100,
        description="JPEG quality used when re-encoding transformed images"
    )
    max_transform_dimension: int = Field(
        default=4096,
        ge=1,
        description="Largest width or height accepted for on-the-fly resizing. "
                    "Transformed images are held fully in memory, so this and "
                    "the source object size bound per-request memory."
    )
    stream_chunk_size: int = Field(
        default=64 * 1024,
        ge=1,
        description="Chunk size in bytes for pass-through streaming"
    )

    # Pagination Configuration
    default_page_size: int = Field(
        default=10,
        ge=1,
        description="Mission page size when no count is supplied"
    )
    max_page_size: int = Field(
        default=100,
        ge=1,
        description="Upper bound a requested count is clamped to"
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Path to log file (if None, logs to stdout only)"
    )

    @field_validator("image_key_prefix", "image_key_suffix", mode="before")
    @classmethod
    def strip_key_parts(cls, v: Optional[str]) -> str:
        """Treat an unset key part as empty."""
        if v is None:
            return ""
        return v.strip()

    @property
    def log_level_numeric(self) -> int:
        """Get numeric log level."""
        return getattr(logging, self.log_level)

    def configure_logging(self) -> None:
        """Configure logging based on settings."""
        import sys

        # Base logging configuration
        handlers: list[logging.Handler] = []

        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        handlers.append(console_handler)

        # File handler if specified
        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_file)
            handlers.append(file_handler)

        # Configure formatter
        if self.log_json:
            # JSON formatter for structured logging
            import json

            class JSONFormatter(logging.Formatter):
                def format(self, record: logging.LogRecord) -> str:
                    log_obj = {
                        "timestamp": self.formatTime(record),
                        "level": record.levelname,
                        "logger": record.name,
                        "message": record.getMessage(),
                        "module": record.module,
                        "function": record.funcName,
                        "line": record.lineno,
                    }
                    if record.exc_info:
                        log_obj["exception"] = self.formatException(record.exc_info)
                    return json.dumps(log_obj)

            formatter = JSONFormatter()
        else:
            formatter = logging.Formatter(self.log_format)

        # Apply formatter to all handlers
        for handler in handlers:
            handler.setFormatter(formatter)

        # Configure root logger
        logging.basicConfig(
            level=self.log_level_numeric,
            handlers=handlers,
            force=True,
        )

        # Set specific logger levels
        if self.debug:
            logging.getLogger("mission_media").setLevel(logging.DEBUG)
        else:
            # Reduce noise from third-party libraries
            logging.getLogger("botocore").setLevel(logging.WARNING)
            logging.getLogger("boto3").setLevel(logging.WARNING)
            logging.getLogger("urllib3").setLevel(logging.WARNING)
            logging.getLogger("PIL").setLevel(logging.WARNING)

    def image_key(self, image_id: str) -> str:
        """Build the blob key for an image id."""
        return f"{self.image_key_prefix}{image_id}{self.image_key_suffix}"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
