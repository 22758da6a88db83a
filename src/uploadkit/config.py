"""Configuration loading and validation."""

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from uploadkit.errors import ConfigError

ENDPOINT_ENV_VAR = "UPLOADKIT_ENDPOINT"

ImageFormat = Literal["image/jpeg", "image/png", "image/webp"]


class ValidationConfig(BaseModel):
    """File type, size and count policy for a batch."""

    max_files: int = Field(default=10, ge=1)
    allowed_types: list[str] = []
    max_size: int | None = Field(default=None, ge=0)
    max_total_size: int | None = Field(default=None, ge=0)


class CompressionConfig(BaseModel):
    """Image resize and re-encode settings applied before upload."""

    enabled: bool = False
    max_width: int = Field(default=1920, ge=1)
    max_height: int = Field(default=1080, ge=1)
    quality: float = Field(default=0.8, gt=0, le=1)
    format: ImageFormat = "image/jpeg"


class PreviewConfig(BaseModel):
    """Preview generation settings."""

    video_preview_time: float = Field(default=1.0, ge=0)
    ffprobe_path: Path | None = None
    ffmpeg_path: Path | None = None

    @field_validator("ffprobe_path", "ffmpeg_path", mode="before")
    @classmethod
    def expand_path(cls, v: str | None) -> Path | None:
        """Expand environment variables and ~ in path."""
        if v is None:
            return None
        expanded = os.path.expandvars(os.path.expanduser(str(v)))
        return Path(expanded)


class UploadConfig(BaseModel):
    """Transport and batch settings."""

    concurrency: int = Field(default=3, ge=1)
    method: str = "POST"
    field_name: str = "file"
    headers: dict[str, str] = {}
    timeout: float | None = Field(default=None, gt=0)
    chunk_size: int = Field(default=64 * 1024, ge=1)
    compression: CompressionConfig = CompressionConfig()

    @field_validator("method")
    @classmethod
    def upper_method(cls, v: str) -> str:
        return v.upper()


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    validation: ValidationConfig = ValidationConfig()
    preview: PreviewConfig = PreviewConfig()
    upload: UploadConfig = UploadConfig()


def load_pipeline_config(config_path: Path) -> PipelineConfig:
    """Load pipeline configuration from a YAML file."""
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {config_path}")

    try:
        return PipelineConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {config_path}: {e}") from e

