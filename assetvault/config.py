import os
import re
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early so env vars are available for YAML interpolation
load_dotenv(Path.cwd() / ".env")

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")

CONFIG_FILENAME = "assetvault.yaml"


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def get_config_path() -> Path:
    """Return the YAML config path, overridable with ASSETVAULT_CONFIG."""
    override = os.environ.get("ASSETVAULT_CONFIG")
    if override:
        return Path(override)
    return Path.cwd() / CONFIG_FILENAME


def load_app_config(config_path: Path | None = None) -> dict:
    """Load and parse assetvault.yaml with environment variable interpolation."""
    config_path = config_path or get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(f"{CONFIG_FILENAME} not found at {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


class S3Config(BaseModel):
    """Remote object store credentials.

    Remote mode is only selected when the access key, secret and bucket are
    all present.
    """

    access_key_id: str | None = None
    secret_access_key: str | None = None
    bucket: str | None = None
    region: str = "us-east-1"
    endpoint_url: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key and self.bucket)


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    s3: S3Config = S3Config()
    cdn_url: str | None = None
    local_root: str = "./uploads"
    public_base_url: str = "http://localhost:3000"
    presign_expiry: int = 3600


class VariantPreset(BaseModel):
    """A named resize target: fit inside width x height, never upscale."""

    width: int
    height: int
    quality: int = 85


DEFAULT_VARIANT_PRESETS: dict[str, VariantPreset] = {
    "THUMBNAIL": VariantPreset(width=200, height=200, quality=80),
    "PREVIEW": VariantPreset(width=800, height=800, quality=85),
    "WEB_OPTIMIZED": VariantPreset(width=1920, height=1920, quality=90),
    "MOBILE": VariantPreset(width=640, height=640, quality=80),
}


class RetryConfig(BaseModel):
    """Retry budget per job type (retries after the first attempt)."""

    metadata: int = 2
    thumbnail: int = 2
    variant_set: int = 0
    preview_clip: int = 0

    def for_job(self, job_type: str) -> int:
        return getattr(self, job_type.lower(), 0)


class ProcessingConfig(BaseModel):
    """Background processing configuration."""

    workers: int = 4
    retries: RetryConfig = RetryConfig()
    retry_backoff: float = 1.0
    job_timeout: float = 120.0
    variant_presets: dict[str, VariantPreset] = DEFAULT_VARIANT_PRESETS
    video_preview: bool = True
    preview_duration: float = 5.0
    preview_start: float = 0.0
    max_upload_size: int = 50 * 1024 * 1024


class LogfireConfig(BaseModel):
    """Pydantic Logfire tracing configuration."""

    enabled: bool = False
    service_name: str = "assetvault"
    environment: str | None = None
    sample_rate: float = 1.0
    console: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ASSETVAULT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    storage: StorageConfig = StorageConfig()
    processing: ProcessingConfig = ProcessingConfig()
    logfire: LogfireConfig = LogfireConfig()


def _storage_from_aws_env() -> dict:
    """Pick up the conventional AWS_* variables when no explicit config is given."""
    s3 = {
        "access_key_id": os.environ.get("AWS_ACCESS_KEY_ID"),
        "secret_access_key": os.environ.get("AWS_SECRET_ACCESS_KEY"),
        "bucket": os.environ.get("AWS_S3_BUCKET"),
    }
    if os.environ.get("AWS_REGION"):
        s3["region"] = os.environ["AWS_REGION"]
    return {k: v for k, v in s3.items() if v is not None}


def _apply_aws_env(storage: StorageConfig) -> StorageConfig:
    """Fill S3 settings the config left unset from the AWS_* variables."""
    if storage.s3.is_configured:
        return storage
    aws = _storage_from_aws_env()
    missing = {
        name: value
        for name, value in aws.items()
        if not getattr(storage.s3, name) or name not in storage.s3.model_fields_set
    }
    if not missing:
        return storage
    return storage.model_copy(update={"s3": storage.s3.model_copy(update=missing)})


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment, .env and assetvault.yaml."""
    base_settings = Settings()

    updates = {}

    try:
        app_config = load_app_config()
    except FileNotFoundError:
        app_config = {}

    storage = base_settings.storage
    if "storage" in app_config:
        storage = StorageConfig(**app_config["storage"])

    # AWS_* variables apply on top of whichever storage section won.
    storage = _apply_aws_env(storage)
    if storage is not base_settings.storage:
        updates["storage"] = storage

    if "processing" in app_config:
        updates["processing"] = ProcessingConfig(**app_config["processing"])

    if "logfire" in app_config:
        updates["logfire"] = LogfireConfig(**app_config["logfire"])

    if updates:
        return base_settings.model_copy(update=updates)

    return base_settings
