"""
Configuration management for the overflow encoder
"""

import os
from typing import Literal, Optional

import pydantic
from dotenv import load_dotenv

from .errors import ConfigurationError
from .storage import parse_s3_uri


def _truthy(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class RegionSettings(pydantic.BaseModel):
    """Identity, endpoints and storage of one region"""

    name: str
    aws_region: str
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    role_arn: Optional[str] = None
    external_id: Optional[str] = None
    job_queue_url: str
    storage_url: str  # s3://bucket[/prefix]
    endpoint_url: Optional[str] = None
    assets_table: str = "overflow_encode_assets"
    jobs_table: str = "overflow_encode_jobs"
    processors_table: str = "overflow_encode_processors"

    @property
    def bucket(self) -> str:
        return parse_s3_uri(self.storage_url)[0]

    @property
    def storage_prefix(self) -> str:
        return parse_s3_uri(self.storage_url)[1]

    @classmethod
    def from_env(cls, name: str) -> "RegionSettings":
        """Read `<NAME>_*` variables, e.g. PRIMARY_AWS_REGION"""
        prefix = name.upper() + "_"

        def env(key: str, default: Optional[str] = None) -> Optional[str]:
            value = os.getenv(prefix + key)
            return value if value not in (None, "") else default

        required = ("AWS_REGION", "JOB_QUEUE_URL", "STORAGE_URL")
        missing = [prefix + key for key in required if env(key) is None]
        if missing:
            raise ConfigurationError(f"Missing {name} region settings: {', '.join(missing)}")

        access_key_id = env("AWS_ACCESS_KEY_ID")
        secret_access_key = env("AWS_SECRET_ACCESS_KEY")
        if bool(access_key_id) != bool(secret_access_key):
            raise ConfigurationError(
                f"{prefix}AWS_ACCESS_KEY_ID and {prefix}AWS_SECRET_ACCESS_KEY must be set together"
            )

        settings = cls(
            name=name,
            aws_region=env("AWS_REGION"),
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            role_arn=env("ROLE_ARN"),
            external_id=env("EXTERNAL_ID"),
            job_queue_url=env("JOB_QUEUE_URL"),
            storage_url=env("STORAGE_URL"),
            endpoint_url=env("ENDPOINT_URL"),
            assets_table=env("ASSETS_TABLE", "overflow_encode_assets"),
            jobs_table=env("JOBS_TABLE", "overflow_encode_jobs"),
            processors_table=env("PROCESSORS_TABLE", "overflow_encode_processors"),
        )
        # Fail on malformed storage URLs before any work begins
        parse_s3_uri(settings.storage_url)
        return settings


class Config(pydantic.BaseModel):
    """Application configuration"""

    primary: RegionSettings
    backup: RegionSettings

    # Routing
    queue_threshold: int = pydantic.Field(default=3, ge=0)

    # Encoding
    encode_profile: str = "Content Adaptive Multiple Bitrate MP4"
    encoder_name: str = "Media Encoder Standard"
    job_poll_seconds: float = pydantic.Field(default=5.0, gt=0)
    job_timeout_seconds: float = pydantic.Field(default=4 * 3600, gt=0)

    # Replication
    manifest_extension: str = ".ism"
    primary_file_fallback: Literal["none", "first", "error"] = "none"
    copy_max_workers: int = pydantic.Field(default=8, ge=1, le=64)
    copy_skip_existing: bool = True

    # Failure policies
    abort_copy_back_on_job_failure: bool = True
    fail_on_partial_copy: bool = True
    delete_backup_artifacts: bool = True
    region_retry_attempts: int = pydantic.Field(default=3, ge=1, le=10)
    region_retry_max_wait: float = pydantic.Field(default=30.0, ge=0)

    # Logging
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables (and a .env file when present)"""
        load_dotenv()

        try:
            return cls(
                primary=RegionSettings.from_env("primary"),
                backup=RegionSettings.from_env("backup"),

                queue_threshold=int(os.getenv("QUEUE_THRESHOLD", "3")),

                encode_profile=os.getenv("ENCODE_PROFILE", "Content Adaptive Multiple Bitrate MP4"),
                encoder_name=os.getenv("ENCODER_NAME", "Media Encoder Standard"),
                job_poll_seconds=float(os.getenv("JOB_POLL_SECONDS", "5")),
                job_timeout_seconds=float(os.getenv("JOB_TIMEOUT_SECONDS", str(4 * 3600))),

                manifest_extension=os.getenv("MANIFEST_EXTENSION", ".ism"),
                primary_file_fallback=os.getenv("PRIMARY_FILE_FALLBACK", "none").lower(),
                copy_max_workers=int(os.getenv("COPY_MAX_WORKERS", "8")),
                copy_skip_existing=_truthy(os.getenv("COPY_SKIP_EXISTING"), True),

                abort_copy_back_on_job_failure=_truthy(os.getenv("ABORT_COPY_BACK_ON_JOB_FAILURE"), True),
                fail_on_partial_copy=_truthy(os.getenv("FAIL_ON_PARTIAL_COPY"), True),
                delete_backup_artifacts=_truthy(os.getenv("DELETE_BACKUP_ARTIFACTS"), True),
                region_retry_attempts=int(os.getenv("REGION_RETRY_ATTEMPTS", "3")),
                region_retry_max_wait=float(os.getenv("REGION_RETRY_MAX_WAIT", "30")),

                log_level=os.getenv("LOG_LEVEL", "INFO"),
                log_format=os.getenv("LOG_FORMAT", "text").lower(),
            )
        except (pydantic.ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
