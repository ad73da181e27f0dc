"""Process-wide configuration resolved from the environment at startup."""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from sqs_dispatch.core.errors import ConfigurationError

DEFAULT_REGION = "ap-northeast-2"

# Largest body SQS accepts before the extended-client offload kicks in
DEFAULT_PAYLOAD_SIZE_THRESHOLD = 262144

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Immutable consumer/publisher settings."""

    model_config = {"frozen": True}

    queue_name: str = Field(..., min_length=1, description="Name of the SQS queue")
    payload_bucket: Optional[str] = Field(
        None, description="S3 bucket for offloaded message bodies (offload disabled when unset)"
    )
    region: str = Field(DEFAULT_REGION, description="AWS region")

    core_pool_size: int = Field(5, ge=1, description="Worker threads kept for steady load")
    max_pool_size: int = Field(10, ge=1, description="Maximum concurrent message tasks")
    queue_capacity: int = Field(0, ge=0, description="Tasks the pool may hold beyond max_pool_size")
    shutdown_grace_seconds: float = Field(
        300, ge=0, description="How long shutdown waits for in-flight tasks"
    )

    poll_interval_seconds: float = Field(1.0, ge=0, description="Sleep between poll iterations")
    receive_wait_seconds: int = Field(0, ge=0, le=20, description="SQS long-poll wait")
    receive_batch_ceiling: int = Field(10, ge=1, le=10, description="Per-call receive maximum")
    visibility_timeout_seconds: Optional[int] = Field(
        None, ge=0, le=43200, description="Visibility timeout override for received messages"
    )

    payload_size_threshold: int = Field(
        DEFAULT_PAYLOAD_SIZE_THRESHOLD, ge=0, description="Bodies above this size go to S3"
    )
    payload_always_offload: bool = Field(False, description="Send every body through S3")
    payload_cleanup: bool = Field(True, description="Delete S3 bodies once acknowledged")

    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(True, description="Render logs as JSON")
    log_file: Optional[str] = Field(None, description="File receiving a copy of every log record")

    host: str = Field("0.0.0.0", description="HTTP bind address")
    port: int = Field(8000, ge=1, le=65535, description="HTTP port")

    @model_validator(mode="after")
    def _check_pool_sizes(self) -> "Settings":
        if self.core_pool_size > self.max_pool_size:
            raise ValueError(
                f"core_pool_size ({self.core_pool_size}) exceeds max_pool_size ({self.max_pool_size})"
            )
        return self

    @property
    def payload_offload_enabled(self) -> bool:
        return bool(self.payload_bucket)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ).

        Raises:
            ConfigurationError: If a value is missing or invalid.
        """
        env = os.environ if environ is None else environ

        raw = {
            "queue_name": env.get("QUEUE_NAME"),
            "payload_bucket": env.get("PAYLOAD_BUCKET") or None,
            "region": env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION"),
            "core_pool_size": env.get("WORKER_CORE_POOL_SIZE"),
            "max_pool_size": env.get("WORKER_MAX_POOL_SIZE"),
            "queue_capacity": env.get("WORKER_QUEUE_CAPACITY"),
            "shutdown_grace_seconds": env.get("SHUTDOWN_GRACE_SECONDS"),
            "poll_interval_seconds": env.get("POLL_INTERVAL_SECONDS"),
            "receive_wait_seconds": env.get("RECEIVE_WAIT_SECONDS"),
            "receive_batch_ceiling": env.get("RECEIVE_BATCH_CEILING"),
            "visibility_timeout_seconds": env.get("VISIBILITY_TIMEOUT_SECONDS"),
            "payload_size_threshold": env.get("PAYLOAD_SIZE_THRESHOLD"),
            "payload_always_offload": _parse_bool(env.get("PAYLOAD_ALWAYS_OFFLOAD")),
            "payload_cleanup": _parse_bool(env.get("PAYLOAD_CLEANUP")),
            "log_level": env.get("LOG_LEVEL"),
            "log_json": _parse_bool(env.get("LOG_JSON")),
            "log_file": env.get("LOG_FILE") or None,
            "host": env.get("HOST"),
            "port": env.get("PORT"),
        }
        # Unset variables fall back to the field defaults
        values = {key: value for key, value in raw.items() if value is not None}

        if not values.get("queue_name"):
            raise ConfigurationError("QUEUE_NAME must be set", setting="queue_name")

        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0]
            setting = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ConfigurationError(
                f"Invalid configuration: {first.get('msg')}",
                setting=setting,
                details={"errors": e.errors(include_url=False)},
            ) from e


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None or value == "":
        return None
    return value.strip().lower() in _TRUE_VALUES


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the process-wide settings."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (used by tests)."""
    global _settings
    _settings = None
