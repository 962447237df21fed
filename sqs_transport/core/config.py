# core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

from sqs_transport.core.constants import (
    S3_DEFAULT_KEY_PREFIX,
    S3_DEFAULT_THRESHOLD,
    S3_POINTER_KEY,
    SHUTDOWN_DEFAULT_TIMEOUT_MS,
    SQS_DEFAULT_BATCH_SIZE,
    SQS_DEFAULT_VISIBILITY_TIMEOUT,
    SQS_DEFAULT_WAIT_TIME_SECONDS,
)


class Settings(BaseSettings):
    """
    Centralized transport configuration.
    Every value can be overridden from the environment or a .env file.
    """

    # ------------------------------------------------------------
    # Runtime / Logging
    # ------------------------------------------------------------
    DEBUG: bool = False
    LOG_LEVEL: Optional[str] = Field(
        default=None,
        description="Explicit log level name; falls back to DEBUG/INFO from the DEBUG flag",
    )

    # ------------------------------------------------------------
    # AWS Core
    # ------------------------------------------------------------
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SESSION_TOKEN: Optional[str] = None

    # ------------------------------------------------------------
    # Messaging (SQS)
    # ------------------------------------------------------------
    SQS_REGION: str = "us-east-1"
    SQS_QUEUE_URL: str = ""
    SQS_WAIT_TIME_SECONDS: int = Field(
        default=SQS_DEFAULT_WAIT_TIME_SECONDS,
        description="Long polling wait time per receive call (SQS max is 20)",
    )
    SQS_VISIBILITY_TIMEOUT: int = Field(
        default=SQS_DEFAULT_VISIBILITY_TIMEOUT,
        description="Seconds a received message stays hidden from other consumers",
    )
    SQS_BATCH_SIZE: int = Field(
        default=SQS_DEFAULT_BATCH_SIZE,
        description="Messages requested per receive call (SQS max is 10)",
    )
    SQS_SHOULD_DELETE_MESSAGES: bool = True
    SQS_SHUTDOWN_TIMEOUT_MS: int = SHUTDOWN_DEFAULT_TIMEOUT_MS
    SQS_PATTERN_KEY: str = "pattern"

    # FIFO queues
    SQS_FIFO_ENABLED: bool = False
    SQS_FIFO_CONTENT_BASED_DEDUPLICATION: bool = False

    # ------------------------------------------------------------
    # Large message offload (S3)
    # ------------------------------------------------------------
    S3_LARGE_MESSAGE_ENABLED: bool = False
    S3_LARGE_MESSAGE_BUCKET: str = ""
    S3_LARGE_MESSAGE_THRESHOLD: int = Field(
        default=S3_DEFAULT_THRESHOLD,
        description="Bodies above this many UTF-8 bytes are stored in S3 (SQS max is 256KB)",
    )
    S3_LARGE_MESSAGE_KEY_PREFIX: str = S3_DEFAULT_KEY_PREFIX
    S3_POINTER_FORMAT: str = "auto"
    S3_POINTER_KEY: str = S3_POINTER_KEY

    # ------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------
    OBSERVABILITY_TRACING: bool = False
    OBSERVABILITY_METRICS: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
