# schemas/sqs_models.py
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from sqs_transport.core.config import settings
from sqs_transport.core.constants import (
    DEFAULT_PATTERN_KEY,
    S3_DEFAULT_KEY_PREFIX,
    S3_DEFAULT_THRESHOLD,
    S3_POINTER_KEY,
    SHUTDOWN_DEFAULT_TIMEOUT_MS,
    SQS_DEFAULT_BATCH_SIZE,
    SQS_DEFAULT_VISIBILITY_TIMEOUT,
    SQS_DEFAULT_WAIT_TIME_SECONDS,
)


class PointerFormat(str, Enum):
    """
    S3 pointer wire formats
    - EXTENDED: AWS extended client format [{"@class": "...", "s3BucketName", "s3Key"}]
    - SIMPLE: {"__s3pointer": {"bucket", "key"}}
    - AUTO: read either format, write SIMPLE
    """
    SIMPLE = "simple"
    EXTENDED = "extended"
    AUTO = "auto"


class Envelope(BaseModel):
    """Logical unit exchanged over the queue."""
    model_config = ConfigDict(frozen=True)

    pattern: str
    data: Any = None
    id: Optional[str] = None


class S3Location(BaseModel):
    """Normalized offload pointer target."""
    model_config = ConfigDict(frozen=True)

    bucket: str
    key: str


# ============================================================================
# OPTIONS
# ============================================================================

class S3LargeMessageOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    enabled: bool = False
    s3_client: Any = None
    bucket: Optional[str] = None
    threshold: int = Field(S3_DEFAULT_THRESHOLD, ge=0, description="Offload bodies larger than this many UTF-8 bytes")
    key_prefix: str = S3_DEFAULT_KEY_PREFIX
    pointer_format: PointerFormat = PointerFormat.AUTO
    pointer_key: str = Field(S3_POINTER_KEY, description="Field holding the pointer in SIMPLE format")


class LoggingOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    logger: Any
    level: Literal["debug", "info", "warn", "error"] = "info"


class ObservabilityOptions(BaseModel):
    """
    Tracing / metrics / logging switches.

    `tracer` and `meter` let callers inject OpenTelemetry instruments.
    When they are not injected and `use_global_providers` is True the
    OpenTelemetry global providers are used; with `use_global_providers`
    False and nothing injected the backend is treated as absent.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    tracing: bool = False
    metrics: bool = False
    logging: Optional[LoggingOptions] = None
    tracer: Any = None
    meter: Any = None
    use_global_providers: bool = True


class ConsumerOptions(BaseModel):
    queue_url: Optional[str] = None
    wait_time_seconds: int = SQS_DEFAULT_WAIT_TIME_SECONDS
    visibility_timeout: int = SQS_DEFAULT_VISIBILITY_TIMEOUT
    batch_size: int = Field(SQS_DEFAULT_BATCH_SIZE, ge=1, le=10)
    attribute_names: List[str] = Field(default_factory=lambda: ["All"])
    message_attribute_names: List[str] = Field(default_factory=lambda: ["All"])
    should_delete_messages: bool = True
    error_backoff_seconds: float = Field(10.0, description="Pause after a failed receive call")


class FifoOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    enabled: bool = False
    content_based_deduplication: bool = False
    message_group_id: Union[str, Callable[[str, Any], str], None] = None
    deduplication_id: Optional[Callable[[str, Any], str]] = None


def _large_message_from_settings(s3_client: Any) -> Optional[S3LargeMessageOptions]:
    if not settings.S3_LARGE_MESSAGE_ENABLED:
        return None
    return S3LargeMessageOptions(
        enabled=True,
        s3_client=s3_client,
        bucket=settings.S3_LARGE_MESSAGE_BUCKET or None,
        threshold=settings.S3_LARGE_MESSAGE_THRESHOLD,
        key_prefix=settings.S3_LARGE_MESSAGE_KEY_PREFIX,
        pointer_format=PointerFormat(settings.S3_POINTER_FORMAT),
        pointer_key=settings.S3_POINTER_KEY,
    )


def _observability_from_settings() -> ObservabilityOptions:
    return ObservabilityOptions(
        tracing=settings.OBSERVABILITY_TRACING,
        metrics=settings.OBSERVABILITY_METRICS,
    )


class SqsServerOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    sqs: Any = None
    consumer_options: ConsumerOptions = Field(default_factory=ConsumerOptions)
    s3_large_message: Optional[S3LargeMessageOptions] = None
    observability: Optional[ObservabilityOptions] = None
    serializer: Any = None
    deserializer: Any = None
    pattern_key: str = DEFAULT_PATTERN_KEY
    shutdown_timeout_ms: int = Field(SHUTDOWN_DEFAULT_TIMEOUT_MS, ge=0)

    @classmethod
    def from_settings(cls, sqs: Any, s3_client: Any = None, **overrides: Any) -> "SqsServerOptions":
        """Build server options from environment settings."""
        values: Dict[str, Any] = {
            "sqs": sqs,
            "consumer_options": ConsumerOptions(
                queue_url=settings.SQS_QUEUE_URL or None,
                wait_time_seconds=settings.SQS_WAIT_TIME_SECONDS,
                visibility_timeout=settings.SQS_VISIBILITY_TIMEOUT,
                batch_size=settings.SQS_BATCH_SIZE,
                should_delete_messages=settings.SQS_SHOULD_DELETE_MESSAGES,
            ),
            "s3_large_message": _large_message_from_settings(s3_client),
            "observability": _observability_from_settings(),
            "pattern_key": settings.SQS_PATTERN_KEY,
            "shutdown_timeout_ms": settings.SQS_SHUTDOWN_TIMEOUT_MS,
        }
        values.update(overrides)
        return cls(**values)


class SqsClientOptions(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    sqs: Any = None
    queue_url: Optional[str] = None
    s3_large_message: Optional[S3LargeMessageOptions] = None
    observability: Optional[ObservabilityOptions] = None
    serializer: Any = None
    fifo: Optional[FifoOptions] = None
    pattern_key: str = DEFAULT_PATTERN_KEY

    @classmethod
    def from_settings(cls, sqs: Any, s3_client: Any = None, **overrides: Any) -> "SqsClientOptions":
        """Build client options from environment settings."""
        values: Dict[str, Any] = {
            "sqs": sqs,
            "queue_url": settings.SQS_QUEUE_URL or None,
            "s3_large_message": _large_message_from_settings(s3_client),
            "observability": _observability_from_settings(),
            "pattern_key": settings.SQS_PATTERN_KEY,
        }
        if settings.SQS_FIFO_ENABLED:
            values["fifo"] = FifoOptions(
                enabled=True,
                content_based_deduplication=settings.SQS_FIFO_CONTENT_BASED_DEDUPLICATION,
            )
        values.update(overrides)
        return cls(**values)


class SpanOptions(BaseModel):
    name: str
    attributes: Dict[str, Union[str, int, float, bool]] = Field(default_factory=dict)


class SentMessage(BaseModel):
    """A message recorded by the in-memory test client."""
    pattern: str
    data: Any = None
    timestamp: float
