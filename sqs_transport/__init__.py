"""SQS transport: envelope codec, S3 large message offload, consumer server and producer client."""

from sqs_transport.core.constants import (
    CORRELATION_ID_HEADER,
    MESSAGE_PATTERN_HEADER,
    NO_EVENT_HANDLER,
    REPLY_TO_HEADER,
    S3_DEFAULT_KEY_PREFIX,
    S3_DEFAULT_THRESHOLD,
    S3_POINTER_CLASS,
    S3_POINTER_KEY,
    SQS_DEFAULT_BATCH_SIZE,
    SQS_DEFAULT_VISIBILITY_TIMEOUT,
    SQS_DEFAULT_WAIT_TIME_SECONDS,
    SQS_TRANSPORTER,
)
from sqs_transport.core.exceptions import (
    BatchSendError,
    ConfigurationError,
    EmptyBodyError,
    S3ReadError,
    SqsTransportError,
)
from sqs_transport.core.lifespan import lifespan
from sqs_transport.core.observability import ObservabilityHelper
from sqs_transport.integrations.s3_large_message import S3LargeMessageHandler
from sqs_transport.integrations.sqs_client import ClientSqs
from sqs_transport.schemas.sqs_models import (
    ConsumerOptions,
    Envelope,
    FifoOptions,
    LoggingOptions,
    ObservabilityOptions,
    PointerFormat,
    S3LargeMessageOptions,
    S3Location,
    SpanOptions,
    SqsClientOptions,
    SqsServerOptions,
)
from sqs_transport.services.envelope_codec import SqsDeserializer, SqsSerializer
from sqs_transport.services.handler_registry import HandlerKind, HandlerRegistry, MessageHandler
from sqs_transport.services.pointer_codec import PointerCodec
from sqs_transport.services.sqs_context import SqsContext
from sqs_transport.services.sqs_server import ServerSqs
from sqs_transport.utils.deduplication import (
    content_based_deduplication_id,
    message_group_id,
    timed_deduplication_id,
)

__version__ = "0.4.0"
