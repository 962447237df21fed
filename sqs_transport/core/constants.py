# core/constants.py

SQS_TRANSPORTER = "SQS_TRANSPORTER"

SQS_DEFAULT_WAIT_TIME_SECONDS = 20
SQS_DEFAULT_VISIBILITY_TIMEOUT = 30
SQS_DEFAULT_BATCH_SIZE = 10
SQS_BATCH_SEND_LIMIT = 10  # SendMessageBatch accepts at most 10 entries

SHUTDOWN_DEFAULT_TIMEOUT_MS = 30000
SHUTDOWN_POLL_INTERVAL_SECONDS = 0.1

S3_DEFAULT_THRESHOLD = 240 * 1024  # 240KB (SQS max is 256KB)
S3_DEFAULT_KEY_PREFIX = "sqs-messages/"
S3_POINTER_CLASS = "software.amazon.payloadoffloading.PayloadS3Pointer"
S3_POINTER_KEY = "__s3pointer"

CORRELATION_ID_HEADER = "correlationId"
REPLY_TO_HEADER = "replyTo"
MESSAGE_PATTERN_HEADER = "messagePattern"

DEFAULT_PATTERN_KEY = "pattern"
UNKNOWN_PATTERN = "unknown"

NO_EVENT_HANDLER = "There is no matching event handler defined in the remote service."

INSTRUMENTATION_NAME = "sqs-transport"
INSTRUMENTATION_VERSION = "0.4.0"
