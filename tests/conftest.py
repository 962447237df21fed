import io
import logging
import time
from unittest.mock import MagicMock

import pytest

from sqs_transport.schemas.sqs_models import (
    ConsumerOptions,
    S3LargeMessageOptions,
    SqsClientOptions,
    SqsServerOptions,
)
from sqs_transport.services.handler_registry import HandlerRegistry

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/test-queue"
BUCKET = "large-messages-bucket"


def s3_body(text: str) -> dict:
    """Shape of a boto3 get_object response."""
    return {"Body": io.BytesIO(text.encode("utf-8"))}


def empty_long_poll(**kwargs) -> dict:
    time.sleep(0.01)
    return {"Messages": []}


@pytest.fixture
def sqs_client():
    """boto3 SQS client double."""
    client = MagicMock()
    client.send_message.return_value = {"MessageId": "sqs-msg-1"}
    client.receive_message.side_effect = empty_long_poll
    client.delete_message.return_value = {}
    return client


@pytest.fixture
def s3_client():
    """boto3 S3 client double."""
    client = MagicMock()
    client.put_object.return_value = {}
    client.delete_object.return_value = {}
    return client


@pytest.fixture
def large_message_options(s3_client):
    return S3LargeMessageOptions(enabled=True, s3_client=s3_client, bucket=BUCKET)


@pytest.fixture
def registry():
    return HandlerRegistry()


@pytest.fixture
def server_options(sqs_client):
    return SqsServerOptions(
        sqs=sqs_client,
        consumer_options=ConsumerOptions(queue_url=QUEUE_URL, error_backoff_seconds=0.01),
    )


@pytest.fixture
def client_options(sqs_client):
    return SqsClientOptions(sqs=sqs_client, queue_url=QUEUE_URL)


@pytest.fixture
def transport_logs(caplog):
    """Capture records of the non-propagating transport logger."""
    transport_logger = logging.getLogger("sqs-transport")
    transport_logger.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger="sqs-transport")
    yield caplog
    transport_logger.removeHandler(caplog.handler)
