# integrations/sqs_client.py
import asyncio
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from uuid import uuid4

from sqs_transport.core.constants import (
    CORRELATION_ID_HEADER,
    MESSAGE_PATTERN_HEADER,
    SQS_BATCH_SEND_LIMIT,
)
from sqs_transport.core.exceptions import BatchSendError, ConfigurationError
from sqs_transport.core.logger import logger
from sqs_transport.core.observability import ObservabilityHelper
from sqs_transport.integrations.s3_large_message import S3LargeMessageHandler
from sqs_transport.schemas.sqs_models import Envelope, SpanOptions, SqsClientOptions
from sqs_transport.services.envelope_codec import SqsSerializer
from sqs_transport.utils.deduplication import content_based_deduplication_id

OutboundMessage = Union[Tuple[str, Any], Mapping[str, Any]]


def validate_client_options(options: SqsClientOptions) -> None:
    if not options.sqs:
        raise ConfigurationError("SQS client is required in SqsClientOptions")
    if not options.queue_url:
        raise ConfigurationError("queue_url is required in SqsClientOptions")
    large_message = options.s3_large_message
    if large_message and large_message.enabled and not large_message.s3_client:
        raise ConfigurationError("s3_client is required when s3_large_message is enabled")
    if large_message and large_message.enabled and not large_message.bucket:
        raise ConfigurationError("bucket is required when s3_large_message is enabled")


class ClientSqs:
    """
    Publishes envelopes to an SQS queue.

    `emit` is fire-and-forget. `send` is the request-style call: it carries
    a correlation id and acknowledges once SQS accepted the message (there
    is no reply queue, so acceptance is the only acknowledgement).
    """

    def __init__(self, options: SqsClientOptions):
        validate_client_options(options)

        self.options = options
        self.sqs = options.sqs
        self.queue_url = options.queue_url
        self.serializer = options.serializer or SqsSerializer(pattern_key=options.pattern_key)
        self.s3_handler: Optional[S3LargeMessageHandler] = None
        if options.s3_large_message and options.s3_large_message.enabled:
            self.s3_handler = S3LargeMessageHandler(options.s3_large_message)
        self.observability = ObservabilityHelper(options.observability)
        self.connected = False

    async def connect(self) -> None:
        """SQS is stateless; this only flips the connected flag."""
        self.connected = True
        logger.info("SQS Client connected", extra={"queue_url": self.queue_url})
        self.observability.log("SQS Client connected", "SqsClient")

    def close(self) -> None:
        self.connected = False
        logger.info("SQS Client closed", extra={"queue_url": self.queue_url})
        self.observability.log("SQS Client closed", "SqsClient")

    def unwrap(self) -> "ClientSqs":
        return self

    async def emit(self, pattern: str, data: Any) -> str:
        """Publish an event and return the SQS message id."""
        span_options = SpanOptions(
            name="sqs.dispatchEvent",
            attributes={"sqs.pattern": pattern, "sqs.queue_url": self.queue_url},
        )
        return await self.observability.create_span(span_options, lambda: self._send_message(pattern, data))

    async def send(
        self,
        pattern: str,
        data: Any,
        callback: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> Dict[str, Any]:
        """
        Request-style publish. Returns (and passes to `callback`)
        {"response": {"success": True, "messageId": ...}}. On failure the
        callback receives {"err": exc} and the error is re-raised.
        """
        correlation_id = str(uuid4())
        try:
            message_id = await self._send_message(pattern, data, correlation_id)
        except Exception as e:
            if callback is not None:
                callback({"err": e})
            raise

        ack = {"response": {"success": True, "messageId": message_id}}
        if callback is not None:
            callback(ack)
        return ack

    async def emit_batch(self, messages: Iterable[OutboundMessage]) -> List[Dict[str, Any]]:
        """
        Publish events with SendMessageBatch, 10 per call. Results follow
        the input order. A chunk with failed entries raises BatchSendError.
        """
        items = [self._normalize(message) for message in messages]
        results: List[Dict[str, Any]] = []
        for offset in range(0, len(items), SQS_BATCH_SEND_LIMIT):
            chunk = items[offset:offset + SQS_BATCH_SEND_LIMIT]
            results.extend(await self._send_chunk(chunk))
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize(message: OutboundMessage) -> Tuple[str, Any]:
        if isinstance(message, Mapping):
            return message["pattern"], message.get("data")
        pattern, data = message
        return pattern, data

    async def _build_params(
        self,
        pattern: str,
        data: Any,
        message_id: str,
        correlation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = self.serializer.serialize(Envelope(pattern=pattern, data=data, id=message_id))

        # Wrap large messages with S3 if needed
        if self.s3_handler is not None:
            body = await self.s3_handler.wrap_if_large(body)

        attributes = {
            MESSAGE_PATTERN_HEADER: {"DataType": "String", "StringValue": pattern},
        }
        if correlation_id:
            attributes[CORRELATION_ID_HEADER] = {"DataType": "String", "StringValue": correlation_id}

        params: Dict[str, Any] = {
            "MessageBody": body,
            "MessageAttributes": attributes,
        }

        fifo = self.options.fifo
        if fifo and fifo.enabled:
            if callable(fifo.message_group_id):
                params["MessageGroupId"] = fifo.message_group_id(pattern, data)
            else:
                params["MessageGroupId"] = fifo.message_group_id or pattern

            if not fifo.content_based_deduplication:
                if fifo.deduplication_id is not None:
                    params["MessageDeduplicationId"] = fifo.deduplication_id(pattern, data)
                else:
                    params["MessageDeduplicationId"] = content_based_deduplication_id(
                        {"pattern": pattern, "data": data}
                    )
        return params

    async def _send_message(self, pattern: str, data: Any, correlation_id: Optional[str] = None) -> str:
        start_time = time.monotonic()
        message_id = correlation_id or str(uuid4())

        try:
            params = await self._build_params(pattern, data, message_id, correlation_id)
            resp = await asyncio.to_thread(self.sqs.send_message, QueueUrl=self.queue_url, **params)
            result_message_id = (resp or {}).get("MessageId") or message_id

            duration = (time.monotonic() - start_time) * 1000
            self.observability.record_metric("sqs.message.sent", 1, {"pattern": pattern, "status": "success"})
            self.observability.record_metric("sqs.message.send_duration", duration, {"pattern": pattern})

            logger.debug(
                f"Message sent to SQS: {result_message_id}",
                extra={"pattern": pattern, "body_bytes": len(params["MessageBody"].encode("utf-8"))},
            )
            return result_message_id

        except Exception as e:
            logger.error(f"Error sending message to SQS: {e}", exc_info=True)
            self.observability.log_error("Error sending message to SQS", e, "SqsClient")

            duration = (time.monotonic() - start_time) * 1000
            self.observability.record_metric("sqs.message.sent", 1, {"pattern": pattern, "status": "error"})
            self.observability.record_metric("sqs.message.send_duration", duration, {
                "pattern": pattern,
                "status": "error",
            })
            raise

    async def _send_chunk(self, chunk: List[Tuple[str, Any]]) -> List[Dict[str, Any]]:
        entries = []
        for index, (pattern, data) in enumerate(chunk):
            params = await self._build_params(pattern, data, str(uuid4()))
            entries.append({"Id": str(index), **params})

        resp = await asyncio.to_thread(self.sqs.send_message_batch, QueueUrl=self.queue_url, Entries=entries)
        resp = resp or {}

        failed = resp.get("Failed") or []
        if failed:
            logger.error(
                f"SQS batch send reported {len(failed)} failed entries",
                extra={"failed_ids": [entry.get("Id") for entry in failed]},
            )
            raise BatchSendError(failed)

        successful = {entry.get("Id"): entry for entry in resp.get("Successful") or []}
        results = []
        for entry, (pattern, _) in zip(entries, chunk):
            sent = successful.get(entry["Id"], {})
            results.append({
                "pattern": pattern,
                "messageId": sent.get("MessageId"),
                "success": entry["Id"] in successful,
            })
            self.observability.record_metric("sqs.message.sent", 1, {"pattern": pattern, "status": "success"})
        return results
