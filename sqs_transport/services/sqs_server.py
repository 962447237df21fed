# services/sqs_server.py
"""
SQS server: consumes a queue and dispatches messages to registered handlers.

Supports:
- S3 large message handling (pointers are resolved before decoding)
- OpenTelemetry tracing / metrics and an optional external logger
- Graceful shutdown with in-flight message tracking
- FIFO and standard queues

Example:

    registry = HandlerRegistry()

    @registry.event_pattern("ORDER_CREATED")
    async def handle_order_created(data, ctx):
        ...

    server = ServerSqs(
        SqsServerOptions(
            sqs=get_sqs_client(),
            consumer_options=ConsumerOptions(queue_url="https://sqs..."),
        ),
        registry=registry,
    )
    await server.listen()
    ...
    await server.close()
"""

import asyncio
import json
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqs_transport.core.constants import (
    NO_EVENT_HANDLER,
    SHUTDOWN_POLL_INTERVAL_SECONDS,
)
from sqs_transport.core.exceptions import ConfigurationError
from sqs_transport.core.logger import logger
from sqs_transport.core.observability import ObservabilityHelper
from sqs_transport.integrations.s3_large_message import S3LargeMessageHandler
from sqs_transport.schemas.sqs_models import SpanOptions, SqsServerOptions
from sqs_transport.services.envelope_codec import SqsDeserializer
from sqs_transport.services.handler_registry import HandlerRegistry, resolve_handler_result
from sqs_transport.services.sqs_consumer import SqsConsumer
from sqs_transport.services.sqs_context import SqsContext


def validate_server_options(options: SqsServerOptions) -> None:
    """Fail fast on missing required options."""
    if not options.sqs:
        raise ConfigurationError("SQS client is required in SqsServerOptions")
    if not options.consumer_options or not options.consumer_options.queue_url:
        raise ConfigurationError("queue_url is required in consumer_options")
    large_message = options.s3_large_message
    if large_message and large_message.enabled and not large_message.s3_client:
        raise ConfigurationError("s3_client is required when s3_large_message is enabled")
    if large_message and large_message.enabled and not large_message.bucket:
        raise ConfigurationError("bucket is required when s3_large_message is enabled")


class ServerSqs:
    def __init__(self, options: SqsServerOptions, registry: Optional[HandlerRegistry] = None):
        validate_server_options(options)

        self.options = options
        self.registry = registry or HandlerRegistry()
        self.deserializer = options.deserializer or SqsDeserializer(pattern_key=options.pattern_key)
        self.s3_handler: Optional[S3LargeMessageHandler] = None
        if options.s3_large_message and options.s3_large_message.enabled:
            self.s3_handler = S3LargeMessageHandler(options.s3_large_message)
        self.observability = ObservabilityHelper(options.observability)

        self.consumer: Optional[SqsConsumer] = None
        self._active_messages = 0
        self._listeners: List[Tuple[str, Callable[..., Any]]] = []

    @property
    def queue_url(self) -> str:
        return self.options.consumer_options.queue_url

    @property
    def active_messages(self) -> int:
        return self._active_messages

    def on(self, event: str, callback: Callable[..., Any]) -> "ServerSqs":
        """Register an extra consumer lifecycle listener."""
        self._listeners.append((event, callback))
        if self.consumer is not None:
            self.consumer.on(event, callback)
        return self

    def unwrap(self) -> "ServerSqs":
        return self

    async def listen(self, callback: Optional[Callable[[], Any]] = None) -> None:
        """
        Start polling the queue.

        `callback` is invoked once polling has started.
        """
        self.consumer = SqsConsumer(self.options.sqs, self.options.consumer_options, self.handle_message)

        self.consumer.on("error", self._on_consumer_error)
        self.consumer.on("processing_error", self._on_processing_error)
        self.consumer.on("started", self._on_started)
        self.consumer.on("stopped", self._on_stopped)
        for event, listener in self._listeners:
            self.consumer.on(event, listener)

        self.consumer.start()
        if callback is not None:
            callback()

    async def close(self) -> None:
        """
        Graceful shutdown: stop polling, wait for in-flight messages
        (up to shutdown_timeout_ms), then release the consumer. Messages
        still in flight after the timeout keep running; unacknowledged
        ones become visible again after the visibility timeout.
        """
        if self.consumer is None:
            return

        consumer = self.consumer
        self.consumer = None
        consumer.stop()

        timeout = self.options.shutdown_timeout_ms / 1000
        start = time.monotonic()
        while self._active_messages > 0 and time.monotonic() - start < timeout:
            await asyncio.sleep(min(SHUTDOWN_POLL_INTERVAL_SECONDS, max(timeout - (time.monotonic() - start), 0)))

        if self._active_messages > 0:
            logger.warning(
                f"Shutdown timeout reached with {self._active_messages} messages still in flight",
                extra={"in_flight": self._active_messages, "queue_url": self.queue_url},
            )

        logger.info("SQS Consumer closed")
        self.observability.log("SQS Consumer closed", "SqsServer")

    async def handle_message(self, message: Dict[str, Any]) -> None:
        """
        Process a single received message. Raises on failure so the
        consumer leaves the message on the queue for redelivery.
        """
        self._active_messages += 1
        try:
            span_options = SpanOptions(
                name="sqs.handleMessage",
                attributes={
                    "sqs.message_id": message.get("MessageId") or "unknown",
                    "sqs.queue_url": self.queue_url,
                },
            )
            await self.observability.create_span(span_options, lambda: self._process(message))
        finally:
            self._active_messages -= 1

    async def _process(self, message: Dict[str, Any]) -> None:
        start_time = time.monotonic()
        try:
            body = message.get("Body") or ""
            if self.s3_handler is not None:
                body = await self.s3_handler.unwrap_if_pointer(body)

            unwrapped = dict(message, Body=body)
            envelope = self.deserializer.deserialize(unwrapped)
            pattern = envelope.pattern
            context = SqsContext(unwrapped, pattern)

            handler = self.registry.lookup(pattern)
            if handler is None:
                logger.warning(f"{NO_EVENT_HANDLER} Pattern: {json.dumps(pattern)}")
                return

            if handler.is_event_handler:
                await self.handle_event(pattern, {"pattern": pattern, "data": envelope.data}, context)
            else:
                # No reply channel over SQS; the result is only awaited
                await resolve_handler_result(handler(envelope.data, context))

            duration = (time.monotonic() - start_time) * 1000
            self.observability.record_metric("sqs.message.processed", 1, {
                "pattern": pattern,
                "status": "success",
            })
            self.observability.record_metric("sqs.message.duration", duration, {"pattern": pattern})

        except Exception as e:
            logger.error(f"Error processing message: {e}", exc_info=True)
            self.observability.log_error("Error processing message", e, "SqsServer")

            duration = (time.monotonic() - start_time) * 1000
            self.observability.record_metric("sqs.message.processed", 1, {"status": "error"})
            self.observability.record_metric("sqs.message.duration", duration, {"status": "error"})
            raise

    async def handle_event(self, pattern: str, packet: Dict[str, Any], context: SqsContext) -> Any:
        """
        Dispatch directly to the event handler for `pattern`, bypassing the
        poll loop. Awaitable and streaming results are settled before
        returning.
        """
        handler = self.registry.lookup(pattern)
        if handler is None:
            logger.error(f"{NO_EVENT_HANDLER} Event pattern: {json.dumps(pattern)}.")
            return None

        return await resolve_handler_result(handler(packet.get("data"), context))

    # ------------------------------------------------------------------
    # Consumer lifecycle listeners
    # ------------------------------------------------------------------

    def _on_consumer_error(self, err: Exception) -> None:
        logger.error("SQS Consumer error", exc_info=(type(err), err, err.__traceback__))
        self.observability.log_error("SQS Consumer error", err, "SqsServer")

    def _on_processing_error(self, err: Exception, message: Optional[Dict[str, Any]] = None) -> None:
        logger.error(
            "SQS Processing error",
            exc_info=(type(err), err, err.__traceback__),
            extra={"message_id": (message or {}).get("MessageId")},
        )
        self.observability.log_error("SQS Processing error", err, "SqsServer")

    def _on_started(self) -> None:
        logger.info("SQS Consumer started", extra={"queue_url": self.queue_url})
        self.observability.log("SQS Consumer started", "SqsServer")

    def _on_stopped(self) -> None:
        logger.info("SQS Consumer stopped", extra={"queue_url": self.queue_url})
        self.observability.log("SQS Consumer stopped", "SqsServer")
