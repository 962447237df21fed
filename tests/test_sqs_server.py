"""Tests for the SQS server: dispatch, consumer wiring and graceful shutdown."""

import asyncio
import json
import logging
import time
from unittest.mock import MagicMock

import pytest

from sqs_transport.core.exceptions import ConfigurationError
from sqs_transport.schemas.sqs_models import (
    ConsumerOptions,
    S3LargeMessageOptions,
    SqsServerOptions,
)
from sqs_transport.services.pointer_codec import PointerCodec
from sqs_transport.services.sqs_context import SqsContext
from sqs_transport.services.sqs_server import ServerSqs

from tests.conftest import BUCKET, QUEUE_URL, s3_body


def sqs_message(pattern, data=None, message_id="msg-1", **extra):
    message = {
        "MessageId": message_id,
        "ReceiptHandle": f"receipt-{message_id}",
        "Body": json.dumps({"pattern": pattern, "data": data}),
        "Attributes": {"ApproximateReceiveCount": "1"},
    }
    message.update(extra)
    return message


def receive_once(messages):
    """receive_message side effect: one batch, then empty long polls."""
    batches = [messages]

    def receive(**kwargs):
        if batches:
            return {"Messages": batches.pop()}
        time.sleep(0.01)
        return {"Messages": []}

    return receive


async def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class TestServerConfiguration:
    def test_requires_sqs_client(self):
        options = SqsServerOptions(consumer_options=ConsumerOptions(queue_url=QUEUE_URL))

        with pytest.raises(ConfigurationError, match="SQS client is required"):
            ServerSqs(options)

    def test_requires_queue_url(self, sqs_client):
        with pytest.raises(ConfigurationError, match="queue_url is required"):
            ServerSqs(SqsServerOptions(sqs=sqs_client, consumer_options=ConsumerOptions(queue_url="")))

    def test_large_message_requires_s3_client(self, sqs_client):
        options = SqsServerOptions(
            sqs=sqs_client,
            consumer_options=ConsumerOptions(queue_url=QUEUE_URL),
            s3_large_message=S3LargeMessageOptions(enabled=True, bucket=BUCKET),
        )

        with pytest.raises(ConfigurationError, match="s3_client is required"):
            ServerSqs(options)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ServerSqs(SqsServerOptions())

    def test_exposes_queue_url(self, server_options):
        server = ServerSqs(server_options)

        assert server.queue_url == QUEUE_URL
        assert server.unwrap() is server
        assert server.active_messages == 0


class TestHandleMessage:
    async def test_dispatches_event_handler(self, server_options, registry):
        received = []

        @registry.event_pattern("ORDER_CREATED")
        def handle(data, ctx):
            received.append((data, ctx))

        await ServerSqs(server_options, registry).handle_message(sqs_message("ORDER_CREATED", {"id": "123"}))

        data, ctx = received[0]
        assert data == {"id": "123"}
        assert isinstance(ctx, SqsContext)
        assert ctx.get_pattern() == "ORDER_CREATED"
        assert ctx.get_message_id() == "msg-1"

    async def test_awaits_async_request_handler(self, server_options, registry):
        done = asyncio.Event()

        @registry.message_pattern("GET_ORDER")
        async def handle(data, ctx):
            await asyncio.sleep(0)
            done.set()
            return {"order": data}

        await ServerSqs(server_options, registry).handle_message(sqs_message("GET_ORDER", 7))

        assert done.is_set()

    async def test_drains_streaming_handler(self, server_options, registry):
        seen = []

        @registry.event_pattern("STREAM")
        async def handle(data, ctx):
            for item in data:
                seen.append(item)
                yield item

        await ServerSqs(server_options, registry).handle_message(sqs_message("STREAM", [1, 2, 3]))

        assert seen == [1, 2, 3]

    async def test_missing_handler_logs_warning_and_returns(self, server_options, transport_logs):
        await ServerSqs(server_options).handle_message(sqs_message("UNKNOWN_PATTERN"))

        warnings = [r for r in transport_logs.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "There is no matching event handler" in warnings[0].getMessage()
        assert '"UNKNOWN_PATTERN"' in warnings[0].getMessage()

    async def test_handler_error_propagates(self, server_options, registry):
        error = RuntimeError("handler failed")

        @registry.event_pattern("FAIL")
        async def handle(data, ctx):
            raise error

        server = ServerSqs(server_options, registry)
        with pytest.raises(RuntimeError) as exc_info:
            await server.handle_message(sqs_message("FAIL"))

        assert exc_info.value is error
        assert server.active_messages == 0

    async def test_pattern_from_message_attribute(self, server_options, registry):
        received = []
        registry.register("RAW", lambda data, ctx: received.append(data))
        message = {
            "MessageId": "m",
            "Body": "plain text",
            "MessageAttributes": {"messagePattern": {"DataType": "String", "StringValue": "RAW"}},
        }

        await ServerSqs(server_options, registry).handle_message(message)

        assert received == ["plain text"]

    async def test_resolves_s3_pointer_before_decoding(self, sqs_client, s3_client, registry):
        received = []
        registry.register("BIG", lambda data, ctx: received.append((data, ctx.get_message()["Body"])))
        stored = json.dumps({"pattern": "BIG", "data": "x" * 1000})
        s3_client.get_object.return_value = s3_body(stored)
        pointer = PointerCodec().build_pointer(BUCKET, "sqs-messages/abc")
        server = ServerSqs(SqsServerOptions(
            sqs=sqs_client,
            consumer_options=ConsumerOptions(queue_url=QUEUE_URL),
            s3_large_message=S3LargeMessageOptions(enabled=True, s3_client=s3_client, bucket=BUCKET),
        ), registry)

        await server.handle_message({"MessageId": "m", "Body": pointer})

        s3_client.get_object.assert_called_once_with(Bucket=BUCKET, Key="sqs-messages/abc")
        assert received == [("x" * 1000, stored)]

    async def test_tracks_in_flight_messages(self, server_options, registry):
        release = asyncio.Event()
        server = ServerSqs(server_options, registry)

        @registry.event_pattern("SLOW")
        async def handle(data, ctx):
            await release.wait()

        tasks = [asyncio.ensure_future(server.handle_message(sqs_message("SLOW", message_id=str(i)))) for i in range(3)]
        await wait_for(lambda: server.active_messages == 3)

        release.set()
        await asyncio.gather(*tasks)
        assert server.active_messages == 0

    async def test_records_processing_metrics(self, sqs_client, registry):
        meter = MagicMock()
        registry.register("P", lambda data, ctx: None)
        server = ServerSqs(SqsServerOptions(
            sqs=sqs_client,
            consumer_options=ConsumerOptions(queue_url=QUEUE_URL),
            observability={"metrics": True, "meter": meter},
        ), registry)

        await server.handle_message(sqs_message("P"))

        assert meter.create_counter.call_args.args[0] == "sqs.message.processed"
        assert meter.create_histogram.call_args.args[0] == "sqs.message.duration"


class TestHandleEvent:
    async def test_returns_settled_result(self, server_options, registry):
        @registry.event_pattern("E")
        async def handle(data, ctx):
            return data * 2

        server = ServerSqs(server_options, registry)

        assert await server.handle_event("E", {"pattern": "E", "data": 21}, SqsContext({}, "E")) == 42

    async def test_missing_handler_logs_error(self, server_options, transport_logs):
        server = ServerSqs(server_options)

        assert await server.handle_event("NOPE", {"data": 1}, SqsContext({}, "NOPE")) is None
        errors = [r for r in transport_logs.records if r.levelno == logging.ERROR]
        assert '"NOPE"' in errors[0].getMessage()


class TestListenAndClose:
    async def test_listen_invokes_callback_and_polls(self, server_options, sqs_client):
        callback = MagicMock()
        server = ServerSqs(server_options)

        await server.listen(callback)
        callback.assert_called_once_with()
        await wait_for(lambda: sqs_client.receive_message.called)
        await server.close()

        kwargs = sqs_client.receive_message.call_args.kwargs
        assert kwargs["QueueUrl"] == QUEUE_URL
        assert kwargs["MaxNumberOfMessages"] == 10
        assert kwargs["WaitTimeSeconds"] == 20

    async def test_emits_lifecycle_events(self, server_options):
        events = []
        server = ServerSqs(server_options)
        server.on("started", lambda: events.append("started"))
        server.on("stopped", lambda: events.append("stopped"))

        await server.listen()
        await server.close()

        assert events == ["started", "stopped"]

    async def test_processed_message_is_deleted(self, server_options, sqs_client, registry):
        received = []
        registry.register("ORDER_CREATED", lambda data, ctx: received.append(data))
        sqs_client.receive_message.side_effect = receive_once([sqs_message("ORDER_CREATED", {"id": 1})])
        server = ServerSqs(server_options, registry)

        await server.listen()
        await wait_for(lambda: sqs_client.delete_message.called)
        await server.close()

        assert received == [{"id": 1}]
        sqs_client.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="receipt-msg-1")

    async def test_unhandled_pattern_is_still_deleted(self, server_options, sqs_client, transport_logs):
        sqs_client.receive_message.side_effect = receive_once([sqs_message("UNKNOWN_PATTERN")])
        server = ServerSqs(server_options)

        await server.listen()
        await wait_for(lambda: sqs_client.delete_message.called)
        await server.close()

        assert any("UNKNOWN_PATTERN" in r.getMessage() for r in transport_logs.records if r.levelno == logging.WARNING)

    async def test_failed_message_is_not_deleted(self, server_options, sqs_client, registry):
        processing_errors = []

        @registry.event_pattern("FAIL")
        def handle(data, ctx):
            raise ValueError("bad payload")

        sqs_client.receive_message.side_effect = receive_once([sqs_message("FAIL")])
        server = ServerSqs(server_options, registry)
        server.on("processing_error", lambda err, message: processing_errors.append((err, message)))

        await server.listen()
        await wait_for(lambda: processing_errors)
        await server.close()

        sqs_client.delete_message.assert_not_called()
        assert isinstance(processing_errors[0][0], ValueError)
        assert processing_errors[0][1]["MessageId"] == "msg-1"

    async def test_batch_is_processed_concurrently(self, server_options, sqs_client, registry):
        started = []
        release = asyncio.Event()

        @registry.event_pattern("WORK")
        async def handle(data, ctx):
            started.append(data)
            await release.wait()

        batch = [sqs_message("WORK", i, message_id=str(i)) for i in range(3)]
        sqs_client.receive_message.side_effect = receive_once(batch)
        server = ServerSqs(server_options, registry)

        await server.listen()
        await wait_for(lambda: len(started) == 3)
        release.set()
        await wait_for(lambda: sqs_client.delete_message.call_count == 3)
        await server.close()

    async def test_receive_error_keeps_polling(self, server_options, sqs_client):
        errors = []
        calls = []

        def receive(**kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise RuntimeError("network")
            time.sleep(0.01)
            return {"Messages": []}

        sqs_client.receive_message.side_effect = receive
        server = ServerSqs(server_options)
        server.on("error", errors.append)

        await server.listen()
        await wait_for(lambda: len(calls) >= 2)
        await server.close()

        assert str(errors[0]) == "network"

    async def test_close_without_listen_is_noop(self, server_options):
        await ServerSqs(server_options).close()

    async def test_close_is_idempotent(self, server_options, transport_logs):
        server = ServerSqs(server_options)

        await server.listen()
        await server.close()
        await server.close()

        closed = [r for r in transport_logs.records if r.getMessage() == "SQS Consumer closed"]
        assert len(closed) == 1


class TestGracefulShutdown:
    async def test_waits_for_in_flight_messages_up_to_timeout(self, sqs_client, registry, transport_logs):
        finished = []

        @registry.event_pattern("SLEEP")
        async def handle(data, ctx):
            await asyncio.sleep(data / 1000)
            finished.append(data)

        server = ServerSqs(SqsServerOptions(
            sqs=sqs_client,
            consumer_options=ConsumerOptions(queue_url=QUEUE_URL),
            shutdown_timeout_ms=500,
        ), registry)
        await server.listen()

        tasks = [
            asyncio.ensure_future(server.handle_message(sqs_message("SLEEP", ms, message_id=str(i))))
            for i, ms in enumerate([200, 200, 700])
        ]
        await wait_for(lambda: server.active_messages == 3)

        started = time.monotonic()
        await server.close()
        elapsed = time.monotonic() - started

        assert 0.45 <= elapsed < 0.7
        assert sorted(finished) == [200, 200]
        assert server.active_messages == 1
        warnings = [r.getMessage() for r in transport_logs.records if r.levelno == logging.WARNING]
        assert "Shutdown timeout reached with 1 messages still in flight" in warnings

        await asyncio.gather(*tasks)
        assert finished[-1] == 700

    async def test_fast_messages_close_without_warning(self, sqs_client, registry, transport_logs):
        @registry.event_pattern("SLEEP")
        async def handle(data, ctx):
            await asyncio.sleep(data / 1000)

        server = ServerSqs(SqsServerOptions(
            sqs=sqs_client,
            consumer_options=ConsumerOptions(queue_url=QUEUE_URL),
            shutdown_timeout_ms=500,
        ), registry)
        await server.listen()
        tasks = [
            asyncio.ensure_future(server.handle_message(sqs_message("SLEEP", 200, message_id=str(i))))
            for i in range(3)
        ]
        await wait_for(lambda: server.active_messages == 3)

        started = time.monotonic()
        await server.close()

        assert time.monotonic() - started < 0.45
        assert server.active_messages == 0
        assert not [r for r in transport_logs.records if r.levelno == logging.WARNING]
        await asyncio.gather(*tasks)

    async def test_returns_once_drained(self, server_options, registry):
        @registry.event_pattern("QUICK")
        async def handle(data, ctx):
            await asyncio.sleep(0.05)

        server = ServerSqs(server_options, registry)
        await server.listen()
        task = asyncio.ensure_future(server.handle_message(sqs_message("QUICK")))
        await wait_for(lambda: server.active_messages == 1)

        started = time.monotonic()
        await server.close()

        assert time.monotonic() - started < 1.0
        assert server.active_messages == 0
        await task
