"""Tests for the in-memory client/server doubles."""

from unittest.mock import MagicMock

import pytest

from sqs_transport.services.sqs_context import SqsContext
from sqs_transport.testing import MockClientSqs, MockServerSqs


class TestMockClientSqs:
    async def test_records_sent_and_emitted_separately(self):
        client = MockClientSqs()

        await client.send("GET_ORDER", {"id": 1})
        await client.emit("ORDER_CREATED", {"id": 2})
        await client.emit("ORDER_CREATED", {"id": 3})

        assert [m.pattern for m in client.get_sent_messages()] == ["GET_ORDER"]
        assert [m.data for m in client.get_events_by_pattern("ORDER_CREATED")] == [{"id": 2}, {"id": 3}]
        assert client.get_messages_by_pattern("ORDER_CREATED") == []

    async def test_send_acknowledges_through_callback(self):
        client = MockClientSqs()
        callback = MagicMock()

        ack = await client.send("GET_ORDER", None, callback)

        assert ack["response"]["success"] is True
        assert ack["response"]["messageId"].startswith("mock-")
        callback.assert_called_once_with(ack)

    async def test_emit_batch_records_every_event(self):
        client = MockClientSqs()

        results = await client.emit_batch([("A", 1), {"pattern": "B", "data": 2}])

        assert [r["pattern"] for r in results] == ["A", "B"]
        assert [e.pattern for e in client.get_emitted_events()] == ["A", "B"]

    async def test_expectations_and_clear(self):
        client = MockClientSqs()
        await client.emit("EVENT", 1)
        await client.send("REQUEST", 2)

        assert client.expect_event_emitted("EVENT").data == 1
        assert client.expect_message_sent("REQUEST").data == 2
        assert client.expect_message_sent("EVENT") is None

        client.clear()
        assert client.get_sent_messages() == []
        assert client.get_emitted_events() == []

    async def test_getters_return_copies(self):
        client = MockClientSqs()
        await client.emit("EVENT", 1)

        client.get_emitted_events().clear()

        assert len(client.get_emitted_events()) == 1

    async def test_connect_and_close(self):
        client = MockClientSqs()

        await client.connect()
        assert client.connected
        client.close()
        assert not client.connected


class TestMockServerSqs:
    async def test_simulate_message_invokes_handler(self, registry):
        @registry.message_pattern("GET_ORDER")
        async def handle(data, ctx):
            return {"order": data, "pattern": ctx.get_pattern(), "is_context": isinstance(ctx, SqsContext)}

        server = MockServerSqs(registry)

        result = await server.simulate_message("GET_ORDER", 5)

        assert result == {"order": 5, "pattern": "GET_ORDER", "is_context": True}

    async def test_simulate_message_without_handler_raises(self):
        with pytest.raises(LookupError, match="No handler found for pattern: MISSING"):
            await MockServerSqs().simulate_message("MISSING", None)

    async def test_on_message_hook(self, registry):
        seen = MagicMock()
        registry.register("E", lambda data, ctx: None)

        await MockServerSqs(registry, on_message=seen).simulate_message("E", {"a": 1})

        seen.assert_called_once_with("E", {"a": 1})

    async def test_patterns(self, registry):
        registry.register("A", lambda data, ctx: None)
        server = MockServerSqs(registry)

        assert server.has_handler("A")
        assert not server.has_handler("B")
        assert server.get_patterns() == ["A"]

    async def test_listen_and_close(self):
        server = MockServerSqs()
        callback = MagicMock()

        await server.listen(callback)
        assert server.listening
        callback.assert_called_once_with()

        await server.close()
        assert not server.listening
