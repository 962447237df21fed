# services/envelope_codec.py
"""
Envelope codec: SQS message bodies <-> {pattern, data, id}.

Bodies are compact JSON objects:

    {"pattern": "ORDER_CREATED", "data": {...}, "id": "..."}

The pattern field name is configurable (e.g. "type") so that flat
third-party payloads such as {"type": "ORDER_CREATED", "orderId": 1}
can be consumed. With a custom pattern key the whole parsed object is
handed to the handler as `data`.
"""

import json
from typing import Any, Dict, Mapping, Optional

from sqs_transport.core.constants import (
    CORRELATION_ID_HEADER,
    DEFAULT_PATTERN_KEY,
    MESSAGE_PATTERN_HEADER,
    UNKNOWN_PATTERN,
)
from sqs_transport.core.exceptions import EmptyBodyError
from sqs_transport.schemas.sqs_models import Envelope


def dumps(value: Any) -> str:
    """Serialize to the compact JSON used on the wire."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def get_message_attribute(message: Mapping[str, Any], name: str) -> Optional[str]:
    """Return the StringValue of a message attribute, if any."""
    attributes = message.get("MessageAttributes") or {}
    attribute = attributes.get(name) or {}
    return attribute.get("StringValue")


class SqsSerializer:
    def __init__(self, pattern_key: str = DEFAULT_PATTERN_KEY):
        self.pattern_key = pattern_key

    def serialize(self, envelope: Envelope) -> str:
        packet: Dict[str, Any] = {
            self.pattern_key: envelope.pattern,
            "data": envelope.data,
        }
        if envelope.id is not None:
            packet["id"] = envelope.id
        return dumps(packet)


class SqsDeserializer:
    def __init__(self, pattern_key: str = DEFAULT_PATTERN_KEY):
        self.pattern_key = pattern_key

    def deserialize(self, message: Mapping[str, Any]) -> Envelope:
        body = message.get("Body")
        if not body:
            raise EmptyBodyError()

        header_pattern = get_message_attribute(message, MESSAGE_PATTERN_HEADER)

        try:
            parsed = json.loads(body)
        except ValueError:
            # Not JSON: hand the raw body to the handler
            return Envelope(pattern=header_pattern or UNKNOWN_PATTERN, data=body)

        if isinstance(parsed, dict) and parsed.get(self.pattern_key) is not None:
            pattern = parsed[self.pattern_key]
            if self.pattern_key == DEFAULT_PATTERN_KEY:
                data = parsed.get("data")
            else:
                data = parsed
            correlation_id = get_message_attribute(message, CORRELATION_ID_HEADER) or parsed.get("id")
            return Envelope(
                pattern=pattern if isinstance(pattern, str) else dumps(pattern),
                data=data,
                id=correlation_id if correlation_id is None else str(correlation_id),
            )

        return Envelope(pattern=header_pattern or UNKNOWN_PATTERN, data=parsed)
