# services/sqs_context.py
from typing import Any, Dict, Optional

from sqs_transport.services.envelope_codec import get_message_attribute


class SqsContext:
    """Per-message context handed to handlers alongside the data."""

    def __init__(self, message: Dict[str, Any], pattern: str):
        self._message = message
        self._pattern = pattern

    def get_message(self) -> Dict[str, Any]:
        """Returns the original SQS message"""
        return self._message

    def get_pattern(self) -> str:
        return self._pattern

    def get_message_id(self) -> Optional[str]:
        return self._message.get("MessageId")

    def get_receipt_handle(self) -> Optional[str]:
        """Returns the receipt handle for message deletion"""
        return self._message.get("ReceiptHandle")

    def get_message_attribute(self, name: str) -> Optional[str]:
        return get_message_attribute(self._message, name)

    def get_attribute(self, name: str) -> Optional[str]:
        """Returns a specific SQS attribute (e.g., ApproximateReceiveCount)"""
        return (self._message.get("Attributes") or {}).get(name)

    def get_approximate_receive_count(self) -> int:
        count = self.get_attribute("ApproximateReceiveCount")
        return int(count) if count else 1

    def __repr__(self) -> str:
        return f"SqsContext(message_id={self.get_message_id()!r}, pattern={self._pattern!r})"
