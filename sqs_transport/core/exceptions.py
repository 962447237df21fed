# core/exceptions.py
from typing import Any, Dict, List


class SqsTransportError(Exception):
    """Base class for errors raised by the transport itself."""


class ConfigurationError(SqsTransportError, ValueError):
    """Raised at construction time when required options are missing."""


class EmptyBodyError(SqsTransportError):
    """Raised when a received message has no body to decode."""

    def __init__(self, message: str = "Message body is empty"):
        super().__init__(message)


class S3ReadError(SqsTransportError):
    """Raised when an offloaded payload downloads with an empty body."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Failed to read S3 object: {key}")


class BatchSendError(SqsTransportError):
    """Raised when SendMessageBatch reports failed entries."""

    def __init__(self, failed: List[Dict[str, Any]]):
        self.failed = failed
        ids = ", ".join(str(entry.get("Id")) for entry in failed)
        super().__init__(f"Failed to send {len(failed)} message(s) in batch: {ids}")
