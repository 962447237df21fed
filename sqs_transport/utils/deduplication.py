# utils/deduplication.py
"""Message group and deduplication ids for FIFO queues."""

import hashlib
import json
import time
from typing import Any


def content_based_deduplication_id(content: Any) -> str:
    """SHA-256 hex digest of the content (strings are hashed as is)."""
    if isinstance(content, str):
        text = content
    else:
        text = json.dumps(content, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def message_group_id(group_key: str) -> str:
    return group_key


def timed_deduplication_id(content: Any, window_ms: int = 300000) -> str:
    """
    Deduplication id that changes once per time window.
    Identical content inside one window yields the same id.
    """
    time_window = int(time.time() * 1000) // window_ms
    return f"{time_window}-{content_based_deduplication_id(content)}"
