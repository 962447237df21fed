# services/handler_registry.py
"""
Pattern -> handler lookup.

Handlers are tagged as fire-and-forget events or request-style messages.
Either kind is invoked as `handler(data, context)` and may return a plain
value, an awaitable, or a stream (sync or async iterator) that the
transport drains before the message counts as processed.
"""

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqs_transport.core.logger import logger


class HandlerKind(str, Enum):
    EVENT = "event"
    REQUEST = "request"


@dataclass(frozen=True)
class MessageHandler:
    pattern: str
    fn: Callable[..., Any]
    kind: HandlerKind = HandlerKind.EVENT

    @property
    def is_event_handler(self) -> bool:
        return self.kind == HandlerKind.EVENT

    def __call__(self, data: Any, context: Any) -> Any:
        return self.fn(data, context)


class HandlerRegistry:
    def __init__(self):
        self._handlers: Dict[str, MessageHandler] = {}

    def register(
        self,
        pattern: str,
        fn: Callable[..., Any],
        kind: HandlerKind = HandlerKind.EVENT,
    ) -> MessageHandler:
        if pattern in self._handlers:
            logger.warning(f"Replacing handler for pattern {pattern!r}")
        handler = MessageHandler(pattern=pattern, fn=fn, kind=kind)
        self._handlers[pattern] = handler
        return handler

    def event_pattern(self, pattern: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a fire-and-forget handler."""
        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(pattern, fn, HandlerKind.EVENT)
            return fn
        return decorator

    def message_pattern(self, pattern: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a request-style handler."""
        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.register(pattern, fn, HandlerKind.REQUEST)
            return fn
        return decorator

    def lookup(self, pattern: str) -> Optional[MessageHandler]:
        return self._handlers.get(pattern)

    def patterns(self) -> List[str]:
        return list(self._handlers)

    def __contains__(self, pattern: str) -> bool:
        return pattern in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


async def resolve_handler_result(result: Any) -> Any:
    """
    Settle a handler result.

    Awaitables are awaited, async iterators and generators are drained to
    completion and yield their last value; anything else is returned as is.
    """
    if inspect.isawaitable(result):
        result = await result

    if inspect.isasyncgen(result) or hasattr(result, "__anext__"):
        last = None
        async for item in result:
            last = item
        return last

    if inspect.isgenerator(result):
        last = None
        for item in result:
            last = item
        return last

    return result
