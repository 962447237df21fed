# services/sqs_consumer.py
"""
Long-polling SQS consumer.

Receives batches with ReceiveMessage, hands every message of a batch to
`handle_message` concurrently, and deletes the messages whose handling
completed without raising. A message whose handling raised is left on
the queue so that SQS redelivers it after the visibility timeout.

Lifecycle signals (register with `on`):
    started, stopped, error(exc), processing_error(exc, message),
    message_received(message), message_processed(message)
"""

import asyncio
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqs_transport.core.logger import logger
from sqs_transport.schemas.sqs_models import ConsumerOptions


class SqsConsumer:
    def __init__(
        self,
        sqs: Any,
        options: ConsumerOptions,
        handle_message: Callable[[Dict[str, Any]], Awaitable[None]],
    ):
        self.sqs = sqs
        self.options = options
        self.queue_url = options.queue_url
        self.handle_message = handle_message

        self._listeners: Dict[str, List[Callable[..., Any]]] = defaultdict(list)
        self._running = False
        self._waiting = False
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def on(self, event: str, callback: Callable[..., Any]) -> "SqsConsumer":
        self._listeners[event].append(callback)
        return self

    def _emit(self, event: str, *args: Any) -> None:
        for callback in self._listeners.get(event, []):
            try:
                callback(*args)
            except Exception:
                logger.error(f"SQS consumer listener for {event!r} failed", exc_info=True)

    def start(self) -> None:
        """Begin polling. Must be called from a running event loop."""
        if self._running:
            return
        self._running = True
        self._poll_task = asyncio.get_running_loop().create_task(self._poll())
        self._emit("started")

    def stop(self) -> None:
        """
        Stop polling. A receive call or error backoff in progress is
        cancelled; messages already being handled run to completion.
        """
        if not self._running:
            return
        self._running = False
        if self._poll_task is not None and self._waiting:
            self._poll_task.cancel()
        self._emit("stopped")

    async def _poll(self) -> None:
        while self._running:
            try:
                messages = await self._receive()
            except asyncio.CancelledError:
                return
            except Exception as exc:
                self._emit("error", exc)
                if not await self._backoff():
                    return
                continue

            if not self._running:
                # not handled, SQS makes them visible again after the visibility timeout
                return

            if messages:
                await asyncio.gather(*(self._process_message(message) for message in messages))

    async def _receive(self) -> List[Dict[str, Any]]:
        self._waiting = True
        try:
            response = await asyncio.to_thread(
                self.sqs.receive_message,
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=self.options.batch_size,
                WaitTimeSeconds=self.options.wait_time_seconds,
                VisibilityTimeout=self.options.visibility_timeout,
                AttributeNames=self.options.attribute_names,
                MessageAttributeNames=self.options.message_attribute_names,
            )
        finally:
            self._waiting = False
        return (response or {}).get("Messages") or []

    async def _backoff(self) -> bool:
        self._waiting = True
        try:
            await asyncio.sleep(self.options.error_backoff_seconds)
        except asyncio.CancelledError:
            return False
        finally:
            self._waiting = False
        return True

    async def _process_message(self, message: Dict[str, Any]) -> None:
        self._emit("message_received", message)
        try:
            await self.handle_message(message)
        except Exception as exc:
            self._emit("processing_error", exc, message)
            return

        if self.options.should_delete_messages:
            try:
                await asyncio.to_thread(
                    self.sqs.delete_message,
                    QueueUrl=self.queue_url,
                    ReceiptHandle=message.get("ReceiptHandle"),
                )
            except Exception as exc:
                self._emit("error", exc)
                return

        self._emit("message_processed", message)
