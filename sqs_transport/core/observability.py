# core/observability.py
"""
Tracing, metrics and logging facade for the transport.

Instrumentation is purely additive: with tracing disabled (or no tracer
available) `create_span` simply runs the function, and metric recording
never raises.
"""

import inspect
import json
import threading
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from opentelemetry import metrics, trace
from opentelemetry.trace import Status, StatusCode

from sqs_transport.core.constants import INSTRUMENTATION_NAME, INSTRUMENTATION_VERSION
from sqs_transport.core.logger import logger as transport_logger
from sqs_transport.schemas.sqs_models import ObservabilityOptions, SpanOptions

T = TypeVar("T")


class ObservabilityHelper:
    def __init__(self, options: Optional[ObservabilityOptions] = None):
        options = options or ObservabilityOptions()

        self.logger = options.logging.logger if options.logging else None
        self.log_level = options.logging.level if options.logging else "info"
        self.tracing_enabled = options.tracing
        self.metrics_enabled = options.metrics

        self.tracer = options.tracer
        if self.tracing_enabled and self.tracer is None and options.use_global_providers:
            self.tracer = trace.get_tracer(INSTRUMENTATION_NAME, INSTRUMENTATION_VERSION)

        self.meter = None
        if self.metrics_enabled:
            self.meter = options.meter
            if self.meter is None and options.use_global_providers:
                self.meter = metrics.get_meter(INSTRUMENTATION_NAME, INSTRUMENTATION_VERSION)

        self._counters: Dict[str, Any] = {}
        self._histograms: Dict[str, Any] = {}
        self._instrument_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    def create_span(
        self,
        span_options: SpanOptions,
        fn: Callable[[], Union[T, Awaitable[T]]],
    ) -> Union[T, Awaitable[T]]:
        """
        Run `fn` inside a span.

        If `fn` returns an awaitable, an awaitable is returned and the span
        is finished once it settles. The span always ends, with OK or
        ERROR status depending on the outcome.
        """
        if not self.tracing_enabled or self.tracer is None:
            return fn()

        span = self.tracer.start_span(span_options.name, attributes=span_options.attributes or None)
        try:
            with trace.use_span(span, end_on_exit=False, record_exception=False, set_status_on_exception=False):
                result = fn()
        except Exception as exc:
            self._end_span_with_error(span, exc)
            raise

        if inspect.isawaitable(result):
            return self._finish_async_span(span, result)

        span.set_status(Status(StatusCode.OK))
        span.end()
        return result

    async def _finish_async_span(self, span: Any, awaitable: Awaitable[T]) -> T:
        try:
            with trace.use_span(span, end_on_exit=False, record_exception=False, set_status_on_exception=False):
                result = await awaitable
        except Exception as exc:
            self._end_span_with_error(span, exc)
            raise
        except BaseException:
            # cancellation: still close the span
            span.end()
            raise

        span.set_status(Status(StatusCode.OK))
        span.end()
        return result

    @staticmethod
    def _end_span_with_error(span: Any, exc: Exception) -> None:
        span.set_status(Status(StatusCode.ERROR, str(exc)))
        span.record_exception(exc)
        span.end()

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def log(self, message: str, context: Optional[str] = None) -> None:
        if self.logger is None:
            return

        extra = {"context": context}
        if self.log_level == "debug":
            self.logger.debug(message, extra=extra)
        elif self.log_level == "warn":
            self.logger.warning(message, extra=extra)
        elif self.log_level == "error":
            self.logger.error(message, extra=extra)
        else:
            self.logger.info(message, extra=extra)

    def log_error(self, message: str, error: BaseException, context: Optional[str] = None) -> None:
        if self.logger is None:
            return
        self.logger.error(
            message,
            exc_info=(type(error), error, error.__traceback__),
            extra={"context": context},
        )

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def record_metric(self, name: str, value: float, attributes: Optional[Dict[str, str]] = None) -> None:
        """
        Durations and latencies go to histograms, everything else to
        counters. Without a meter the metric is logged instead.
        """
        if not self.metrics_enabled:
            return

        try:
            if self.meter is not None:
                if "duration" in name or "latency" in name:
                    self._get_histogram(name).record(value, attributes=attributes)
                else:
                    self._get_counter(name).add(value, attributes=attributes)
                return

            self.log(f"Metric: {name}={value} {json.dumps(attributes or {}, default=str)}", "SqsMetrics")
        except Exception as e:
            transport_logger.debug(f"Failed to record metric {name}: {e}")

    def _get_histogram(self, name: str) -> Any:
        with self._instrument_lock:
            histogram = self._histograms.get(name)
            if histogram is None:
                histogram = self.meter.create_histogram(
                    name,
                    unit="ms",
                    description=f"Duration metric for {name}",
                )
                self._histograms[name] = histogram
            return histogram

    def _get_counter(self, name: str) -> Any:
        with self._instrument_lock:
            counter = self._counters.get(name)
            if counter is None:
                counter = self.meter.create_counter(
                    name,
                    description=f"Counter metric for {name}",
                )
                self._counters[name] = counter
            return counter
