"""OpenTelemetry tracing decorators."""

import asyncio
import functools
from collections.abc import Callable
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span

from table_ordering_service.models.errors import OrderingError

F = TypeVar("F", bound=Callable[..., Any])

# Keyword arguments copied onto the span when a traced call receives them
SPAN_KWARGS = ("restaurant_id", "order_id", "item_id", "table_id")


def _start(span: Span, func_name: str, span_name: str | None, kwargs: dict[str, Any]) -> None:
    if span_name:
        span.set_attribute("function.name", func_name)
    for key in SPAN_KWARGS:
        value = kwargs.get(key)
        if isinstance(value, str):
            span.set_attribute(f"ordering.{key}", value)


def _fail(span: Span, error: Exception) -> None:
    span.set_attribute("success", False)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", str(error))
    # Rejected requests are expected outcomes, only store failures are exceptions
    if not isinstance(error, OrderingError) or error.status_code >= 500:
        span.record_exception(error)


def traced(span_name: str | None = None, service_name: str = "ordering-svc") -> Callable[[F], F]:
    """Decorator to add OpenTelemetry tracing to a function.

    Creates a span per call, tags it with any restaurant/order/item/table id
    passed by keyword, and records the outcome. Async functions are supported.

    Args:
        span_name: Name for the span (defaults to function name if not provided)
        service_name: Tracer name and ``service.name`` span attribute

    Returns:
        Decorated function with tracing

    Example:
        @traced("add_items")
        async def add_items(self, order_id: str, lines: list[OrderLineRequest]) -> AddItemsResult:
            ...
    """

    def decorator(func: F) -> F:
        name = span_name or func.__name__
        tracer = trace.get_tracer(service_name)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name, record_exception=False) as span:
                span.set_attribute("service.name", service_name)
                _start(span, func.__name__, span_name, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _fail(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with tracer.start_as_current_span(name, record_exception=False) as span:
                span.set_attribute("service.name", service_name)
                _start(span, func.__name__, span_name, kwargs)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _fail(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore
        return sync_wrapper  # type: ignore

    return decorator
