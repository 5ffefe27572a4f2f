"""
Phoenix spans for vault indexing and search.

Spans are opt-in: with ``ENABLE_TRACING`` unset every helper here is a no-op,
and a missing ``tracing`` extra degrades to the same no-op behaviour.

    vault.index_vault
    vault.index_file     (attributes: file_path, chunks)
    vault.search         (attributes: query, results)
"""

import functools
import warnings
from types import ModuleType
from typing import Any, Callable, Optional, TypeVar

from vaultrag.config import settings

F = TypeVar("F", bound=Callable[..., Any])

PROJECT_NAME = "vaultrag"


def _otel_trace() -> Optional[ModuleType]:
    """The OpenTelemetry trace API when tracing is enabled and installed."""
    if not settings.enable_tracing:
        return None
    try:
        from opentelemetry import trace
    except ImportError:
        return None
    return trace


def setup_tracing() -> None:
    """Send spans to the Phoenix collector at ``settings.phoenix_endpoint``."""
    if not settings.enable_tracing:
        return

    try:
        from phoenix.otel import register
    except ImportError:
        warnings.warn(
            "Phoenix tracing dependencies not installed. "
            f"Install with: pip install {PROJECT_NAME}[tracing]"
        )
        return

    try:
        register(project_name=PROJECT_NAME, endpoint=f"{settings.phoenix_endpoint}/v1/traces")
    except Exception as e:
        warnings.warn(f"Failed to setup tracing: {e}")


def traced(name: str | None = None) -> Callable[[F], F]:
    """
    Run the decorated pipeline step inside a span named ``name``.

    The span records the step's module and the type of its result.
    """
    def decorator(func: F) -> F:
        span_name = name or func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            trace = _otel_trace()
            if trace is None:
                return func(*args, **kwargs)

            with trace.get_tracer(PROJECT_NAME).start_as_current_span(span_name) as span:
                span.set_attribute("function.name", func.__name__)
                span.set_attribute("function.module", func.__module__)
                result = func(*args, **kwargs)
                span.set_attribute("result.type", type(result).__name__)
                return result

        return wrapper  # type: ignore

    return decorator


def add_span_attributes(**attributes: Any) -> None:
    """Attach attributes such as ``file_path`` or ``chunks`` to the current span."""
    trace = _otel_trace()
    if trace is None:
        return

    span = trace.get_current_span()
    for key, value in attributes.items():
        # OpenTelemetry only accepts primitives
        span.set_attribute(key, value if isinstance(value, (str, int, float, bool)) else str(value))


def record_exception(exception: Exception) -> None:
    """Mark the current span as failed with ``exception``."""
    trace = _otel_trace()
    if trace is None:
        return

    span = trace.get_current_span()
    span.record_exception(exception)
    span.set_status(trace.Status(trace.StatusCode.ERROR))
