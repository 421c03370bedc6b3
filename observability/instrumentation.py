"""OpenTelemetry instrumentation for the weather aggregator.

Spans are created through the ``trace_tool`` and ``trace_span`` decorators.
Without ``init_tracing`` they go to the no-op global tracer provider, so the
decorators are safe to leave on in tests.
"""

import functools
import inspect
import json
import logging
import os
from typing import Any, Callable, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

F = TypeVar("F", bound=Callable[..., Any])

TRACER_NAME = "weather-aggregator"
DEFAULT_COLLECTOR_ENDPOINT = "http://localhost:6006/v1/traces"

# Weather payloads can be large; attribute values are cut to this length.
MAX_ATTRIBUTE_LENGTH = 4096

logger = logging.getLogger(__name__)

_tracer: trace.Tracer | None = None


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def init_tracing(
    project_name: str = TRACER_NAME,
    endpoint: str | None = None,
) -> None:
    """Send spans to a Phoenix collector and instrument LangChain.

    Call this once at process start. Chat model calls (question parsing,
    answer composition, forecast extrapolation, alert analysis) are traced by
    the LangChain instrumentor; upstream API and store calls by the
    decorators below.

    Args:
        project_name: Project the spans are filed under in Phoenix.
        endpoint: Collector endpoint. Defaults to ``PHOENIX_COLLECTOR_ENDPOINT``
            or a local Phoenix server.
    """
    from openinference.instrumentation.langchain import LangChainInstrumentor
    from phoenix.otel import register

    collector_endpoint = endpoint or os.getenv(
        "PHOENIX_COLLECTOR_ENDPOINT", DEFAULT_COLLECTOR_ENDPOINT
    )
    tracer_provider = register(project_name=project_name, endpoint=collector_endpoint)
    LangChainInstrumentor().instrument(tracer_provider=tracer_provider)

    global _tracer
    _tracer = trace.get_tracer(TRACER_NAME, tracer_provider=tracer_provider)
    logger.info(f"Tracing {project_name} to {collector_endpoint}")


def _serialize_value(value: Any) -> str:
    """Render a value as a bounded span attribute string."""
    if isinstance(value, (dict, list, tuple)):
        text = json.dumps(value, ensure_ascii=False, default=str)
    else:
        text = str(value)
    if len(text) > MAX_ATTRIBUTE_LENGTH:
        text = text[:MAX_ATTRIBUTE_LENGTH] + "...(truncated)"
    return text


def _named_arguments(func: Callable, args: tuple, kwargs: dict) -> dict[str, Any]:
    """Bind call arguments to parameter names, leaving out ``self``."""
    try:
        bound = inspect.signature(func).bind_partial(*args, **kwargs)
    except TypeError:
        return {"args": args, "kwargs": kwargs}
    return {name: value for name, value in bound.arguments.items() if name != "self"}


def _traced(
    func: Callable,
    span_name: str,
    on_start: Callable[[trace.Span, tuple, dict], None],
    on_success: Callable[[trace.Span, Any], None],
) -> Callable:
    """Wrap ``func`` (plain or ``async``) in a span with the given hooks."""

    def on_error(span: trace.Span, exc: Exception) -> None:
        span.record_exception(exc)
        span.set_status(Status(StatusCode.ERROR, str(exc)))
        span.set_attribute("error.type", type(exc).__name__)

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with get_tracer().start_as_current_span(span_name, record_exception=False) as span:
                on_start(span, args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    on_error(span, e)
                    raise
                on_success(span, result)
                return result

        return async_wrapper

    @functools.wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        with get_tracer().start_as_current_span(span_name, record_exception=False) as span:
            on_start(span, args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                on_error(span, e)
                raise
            on_success(span, result)
            return result

    return sync_wrapper


def trace_tool(
    name: str | None = None,
    capture_input: bool = True,
    capture_output: bool = True,
) -> Callable[[F], F]:
    """Trace a call to an external system (upstream API or the store).

    Arguments are recorded by parameter name as ``input.<name>``; the return
    value as ``output.result``. Turn either off for calls that carry keys or
    large payloads.

    Args:
        name: Span name. Defaults to ``tool.<function name>``.
        capture_input: Record call arguments.
        capture_output: Record the return value.

    Example:
        @trace_tool(name="geoapify.search", capture_output=False)
        async def search(self, query):
            ...
    """
    def decorator(func: F) -> F:
        def on_start(span: trace.Span, args: tuple, kwargs: dict) -> None:
            span.set_attribute("tool.name", func.__qualname__)
            if capture_input:
                for arg_name, value in _named_arguments(func, args, kwargs).items():
                    span.set_attribute(f"input.{arg_name}", _serialize_value(value))

        def on_success(span: trace.Span, result: Any) -> None:
            if capture_output and result is not None:
                span.set_attribute("output.result", _serialize_value(result))
            span.set_status(Status(StatusCode.OK))

        return _traced(func, name or f"tool.{func.__name__}", on_start, on_success)  # type: ignore

    return decorator


def trace_span(name: str) -> Callable[[F], F]:
    """Wrap an orchestration step (a chat turn, a cache decision) in a named span."""
    def decorator(func: F) -> F:
        def on_start(span: trace.Span, args: tuple, kwargs: dict) -> None:
            span.set_attribute("function.name", func.__qualname__)

        def on_success(span: trace.Span, result: Any) -> None:
            span.set_status(Status(StatusCode.OK))

        return _traced(func, name, on_start, on_success)  # type: ignore

    return decorator
