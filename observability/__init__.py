"""Observability module for the weather aggregator.

Uses OpenTelemetry spans, exported to Arize Phoenix when tracing is enabled.
"""

from .instrumentation import init_tracing, trace_tool, trace_span

__all__ = ["init_tracing", "trace_tool", "trace_span"]
