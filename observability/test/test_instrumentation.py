"""Unit tests for the tracing decorators."""

import asyncio
import inspect

import pytest

from observability import trace_span, trace_tool


@trace_tool(name='test.sync_tool')
def add(a, b):
    return a + b


@trace_tool(capture_input=False, capture_output=False)
async def fetch(value):
    await asyncio.sleep(0)
    return {'value': value}


@trace_span('test.span')
async def failing():
    raise KeyError('missing')


class TestDecorators:
    """Decorated functions behave like the undecorated ones."""

    def test_sync_tool(self):
        assert add(2, 3) == 5
        assert add.__name__ == 'add'
        assert not inspect.iscoroutinefunction(add)

    def test_async_tool(self):
        assert inspect.iscoroutinefunction(fetch)
        assert asyncio.run(fetch(1)) == {'value': 1}

    def test_span_propagates_errors(self):
        with pytest.raises(KeyError):
            asyncio.run(failing())
