from __future__ import annotations

import json
import logging

import pytest
from starlette.applications import Starlette
from starlette.routing import Route

from gher import gher
from gher.config import get_settings
from gher.observability.tracing import Span, configure_logging, log_event, new_trace_id
from tests.fixtures.greetings import hello, hello_err


def _events(caplog: pytest.LogCaptureFixture) -> list[dict]:
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == 'gher']


def test_span_duration() -> None:
    span = Span(name='x', trace_id=new_trace_id())
    assert span.duration_ms is None

    span.end()

    assert span.duration_ms is not None
    assert span.duration_ms >= 0


def test_log_event_emits_json(caplog: pytest.LogCaptureFixture) -> None:
    # Arrange
    caplog.set_level(logging.INFO, logger='gher')
    span = Span(name='unit', trace_id='t-1', attributes={'k': 'v'})
    span.end()

    # Act
    log_event('unit.done', trace_id='t-1', span=span, extra_field=1)

    # Assert
    [event] = _events(caplog)
    assert event['event'] == 'unit.done'
    assert event['trace_id'] == 't-1'
    assert event['extra_field'] == 1
    assert event['span']['name'] == 'unit'
    assert event['span']['attributes'] == {'k': 'v'}


def test_log_event_respects_logger_level(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger='gher')

    log_event('quiet', trace_id='t-2')

    assert _events(caplog) == []


def test_configure_logging_sets_level() -> None:
    configure_logging('debug')
    assert logging.getLogger('gher').level == logging.DEBUG

    configure_logging(logging.WARNING)
    assert logging.getLogger('gher').level == logging.WARNING

    configure_logging(logging.NOTSET)


@pytest.mark.anyio
async def test_each_request_is_traced(client_for, caplog: pytest.LogCaptureFixture) -> None:
    # Arrange
    caplog.set_level(logging.INFO, logger='gher')
    app = Starlette(routes=[Route('/', gher(hello), methods=['POST'])])

    # Act
    async with client_for(app) as client:
        await client.post('/', content=b'{"name":"World"}', headers={'x-trace-id': 'abc123'})

    # Assert
    [event] = _events(caplog)
    assert event['event'] == 'request.completed'
    assert event['trace_id'] == 'abc123'
    assert event['span']['attributes']['status'] == 200
    assert event['span']['attributes']['input_kind'] == 'structured'
    assert event['span']['attributes']['output_kind'] == 'text'
    assert event['span']['attributes']['function'] == 'hello'


@pytest.mark.anyio
async def test_failures_are_logged(client_for, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger='gher')
    app = Starlette(
        routes=[
            Route('/hello', gher(hello), methods=['POST']),
            Route('/fail', gher(hello_err), methods=['POST']),
        ]
    )

    async with client_for(app) as client:
        await client.post('/hello', content=b'invalid json')
        await client.post('/fail', content=b'{"name":"World"}')

    names = [event['event'] for event in _events(caplog)]
    assert names == [
        'request.decode_failed',
        'request.completed',
        'request.handler_failed',
        'request.completed',
    ]


def test_configure_logging_defaults_to_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv('GHER_LOG_LEVEL', 'ERROR')
    get_settings.cache_clear()
    try:
        configure_logging()
        assert logging.getLogger('gher').level == logging.ERROR
    finally:
        get_settings.cache_clear()
        configure_logging(logging.NOTSET)


def test_span_end_is_idempotent_and_set_merges_attributes() -> None:
    span = Span(name='x', trace_id='t')
    span.set(a=1)
    span.set(b=2)

    first = span.end()
    end_ns = span.end_ns
    second = span.end()

    assert span.attributes == {'a': 1, 'b': 2}
    assert span.end_ns == end_ns
    assert first == second == span.duration_ms


def test_new_trace_id_reuses_incoming_value() -> None:
    assert new_trace_id('abc') == 'abc'
    assert new_trace_id('  ') != '  '
    assert len(new_trace_id()) == 32
