"""Typed function -> ASGI handler adapter.

``gher(fn)`` wraps a business function of shape ``(input, request) -> output``
and returns a ``Handler`` that:
- decodes the request body into the function's declared input type
- calls the function (awaiting coroutines, running plain functions in the
  thread pool)
- encodes whatever the function returned as a stream, text or JSON

Failures are reported with a fixed ``{"error": "<message>"}`` envelope:
- body read failure (text input): 500 ``failed to read request``
- malformed body (structured input): 400 ``failed to parse request``
- ``HandlerError`` raised by the function: 500 with the function's message
- unserializable structured output: 500 ``failed to encode response``

Any other exception raised by the business function is not caught here; it
propagates to the framework's own error handling.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar, Union, get_type_hints

from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect, Request
from starlette.responses import Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from gher.codecs import (
    InputDecoder,
    InputKind,
    OutputKind,
    aiter_stream,
    classify_input,
    classify_output,
    decode_text,
    encode_structured,
    error_envelope,
    is_async_reader,
    iter_stream,
)
from gher.config import Settings, get_settings
from gher.core.errors import BodyReadError, DecodeError, EncodeError, GherError, HandlerError
from gher.observability.tracing import Span, log_event, new_trace_id

InputT = TypeVar('InputT')
OutputT = TypeVar('OutputT')

BusinessFunction = Callable[[InputT, Request], Union[OutputT, Awaitable[OutputT]]]


def _declared_input_type(func: Callable[..., Any]) -> Any:
    """Return the annotation of ``func``'s first parameter (``Any`` if absent)."""
    if not inspect.isroutine(func) and callable(getattr(func, '__call__', None)):
        func = func.__call__
    params = list(inspect.signature(func).parameters.values())
    if not params:
        raise TypeError(f'{func!r} must accept (input, request)')
    first = params[0]
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        # Another annotation (often the request, imported under TYPE_CHECKING)
        # does not resolve; only the input annotation matters here
        hints = {}
    if first.name in hints:
        return hints[first.name]
    annotation = first.annotation
    if annotation is inspect.Parameter.empty:
        return Any
    if isinstance(annotation, str):
        globalns = getattr(inspect.unwrap(func), '__globals__', {})
        try:
            return eval(annotation, globalns)  # noqa: S307 - same lookup as typing.get_type_hints
        except (NameError, AttributeError, SyntaxError, TypeError) as exc:
            raise TypeError(
                f'cannot resolve input annotation {annotation!r} of {func!r}; pass input_type= explicitly'
            ) from exc
    return annotation


def _is_coroutine_function(func: Callable[..., Any]) -> bool:
    if inspect.iscoroutinefunction(func):
        return True
    call = getattr(func, '__call__', None)
    return inspect.iscoroutinefunction(call)


class Handler(Generic[InputT, OutputT]):
    """A business function bound to the request/response plumbing.

    The handler keeps no per-request state, so one instance can serve any
    number of concurrent requests.

    Args:
        func: Business function ``(input, request) -> output``. Raise
            ``HandlerError`` to fail the request with a 500.
        input_type: Overrides the input type taken from ``func``'s first
            parameter annotation.
        settings: Overrides the process-wide ``Settings``.
    """

    def __init__(
        self,
        func: BusinessFunction[InputT, OutputT],
        *,
        input_type: Any | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._func = func
        self._is_async = _is_coroutine_function(func)
        self._settings = settings or get_settings()
        self._name = getattr(func, '__qualname__', None) or repr(func)

        self._input_type = input_type if input_type is not None else _declared_input_type(func)
        self._input_kind = classify_input(self._input_type)
        self._decoder = InputDecoder(self._input_type) if self._input_kind is InputKind.STRUCTURED else None

    @property
    def func(self) -> BusinessFunction[InputT, OutputT]:
        return self._func

    @property
    def input_type(self) -> Any:
        return self._input_type

    @property
    def input_kind(self) -> InputKind:
        return self._input_kind

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive=receive, send=send)
        response = await self.handle(request)
        await response(scope, receive, send)

    async def handle(self, request: Request) -> Response:
        """Run one request through decode -> dispatch -> encode."""
        trace_id = new_trace_id(request.headers.get('x-trace-id'))
        span = Span(
            name='gher.request',
            trace_id=trace_id,
            attributes={'function': self._name, 'input_kind': self._input_kind.value},
        )

        try:
            value = await self._read_input(request)
        except (BodyReadError, DecodeError) as exc:
            log_event(
                'request.decode_failed',
                trace_id=trace_id,
                level=logging.WARNING,
                function=self._name,
                error=type(exc).__name__,
                detail=str(exc),
            )
            return self._finish(self._error_response(exc), span)

        try:
            output = await self._dispatch(value, request)
        except HandlerError as exc:
            log_event(
                'request.handler_failed',
                trace_id=trace_id,
                level=logging.WARNING,
                function=self._name,
                message=exc.message,
            )
            return self._finish(self._error_response(exc), span)

        kind = classify_output(output)
        span.set(output_kind=kind.value)
        try:
            response = self._encode(output, kind)
        except EncodeError as exc:
            log_event(
                'response.encode_failed',
                trace_id=trace_id,
                level=logging.ERROR,
                function=self._name,
                output_type=type(output).__name__,
                detail=str(exc),
            )
            return self._finish(self._error_response(exc), span)
        return self._finish(response, span)

    async def _read_input(self, request: Request) -> Any:
        if self._input_kind is InputKind.TEXT:
            try:
                body = await request.body()
            except (ClientDisconnect, OSError, RuntimeError) as exc:
                raise BodyReadError(str(exc) or type(exc).__name__) from exc
            return decode_text(body, self._settings.text_encoding, self._settings.text_decode_errors)

        try:
            body = await request.body()
        except (ClientDisconnect, OSError, RuntimeError) as exc:
            raise DecodeError(str(exc) or type(exc).__name__) from exc
        return self._decoder.decode(body)

    async def _dispatch(self, value: Any, request: Request) -> Any:
        if self._is_async:
            return await self._func(value, request)
        return await run_in_threadpool(self._func, value, request)

    def _encode(self, output: Any, kind: OutputKind) -> Response:
        settings = self._settings
        if kind is OutputKind.STREAM:
            stream = aiter_stream if is_async_reader(output) else iter_stream
            return StreamingResponse(
                stream(output, settings.stream_chunk_size, settings.text_encoding),
                status_code=200,
                media_type=settings.stream_media_type,
            )
        if kind is OutputKind.TEXT:
            try:
                body = output.encode(settings.text_encoding)
            except UnicodeEncodeError as exc:
                raise EncodeError(str(exc)) from exc
            return Response(body, status_code=200, media_type=settings.text_media_type)
        # Serialize before committing the status so a failure can still be a 500
        body = encode_structured(output)
        return Response(body, status_code=200, media_type=settings.json_media_type)

    def _error_response(self, exc: GherError) -> Response:
        return Response(
            error_envelope(exc.message),
            status_code=exc.status_code,
            media_type=self._settings.json_media_type,
        )

    @staticmethod
    def _finish(response: Response, span: Span) -> Response:
        span.set(status=response.status_code)
        span.end()
        log_event('request.completed', trace_id=span.trace_id, span=span)
        return response


def gher(
    func: BusinessFunction[InputT, OutputT],
    *,
    input_type: Any | None = None,
    settings: Settings | None = None,
) -> Handler[InputT, OutputT]:
    """Adapt ``func`` into a reusable request handler.

    Examples:
        >>> async def hello(person: Person, request: Request) -> str:
        ...     return f'Hello, {person.name}!'
        >>> app = Starlette(routes=[Route('/hello', gher(hello), methods=['POST'])])
    """
    return Handler(func, input_type=input_type, settings=settings)
