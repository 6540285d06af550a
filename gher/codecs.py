"""Body codecs for the adapter.

Input side:
- ``str`` input types receive the raw body as text, verbatim
- every other input type is parsed from JSON with a pydantic ``TypeAdapter``

Output side, decided from the runtime value in this order:
- anything with a callable ``read`` (or raw bytes) is copied as a byte stream;
  a coroutine ``read`` (``UploadFile``, aiofiles) is awaited chunk by chunk
- ``str`` values are written as literal text
- everything else is serialized to JSON with a trailing newline
"""

from __future__ import annotations

import inspect
import json
import types
from collections.abc import AsyncIterator, Iterator
from enum import Enum
from typing import Any, Union, get_args, get_origin

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from gher.core.errors import DecodeError, EncodeError


class InputKind(str, Enum):
    """How a request body is turned into the business function's input."""

    TEXT = 'text'
    STRUCTURED = 'structured'


class OutputKind(str, Enum):
    """How a business function's result is written to the response."""

    STREAM = 'stream'
    TEXT = 'text'
    STRUCTURED = 'structured'


_UNION_TYPES = (Union, types.UnionType)


def unwrap_optional(tp: Any) -> Any:
    """Strip ``None`` from ``Optional[X]`` / ``X | None``.

    Optional inputs are decoded as "present but defaulted": the business
    function always receives an ``X``.
    """
    if get_origin(tp) in _UNION_TYPES:
        args = tuple(arg for arg in get_args(tp) if arg is not type(None))
        if len(args) == 1:
            return args[0]
        if len(args) < len(get_args(tp)):
            return Union[args]
    return tp


def classify_input(tp: Any) -> InputKind:
    tp = unwrap_optional(tp)
    if isinstance(tp, type) and issubclass(tp, str):
        return InputKind.TEXT
    return InputKind.STRUCTURED


def default_value(tp: Any) -> Any:
    """Return the no-argument default of ``tp``.

    Raises:
        DecodeError: if the type cannot be built without arguments.
    """
    factory = get_origin(tp) or tp
    if not callable(factory):
        raise DecodeError(f'{tp!r} has no default value')
    try:
        return factory()
    except (TypeError, ValueError) as exc:
        # pydantic.ValidationError is a ValueError
        raise DecodeError(f'{tp!r} has no default value: {exc}') from exc


class InputDecoder:
    """Decodes JSON bodies into a fixed structured input type."""

    def __init__(self, tp: Any) -> None:
        self._type = unwrap_optional(tp)
        self._adapter: TypeAdapter[Any] = TypeAdapter(self._type)

    @property
    def type(self) -> Any:
        return self._type

    def decode(self, body: bytes) -> Any:
        if not body.strip():
            return default_value(self._type)
        try:
            return self._adapter.validate_json(body)
        except ValidationError as exc:
            raise DecodeError(str(exc)) from exc


def decode_text(body: bytes, encoding: str = 'utf-8', errors: str = 'replace') -> str:
    return body.decode(encoding, errors)


def classify_output(value: Any) -> OutputKind:
    if callable(getattr(value, 'read', None)):
        return OutputKind.STREAM
    if isinstance(value, (bytes, bytearray, memoryview)):
        return OutputKind.STREAM
    if isinstance(value, str):
        return OutputKind.TEXT
    return OutputKind.STRUCTURED


def encode_structured(value: Any) -> bytes:
    """Serialize ``value`` as compact JSON followed by a newline.

    Raises:
        EncodeError: if the value is not JSON-serializable.
    """
    try:
        return to_json(value) + b'\n'
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise EncodeError(str(exc)) from exc


def iter_stream(source: Any, chunk_size: int, encoding: str = 'utf-8') -> Iterator[bytes]:
    """Yield ``source`` in chunks until it is exhausted, then close it.

    ``source`` is either a readable object (binary or text) or an in-memory
    bytes-like value.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for start in range(0, len(data), chunk_size):
            yield data[start:start + chunk_size]
        return

    try:
        while True:
            chunk = source.read(chunk_size)
            if not chunk:
                break
            if isinstance(chunk, str):
                chunk = chunk.encode(encoding)
            yield bytes(chunk)
    finally:
        close = getattr(source, 'close', None)
        if callable(close):
            close()


def error_envelope(message: str) -> bytes:
    """Render the fixed ``{"error": "<message>"}`` body (no trailing newline)."""
    return ('{"error": ' + json.dumps(message, ensure_ascii=False) + '}').encode('utf-8')


def is_async_reader(value: Any) -> bool:
    return inspect.iscoroutinefunction(getattr(value, 'read', None))


async def aiter_stream(source: Any, chunk_size: int, encoding: str = 'utf-8') -> AsyncIterator[bytes]:
    """Async counterpart of ``iter_stream`` for sources whose ``read`` is a coroutine."""
    try:
        while True:
            chunk = await source.read(chunk_size)
            if not chunk:
                break
            if isinstance(chunk, str):
                chunk = chunk.encode(encoding)
            yield bytes(chunk)
    finally:
        close = getattr(source, 'close', None)
        if callable(close):
            result = close()
            if inspect.isawaitable(result):
                await result
