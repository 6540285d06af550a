"""gher: turn typed functions into HTTP handlers.

A business function ``(input, request) -> output`` is wrapped once with
``gher(fn)``; the resulting handler decodes the body, calls the function and
encodes the result for every request it serves.
"""
from .codecs import InputKind, OutputKind
from .config import Settings, get_settings
from .core.errors import BodyReadError, DecodeError, EncodeError, GherError, HandlerError
from .handler import Handler, gher
from .routing import register

__all__ = [
    "BodyReadError",
    "DecodeError",
    "EncodeError",
    "GherError",
    "Handler",
    "HandlerError",
    "InputKind",
    "OutputKind",
    "Settings",
    "get_settings",
    "gher",
    "register",
]
