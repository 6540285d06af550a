from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from fastapi import APIRouter, FastAPI

from gher.config import Settings
from gher.handler import BusinessFunction, Handler


def register(
    router: APIRouter | FastAPI,
    path: str,
    func: BusinessFunction[Any, Any],
    *,
    methods: Sequence[str] = ('POST',),
    input_type: Any | None = None,
    settings: Settings | None = None,
    **route_kwargs: Any,
) -> Handler[Any, Any]:
    """Adapt ``func`` and add it to ``router`` at ``path``.

    The handler reads the body itself, so FastAPI only passes it the
    ``Request``. Extra keyword arguments go to ``add_api_route`` (tags,
    summary, ...).
    """
    handler = Handler(func, input_type=input_type, settings=settings)
    route_kwargs.setdefault('name', getattr(func, '__name__', None))
    route_kwargs.setdefault('summary', (func.__doc__ or '').strip().split('\n')[0] or None)
    router.add_api_route(path, handler.handle, methods=list(methods), **route_kwargs)
    return handler
