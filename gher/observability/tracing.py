"""Minimal tracing primitives.

One span per adapted request, with structured JSON events emitted through
the ``gher`` logger. No OpenTelemetry required; in production you would point
a JSON log handler (or an OTEL log exporter) at that logger.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from gher.config import get_settings

logger = logging.getLogger('gher')


@dataclass
class Span:
    name: str
    trace_id: str
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    start_ns: int = field(default_factory=time.time_ns)
    end_ns: int | None = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def set(self, **attributes: Any) -> None:
        self.attributes.update(attributes)

    def end(self) -> float:
        """Close the span once; later calls keep the first end time."""
        if self.end_ns is None:
            self.end_ns = time.time_ns()
        return (self.end_ns - self.start_ns) / 1_000_000.0

    @property
    def duration_ms(self) -> float | None:
        if self.end_ns is None:
            return None
        return (self.end_ns - self.start_ns) / 1_000_000.0


def new_trace_id(incoming: str | None = None) -> str:
    """Reuse a caller-supplied trace id (e.g. an ``x-trace-id`` header) or mint one."""
    incoming = (incoming or '').strip()
    return incoming if incoming else uuid.uuid4().hex


def configure_logging(level: str | int | None = None) -> None:
    """Set the level of the ``gher`` logger (defaults to ``Settings.log_level``)."""
    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)


def log_event(
    event: str,
    *,
    trace_id: str,
    span: Span | None = None,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {'event': event, 'trace_id': trace_id, **fields}
    if span is not None:
        payload['span'] = {
            'name': span.name,
            'span_id': span.span_id,
            'duration_ms': span.duration_ms,
            'attributes': span.attributes,
        }
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
