"""
trace_utils.py

Centralized helper utilities for tracing coordination and orchestration spans.
Without a configured TracerProvider the OpenTelemetry API hands out
non-recording spans, so callers never need to check whether tracing is on.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

_tracer = trace.get_tracer("fieldsync.coordination", "0.1.0")

logger = logging.getLogger(__name__)


@contextmanager
def start_span(span_name: str, **attrs) -> Iterator[Span]:
    """
    Starts a span as the current span, records any exception raised inside the
    block and marks the span as errored before re-raising.
    """
    with _tracer.start_as_current_span(span_name, record_exception=False, set_status_on_exception=False) as span:
        for k, v in attrs.items():
            if v is not None:
                span.set_attribute(k, v)
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, type(e).__name__))
            raise
