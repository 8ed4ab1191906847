"""Per-request context shared by log records and spans.

One ``RequestContext`` is bound when an HTTP request enters the app and
reset when it leaves. Spans opened while serving it overwrite the ids with
the OpenTelemetry ones, so log lines carry the ids of the exported trace.
"""

from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from uuid import uuid4


@dataclass(frozen=True)
class RequestContext:
    trace_id: str = ""
    span_id: str = ""
    route: str = ""


_current_request: ContextVar[RequestContext] = ContextVar("search_request", default=RequestContext())


def current_request() -> RequestContext:
    return _current_request.get()


def bind_request(route: str, trace_id: str | None = None) -> Token[RequestContext]:
    """Start the context of an incoming request; pass the token to ``release_request``."""
    return _current_request.set(RequestContext(trace_id=trace_id or uuid4().hex, span_id=uuid4().hex[:16], route=route))


def release_request(token: Token[RequestContext]) -> None:
    _current_request.reset(token)


def enter_span(trace_id: int, span_id: int) -> None:
    """Adopt the ids of the span that just became current."""
    _current_request.set(
        replace(_current_request.get(), trace_id=format(trace_id, "032x"), span_id=format(span_id, "016x"))
    )
