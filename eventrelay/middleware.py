"""Framework-agnostic request/response bridge for inbound events.

The middleware only needs a small slice of a request and a response, so
any framework can plug in by providing objects shaped like
:class:`EventRequest` and :class:`EventResponse`. Starlette adapters are
included for the bundled service.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol, Union

from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

INVALID_EVENT_BODY = json.dumps({"error": "Invalid event format"})

Chunk = Union[bytes, str]
NextCallback = Callable[..., Any]
IncomingHandler = Callable[[Any], Awaitable[None]]


class EventRequest(Protocol):
    method: str
    body: Any

    def iter_chunks(self) -> AsyncIterator[Chunk]:
        ...


class EventResponse(Protocol):
    status_code: int

    def end(self, body: Optional[str] = None) -> None:
        ...


def _to_bytes(chunk: Chunk) -> bytes:
    return chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk)


async def _read_stream(request: EventRequest) -> bytes:
    # Chunks may split a multi-byte character, so decode only once joined
    parts = []
    async for chunk in request.iter_chunks():
        parts.append(_to_bytes(chunk))
    return b"".join(parts)


async def _call_next(next: Optional[NextCallback], *args: Any) -> None:
    if next is None:
        return
    result = next(*args)
    if inspect.isawaitable(result):
        await result


def make_middleware(handle: IncomingHandler):
    """Wrap ``handle`` (an inbound-event coroutine) as request middleware."""

    async def middleware(
        request: EventRequest,
        response: EventResponse,
        next: Optional[NextCallback] = None,
    ) -> None:
        if request.method.upper() != "POST":
            await _call_next(next)
            return

        try:
            body = request.body
            if body is None:
                body = await _read_stream(request)
            await handle(body)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Rejected inbound event: %s", exc)
            response.status_code = 400
            response.end(INVALID_EVENT_BODY)
            await _call_next(next, exc)
            return

        response.status_code = 202
        response.end()

    return middleware


class StarletteEventRequest:
    """Expose a Starlette request through the :class:`EventRequest` shape."""

    def __init__(self, request: Request) -> None:
        self._request = request
        self.method = request.method
        self.body = None

    def iter_chunks(self) -> AsyncIterator[bytes]:
        return self._request.stream()


class BufferedEventResponse:
    """Collect the middleware's status and body, then render a Response."""

    def __init__(self) -> None:
        self.status_code = 200
        self.content: Optional[str] = None
        self.finished = False

    def end(self, body: Optional[str] = None) -> None:
        self.content = body
        self.finished = True

    def to_starlette(self) -> Response:
        if self.content is None:
            return Response(status_code=self.status_code)
        return Response(
            content=self.content,
            status_code=self.status_code,
            media_type="application/json",
        )
