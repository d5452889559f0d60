"""
Event dispatch: in-process listeners and HTTP targets under one API.

Example:
    ```python
    dispatcher = EventDispatcher()
    dispatcher.add_target({"name": "internal", "events": ["user.created"]})
    dispatcher.add_target(
        {"name": "billing", "url": "https://billing.local/hooks", "events": ["*"]}
    )
    dispatcher.on("user.created", lambda data: print(data["id"]))

    result = await dispatcher.emit("user.created", {"id": "123"})
    if not result.success:
        ...
    ```
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

import aiohttp

from .errors import DecodeError, DeliveryError
from .metrics import DELIVERIES, INBOUND
from .middleware import make_middleware
from .notifier import DEFAULT_MAX_LISTENERS, Handler, LocalNotifier
from .registry import TargetLike, TargetRegistry
from .types import EmitResult, Target, TargetUpdate

logger = logging.getLogger(__name__)

PARSE_EVENT = "parse_event"

ErrorHandler = Callable[..., None]


def _log_error(error: BaseException, event_name: Optional[str] = None, data: Any = None) -> None:
    logger.error(
        "Event error (event=%s): %s",
        event_name,
        error,
        exc_info=(type(error), error, error.__traceback__),
    )


def _build_headers(target: Target) -> Dict[str, str]:
    headers = dict(target.headers)
    if not any(key.lower() == "content-type" for key in headers):
        headers = {"Content-Type": "application/json", **headers}
    return headers


class EventDispatcher:
    """
    Fan events out to local listeners and remote HTTP targets.

    Each dispatcher owns its own :class:`TargetRegistry` and
    :class:`LocalNotifier`; nothing is shared between instances.

    Args:
        max_listeners: Listener count per event name above which a leak
            warning is logged. ``0`` means unlimited, ``None`` the default.
        error_handler: Called as ``error_handler(error, event_name, data)``
            for every delivery or decode failure. Logs by default.
        timeout: Total timeout in seconds for each remote delivery.
            ``None`` waits indefinitely.
    """

    def __init__(
        self,
        max_listeners: Optional[int] = DEFAULT_MAX_LISTENERS,
        error_handler: Optional[ErrorHandler] = None,
        timeout: Optional[float] = None,
    ):
        self._notifier = LocalNotifier(max_listeners)
        self._targets = TargetRegistry()
        self._error_handler = error_handler or _log_error
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def targets(self) -> TargetRegistry:
        return self._targets

    @property
    def notifier(self) -> LocalNotifier:
        return self._notifier

    # Targets

    def add_target(self, target: Union[TargetLike, Iterable[TargetLike]]) -> bool:
        return self._targets.add(target)

    def update_target(self, name: str, update: Union[TargetUpdate, Mapping[str, Any]]) -> bool:
        return self._targets.update(name, update)

    def remove_target(self, name: str) -> bool:
        return self._targets.remove(name)

    def add_event_to_target(self, name: str, events: Union[str, Iterable[str]]) -> bool:
        return self._targets.add_events(name, events)

    # Local listeners

    def on(self, event_name: str, handler: Handler) -> "EventDispatcher":
        self._notifier.on(event_name, handler)
        return self

    def off(self, event_name: str, handler: Handler) -> "EventDispatcher":
        self._notifier.off(event_name, handler)
        return self

    def once(self, event_name: str, handler: Handler) -> "EventDispatcher":
        self._notifier.once(event_name, handler)
        return self

    # Dispatch

    async def emit(self, event_name: str, data: Any = None) -> EmitResult:
        """
        Deliver an event to every target subscribed to it.

        Local targets are notified first, synchronously and in registry
        order. Remote targets are then POSTed concurrently and all of them
        are awaited. Failures never raise; they are collected in the result
        and passed to the error handler one by one.
        """
        result = EmitResult()
        targets = self._targets.resolve(event_name)

        for target in targets:
            if target.is_remote:
                continue
            try:
                self._notifier.emit(event_name, data)
            except Exception as exc:  # noqa: BLE001
                DELIVERIES.labels("local", "error").inc()
                result.add_error(target.name, event_name, exc)
                self._report(exc, event_name, data)
            else:
                DELIVERIES.labels("local", "ok").inc()

        remote = [target for target in targets if target.is_remote]
        if remote:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                await asyncio.gather(
                    *[self._post(session, target, event_name, data, result) for target in remote]
                )

        return result

    async def _post(
        self,
        session: aiohttp.ClientSession,
        target: Target,
        event_name: str,
        data: Any,
        result: EmitResult,
    ) -> None:
        try:
            payload = json.dumps({"eventName": event_name, "data": data})
            async with session.post(
                target.url,
                data=payload,
                headers=_build_headers(target),
            ) as response:
                if not 200 <= response.status < 300:
                    raise DeliveryError(target.name, response.status, response.reason)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Delivery of '%s' to %s failed: %s", event_name, target.url, exc)
            DELIVERIES.labels("remote", "error").inc()
            result.add_error(target.name, event_name, exc)
            self._report(exc, event_name, data)
            return
        DELIVERIES.labels("remote", "ok").inc()

    # Inbound

    async def handle_incoming_event(self, body: Union[str, bytes, Mapping[str, Any]]) -> None:
        """
        Re-deliver an event envelope received from another system.

        ``body`` is either the decoded ``{"eventName": ..., "data": ...}``
        object or its JSON text. Local listeners run on the next loop turn,
        after this coroutine has returned. Registered targets are not
        consulted. Raises :class:`DecodeError` for an undecodable body.
        """
        try:
            envelope = self._decode(body)
        except DecodeError as exc:
            INBOUND.labels("rejected").inc()
            self._report(exc, PARSE_EVENT)
            raise

        INBOUND.labels("accepted").inc()
        asyncio.get_running_loop().call_soon(self._redeliver, envelope)

    @staticmethod
    def _decode(body: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
        if isinstance(body, (str, bytes, bytearray)):
            try:
                if not isinstance(body, str):
                    body = bytes(body).decode("utf-8")
                body = json.loads(body)
            except ValueError as exc:
                raise DecodeError(f"Invalid event payload: {exc}") from exc
        if not isinstance(body, Mapping):
            raise DecodeError(f"Event payload must be a JSON object, got {type(body).__name__}")
        return body

    def _redeliver(self, envelope: Mapping[str, Any]) -> None:
        event_name = envelope.get("eventName")
        data = envelope.get("data")
        try:
            self._notifier.emit(event_name, data)
        except Exception as exc:  # noqa: BLE001
            self._report(exc, event_name, data)

    def create_middleware(self):
        """
        Build request middleware that feeds POSTed envelopes into
        :meth:`handle_incoming_event`. See :mod:`eventrelay.middleware`.
        """
        return make_middleware(self.handle_incoming_event)

    def _report(self, error: BaseException, event_name: Optional[str] = None, data: Any = None) -> None:
        try:
            self._error_handler(error, event_name, data)
        except Exception:  # noqa: BLE001
            logger.exception("Error handler raised while reporting %r", error)
