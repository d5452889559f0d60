"""In-process publish/subscribe keyed by event name."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, DefaultDict, List, Optional, Set, Union

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[None, Awaitable[None]]]

DEFAULT_MAX_LISTENERS = 10


async def _drain(awaitable: Awaitable[None]) -> None:
    await awaitable


class _Listener:
    __slots__ = ("handler", "once")

    def __init__(self, handler: Handler, once: bool) -> None:
        self.handler = handler
        self.once = once


class LocalNotifier:
    """Synchronous event notifier for same-process listeners.

    Handlers run in registration order. An exception raised by a handler
    propagates out of :meth:`emit` and the handlers after it are not called.
    Coroutine handlers are scheduled on the running loop and not awaited.

    ``max_listeners`` is a leak guard: registering more handlers than that
    for one event name logs a warning (once per name). ``0`` disables it.
    """

    def __init__(self, max_listeners: Optional[int] = DEFAULT_MAX_LISTENERS) -> None:
        self._listeners: DefaultDict[str, List[_Listener]] = defaultdict(list)
        self._warned: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._max_listeners = DEFAULT_MAX_LISTENERS
        self.set_max_listeners(max_listeners)

    @property
    def max_listeners(self) -> int:
        return self._max_listeners

    def set_max_listeners(self, value: Optional[int]) -> None:
        if value is None:
            value = DEFAULT_MAX_LISTENERS
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"max_listeners must be a non-negative integer, got {value!r}")
        self._max_listeners = value

    def on(self, event_name: str, handler: Handler) -> None:
        self._add(event_name, handler, once=False)

    def once(self, event_name: str, handler: Handler) -> None:
        self._add(event_name, handler, once=True)

    def off(self, event_name: str, handler: Handler) -> bool:
        """Remove the most recently added registration of ``handler``."""
        listeners = self._listeners.get(event_name)
        if not listeners:
            return False
        for index in range(len(listeners) - 1, -1, -1):
            if listeners[index].handler == handler:
                del listeners[index]
                if not listeners:
                    del self._listeners[event_name]
                return True
        return False

    def emit(self, event_name: str, data: Any = None) -> bool:
        """Call every handler for ``event_name``; True if there were any."""
        listeners = list(self._listeners.get(event_name, ()))
        if not listeners:
            return False
        for listener in listeners:
            if listener.once:
                self._discard(event_name, listener)
            result = listener.handler(data)
            if inspect.isawaitable(result):
                self._schedule(event_name, result)
        return True

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, ()))

    def listeners(self, event_name: str) -> List[Handler]:
        return [listener.handler for listener in self._listeners.get(event_name, ())]

    def event_names(self) -> List[str]:
        return list(self._listeners)

    def remove_all_listeners(self, event_name: Optional[str] = None) -> None:
        if event_name is None:
            self._listeners.clear()
            self._warned.clear()
        else:
            self._listeners.pop(event_name, None)
            self._warned.discard(event_name)

    def _add(self, event_name: str, handler: Handler, once: bool) -> None:
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")
        listeners = self._listeners[event_name]
        listeners.append(_Listener(handler, once))
        count = len(listeners)
        if self._max_listeners and count > self._max_listeners and event_name not in self._warned:
            self._warned.add(event_name)
            logger.warning(
                "Possible listener leak: %d listeners registered for '%s' (max %d)",
                count,
                event_name,
                self._max_listeners,
            )

    def _discard(self, event_name: str, listener: _Listener) -> None:
        listeners = self._listeners.get(event_name)
        if listeners and listener in listeners:
            listeners.remove(listener)
            if not listeners:
                del self._listeners[event_name]

    def _schedule(self, event_name: str, awaitable: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop, so there is nothing to hand the task to
            asyncio.run(_drain(awaitable))
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error(
                    "Async handler for '%s' failed",
                    event_name,
                    exc_info=(type(exc), exc, exc.__traceback__),
                )

        task.add_done_callback(_done)
