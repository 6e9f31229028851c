from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Set, Union

log = logging.getLogger("remote.events")

RemoteEvent = Literal[
    "server-started",
    "server-stopped",
    "server-error",
    "client-connected",
    "client-disconnected",
    "go-live",
    "go-blank",
    "navigate",
    "add-to-schedule",
    "request-schedule",
]

HandlerResult = Optional[Awaitable[None]]
Handler = Callable[[Dict[str, Any]], HandlerResult]
WildcardHandler = Callable[[str, Dict[str, Any]], HandlerResult]


class EventBus:
    """
    Observer list for remote control notifications.

    Any number of listeners may subscribe to the same event; a failing
    listener is logged and never prevents the others from running.
    Coroutine listeners are scheduled on the running loop.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._wildcard: List[WildcardHandler] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, event: RemoteEvent, handler: Handler) -> Callable[[], None]:
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def subscribe_all(self, handler: WildcardHandler) -> Callable[[], None]:
        self._wildcard.append(handler)

        def unsubscribe() -> None:
            if handler in self._wildcard:
                self._wildcard.remove(handler)

        return unsubscribe

    def has_subscribers(self, event: RemoteEvent) -> bool:
        return bool(self._handlers.get(event))

    def emit(self, event: RemoteEvent, payload: Optional[Dict[str, Any]] = None) -> int:
        data = payload if payload is not None else {}
        calls: List[Callable[[], HandlerResult]] = [
            (lambda h=h: h(data)) for h in list(self._handlers.get(event, ()))
        ]
        calls += [(lambda h=h: h(event, data)) for h in list(self._wildcard)]

        for call in calls:
            try:
                result = call()
            except Exception:
                log.exception("event_handler_failed", extra={"event": event})
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

        return len(calls)

    async def drain(self) -> None:
        """Wait for coroutine listeners scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule(self, event: str, awaitable: Union[Awaitable[None], Any]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                log.error("event_handler_failed", extra={"event": event, "error": str(t.exception())})

        task.add_done_callback(_done)
