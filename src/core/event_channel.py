import asyncio
import inspect
import logging
from typing import Callable, Dict, List, Set, Union

from contracts.backend import BackendEvent

logger = logging.getLogger(__name__)


class EventChannel:
    """
    Publish/subscribe channel for the bounded set of backend events.

    Handlers run synchronously in subscription order. A handler that returns an
    awaitable has it scheduled on the running loop.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._handlers: Dict[BackendEvent, List[Callable]] = {
            event: [] for event in BackendEvent
        }
        self._pending: Set[asyncio.Future] = set()

    @staticmethod
    def _event(event: Union[str, BackendEvent]) -> BackendEvent:
        try:
            return BackendEvent(event)
        except ValueError:
            supported = [e.value for e in BackendEvent]
            raise ValueError(
                f"Unsupported event: {event}. Supported events: {supported}"
            ) from None

    def on(self, event: Union[str, BackendEvent], handler: Callable) -> None:
        self._handlers[self._event(event)].append(handler)

    def off(self, event: Union[str, BackendEvent], handler: Callable) -> bool:
        handlers = self._handlers[self._event(event)]
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def handler_count(self, event: Union[str, BackendEvent]) -> int:
        return len(self._handlers[self._event(event)])

    def emit(self, event: Union[str, BackendEvent], *args) -> None:
        event = self._event(event)
        for handler in list(self._handlers[event]):
            try:
                result = handler(*args)
            except Exception:
                logger.exception(f"[{self.name}] handler for '{event.value}' failed")
                continue
            if inspect.isawaitable(result):
                future = asyncio.ensure_future(result)
                self._pending.add(future)
                future.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, future: asyncio.Future) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                f"[{self.name}] async event handler failed: {exc}", exc_info=exc
            )
