"""Typed publish/subscribe used to broadcast flow context changes."""
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, List, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


class EventBus(ABC, Generic[T]):
    @abstractmethod
    def subscribe(self, listener: Listener) -> Unsubscribe:
        ...

    @abstractmethod
    async def publish(self, value: T) -> None:
        ...


class InMemoryEventBus(EventBus[T]):
    """Delivers to listeners in subscription order; a failing listener never affects the others."""

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(value)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception("listener %r failed", listener)
