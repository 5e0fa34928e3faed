import logging
import threading
from typing import Callable, Generic, List, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class LastValueChannel(Generic[T]):
    """Broadcast channel that remembers the last published value.

    Subscribers receive the current value immediately on subscription, then
    every subsequent publication in order. A failing subscriber is logged
    and does not prevent delivery to the others.
    """

    def __init__(self, initial: T, name: str = "channel"):
        self._value = initial
        self._name = name
        self._subscribers: List[Callable[[T], None]] = []
        self._lock = threading.RLock()

    @property
    def value(self) -> T:
        with self._lock:
            return self._value

    def subscribe(self, subscriber: Callable[[T], None]) -> Callable[[], None]:
        """Register a subscriber and replay the current value to it.

        Returns:
            Callable that removes the subscriber again
        """
        with self._lock:
            self._subscribers.append(subscriber)
            self._deliver(subscriber, self._value)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, value: T) -> None:
        with self._lock:
            self._value = value
            subscribers = list(self._subscribers)
            for subscriber in subscribers:
                self._deliver(subscriber, value)

    def _deliver(self, subscriber: Callable[[T], None], value: T) -> None:
        try:
            subscriber(value)
        except Exception as e:
            logger.error(f"Subscriber of {self._name} failed: {e}")
