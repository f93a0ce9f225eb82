"""
Signal Source Interfaces
========================

Subscribe/unsubscribe capability for raw signal producers.

Producers (camera frame analysis, motion sensors) push raw, untyped payloads
to subscribers. The session engine is agnostic to their transport and rate;
it only holds the Subscription handle and releases it exactly once when the
session ends.

Design Rules:
    - subscribe() returns a handle; unsubscribe() is idempotent
    - Delivery may happen on any thread
    - A failing subscriber never breaks delivery to the others
"""

import logging
import threading
from typing import Any, Callable, Dict, Protocol


logger = logging.getLogger(__name__)

SignalCallback = Callable[[Any], None]


class Subscription:
    """
    Handle for one source subscription.

    Example:
        sub = source.subscribe(on_payload)
        ...
        sub.unsubscribe()
        sub.unsubscribe()  # no-op
    """

    def __init__(self, release: Callable[[], None], name: str = "subscription") -> None:
        self._release = release
        self._active = True
        self._lock = threading.Lock()
        self.name = name

    @property
    def active(self) -> bool:
        """Whether the subscription is still live."""
        return self._active

    def unsubscribe(self) -> bool:
        """
        Release the subscription.

        Returns:
            True if this call released it, False if already released
        """
        with self._lock:
            if not self._active:
                return False
            self._active = False
        self._release()
        return True

    def __repr__(self) -> str:
        state = "active" if self._active else "released"
        return f"Subscription({self.name}, {state})"


class SignalSource(Protocol):
    """
    Protocol for raw signal producers.

    Implemented by:
        - CallbackSignalSource (in-process push, motion sensors, tests)
        - WebSocketSignalSource (frame analysis over WebSocket)
    """

    name: str

    def subscribe(self, callback: SignalCallback) -> Subscription:
        """Register a callback for raw payloads."""
        ...


class CallbackSignalSource:
    """
    In-process push source.

    Whoever owns the physical producer calls ``emit`` with raw payloads.

    Attributes:
        name: Source name used in logs
        subscriber_count: Number of live subscribers
    """

    def __init__(self, name: str = "callback") -> None:
        self.name = name
        self._subscribers: Dict[int, SignalCallback] = {}
        self._next_id = 0
        self._lock = threading.Lock()
        self._delivered = 0
        self._callback_errors = 0

    def subscribe(self, callback: SignalCallback) -> Subscription:
        with self._lock:
            sub_id = self._next_id
            self._next_id += 1
            self._subscribers[sub_id] = callback

        def release() -> None:
            with self._lock:
                self._subscribers.pop(sub_id, None)
            logger.debug(f"{self.name}: subscriber {sub_id} released")

        return Subscription(release, name=f"{self.name}#{sub_id}")

    def emit(self, payload: Any) -> int:
        """
        Deliver a payload to all subscribers.

        Returns:
            Number of subscribers that received it
        """
        with self._lock:
            callbacks = list(self._subscribers.values())

        delivered = 0
        for callback in callbacks:
            try:
                callback(payload)
                delivered += 1
            except Exception as e:
                self._callback_errors += 1
                logger.error(f"{self.name}: subscriber failed: {e}")

        self._delivered += delivered
        return delivered

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def metrics(self) -> dict:
        """Get source metrics for observability."""
        return {
            "name": self.name,
            "subscribers": self.subscriber_count,
            "delivered": self._delivered,
            "callback_errors": self._callback_errors,
        }
