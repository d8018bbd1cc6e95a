# app/services/cart_feed.py
"""
In-process fan-out of cart row changes.

Every successful cart write publishes a CartChangeEvent; subscribers
(e.g. the cart WebSocket) register per user and only receive events for
that user. Callbacks run synchronously in the publisher's thread, so
they must be quick and must not touch the publisher's DB session.
"""

import logging
import threading
import uuid
from collections import defaultdict
from typing import Callable

from app.schemas.cart import CartChangeEvent

logger = logging.getLogger(__name__)

CartChangeCallback = Callable[[CartChangeEvent], None]


class CartChangeFeed:
    def __init__(self) -> None:
        self._subscribers: dict[uuid.UUID, list[CartChangeCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(
        self,
        user_id: uuid.UUID,
        callback: CartChangeCallback,
    ) -> Callable[[], None]:
        """
        Register `callback` for the user's cart changes.

        Returns an idempotent unsubscribe function.
        """
        with self._lock:
            self._subscribers[user_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(user_id)
                if callbacks and callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(user_id, None)

        return unsubscribe

    def publish(self, change: CartChangeEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(change.user_id, ()))

        for callback in callbacks:
            try:
                callback(change)
            except Exception:
                logger.warning(
                    "Cart change subscriber failed for user %s",
                    change.user_id,
                    exc_info=True,
                )

    def subscriber_count(self, user_id: uuid.UUID) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, ()))


# Shared by the cart and order routers and the cart WebSocket.
cart_feed = CartChangeFeed()
