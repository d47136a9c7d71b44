"""Per-category change signals observed by layer views."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

Subscriber = Callable[[int], None]


class CategoryChangeSignal:
    """Monotonic version counter for one layer category.

    The catalog bumps the signal whenever the membership or enabled state of
    the category changes. Observers either poll ``version`` or subscribe a
    callback that receives the new version.

    Attributes:
        category: Category this signal tracks.
        version: Number of changes seen so far, 0 for a fresh signal.
        updated_at: Time of the last change, None before the first one.
    """

    def __init__(self, category: str) -> None:
        self.category = category
        self.version = 0
        self.updated_at: datetime.datetime | None = None
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback invoked after every change.

        Args:
            callback: Receives the new version number.

        Returns:
            Function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def bump(self) -> int:
        """Record a change and notify subscribers.

        Returns:
            The new version number.
        """
        self.version += 1
        self.updated_at = datetime.datetime.now(tz=datetime.UTC)
        logger.debug("Category %r changed (version %d)", self.category,
                     self.version)
        for callback in list(self._subscribers):
            callback(self.version)
        return self.version
