"""Install events and their fan-out to subscribers.

The host application registers newly installed modules by subscribing to
``ModuleInstalled``. Per-package and per-batch completion are published the
same way. Subscribers run synchronously on the event loop thread; one that
raises is logged and skipped so the pipeline keeps going.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class BaseEvent(BaseModel):
    """Common event envelope."""

    event_type: str
    timestamp_utc: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ModuleInstalled(BaseEvent):
    """A module's main file was placed and exists on disk."""

    event_type: str = "module.installed"
    path: str
    is_core_module: bool


class PackageInstallFinished(BaseEvent):
    """One package of a batch finished (installed, skipped or failed)."""

    event_type: str = "package.install_finished"
    batch_id: str
    package: str
    success: bool
    skipped: bool = False
    error: str = ""
    error_code: Optional[str] = None


class BatchFinished(BaseEvent):
    """Every package of a batch has been attempted."""

    event_type: str = "batch.finished"
    batch_id: str
    packages: List[str] = Field(default_factory=list)
    success: bool
    failed: List[str] = Field(default_factory=list)
    error: str = ""


Subscriber = Callable[[BaseEvent], None]


class EventHub:
    """Synchronous publish/subscribe for install events."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: BaseEvent) -> int:
        """Deliver ``event`` to every subscriber.

        Returns:
            Number of subscribers that handled the event without raising
        """
        delivered = 0
        for callback in list(self._subscribers):
            try:
                callback(event)
                delivered += 1
            except Exception:
                logger.exception(f"Subscriber failed on {event.event_type}")
        return delivered
