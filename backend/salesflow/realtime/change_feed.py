"""Change Feed - In-process table change notifications

Repositories publish a ChangeEvent after every successful write; screens and
background watchers subscribe per table with an optional equality filter.
Delivery is best-effort: a failing subscriber is logged and skipped, and a
publish never waits longer than the configured delivery ceiling.
"""
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..config.settings import settings
from ..domain.enums import ChangeEventType
from ..domain.models import ChangeEvent
from ..utils.idgen import generate_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

ChangeCallback = Callable[[ChangeEvent], None]


@dataclass
class Subscription:
    """One table subscription"""
    subscription_id: str
    table: str
    callback: ChangeCallback
    event_type: Optional[ChangeEventType] = None
    filter: Dict[str, Any] = field(default_factory=dict)

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.event_type is not None and event.event_type != self.event_type:
            return False
        if not self.filter:
            return True
        # An update that moves a row out of the filter still reaches the old subscriber
        rows = [row for row in (event.new, event.old) if row]
        return any(
            all(row.get(key) == value for key, value in self.filter.items())
            for row in rows
        )


class ChangeFeed:
    """
    Table change publisher

    Constructed explicitly and passed by reference; the API layer shares one
    per process through get_change_feed().
    """

    def __init__(
        self,
        delivery_timeout_seconds: Optional[float] = None,
        max_workers: Optional[int] = None
    ):
        self._delivery_timeout = (
            delivery_timeout_seconds
            if delivery_timeout_seconds is not None
            else settings.realtime_delivery_timeout_seconds
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.realtime_max_workers,
            thread_name_prefix="change-feed"
        )
        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        event_type: Optional[ChangeEventType] = None,
        filter: Optional[Dict[str, Any]] = None
    ) -> Subscription:
        """Subscribe to changes on a table, optionally narrowed by event type and row filter"""
        subscription = Subscription(
            subscription_id=generate_id("SUB"),
            table=table,
            callback=callback,
            event_type=event_type,
            filter=dict(filter or {})
        )
        with self._lock:
            self._subscriptions[subscription.subscription_id] = subscription
        logger.debug(f"Subscribed {subscription.subscription_id} to {table} {subscription.filter}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription (no-op when already removed)"""
        with self._lock:
            self._subscriptions.pop(subscription.subscription_id, None)

    def subscriber_count(self, table: Optional[str] = None) -> int:
        with self._lock:
            if table is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions.values() if s.table == table)

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every matching subscriber"""
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.matches(event)]

        if not targets:
            return

        futures = {
            self._executor.submit(self._deliver, subscription, event): subscription
            for subscription in targets
        }
        _, not_done = wait(futures, timeout=self._delivery_timeout)
        for future in not_done:
            subscription = futures[future]
            logger.warning(
                f"Change delivery to {subscription.subscription_id} exceeded "
                f"{self._delivery_timeout}s on {event.table}"
            )

    def publish_change(
        self,
        table: str,
        event_type: ChangeEventType,
        old: Optional[Dict[str, Any]] = None,
        new: Optional[Dict[str, Any]] = None
    ) -> None:
        self.publish(ChangeEvent(table=table, event_type=event_type, old=old, new=new))

    def close(self) -> None:
        """Drop all subscriptions and stop the delivery pool"""
        with self._lock:
            self._subscriptions.clear()
        self._executor.shutdown(wait=False)

    @staticmethod
    def _deliver(subscription: Subscription, event: ChangeEvent) -> None:
        try:
            subscription.callback(event)
        except Exception as e:
            logger.error(
                f"Change subscriber {subscription.subscription_id} failed on {event.table}: {e}",
                exc_info=True
            )


# Global feed instance
_change_feed: Optional[ChangeFeed] = None


def get_change_feed() -> ChangeFeed:
    """Get the process-wide change feed"""
    global _change_feed
    if _change_feed is None:
        _change_feed = ChangeFeed()
    return _change_feed


def close_change_feed() -> None:
    global _change_feed
    if _change_feed is not None:
        _change_feed.close()
        _change_feed = None
