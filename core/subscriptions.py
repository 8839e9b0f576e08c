"""
Process-wide subscription registry.

Some upstream subscriptions (the auth-state listener, for instance) must
exist at most once per process no matter how many consumers ask for them.
The registry creates the subscription on first acquire, reference-counts
further acquires, and tears it down when the last handle is released.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.metrics import set_gauge

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]

# Factory receives the registry-level publish function for its key and
# returns an object with an `unsubscribe()` method (or None).
SubscriptionFactory = Callable[[Callable[[Any], None]], Any]

_handle_ids = itertools.count(1)


@dataclass(frozen=True)
class SubscriptionHandle:
    """Token returned by acquire; pass it back to release."""
    key: str
    handle_id: int


@dataclass
class _Entry:
    subscription: Any
    listeners: Dict[int, Optional[Listener]] = field(default_factory=dict)

    @property
    def ref_count(self) -> int:
        return len(self.listeners)


class SubscriptionRegistry:
    """Reference-counted subscriptions keyed by purpose (e.g. "auth_state")."""

    def __init__(self):
        self._lock = threading.RLock()
        self._entries: Dict[str, _Entry] = {}

    def acquire(
        self,
        key: str,
        factory: SubscriptionFactory,
        listener: Optional[Listener] = None,
    ) -> SubscriptionHandle:
        """
        Get a handle on the subscription for key, creating it if needed.

        Args:
            key: Purpose of the subscription
            factory: Called once, when no live subscription exists for key
            listener: Optional callback receiving events published for key

        Returns:
            SubscriptionHandle to release later
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Creating subscription {key!r}")
                subscription = factory(lambda event: self.publish(key, event))
                entry = _Entry(subscription=subscription)
                self._entries[key] = entry
                set_gauge("subscriptions.active", len(self._entries))

            handle = SubscriptionHandle(key=key, handle_id=next(_handle_ids))
            entry.listeners[handle.handle_id] = listener
            return handle

    def release(self, handle: SubscriptionHandle) -> bool:
        """
        Release a handle. Unknown or already released handles are ignored.

        Returns:
            True if the handle was live
        """
        with self._lock:
            entry = self._entries.get(handle.key)
            if entry is None or handle.handle_id not in entry.listeners:
                return False

            del entry.listeners[handle.handle_id]
            if entry.ref_count == 0:
                del self._entries[handle.key]
                set_gauge("subscriptions.active", len(self._entries))
                self._teardown(handle.key, entry.subscription)
            return True

    def publish(self, key: str, event: Any) -> int:
        """
        Deliver an event to every live listener of key.

        Listener errors are logged and do not stop delivery.

        Returns:
            Number of listeners notified
        """
        with self._lock:
            entry = self._entries.get(key)
            listeners: List[Listener] = (
                [fn for fn in entry.listeners.values() if fn is not None] if entry else []
            )

        delivered = 0
        for listener in listeners:
            try:
                listener(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Listener for {key!r} failed: {e}", exc_info=True)
        return delivered

    def ref_count(self, key: str) -> int:
        with self._lock:
            entry = self._entries.get(key)
            return entry.ref_count if entry else 0

    def is_active(self, key: str) -> bool:
        return self.ref_count(key) > 0

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def close(self):
        """Tear down every live subscription."""
        with self._lock:
            entries = list(self._entries.items())
            self._entries.clear()
            set_gauge("subscriptions.active", 0)
        for key, entry in entries:
            self._teardown(key, entry.subscription)

    @staticmethod
    def _teardown(key: str, subscription: Any):
        logger.debug(f"Tearing down subscription {key!r}")
        unsubscribe = getattr(subscription, "unsubscribe", None)
        if unsubscribe is None:
            return
        try:
            unsubscribe()
        except Exception as e:
            logger.warning(f"Unsubscribe failed for {key!r}: {e}")


# ============================================================================
# Global Registry Instance
# ============================================================================

_global_registry: Optional[SubscriptionRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> SubscriptionRegistry:
    """Get the process-wide registry."""
    global _global_registry

    if _global_registry is None:
        with _registry_lock:
            if _global_registry is None:
                _global_registry = SubscriptionRegistry()

    return _global_registry


def reset_registry():
    """Close and drop the global registry (for testing)."""
    global _global_registry

    with _registry_lock:
        if _global_registry is not None:
            _global_registry.close()
        _global_registry = None
