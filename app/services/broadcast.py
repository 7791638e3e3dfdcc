from __future__ import annotations

"""
StreamVault — Progress broadcast hub
====================================

In-process fan-out of pipeline events to observers, partitioned by tenant.

- One `Subscription` per connected observer, bound to a single tenant for its
  whole lifetime. Events for other tenants are never enqueued on it.
- Each subscription owns a bounded `asyncio.Queue`. `publish` uses
  `put_nowait`; a full queue drops the event for that observer only.
- `publish` never blocks and never raises: a broken observer cannot stall or
  fail an ingestion run.
- The hub is created and closed by the application lifespan and reached via
  `app.state.broadcaster`. After `close()` every subscription is terminated and
  further publishes are dropped.

Delivery is at-most-once; observers reconcile with `GET /media/{id}/status`.
"""

import asyncio
import logging
from typing import AsyncIterator, Dict, Optional, Set
from uuid import UUID

from app.core.config import settings
from app.core.metrics import broadcast_observers, inc_broadcast
from app.schemas.events import PipelineEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


def tenant_room(tenant_id: UUID) -> str:
    return f"tenant_{tenant_id}"


class Subscription:
    """A single observer's view of its tenant's events."""

    def __init__(self, tenant_id: UUID, maxsize: int) -> None:
        self.tenant_id = tenant_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    @property
    def room(self) -> str:
        return tenant_room(self.tenant_id)

    def offer(self, payload: dict) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(payload)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    def terminate(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Make room for the terminator so a blocked reader always wakes.
        while True:
            try:
                self.queue.put_nowait(_CLOSED)
                return
            except asyncio.QueueFull:
                self.queue.get_nowait()

    async def get(self) -> Optional[dict]:
        """Next event, or None once the subscription is terminated."""
        item = await self.queue.get()
        if item is _CLOSED:
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[dict]:
        while True:
            item = await self.get()
            if item is None:
                return
            yield item


class ProgressBroadcaster:
    def __init__(self, queue_size: Optional[int] = None) -> None:
        self.queue_size = queue_size or settings.BROADCAST_QUEUE_SIZE
        self._rooms: Dict[UUID, Set[Subscription]] = {}
        self._open = False

    # ── lifecycle ───────────────────────────────────────────────────────────
    def start(self) -> None:
        self._open = True
        logger.info("Progress broadcaster started (queue_size=%d)", self.queue_size)

    def close(self) -> None:
        self._open = False
        for subs in self._rooms.values():
            for sub in subs:
                sub.terminate()
        self._rooms.clear()
        broadcast_observers.set(0)
        logger.info("Progress broadcaster closed")

    @property
    def is_open(self) -> bool:
        return self._open

    # ── observers ───────────────────────────────────────────────────────────
    def subscribe(self, tenant_id: UUID) -> Subscription:
        if not self._open:
            raise RuntimeError("broadcaster is not running")
        sub = Subscription(tenant_id, self.queue_size)
        self._rooms.setdefault(tenant_id, set()).add(sub)
        broadcast_observers.inc()
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._rooms.get(sub.tenant_id)
        if subs and sub in subs:
            subs.discard(sub)
            broadcast_observers.dec()
            if not subs:
                del self._rooms[sub.tenant_id]
        sub.terminate()

    def observer_count(self, tenant_id: Optional[UUID] = None) -> int:
        if tenant_id is None:
            return sum(len(s) for s in self._rooms.values())
        return len(self._rooms.get(tenant_id, ()))

    # ── publishing ──────────────────────────────────────────────────────────
    def publish(self, tenant_id: UUID, event: PipelineEvent) -> int:
        """Enqueue `event` for every observer of `tenant_id`; returns deliveries."""
        if not self._open:
            return 0
        try:
            payload = event.to_wire()
            delivered = dropped = 0
            for sub in list(self._rooms.get(tenant_id, ())):
                if sub.offer(payload):
                    delivered += 1
                else:
                    dropped += 1
            if dropped:
                logger.warning(
                    "Dropped %s for %d slow observer(s)",
                    payload.get("event"),
                    dropped,
                    extra={"artifact_id": str(event.artifact_id)},
                )
                inc_broadcast("dropped", dropped)
            if delivered:
                inc_broadcast("delivered", delivered)
            return delivered
        except Exception:
            logger.exception("Broadcast failed", extra={"artifact_id": str(getattr(event, "artifact_id", ""))})
            return 0


__all__ = ["ProgressBroadcaster", "Subscription", "tenant_room"]
