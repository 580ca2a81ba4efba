"""Live synchronization between the store's change feed and projections.

A ``LiveView`` holds the latest result of one aggregator for one user. The
``LiveSyncBridge`` keeps a single store subscription per entity, shared by
every registered view, and on each change event re-runs the aggregator of
every view interested in it against a fresh snapshot. Views are never
patched incrementally.

Views are registered for the lifetime of an ``async with bridge.watch(view)``
block. The entity subscription is opened when the first interested view
registers and closed when the last one leaves, so no store-side listener
outlives its consumers.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Iterable
from uuid import UUID

from agenda.store.adapter import ParticipationStore
from agenda.store.base import ChangeEvent, ChangeFilter, Entity
from agenda.store.feed import Subscription
from agenda.views.snapshot import Snapshot, load_snapshot

logger = logging.getLogger(__name__)

Projection = Callable[..., Any]

DEFAULT_INTERESTS = (ChangeFilter(Entity.attendee), ChangeFilter(Entity.appointment))


class LiveView:
    """The continuously refreshed output of one projection for one user.

    Attributes:
        name: Label used in logs.
        user_id: Viewer the projection is computed for.
        result: Latest projection output (None before the first refresh).
        version: Incremented after every successful refresh.
    """

    def __init__(
        self,
        name: str,
        user_id: UUID,
        projection: Projection,
        loader: Callable[[], Awaitable[Snapshot]],
        interests: Iterable[ChangeFilter] = DEFAULT_INTERESTS,
    ):
        self.name = name
        self.user_id = user_id
        self.projection = projection
        self.interests = tuple(interests)
        self._loader = loader
        self.result: Any = None
        self.version = 0
        self._changed = asyncio.Condition()
        self._refreshing = asyncio.Lock()

    @property
    def entities(self) -> set[Entity]:
        return {interest.entity for interest in self.interests}

    def wants(self, event: ChangeEvent) -> bool:
        return any(interest.matches(event) for interest in self.interests)

    async def refresh(self) -> Any:
        """Reload and re-project; concurrent refreshes complete in call order."""
        async with self._refreshing:
            snapshot = await self._loader()
            result = self.projection(
                self.user_id, snapshot.records, snapshot.appointments, snapshot.profiles
            )
            async with self._changed:
                self.result = result
                self.version += 1
                self._changed.notify_all()
        return result

    async def wait_for_version(self, version: int, timeout: float | None = None) -> Any:
        """Wait until at least ``version`` refreshes have completed."""
        async with self._changed:
            await asyncio.wait_for(
                self._changed.wait_for(lambda: self.version >= version), timeout
            )
            return self.result


class LiveSyncBridge:
    """Fans change events out from one subscription per entity to live views."""

    def __init__(self, store: ParticipationStore):
        self.store = store
        self._views: dict[Entity, list[LiveView]] = {}
        self._subscriptions: dict[Entity, Subscription] = {}
        self._pumps: set[asyncio.Task] = set()

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def live_view(
        self,
        name: str,
        user_id: UUID,
        projection: Projection,
        interests: Iterable[ChangeFilter] = DEFAULT_INTERESTS,
    ) -> LiveView:
        """Build a view that reloads its snapshot from this bridge's store."""
        return LiveView(name, user_id, projection, lambda: load_snapshot(self.store), interests)

    @asynccontextmanager
    async def watch(self, view: LiveView):
        """Register ``view`` for the duration of the block."""
        await self.register(view)
        try:
            yield view
        finally:
            self.release(view)

    async def register(self, view: LiveView) -> None:
        """Start delivering changes to ``view`` and compute its first result."""
        for entity in view.entities:
            self._views.setdefault(entity, []).append(view)
            if entity not in self._subscriptions:
                self._open(entity)
        try:
            await view.refresh()
        except BaseException:
            self.release(view)
            raise
        logger.debug(f"Registered live view {view.name} for user {view.user_id}")

    def release(self, view: LiveView) -> None:
        """Stop delivering changes to ``view``; close idle subscriptions."""
        for entity in view.entities:
            listeners = self._views.get(entity, [])
            if view in listeners:
                listeners.remove(view)
            if not listeners:
                self._views.pop(entity, None)
                self._close(entity)
        logger.debug(f"Released live view {view.name} for user {view.user_id}")

    async def close(self) -> None:
        """Release everything and wait for the dispatch loops to finish."""
        self._views.clear()
        pumps = list(self._pumps)
        for entity in list(self._subscriptions):
            self._close(entity)
        await asyncio.gather(*pumps, return_exceptions=True)

    def _open(self, entity: Entity) -> None:
        subscription = self.store.subscribe(entity)
        self._subscriptions[entity] = subscription
        task = asyncio.create_task(self._pump(entity, subscription), name=f"live-sync-{entity.value}")
        self._pumps.add(task)
        task.add_done_callback(lambda done: self._pump_finished(entity, subscription, done))
        logger.info(f"Subscribed to {entity.value} changes")

    def _pump_finished(self, entity: Entity, subscription: Subscription, task: asyncio.Task) -> None:
        self._pumps.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        logger.error(f"Dispatch loop for {entity.value} stopped", exc_info=task.exception())
        # Only drop the subscription this loop was serving; the next register reopens it
        if self._subscriptions.get(entity) is subscription:
            self._close(entity)

    def _close(self, entity: Entity) -> None:
        subscription = self._subscriptions.pop(entity, None)
        if subscription is not None:
            subscription.close()
            logger.info(f"Unsubscribed from {entity.value} changes")

    async def _pump(self, entity: Entity, subscription: Subscription) -> None:
        async for event in subscription:
            for view in list(self._views.get(entity, [])):
                if not view.wants(event):
                    continue
                try:
                    await view.refresh()
                except Exception:
                    # The next change event triggers another full refresh
                    logger.exception(f"Refreshing live view {view.name} failed")
