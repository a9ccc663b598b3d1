"""
Refresh Coordinator - decides when catalog entries are re-fetched.

Features:
- One in-flight fetch per vendor; concurrent callers share the same task
- Periodic refresh for subscribed (actively viewed) gardens
- External change signals (invalidate + refresh)
- No automatic retry beyond the timer cadence and no backoff

cleanup() cancels timers immediately but leaves in-flight fetches alone:
they complete and update the cache, nothing gets rescheduled after them.
"""
import asyncio
import functools
from enum import Enum
from typing import Optional

from garden_market.catalog.cache import CatalogCache
from garden_market.catalog.provider import CatalogProvider
from garden_market.config import DEFAULT_REFRESH_INTERVAL
from garden_market.errors import CatalogFetchError, RefreshFailed
from garden_market.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


class SubscriptionState(str, Enum):
    """
    Lifecycle of a vendor subscription.

    Flow:
        unsubscribed -> idle -> refreshing -> idle | failed
        any -> unsubscribed (unsubscribe / cleanup)
    """
    UNSUBSCRIBED = "unsubscribed"
    IDLE = "idle"
    REFRESHING = "refreshing"
    FAILED = "failed"


class RefreshCoordinator:
    """Single authority for starting catalog refreshes."""

    def __init__(
        self,
        cache: CatalogCache,
        provider: CatalogProvider,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
    ):
        if refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive")
        self.cache = cache
        self.provider = provider
        self.refresh_interval = refresh_interval
        self._pending: dict[str, asyncio.Task] = {}
        self._follow_ups: dict[str, asyncio.Task] = {}
        self._timers: dict[str, asyncio.Task] = {}
        self._states: dict[str, SubscriptionState] = {}

    # ------------------------------------------------------------------
    # On-demand refresh
    # ------------------------------------------------------------------

    def in_flight(self, vendor_id: str) -> Optional[asyncio.Task]:
        """Pending refresh task for the vendor, if any."""
        pending = self._pending.get(vendor_id)
        return pending if pending is not None and not pending.done() else None

    def refresh(self, vendor_id: str, force: bool = False) -> "asyncio.Future[None]":
        """
        Refresh a vendor's catalog.

        Every call made while a refresh is in flight gets the same task, so
        the provider sees exactly one fetch. Without force, a fresh entry
        returns an already completed future.

        Must be called from a running event loop. Awaiting the result raises
        RefreshFailed if the fetch failed. Wrap it in asyncio.shield() if the
        caller may be cancelled, since the task is shared.
        """
        pending = self.in_flight(vendor_id)
        if pending is not None:
            return pending

        loop = asyncio.get_running_loop()
        if not force and not self.cache.is_stale(vendor_id):
            done = loop.create_future()
            done.set_result(None)
            return done

        task = loop.create_task(self._run(vendor_id), name=f"catalog-refresh:{vendor_id}")
        self._pending[vendor_id] = task
        self._set_state(vendor_id, SubscriptionState.REFRESHING)
        task.add_done_callback(functools.partial(self._on_refresh_done, vendor_id))
        return task

    async def _run(self, vendor_id: str) -> None:
        safe_id = sanitize_id_for_logging(vendor_id)
        logger.info(f"Refreshing catalog for garden {safe_id}")
        try:
            try:
                vendor, products_by_category = await self.provider.fetch(vendor_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Catalog refresh failed for garden {safe_id}: {e}")
                raise RefreshFailed(vendor_id, e) from e

            if vendor.id != vendor_id:
                error = CatalogFetchError(f"expected garden {vendor_id}, got {vendor.id}")
                logger.warning(f"Catalog refresh failed for garden {safe_id}: {error}")
                raise RefreshFailed(vendor_id, error) from error

            snapshot = self.cache.replace(vendor_id, vendor, products_by_category)
            logger.info(f"Catalog for garden {safe_id} refreshed (generation {snapshot.generation})")
        finally:
            # Unregister before the task completes, not a loop turn later in
            # the done callback, so no caller is handed a finished task
            self._forget(vendor_id, asyncio.current_task())

    def _forget(self, vendor_id: str, task: Optional[asyncio.Task]) -> None:
        if task is not None and self._pending.get(vendor_id) is task:
            del self._pending[vendor_id]

    def _on_refresh_done(self, vendor_id: str, task: asyncio.Task) -> None:
        # Tasks cancelled before their first step never reach _run's finally
        self._forget(vendor_id, task)
        if vendor_id in self._pending:
            # A newer refresh already owns the state
            return

        if task.cancelled():
            self._set_state(vendor_id, SubscriptionState.IDLE)
            return
        # Mark the exception as retrieved; callers still get it when awaiting
        failed = task.exception() is not None
        self._set_state(vendor_id, SubscriptionState.FAILED if failed else SubscriptionState.IDLE)

    def signal(self, vendor_id: str) -> "asyncio.Future[None]":
        """
        External notification that a vendor's data changed upstream.

        Invalidates the entry and refreshes. If a fetch is already in flight
        it may predate the change, so a forced refresh is chained after it.
        Signals arriving while that chain is waiting share it.

        The returned future may be ignored; a failure of the chained refresh
        is logged rather than left unretrieved.
        """
        self.cache.invalidate(vendor_id)
        follow_up = self._follow_ups.get(vendor_id)
        if follow_up is not None and not follow_up.done():
            return follow_up

        pending = self.in_flight(vendor_id)
        if pending is None:
            return self.refresh(vendor_id, force=True)

        follow_up = asyncio.get_running_loop().create_task(
            self._refresh_after(pending, vendor_id), name=f"catalog-signal:{vendor_id}"
        )
        self._follow_ups[vendor_id] = follow_up
        follow_up.add_done_callback(functools.partial(self._on_follow_up_done, vendor_id))
        return follow_up

    async def _refresh_after(self, pending: asyncio.Task, vendor_id: str) -> None:
        try:
            await asyncio.shield(pending)
        except RefreshFailed:
            logger.debug(f"Superseded refresh failed for garden {sanitize_id_for_logging(vendor_id)}")
        if self._follow_ups.get(vendor_id) is asyncio.current_task():
            # Later signals start their own chain from here on
            del self._follow_ups[vendor_id]
        await asyncio.shield(self.refresh(vendor_id, force=True))

    def _on_follow_up_done(self, vendor_id: str, task: asyncio.Task) -> None:
        if self._follow_ups.get(vendor_id) is task:
            del self._follow_ups[vendor_id]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Refresh after change signal failed: {error}")

    # ------------------------------------------------------------------
    # Timer-driven refresh
    # ------------------------------------------------------------------

    def state(self, vendor_id: str) -> SubscriptionState:
        return self._states.get(vendor_id, SubscriptionState.UNSUBSCRIBED)

    def _set_state(self, vendor_id: str, state: SubscriptionState) -> None:
        # Only subscriptions are tracked
        if vendor_id in self._states:
            self._states[vendor_id] = state

    @property
    def subscriptions(self) -> list[str]:
        return list(self._timers)

    def subscribe(self, vendor_id: str) -> None:
        """Start periodic refresh for a garden that is being viewed. Idempotent."""
        if vendor_id in self._timers:
            return
        self._states[vendor_id] = (
            SubscriptionState.REFRESHING if self.in_flight(vendor_id) is not None else SubscriptionState.IDLE
        )
        self._timers[vendor_id] = asyncio.get_running_loop().create_task(
            self._tick(vendor_id), name=f"catalog-timer:{vendor_id}"
        )
        logger.debug(f"Subscribed to garden {sanitize_id_for_logging(vendor_id)}")

    def unsubscribe(self, vendor_id: str) -> None:
        timer = self._timers.pop(vendor_id, None)
        if timer is not None:
            timer.cancel()
        self._states.pop(vendor_id, None)

    async def _tick(self, vendor_id: str) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            pending = self.refresh(vendor_id, force=False)
            try:
                # Shielded: cancelling the timer must not cancel a shared fetch
                await asyncio.shield(pending)
            except RefreshFailed as e:
                logger.warning(f"Scheduled refresh failed, retrying next tick: {e}")
            except asyncio.CancelledError:
                # Someone else cancelled the shared fetch: a missed tick.
                # Cancellation of the timer itself still ends the loop.
                if not pending.cancelled() or self._timers.get(vendor_id) is not asyncio.current_task():
                    raise
                logger.warning(
                    f"Scheduled refresh for garden {sanitize_id_for_logging(vendor_id)} was cancelled, "
                    f"retrying next tick"
                )

    def cleanup(self) -> None:
        """
        Cancel all timers and drop subscription tracking.

        Safe to call repeatedly. In-flight fetches are not cancelled.
        """
        timers = list(self._timers.values())
        self._timers.clear()
        self._states.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            logger.info(f"Refresh coordinator cleaned up ({len(timers)} timers cancelled)")
