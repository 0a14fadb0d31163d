import asyncio
import logging
from collections.abc import Awaitable, Callable

from mockgrade.config import settings
from mockgrade.core.cache import invalidate_hub_broadsheets
from mockgrade.dependencies.database import get_sessionmanager
from mockgrade.services.broadsheet_service import compute_broadsheet
from mockgrade.services.persistence import persistence_store

logger = logging.getLogger(__name__)

PassRunner = Callable[[str, int], Awaitable[None]]


class RecomputeScheduler:
    """Debounced broadsheet recomputation per hub.

    Every change re-arms the hub's timer. When the timer fires, a pass starts only if no newer
    change arrived in the meantime (latest wins). Running passes are never interrupted.
    """

    def __init__(self, debounce_seconds: float | None = None, runner: PassRunner | None = None):
        self._debounce_seconds = (
            settings.recompute_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self._runner: PassRunner = runner or self._run_pass
        self._tokens: dict[str, int] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._running: set[asyncio.Task[None]] = set()
        self._unsubscribe: Callable[[], None] | None = None
        self.passes_run: int = 0

    def latest_token(self, hub_id: str) -> int:
        return self._tokens.get(hub_id, 0)

    def is_current(self, hub_id: str, token: int) -> bool:
        return token == self.latest_token(hub_id)

    def on_change(self, hub_id: str, record_id: str) -> None:
        """Change listener for the persistence store."""
        invalidate_hub_broadsheets(hub_id)
        self.schedule(hub_id)

    def schedule(self, hub_id: str) -> int:
        """Arm (or re-arm) the hub's timer and return the new token."""
        token = self.latest_token(hub_id) + 1
        self._tokens[hub_id] = token

        timer = self._timers.pop(hub_id, None)
        if timer is not None:
            timer.cancel()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (e.g. a script writing records); the next read computes on demand
            logger.debug("no running loop, recompute not scheduled", extra={"hub_id": hub_id})
            return token

        self._timers[hub_id] = loop.call_later(self._debounce_seconds, self._fire, hub_id, token)
        return token

    def _fire(self, hub_id: str, token: int) -> None:
        self._timers.pop(hub_id, None)
        if not self.is_current(hub_id, token):
            return
        task = asyncio.get_running_loop().create_task(self._execute(hub_id, token))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _execute(self, hub_id: str, token: int) -> None:
        try:
            await self._runner(hub_id, token)
            self.passes_run += 1
        except Exception:
            logger.exception("recompute pass failed", extra={"hub_id": hub_id, "token": token})

    async def _run_pass(self, hub_id: str, token: int) -> None:
        sessionmanager = get_sessionmanager()
        async with sessionmanager.session() as session:
            result = await compute_broadsheet(session, hub_id)
            if settings.persist_computed_snapshots and self.is_current(hub_id, token):
                await persistence_store.save_computed_snapshot(session, hub_id, result)
        logger.info(
            "broadsheet recomputed",
            extra={"hub_id": hub_id, "series": result.series, "students": len(result.students)},
        )

    def start(self) -> None:
        """Subscribe to persistence changes."""
        if self._unsubscribe is None:
            self._unsubscribe = persistence_store.subscribe(self.on_change)

    async def stop(self) -> None:
        """Unsubscribe, drop pending timers and wait for running passes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)


# Global scheduler instance
recompute_scheduler = RecomputeScheduler()
