"""In-process mirror of manual statuses with optimistic writes for the local user."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

from matchmaker.domain.common.listeners import Listener, ListenerSet, Unsubscribe
from matchmaker.domain.status.models import ManualStatus
from matchmaker.domain.status.repository import StatusRepository
from matchmaker.obs import metrics as obs_metrics
from matchmaker.settings import settings

logger = logging.getLogger(__name__)


class ManualStatusStore:
    """``user_id -> ManualStatus`` map fed by the change stream and local writes.

    Only the identity set through :meth:`set_identity` may write. Local writes
    land in the map before persistence is attempted and are never rolled back;
    a write that the feed does not confirm within ``optimistic_ttl`` seconds is
    re-read from storage by :meth:`reconcile_pending`.
    """

    def __init__(
        self,
        repository: Optional[StatusRepository] = None,
        *,
        optimistic_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repo = repository or StatusRepository()
        self._ttl = settings.status_optimistic_ttl_seconds if optimistic_ttl is None else optimistic_ttl
        self._clock = clock
        self._statuses: Dict[str, ManualStatus] = {}
        self._seeded: Set[str] = set()
        self._pending: Dict[str, Tuple[ManualStatus, float]] = {}
        self._background: Set[asyncio.Task] = set()
        self._listeners = ListenerSet()
        # bumped whenever local state is wiped so late responses can be dropped
        self._epoch = 0
        self.user_id: Optional[str] = None

    def get(self, user_id: str) -> Optional[ManualStatus]:
        return self._statuses.get(user_id)

    def snapshot(self) -> Dict[str, ManualStatus]:
        return dict(self._statuses)

    @property
    def my_status(self) -> Optional[ManualStatus]:
        if not self.user_id:
            return None
        return self._statuses.get(self.user_id)

    def is_pending(self, user_id: str) -> bool:
        return user_id in self._pending

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self._listeners.subscribe(listener)

    async def seed_once(self, user_id: str) -> Optional[ManualStatus]:
        """Ensure a persisted row exists for ``user_id``; issues at most one write per session."""
        if not user_id or user_id in self._seeded:
            return self._statuses.get(user_id) if user_id else None
        self._seeded.add(user_id)
        epoch = self._epoch
        try:
            persisted = await self._repo.seed(user_id)
        except Exception:
            self._seeded.discard(user_id)
            logger.warning("status seed failed for user=%s", user_id, exc_info=True)
            return None
        if epoch != self._epoch:
            return persisted
        if persisted is not None and user_id not in self._statuses:
            self._statuses[user_id] = persisted
            self._listeners.notify()
        return self._statuses.get(user_id, persisted)

    def apply_remote_change(self, user_id: str, status: Optional[ManualStatus]) -> None:
        """Overwrite the local entry from the change feed; ``None`` removes it."""
        self._pending.pop(user_id, None)
        previous = self._statuses.get(user_id)
        if status is None:
            self._statuses.pop(user_id, None)
        else:
            self._statuses[user_id] = status
        if previous != status:
            self._listeners.notify()

    async def set_mine(self, status: ManualStatus) -> None:
        user_id = self.user_id
        if not user_id:
            logger.warning("status update without identity ignored status=%s", status.value)
            return
        self._statuses[user_id] = status
        self._pending[user_id] = (status, self._clock() + self._ttl)
        self._listeners.notify()
        try:
            await self._repo.update(user_id, status)
        except Exception:
            logger.warning("status update failed for user=%s status=%s", user_id, status.value, exc_info=True)

    def set_identity(self, user_id: Optional[str]) -> None:
        """Switch the local identity; the outgoing one is marked offline in the background."""
        user_id = user_id or None
        if user_id == self.user_id:
            return
        outgoing = self.user_id
        if outgoing:
            task = asyncio.create_task(self._write_offline(outgoing))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        had_entries = bool(self._statuses)
        self._statuses.clear()
        self._seeded.clear()
        self._pending.clear()
        self._epoch += 1
        self.user_id = user_id
        if had_entries:
            self._listeners.notify()

    async def _write_offline(self, user_id: str) -> None:
        try:
            await self._repo.update(user_id, ManualStatus.OFFLINE)
        except Exception:
            logger.info("offline write on sign-out failed for user=%s", user_id, exc_info=True)

    async def hydrate(self, user_ids: Iterable[str]) -> int:
        """Load persisted statuses for ids with no local entry; returns how many were added."""
        missing = [uid for uid in dict.fromkeys(user_ids) if uid and uid not in self._statuses]
        if not missing:
            return 0
        epoch = self._epoch
        found = await self._repo.get_many(missing)
        if epoch != self._epoch:
            return 0
        added = 0
        for uid, status in found.items():
            if uid not in self._statuses:
                self._statuses[uid] = status
                added += 1
        if added:
            self._listeners.notify()
        return added

    async def reconcile_pending(self) -> int:
        """Re-read optimistic writes older than the TTL from storage."""
        now = self._clock()
        expired = {uid: entry for uid, entry in self._pending.items() if entry[1] <= now}
        if not expired:
            return 0
        epoch = self._epoch
        try:
            stored = await self._repo.get_many(expired.keys())
        except Exception:
            logger.warning("status resync failed users=%d", len(expired), exc_info=True)
            return 0
        if epoch != self._epoch:
            return 0
        changed = False
        resynced = 0
        for uid, entry in expired.items():
            if self._pending.get(uid) != entry:
                # confirmed or rewritten while the read was in flight
                continue
            del self._pending[uid]
            resynced += 1
            value = stored.get(uid)
            if value is None:
                changed = self._statuses.pop(uid, None) is not None or changed
            elif self._statuses.get(uid) != value:
                self._statuses[uid] = value
                changed = True
        if resynced:
            obs_metrics.STATUS_RESYNCS.inc(resynced)
        if changed:
            self._listeners.notify()
        return resynced

    async def run_pending_sweeper(self, interval: Optional[float] = None) -> None:
        delay = settings.status_sweeper_interval_seconds if interval is None else interval
        while True:
            try:
                await asyncio.sleep(delay)
                await self.reconcile_pending()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("status sweeper iteration failed")

    async def drain(self) -> None:
        """Wait for background writes started by identity changes."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


__all__ = ["ManualStatusStore"]
