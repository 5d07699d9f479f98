"""Process-wide tracker of which users are connected to the presence channel."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Optional

from matchmaker.domain.common.listeners import Listener, ListenerSet, Unsubscribe
from matchmaker.domain.presence.channel import PresenceChannel, RedisPresenceChannel
from matchmaker.domain.presence.models import PresenceEvent, PresenceEventKind, PresenceState
from matchmaker.obs import metrics as obs_metrics
from matchmaker.settings import settings

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[], PresenceChannel]


class PresenceTracker:
    """Holds the set of user ids currently joined to the live channel.

    ``DISCONNECTED -> CONNECTING -> SYNCED``. Entering ``SYNCED`` replaces the
    whole set from a membership snapshot; afterwards join/leave events mutate
    it one member at a time. Teardown always announces the local user's leave
    before the channel is discarded, otherwise remote observers keep seeing
    this user until a server-side timeout.
    """

    def __init__(self, channel_factory: Optional[ChannelFactory] = None) -> None:
        self._channel_factory: ChannelFactory = channel_factory or RedisPresenceChannel
        self._channel: Optional[PresenceChannel] = None
        self._members: FrozenSet[str] = frozenset()
        self._listeners = ListenerSet()
        self.state = PresenceState.DISCONNECTED
        self.user_id: Optional[str] = None

    @property
    def members(self) -> FrozenSet[str]:
        return self._members

    def is_present(self, user_id: str) -> bool:
        return user_id in self._members

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self._listeners.subscribe(listener)

    async def connect(self, user_id: Optional[str]) -> bool:
        """Join the channel as ``user_id``; an empty id tears the connection down."""
        if not user_id:
            await self.disconnect()
            return False
        if self.user_id == user_id and self._channel is not None:
            return True
        if self._channel is not None:
            await self.disconnect()

        channel = self._channel_factory()
        self._channel = channel
        self.user_id = user_id
        self.state = PresenceState.CONNECTING
        try:
            await channel.subscribe()
            await channel.track(
                user_id,
                {"user_id": user_id, "joined_at": datetime.now(timezone.utc).isoformat()},
            )
            snapshot = await channel.snapshot()
        except Exception:
            logger.exception("presence connect failed for user=%s", user_id)
            if self._channel is channel:
                self._channel = None
                self.user_id = None
                self.state = PresenceState.DISCONNECTED
            await _close_quietly(channel)
            return False

        if self._channel is not channel:
            # Superseded by a disconnect or another identity while awaiting.
            return False
        self.state = PresenceState.SYNCED
        self.apply(snapshot)
        return True

    def apply(self, event: PresenceEvent) -> None:
        """Apply one channel event to the member set."""
        if event.kind is PresenceEventKind.SYNC:
            self._members = frozenset(event.members or ())
        elif self.state is not PresenceState.SYNCED:
            logger.debug("presence %s before sync ignored user=%s", event.kind.value, event.user_id)
            return
        elif event.kind is PresenceEventKind.JOIN and event.user_id:
            if event.user_id in self._members:
                return
            self._members = self._members | {event.user_id}
        elif event.kind is PresenceEventKind.LEAVE and event.user_id:
            if event.user_id not in self._members:
                return
            self._members = self._members - {event.user_id}
        else:
            return
        obs_metrics.PRESENCE_EVENTS.labels(kind=event.kind.value).inc()
        obs_metrics.PRESENCE_MEMBERS.set(len(self._members))
        self._listeners.notify()

    async def resync(self) -> None:
        channel = self._channel
        if channel is None or self.state is not PresenceState.SYNCED:
            return
        snapshot = await channel.snapshot()
        if channel is self._channel:
            self.apply(snapshot)

    async def run_once(self) -> int:
        """Pull pending channel events and apply them; returns how many were applied."""
        channel = self._channel
        if channel is None or self.state is not PresenceState.SYNCED:
            return 0
        events = await channel.read_events()
        if channel is not self._channel:
            return 0
        for event in events:
            self.apply(event)
        return len(events)

    async def run(self, idle_sleep: float = 0.05) -> None:
        """Consume channel events until cancelled; a failed read triggers a resync."""
        while True:
            try:
                applied = await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("presence event read failed")
                await self._resync_quietly()
                applied = 0
            if not applied:
                await asyncio.sleep(idle_sleep)

    async def run_keepalive(self, interval: Optional[float] = None) -> None:
        """Refresh the local member's heartbeat until cancelled."""
        interval = max(0.05, float(settings.presence_keepalive_interval_seconds if interval is None else interval))
        while True:
            await asyncio.sleep(interval)
            channel = self._channel
            user_id = self.user_id
            if channel is None or not user_id:
                continue
            try:
                await channel.refresh(user_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                obs_metrics.PRESENCE_KEEPALIVE_FAILURES.inc()
                logger.warning("presence keepalive failed for user=%s", user_id, exc_info=True)

    async def _resync_quietly(self) -> None:
        try:
            await self.resync()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("presence resync failed", exc_info=True)

    async def disconnect(self) -> None:
        """Announce leave, drop the channel, then clear the set."""
        channel = self._channel
        user_id = self.user_id
        self._channel = None
        if channel is not None and user_id:
            try:
                await channel.untrack(user_id)
            except Exception:
                logger.warning("presence leave failed for user=%s", user_id, exc_info=True)
        if channel is not None:
            await _close_quietly(channel)
        had_members = bool(self._members)
        self._members = frozenset()
        self.user_id = None
        self.state = PresenceState.DISCONNECTED
        obs_metrics.PRESENCE_MEMBERS.set(0)
        if had_members:
            self._listeners.notify()


async def _close_quietly(channel: PresenceChannel) -> None:
    try:
        await channel.close()
    except Exception:
        logger.warning("presence channel close failed", exc_info=True)


__all__ = ["PresenceTracker", "ChannelFactory"]
