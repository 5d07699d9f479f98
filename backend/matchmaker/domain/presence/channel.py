"""Presence channel primitive backed by a Redis hash and event stream.

Members live in ``presence:channel:<name>`` (field = member key, value = JSON
metadata with at least ``user_id``). Every track/untrack appends a join/leave
entry to ``presence:events:<name>`` which subscribers read with XREAD.

Liveness is a sorted set ``presence:heartbeat:<name>`` scoring each member key
by the time its heartbeat expires. Members whose heartbeat lapsed are hidden
from snapshots and removed, with a leave event, by :func:`sweep_once`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Mapping, Optional, Protocol

from matchmaker.domain.presence.models import PresenceEvent, PresenceEventKind
from matchmaker.infra.redis import decode_fields, redis_client
from matchmaker.obs import metrics as obs_metrics
from matchmaker.settings import settings

logger = logging.getLogger(__name__)


class PresenceChannel(Protocol):
    async def subscribe(self) -> None:
        ...

    async def track(self, member_key: str, meta: Mapping[str, Any]) -> None:
        ...

    async def refresh(self, member_key: str) -> None:
        ...

    async def untrack(self, member_key: str) -> None:
        ...

    async def snapshot(self) -> PresenceEvent:
        ...

    async def read_events(self) -> list[PresenceEvent]:
        ...

    async def close(self) -> None:
        ...


def members_from_state(state: Mapping[str, Any]) -> frozenset[str]:
    """Extract user ids from raw member metadata, skipping malformed entries."""
    user_ids: set[str] = set()
    for member_key, raw in state.items():
        meta = raw
        if isinstance(raw, (str, bytes)):
            try:
                meta = json.loads(raw)
            except (TypeError, ValueError):
                logger.warning("ignoring malformed presence entry key=%s", member_key)
                continue
        if not isinstance(meta, Mapping):
            continue
        user_id = meta.get("user_id")
        if isinstance(user_id, str) and user_id:
            user_ids.add(user_id)
    return frozenset(user_ids)


def _user_id_of(member_key: str, raw: Any) -> str:
    if raw:
        try:
            return str(json.loads(raw).get("user_id") or member_key)
        except (TypeError, ValueError, AttributeError):
            pass
    return member_key


class RedisPresenceChannel:
    """One subscription to a named presence channel."""

    def __init__(
        self,
        name: Optional[str] = None,
        client: Any = redis_client,
        *,
        block_ms: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name or settings.presence_channel_name
        self._redis = client
        self._members_key = f"presence:channel:{self.name}"
        self._events_key = f"presence:events:{self.name}"
        self._heartbeat_key = f"presence:heartbeat:{self.name}"
        self.block_ms = settings.presence_block_ms if block_ms is None else block_ms
        self.ttl_seconds = float(settings.presence_ttl_seconds if ttl_seconds is None else ttl_seconds)
        self._clock = clock
        self._tracked: dict[str, str] = {}
        self.batch_size = 100
        self.last_id = "0-0"
        self.closed = False

    async def subscribe(self) -> None:
        """Start reading after the newest existing event; the snapshot covers older ones."""
        latest = await self._redis.xrevrange(self._events_key, count=1)
        self.last_id = latest[0][0] if latest else "0-0"

    async def track(self, member_key: str, meta: Mapping[str, Any]) -> None:
        encoded = json.dumps(dict(meta))
        self._tracked[member_key] = encoded
        await self._redis.zadd(self._heartbeat_key, {member_key: self._clock() + self.ttl_seconds})
        await self._redis.hset(self._members_key, member_key, encoded)
        await self._publish(PresenceEventKind.JOIN, member_key, str(meta.get("user_id") or member_key))

    async def refresh(self, member_key: str) -> None:
        """Extend the heartbeat; re-joins if a sweep already removed the member."""
        await self._redis.zadd(self._heartbeat_key, {member_key: self._clock() + self.ttl_seconds})
        encoded = self._tracked.get(member_key)
        if encoded is None or await self._redis.hexists(self._members_key, member_key):
            return
        logger.info("presence member re-joined after expiry key=%s", member_key)
        await self._redis.hset(self._members_key, member_key, encoded)
        await self._publish(PresenceEventKind.JOIN, member_key, _user_id_of(member_key, encoded))

    async def untrack(self, member_key: str) -> None:
        self._tracked.pop(member_key, None)
        raw = await self._redis.hget(self._members_key, member_key)
        await self._redis.hdel(self._members_key, member_key)
        await self._redis.zrem(self._heartbeat_key, member_key)
        await self._publish(PresenceEventKind.LEAVE, member_key, _user_id_of(member_key, raw))

    async def snapshot(self) -> PresenceEvent:
        state = decode_fields(await self._redis.hgetall(self._members_key) or {})
        expired = await self._expired_keys(state)
        live = {key: raw for key, raw in state.items() if key not in expired}
        return PresenceEvent.sync(members_from_state(live))

    async def sweep_expired(self) -> int:
        """Drop members whose heartbeat lapsed and announce their leave."""
        state = decode_fields(await self._redis.hgetall(self._members_key) or {})
        expired = await self._expired_keys(state)
        for member_key in expired:
            removed = await self._redis.hdel(self._members_key, member_key)
            await self._redis.zrem(self._heartbeat_key, member_key)
            if removed:
                await self._publish(PresenceEventKind.LEAVE, member_key, _user_id_of(member_key, state[member_key]))
        return len(expired)

    async def read_events(self) -> list[PresenceEvent]:
        if self.closed:
            return []
        block = self.block_ms if self.block_ms and self.block_ms > 0 else None
        messages = await self._redis.xread({self._events_key: self.last_id}, count=self.batch_size, block=block)
        if not messages:
            return []
        events: list[PresenceEvent] = []
        for _stream, entries in messages:
            for _entry_id, payload in entries:
                event = _parse_event(decode_fields(payload))
                if event is not None:
                    events.append(event)
            if entries:
                self.last_id = entries[-1][0]
        return events

    async def close(self) -> None:
        self.closed = True

    async def _expired_keys(self, state: Mapping[str, Any]) -> list[str]:
        # a member with no heartbeat entry counts as expired
        now = self._clock()
        expired: list[str] = []
        for member_key in state:
            expires_at = await self._redis.zscore(self._heartbeat_key, member_key)
            if expires_at is None or float(expires_at) <= now:
                expired.append(member_key)
        return expired

    async def _publish(self, kind: PresenceEventKind, member_key: str, user_id: str) -> None:
        await self._redis.xadd(
            self._events_key,
            {"kind": kind.value, "key": member_key, "user_id": user_id},
        )


async def sweep_once(channel: Optional[RedisPresenceChannel] = None) -> int:
    channel = channel or RedisPresenceChannel()
    trimmed = await channel.sweep_expired()
    if trimmed:
        logger.info("presence sweeper removed %s stale members channel=%s", trimmed, channel.name)
        obs_metrics.PRESENCE_SWEEPER_TRIMS.inc(trimmed)
    return trimmed


async def run_presence_sweeper(channel: Optional[RedisPresenceChannel] = None, interval_s: Optional[float] = None) -> None:
    """Periodically remove members whose heartbeat expired without a leave."""
    channel = channel or RedisPresenceChannel()
    interval = max(0.05, float(settings.presence_sweeper_interval_seconds if interval_s is None else interval_s))
    while True:
        await asyncio.sleep(interval)
        try:
            await sweep_once(channel)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("presence sweeper iteration failed")


def _parse_event(body: Mapping[str, Any]) -> Optional[PresenceEvent]:
    kind = body.get("kind")
    user_id = body.get("user_id")
    if not user_id:
        return None
    if kind == PresenceEventKind.JOIN.value:
        return PresenceEvent.join(str(user_id))
    if kind == PresenceEventKind.LEAVE.value:
        return PresenceEvent.leave(str(user_id))
    logger.debug("ignoring presence event kind=%s", kind)
    return None
