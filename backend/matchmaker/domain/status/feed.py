"""Worker that applies rows from the manual status change stream to a local store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

from pydantic import ValidationError

from matchmaker.domain.status.schemas import StatusChange
from matchmaker.domain.status.store import ManualStatusStore
from matchmaker.infra.redis import decode_fields
from matchmaker.obs import metrics as obs_metrics
from matchmaker.settings import settings

logger = logging.getLogger(__name__)


class RedisStreams(Protocol):
    async def xread(self, streams: Mapping[str, str], count: int, block: Optional[int]) -> list[tuple[str, list[tuple[str, Mapping[Any, Any]]]]]:
        ...

    async def xrevrange(self, name: str, count: int) -> list[tuple[str, Mapping[Any, Any]]]:
        ...


@dataclass(slots=True)
class StatusFeedWorker:
    """Tails ``user_status:changes`` and overwrites store entries row by row."""

    redis: RedisStreams
    store: ManualStatusStore
    stream_key: str = ""
    batch_size: int = 100
    block_ms: int = 5000
    last_id: str = "0-0"

    def __post_init__(self) -> None:
        if not self.stream_key:
            self.stream_key = settings.status_stream_key

    async def start_from_latest(self) -> None:
        """Skip history; callers hydrate current values from the hash instead."""
        latest = await self.redis.xrevrange(self.stream_key, count=1)
        self.last_id = latest[0][0] if latest else "0-0"

    async def run_once(self) -> int:
        block = self.block_ms if self.block_ms > 0 else None
        messages = await self.redis.xread({self.stream_key: self.last_id}, count=self.batch_size, block=block)
        if not messages:
            return 0
        applied = 0
        for _stream, entries in messages:
            for entry_id, payload in entries:
                if self._process_entry(entry_id, decode_fields(payload)):
                    applied += 1
            if entries:
                self.last_id = entries[-1][0]
        return applied

    def _process_entry(self, entry_id: str, body: Mapping[str, Any]) -> bool:
        try:
            change = StatusChange.model_validate(body)
        except ValidationError:
            obs_metrics.STATUS_FEED_EVENTS.labels(outcome="invalid").inc()
            logger.warning("invalid status change: entry_id=%s", entry_id)
            return False
        self.store.apply_remote_change(change.user_id, change.status)
        obs_metrics.STATUS_FEED_EVENTS.labels(outcome="applied").inc()
        return True

    async def run(self, idle_sleep: float = 0.05) -> None:
        while True:
            try:
                applied = await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("status feed read failed")
                applied = 0
            if not applied:
                await asyncio.sleep(idle_sleep)
