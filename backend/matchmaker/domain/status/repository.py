"""Persistence for manual statuses: one Redis hash plus a change stream."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from matchmaker.domain.status.models import ManualStatus, parse_status
from matchmaker.infra.redis import redis_client
from matchmaker.obs import metrics as obs_metrics
from matchmaker.settings import settings

logger = logging.getLogger(__name__)


class StatusRepository:
	"""Reads and writes ``user_status`` rows and publishes every change to the feed stream."""

	def __init__(self, client: Any = redis_client) -> None:
		self._redis = client

	@property
	def hash_key(self) -> str:
		return settings.status_hash_key

	@property
	def stream_key(self) -> str:
		return settings.status_stream_key

	async def seed(self, user_id: str) -> Optional[ManualStatus]:
		"""Create the row as ``online`` if it does not exist; returns the stored value."""
		try:
			created = await self._redis.hsetnx(self.hash_key, user_id, ManualStatus.ONLINE.value)
			if created:
				await self._publish(user_id, ManualStatus.ONLINE)
			current = await self.get(user_id)
		except Exception:
			obs_metrics.STATUS_WRITES.labels(op="seed", outcome="error").inc()
			raise
		obs_metrics.STATUS_WRITES.labels(op="seed", outcome="created" if created else "exists").inc()
		return current

	async def update(self, user_id: str, status: ManualStatus) -> ManualStatus:
		try:
			await self._redis.hset(self.hash_key, user_id, status.value)
			await self._publish(user_id, status)
		except Exception:
			obs_metrics.STATUS_WRITES.labels(op="update", outcome="error").inc()
			raise
		obs_metrics.STATUS_WRITES.labels(op="update", outcome="ok").inc()
		return status

	async def delete(self, user_id: str) -> None:
		await self._redis.hdel(self.hash_key, user_id)
		await self._publish(user_id, None)
		obs_metrics.STATUS_WRITES.labels(op="delete", outcome="ok").inc()

	async def get(self, user_id: str) -> Optional[ManualStatus]:
		raw = await self._redis.hget(self.hash_key, user_id)
		return _coerce(user_id, raw)

	async def get_many(self, user_ids: Iterable[str]) -> dict[str, ManualStatus]:
		ids = list(user_ids)
		if not ids:
			return {}
		values = await self._redis.hmget(self.hash_key, ids)
		found: dict[str, ManualStatus] = {}
		for user_id, raw in zip(ids, values):
			status = _coerce(user_id, raw)
			if status is not None:
				found[user_id] = status
		return found

	async def _publish(self, user_id: str, status: Optional[ManualStatus]) -> None:
		await self._redis.xadd(self.stream_key, {"user_id": user_id, "status": status.value if status else ""})


def _coerce(user_id: str, raw: Any) -> Optional[ManualStatus]:
	if isinstance(raw, bytes):
		raw = raw.decode("utf-8")
	try:
		return parse_status(raw)
	except ValueError:
		logger.warning("ignoring invalid stored status user=%s value=%r", user_id, raw)
		return None
