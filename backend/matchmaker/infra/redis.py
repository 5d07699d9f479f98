"""Redis connection management.

Provides a stable proxy object so imports like `from matchmaker.infra.redis import redis_client`
always reference the same proxy instance. The underlying client can be swapped at
runtime (e.g., to fakeredis in tests) without breaking previously imported references.

Also adds a small compatibility wrapper:
- XADD: default to an exact MAXLEN cap so event streams stay bounded
"""

from __future__ import annotations

from typing import Any, Mapping

import redis.asyncio as redis

from matchmaker.settings import settings


class RedisProxy:
	"""Lightweight proxy that forwards attribute access to an underlying Redis client.

	This lets us swap the real client for a FakeRedis instance in tests while keeping
	the same imported symbol across the codebase.
	"""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	async def xadd(self, name, fields, id="*", maxlen: int | None = None, approximate: bool = False, **kwargs):
		"""Cap streams at the configured length unless the caller chooses otherwise."""
		if maxlen is None:
			maxlen = settings.presence_stream_maxlen
		return await self._client.xadd(name, fields, id=id, maxlen=maxlen, approximate=approximate, **kwargs)

	# Fallback: delegate everything else to the underlying client
	def __getattr__(self, item):
		return getattr(self._client, item)


def decode_fields(payload: Mapping[Any, Any]) -> dict[str, Any]:
	"""Normalise a stream entry or hash payload into str keys and values."""
	decoded: dict[str, Any] = {}
	for key, value in payload.items():
		k = key.decode("utf-8") if isinstance(key, bytes) else str(key)
		v = value.decode("utf-8") if isinstance(value, bytes) else value
		decoded[k] = v
	return decoded


# Create proxy with the real client by default
_real_client = redis.from_url(settings.redis_url, decode_responses=True)
redis_client: RedisProxy = RedisProxy(_real_client)


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
