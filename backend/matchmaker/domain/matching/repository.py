"""Redis-backed storage for profiles, traits, play schedules and blocks."""

from __future__ import annotations

import time
from typing import Any, Iterable, Optional

from matchmaker.domain.matching.models import (
	TRAIT_KEYS,
	Archetype,
	MatchSide,
	PlaySlot,
	TraitVector,
	parse_archetype,
)
from matchmaker.domain.matching.schemas import ProfileSummary
from matchmaker.domain.matching.scoring import build_side
from matchmaker.infra.redis import redis_client

PROFILE_INDEX_KEY = "profiles:index"


def _profile_key(user_id: str) -> str:
	return f"profile:{user_id}"


def _schedule_key(user_id: str) -> str:
	return f"profile:{user_id}:schedule"


def _blocks_key(user_id: str) -> str:
	return f"blocks:{user_id}"


def _blocked_by_key(user_id: str) -> str:
	return f"blocked_by:{user_id}"


class ProfileRepository:
	"""Reads and writes the profile rows the matching pipeline consumes."""

	def __init__(self, client: Any = redis_client) -> None:
		self._redis = client

	async def upsert_profile(self, user_id: str, *, nickname: str, avatar_url: Optional[str] = None) -> None:
		mapping = {"nickname": nickname, "avatar_url": avatar_url or ""}
		await self._redis.hset(_profile_key(user_id), mapping=mapping)
		await self._redis.zadd(PROFILE_INDEX_KEY, {user_id: time.time()}, nx=True)

	async def save_traits(
		self,
		user_id: str,
		traits: TraitVector,
		archetype: Archetype,
		schedule: Iterable[PlaySlot],
	) -> None:
		"""Replace the trait vector, archetype and schedule wholesale."""
		mapping: dict[str, Any] = {key: value for key, value in traits.to_dict().items()}
		mapping["archetype"] = archetype.value
		await self._redis.hset(_profile_key(user_id), mapping=mapping)
		await self._redis.zadd(PROFILE_INDEX_KEY, {user_id: time.time()}, nx=True)
		await self._redis.delete(_schedule_key(user_id))
		keys = [slot.key() for slot in schedule]
		if keys:
			await self._redis.rpush(_schedule_key(user_id), *keys)

	async def block(self, user_id: str, target_id: str) -> None:
		await self._redis.sadd(_blocks_key(user_id), target_id)
		await self._redis.sadd(_blocked_by_key(target_id), user_id)

	async def blocked_ids(self, user_id: str) -> set[str]:
		"""Users blocked by ``user_id`` or blocking ``user_id``."""
		blocked = await self._redis.smembers(_blocks_key(user_id)) or set()
		blocked_by = await self._redis.smembers(_blocked_by_key(user_id)) or set()
		return {str(uid) for uid in blocked} | {str(uid) for uid in blocked_by}

	async def list_candidate_ids(self) -> list[str]:
		members = await self._redis.zrange(PROFILE_INDEX_KEY, 0, -1)
		return [str(member) for member in members]

	async def get_side(self, user_id: str) -> MatchSide:
		"""Assemble the match input for ``user_id``; missing data is a valid cold start."""
		record = await self._redis.hgetall(_profile_key(user_id)) or {}
		traits: Optional[TraitVector] = None
		if any(record.get(key) not in (None, "") for key in TRAIT_KEYS):
			traits = TraitVector.from_mapping(record)
		raw_schedule = await self._redis.lrange(_schedule_key(user_id), 0, -1)
		schedule = [PlaySlot.from_key(str(item)) for item in raw_schedule or []]
		return build_side(user_id, traits, record.get("archetype"), schedule)

	async def get_summary(self, user_id: str) -> ProfileSummary:
		record = await self._redis.hgetall(_profile_key(user_id)) or {}
		return ProfileSummary(
			nickname=str(record.get("nickname") or ""),
			avatar_url=record.get("avatar_url") or None,
			archetype=parse_archetype(record.get("archetype")),
		)
