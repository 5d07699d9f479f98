"""Wiring for one signed-in viewer: presence, status mirror, feed and results."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from matchmaker.domain.presence.tracker import ChannelFactory, PresenceTracker
from matchmaker.domain.results.controller import Fetcher, MatchResultController, MatchResults, ResultOptions, service_fetcher
from matchmaker.domain.status.feed import StatusFeedWorker
from matchmaker.domain.status.models import EffectiveStatus, ManualStatus
from matchmaker.domain.status.repository import StatusRepository
from matchmaker.domain.status.resolver import StatusResolver
from matchmaker.domain.status.store import ManualStatusStore
from matchmaker.infra.redis import redis_client
from matchmaker.settings import settings

logger = logging.getLogger(__name__)


class LiveSession:
	"""Owns the reactive stores for one process-local viewer.

	``sign_in`` joins presence, seeds the manual status and starts the
	background loops; ``sign_out`` stops them, announces the leave and marks the
	outgoing identity offline.
	"""

	def __init__(
		self,
		*,
		client: Any = redis_client,
		fetcher: Optional[Fetcher] = None,
		channel_factory: Optional[ChannelFactory] = None,
		feed_block_ms: Optional[int] = None,
	) -> None:
		self.presence = PresenceTracker(channel_factory)
		self.statuses = ManualStatusStore(StatusRepository(client))
		self.resolver = StatusResolver(self.presence, self.statuses)
		self.feed = StatusFeedWorker(
			redis=client,
			store=self.statuses,
			block_ms=settings.status_feed_block_ms if feed_block_ms is None else feed_block_ms,
		)
		self.results = MatchResultController(fetcher or service_fetcher(), self.resolver)
		self._tasks: list[asyncio.Task] = []

	@property
	def user_id(self) -> Optional[str]:
		return self.statuses.user_id

	def effective_status(self, user_id: str) -> EffectiveStatus:
		return self.resolver.effective_status(user_id)

	def use_results(self, options: Optional[ResultOptions] = None) -> MatchResults:
		return self.results.use_results(self.user_id, options)

	async def set_my_status(self, status: ManualStatus) -> None:
		await self.statuses.set_mine(status)

	async def sign_in(self, user_id: str) -> bool:
		if self.user_id and self.user_id != user_id:
			await self.sign_out()
		self.statuses.set_identity(user_id)
		await self.feed.start_from_latest()
		connected = await self.presence.connect(user_id)
		await self.statuses.seed_once(user_id)
		if not self._tasks:
			self._tasks = [
				asyncio.create_task(self.presence.run(), name="presence-events"),
				asyncio.create_task(self.presence.run_keepalive(), name="presence-keepalive"),
				asyncio.create_task(self.feed.run(), name="status-feed"),
				asyncio.create_task(self.statuses.run_pending_sweeper(), name="status-sweeper"),
			]
		self.results.set_viewer(user_id)
		logger.info("session started user=%s presence=%s", user_id, connected)
		return connected

	async def sign_out(self) -> None:
		user_id = self.user_id
		tasks, self._tasks = self._tasks, []
		for task in tasks:
			task.cancel()
		if tasks:
			await asyncio.gather(*tasks, return_exceptions=True)
		await self.presence.disconnect()
		self.results.set_viewer(None)
		self.statuses.set_identity(None)
		await self.statuses.drain()
		if user_id:
			logger.info("session ended user=%s", user_id)

	async def close(self) -> None:
		await self.sign_out()
		self.results.close()


__all__ = ["LiveSession"]
