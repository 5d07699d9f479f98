import pytest

from matchmaker.domain.status.feed import StatusFeedWorker
from matchmaker.domain.status.models import ManualStatus
from matchmaker.domain.status.repository import StatusRepository
from matchmaker.domain.status.store import ManualStatusStore
from matchmaker.settings import settings


@pytest.mark.asyncio
async def test_feed_applies_updates_and_deletes(fake_redis):
	repo = StatusRepository()
	store = ManualStatusStore(repo)
	worker = StatusFeedWorker(redis=fake_redis, store=store, block_ms=0)

	await repo.update("u1", ManualStatus.AWAY)
	await repo.update("u2", ManualStatus.DND)
	await repo.delete("u2")

	assert await worker.run_once() == 3
	assert store.snapshot() == {"u1": ManualStatus.AWAY}
	assert await worker.run_once() == 0


@pytest.mark.asyncio
async def test_feed_skips_invalid_rows(fake_redis):
	store = ManualStatusStore(StatusRepository())
	worker = StatusFeedWorker(redis=fake_redis, store=store, block_ms=0)
	await fake_redis.xadd(settings.status_stream_key, {"user_id": "u1", "status": "sleeping"})
	await fake_redis.xadd(settings.status_stream_key, {"status": "away"})
	await fake_redis.xadd(settings.status_stream_key, {"user_id": "u3", "status": "offline"})

	assert await worker.run_once() == 1
	assert store.snapshot() == {"u3": ManualStatus.OFFLINE}


@pytest.mark.asyncio
async def test_feed_confirms_pending_optimistic_write(fake_redis):
	repo = StatusRepository()
	store = ManualStatusStore(repo)
	store.set_identity("me")
	worker = StatusFeedWorker(redis=fake_redis, store=store, block_ms=0)

	await store.set_mine(ManualStatus.DND)
	assert store.is_pending("me")

	await worker.run_once()
	assert not store.is_pending("me")
	assert store.my_status is ManualStatus.DND


@pytest.mark.asyncio
async def test_start_from_latest_skips_history(fake_redis):
	repo = StatusRepository()
	store = ManualStatusStore(repo)
	await repo.update("old", ManualStatus.AWAY)
	worker = StatusFeedWorker(redis=fake_redis, store=store, block_ms=0)

	await worker.start_from_latest()
	await repo.update("new", ManualStatus.DND)

	assert await worker.run_once() == 1
	assert store.snapshot() == {"new": ManualStatus.DND}
