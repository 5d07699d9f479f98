import asyncio
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from matchmaker.infra.redis import redis_client, set_redis_client
from matchmaker.main import app
from matchmaker.settings import settings


# Ensure a selector-based event loop policy on Windows to avoid Proactor issues with async IO
if hasattr(asyncio, "WindowsSelectorEventLoopPolicy"):
	try:
		asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
	except Exception:
		# Non-fatal; proceed with default policy
		pass


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Short blocking reads so stream consumers return promptly against fakeredis."""
	original_env = settings.environment
	original_presence_block = settings.presence_block_ms
	original_feed_block = settings.status_feed_block_ms
	settings.environment = "dev"
	settings.presence_block_ms = 0
	settings.status_feed_block_ms = 0
	try:
		yield
	finally:
		settings.environment = original_env
		settings.presence_block_ms = original_presence_block
		settings.status_feed_block_ms = original_feed_block


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
