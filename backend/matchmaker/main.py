"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from matchmaker.api import match, ops
from matchmaker.api import status as status_api
from matchmaker.api.errors import install_error_handlers
from matchmaker.domain.presence.channel import run_presence_sweeper
from matchmaker.infra.redis import redis_client
from matchmaker.obs import init as obs_init
from matchmaker.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	logger.info("starting %s env=%s commit=%s", settings.service_name, settings.environment, settings.git_commit)
	worker_tasks = [asyncio.create_task(run_presence_sweeper(), name="presence-sweeper")]
	try:
		yield
	finally:
		for task in worker_tasks:
			task.cancel()
		await asyncio.gather(*worker_tasks, return_exceptions=True)
		await redis_client.aclose()


app = FastAPI(title="Matchmaker", lifespan=lifespan)
install_error_handlers(app)
obs_init(app)

app.include_router(ops.router)
app.include_router(match.router)
app.include_router(status_api.router)
