"""Operations endpoints providing the health check and Prometheus metrics."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from matchmaker.infra.redis import redis_client
from matchmaker.settings import settings

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ops"])


async def _redis_status(timeout: float = 0.2) -> Dict[str, Any]:
	start = perf_counter()
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
	except Exception as exc:  # pragma: no cover - depends on runtime
		LOGGER.warning("Redis health check failed", exc_info=True)
		return {"ok": False, "error": str(exc)}
	return {"ok": True, "latency_ms": round((perf_counter() - start) * 1000, 2)}


@router.get("/health")
async def health() -> Response:
	redis_state = await _redis_status()
	ok = bool(redis_state.get("ok"))
	payload = {
		"status": "ok" if ok else "degraded",
		"service": settings.service_name,
		"commit": settings.git_commit,
		"redis": redis_state,
	}
	return JSONResponse(content=payload, status_code=200 if ok else 503)


@router.get("/metrics")
async def prometheus_metrics() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
