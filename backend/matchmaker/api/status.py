"""FastAPI routes for seeding and updating the caller's manual status."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from matchmaker.domain.status.repository import StatusRepository
from matchmaker.domain.status.schemas import StatusResponse, StatusUpdatePayload
from matchmaker.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/user/status", tags=["status"])

_repository = StatusRepository()


@router.post("/seed", response_model=StatusResponse)
async def seed_status_endpoint(auth_user: AuthenticatedUser = Depends(get_current_user)) -> StatusResponse:
	current = await _repository.seed(auth_user.id)
	return StatusResponse(user_id=auth_user.id, status=current)


@router.post("/update", response_model=StatusResponse)
async def update_status_endpoint(
	payload: StatusUpdatePayload,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	stored = await _repository.update(auth_user.id, payload.status)
	return StatusResponse(user_id=auth_user.id, status=stored)
