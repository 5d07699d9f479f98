"""FastAPI routes for scored match results and the trait test."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from matchmaker.domain.matching import service
from matchmaker.domain.matching.schemas import MatchResultsResponse, TraitsResult, TraitsSubmission
from matchmaker.domain.presence.channel import RedisPresenceChannel
from matchmaker.domain.results.controller import SORT_BY_ONLINE, SORT_BY_SCORE, ResultOptions, derive_results
from matchmaker.domain.status.models import ManualStatus
from matchmaker.domain.status.repository import StatusRepository
from matchmaker.domain.status.resolver import resolve_status
from matchmaker.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["matching"])


@router.get("/match/results", response_model=MatchResultsResponse)
async def match_results_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	min_score: Optional[float] = Query(default=None, ge=0, le=100),
	online_only: bool = Query(default=False),
	sort_by: str = Query(default=SORT_BY_SCORE, pattern=f"^({SORT_BY_SCORE}|{SORT_BY_ONLINE})$"),
) -> MatchResultsResponse:
	rows = await service.calculate_match_results(auth_user.id)
	options = ResultOptions(min_score=min_score, online_only=online_only, sort_by=sort_by)
	if not online_only and sort_by == SORT_BY_SCORE:
		return MatchResultsResponse(results=list(derive_results(rows, options, lambda _uid: False)))

	snapshot = await RedisPresenceChannel().snapshot()
	present = snapshot.members or frozenset()
	manual = await StatusRepository().get_many(row.target_id for row in rows)

	def _is_online(user_id: str) -> bool:
		return resolve_status(user_id in present, manual.get(user_id)) is ManualStatus.ONLINE

	return MatchResultsResponse(results=list(derive_results(rows, options, _is_online)))


@router.post("/traits/submit", response_model=TraitsResult)
async def submit_traits_endpoint(
	payload: TraitsSubmission,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> TraitsResult:
	return await service.submit_traits(auth_user.id, payload)


@router.get("/traits/result", response_model=TraitsResult)
async def traits_result_endpoint(auth_user: AuthenticatedUser = Depends(get_current_user)) -> TraitsResult:
	result = await service.get_traits_result(auth_user.id)
	if result is None:
		raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="traits_not_found")
	return result
