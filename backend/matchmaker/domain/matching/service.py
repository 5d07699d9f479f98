"""Candidate scoring pipeline and trait submission."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from matchmaker.domain.matching.archetypes import nearest_archetype, perfect_matches
from matchmaker.domain.matching.models import Archetype, MatchContext, MatchSide, TraitVector, expand_schedule
from matchmaker.domain.matching.repository import ProfileRepository
from matchmaker.domain.matching.schemas import ScoredCandidate, TraitsResult, TraitsSubmission, TraitValues
from matchmaker.domain.matching.scoring import final_match_score
from matchmaker.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


async def get_match_candidates(viewer_id: str, repository: ProfileRepository) -> list[str]:
	"""Candidate pool for ``viewer_id``: everyone except the viewer and blocked pairs."""
	pool = await repository.list_candidate_ids()
	if not pool:
		return []
	excluded = await repository.blocked_ids(viewer_id)
	excluded.add(viewer_id)
	return [user_id for user_id in pool if user_id not in excluded]


async def calculate_match_result(
	viewer_id: str,
	target_id: str,
	repository: ProfileRepository,
	viewer: Optional[MatchSide] = None,
) -> ScoredCandidate:
	if viewer is None:
		viewer = await repository.get_side(viewer_id)
	target = await repository.get_side(target_id)
	result = final_match_score(MatchContext(viewer=viewer, target=target))
	summary = await repository.get_summary(target_id)
	return ScoredCandidate(
		target_id=target_id,
		final_score=result.final_score,
		profile=summary,
		tags=list(result.tags),
	)


async def calculate_match_results(viewer_id: str, repository: Optional[ProfileRepository] = None) -> list[ScoredCandidate]:
	"""Score every candidate for ``viewer_id``.

	The viewer is loaded once and an invalid viewer profile fails the call.
	Candidates are scored concurrently; one that fails is logged and left
	out rather than failing the whole list. Pool order is preserved.
	"""
	repo = repository or ProfileRepository()
	candidates = await get_match_candidates(viewer_id, repo)
	if not candidates:
		return []
	viewer = await repo.get_side(viewer_id)
	start = time.perf_counter()
	outcomes = await asyncio.gather(
		*(calculate_match_result(viewer_id, target_id, repo, viewer) for target_id in candidates),
		return_exceptions=True,
	)
	obs_metrics.MATCH_SCORING_LATENCY.observe(time.perf_counter() - start)
	results: list[ScoredCandidate] = []
	for target_id, outcome in zip(candidates, outcomes):
		if isinstance(outcome, BaseException):
			if isinstance(outcome, asyncio.CancelledError):
				raise outcome
			obs_metrics.MATCH_CANDIDATE_FAILURES.inc()
			logger.warning(
				"dropping candidate after scoring failure viewer=%s target=%s",
				viewer_id,
				target_id,
				exc_info=outcome,
			)
			continue
		results.append(outcome)
	return results


async def submit_traits(
	user_id: str,
	payload: TraitsSubmission,
	repository: Optional[ProfileRepository] = None,
) -> TraitsResult:
	"""Store a completed trait test; the archetype defaults to the nearest ideal vector."""
	repo = repository or ProfileRepository()
	traits = TraitVector.from_mapping(payload.traits.model_dump())
	archetype: Archetype = payload.archetype or nearest_archetype(traits)
	schedule = expand_schedule(payload.day_types, payload.time_slots)
	await repo.save_traits(user_id, traits, archetype, schedule)
	logger.info("traits submitted user=%s archetype=%s slots=%d", user_id, archetype.value, len(schedule))
	return TraitsResult(
		traits=TraitValues(**traits.to_dict()),
		archetype=archetype,
		perfect_matches=list(perfect_matches(archetype) or ()),
		schedule=[slot.key() for slot in schedule],
	)


async def get_traits_result(user_id: str, repository: Optional[ProfileRepository] = None) -> Optional[TraitsResult]:
	"""Read back a stored trait test; ``None`` until the user has submitted one."""
	repo = repository or ProfileRepository()
	side = await repo.get_side(user_id)
	if side.traits is None:
		return None
	archetype = side.archetype or nearest_archetype(side.traits)
	return TraitsResult(
		traits=TraitValues(**side.traits.to_dict()),
		archetype=archetype,
		perfect_matches=list(perfect_matches(archetype) or ()),
		schedule=[slot.key() for slot in side.schedule or ()],
	)
