import pytest

from matchmaker.domain.matching import service
from matchmaker.domain.matching.archetypes import vector_of
from matchmaker.domain.matching.models import Archetype, expand_schedule
from matchmaker.domain.matching.repository import ProfileRepository
from matchmaker.domain.matching.schemas import TraitsSubmission, TraitValues
from matchmaker.infra.redis import redis_client


async def _seed_player(repo: ProfileRepository, user_id: str, archetype: str | None, schedule=()):
	await repo.upsert_profile(user_id, nickname=user_id.upper())
	if archetype is not None:
		await repo.save_traits(user_id, vector_of(archetype), Archetype(archetype), schedule)


@pytest.mark.asyncio
async def test_candidates_exclude_self_and_blocked_pairs():
	repo = ProfileRepository()
	for uid in ("viewer", "a", "b", "c"):
		await _seed_player(repo, uid, "wolf")
	await repo.block("viewer", "b")
	await repo.block("c", "viewer")
	candidates = await service.get_match_candidates("viewer", repo)
	assert candidates == ["a"]


@pytest.mark.asyncio
async def test_results_are_scored_with_profile_summary():
	repo = ProfileRepository()
	await _seed_player(repo, "viewer", "tiger")
	await _seed_player(repo, "bear-1", "bear")
	await _seed_player(repo, "newbie", None)

	results = await service.calculate_match_results("viewer", repo)

	by_id = {row.target_id: row for row in results}
	assert set(by_id) == {"bear-1", "newbie"}
	assert by_id["newbie"].final_score == 50
	assert by_id["bear-1"].profile.nickname == "BEAR-1"
	assert by_id["bear-1"].profile.archetype is Archetype.BEAR
	assert "perfect_pair" in by_id["bear-1"].tags


@pytest.mark.asyncio
async def test_failed_candidate_is_dropped_not_fatal():
	repo = ProfileRepository()
	await _seed_player(repo, "viewer", "fox")
	await _seed_player(repo, "ok", "owl")
	await _seed_player(repo, "broken", "owl")
	await redis_client.hset("profile:broken", "strategy", "not-a-number")

	results = await service.calculate_match_results("viewer", repo)

	assert [row.target_id for row in results] == ["ok"]


@pytest.mark.asyncio
async def test_results_empty_without_candidates():
	assert await service.calculate_match_results("lonely") == []


@pytest.mark.asyncio
async def test_submit_traits_defaults_to_nearest_archetype():
	repo = ProfileRepository()
	payload = TraitsSubmission(
		traits=TraitValues(**vector_of("panda").to_dict()),
		day_types=["weekend"],
		time_slots=["18-24", "12-18"],
	)

	result = await service.submit_traits("u1", payload, repo)

	assert result.archetype is Archetype.PANDA
	assert result.schedule == ["weekend:18-24", "weekend:12-18"]
	assert result.perfect_matches[0] is Archetype.HAWK
	side = await repo.get_side("u1")
	assert side.archetype is Archetype.PANDA
	assert side.schedule == expand_schedule(["weekend"], ["18-24", "12-18"])


@pytest.mark.asyncio
async def test_submit_traits_keeps_explicit_archetype_and_replaces_schedule():
	repo = ProfileRepository()
	first = TraitsSubmission(traits=TraitValues(**vector_of("cat").to_dict()), day_types=["weekday"], time_slots=["0-6"])
	await service.submit_traits("u2", first, repo)
	second = TraitsSubmission(traits=TraitValues(**vector_of("cat").to_dict()), archetype=Archetype.HAWK)

	result = await service.submit_traits("u2", second, repo)

	assert result.archetype is Archetype.HAWK
	side = await repo.get_side("u2")
	assert side.schedule is None


@pytest.mark.asyncio
async def test_traits_result_round_trips_submission():
	repo = ProfileRepository()
	assert await service.get_traits_result("u3", repo) is None

	payload = TraitsSubmission(traits=TraitValues(**vector_of("fox").to_dict()), day_types=["weekend"], time_slots=["6-12"])
	submitted = await service.submit_traits("u3", payload, repo)

	assert await service.get_traits_result("u3", repo) == submitted


@pytest.mark.asyncio
async def test_traits_result_without_archetype_uses_nearest():
	await redis_client.hset("profile:u4", mapping=vector_of("koala").to_dict())

	result = await service.get_traits_result("u4")

	assert result.archetype is Archetype.KOALA
	assert result.schedule == []
