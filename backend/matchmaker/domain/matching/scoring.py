"""Pure scoring functions: trait similarity, archetype adjustment and the final score."""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional, Sequence

from matchmaker.domain.matching.archetypes import compatibility_of
from matchmaker.domain.matching.models import (
	TRAIT_KEYS,
	TRAIT_MAX,
	TRAIT_MIN,
	CompatibilityLevel,
	MatchContext,
	MatchScore,
	MatchSide,
	PlaySlot,
	TraitVector,
	parse_archetype,
)
from matchmaker.settings import settings

SCORE_MIN = 0
SCORE_MAX = 100

MAX_DISTANCE = math.sqrt(len(TRAIT_KEYS) * (TRAIT_MAX - TRAIT_MIN) ** 2)

SAME_ARCHETYPE_BONUS = 3

# Additive adjustment per level; a new level needs a row here.
COMPATIBILITY_ADJUSTMENTS: dict[CompatibilityLevel, int] = {
	CompatibilityLevel.BEST: 7,
	CompatibilityLevel.GOOD: 5,
	CompatibilityLevel.NEUTRAL: 0,
	CompatibilityLevel.CHALLENGING: -3,
	CompatibilityLevel.UNKNOWN: 0,
}

SIMILAR_STYLE_THRESHOLD = 70

TAG_SIMILAR_STYLE = "similar_style"
TAG_SAME_HOURS = "same_hours"
TAG_PERFECT_PAIR = "perfect_pair"


def _clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
	if math.isnan(value):
		return low
	return max(low, min(high, value))


def score(user_vector: TraitVector, candidate_vector: TraitVector) -> float:
	"""Similarity in [0, 100] from the normalised Euclidean distance of two trait vectors.

	All five dimensions are weighted equally, so ``score(a, b) == score(b, a)``
	and ``score(v, v) == 100``.
	"""
	squared = 0.0
	for key in TRAIT_KEYS:
		diff = getattr(user_vector, key) - getattr(candidate_vector, key)
		squared += diff * diff
	similarity = SCORE_MAX * (1.0 - math.sqrt(squared) / MAX_DISTANCE)
	return _clamp(similarity)


def apply_compatibility(base_score: float, viewer_archetype: Any = None, target_archetype: Any = None) -> float:
	"""Bias ``base_score`` by the archetype pairing and clamp to [0, 100].

	A missing archetype on either side leaves the score unchanged; identical
	archetypes get a small fixed bonus before the pair table is consulted.
	"""
	base = _clamp(base_score)
	viewer = parse_archetype(viewer_archetype)
	target = parse_archetype(target_archetype)
	if viewer is None or target is None:
		return base
	if viewer is target:
		return min(SCORE_MAX, base + SAME_ARCHETYPE_BONUS)
	level = compatibility_of(viewer, target)
	return _clamp(base + COMPATIBILITY_ADJUSTMENTS[level])


def schedule_similarity(viewer_schedule: Sequence[PlaySlot], target_schedule: Sequence[PlaySlot]) -> int:
	"""Share of common play slots relative to the longer schedule, as 0..100."""
	if not viewer_schedule or not target_schedule:
		return 0
	target_keys = set(target_schedule)
	common = sum(1 for slot in viewer_schedule if slot in target_keys)
	total = max(len(viewer_schedule), len(target_schedule))
	return round(common / total * 100)


def schedule_factor(schedule_score: Optional[int]) -> float:
	"""Multiplier for overlapping play hours: 1.0 below the threshold, up to 1 + max bonus at 100."""
	threshold = settings.match_schedule_threshold
	if not schedule_score or schedule_score < threshold:
		return 1.0
	span = SCORE_MAX - threshold
	return 1.0 + (schedule_score - threshold) / span * settings.match_schedule_max_bonus


def build_side(
	user_id: str,
	traits: Optional[TraitVector] = None,
	archetype: Any = None,
	schedule: Optional[Iterable[PlaySlot]] = None,
) -> MatchSide:
	"""Assemble one party's view of itself.

	Missing traits drop the archetype too (an archetype without a completed
	test has no meaning) and an empty schedule is the same as none.
	"""
	slots = tuple(schedule) if schedule is not None else ()
	return MatchSide(
		user_id=user_id,
		traits=traits,
		archetype=parse_archetype(archetype) if traits is not None else None,
		schedule=slots or None,
	)


def final_match_score(context: MatchContext) -> MatchScore:
	viewer, target = context.viewer, context.target
	tags: list[str] = []

	if viewer.traits is not None and target.traits is not None:
		base = score(viewer.traits, target.traits)
		if base >= SIMILAR_STYLE_THRESHOLD:
			tags.append(TAG_SIMILAR_STYLE)
	else:
		base = float(settings.match_cold_start_score)

	adjusted = apply_compatibility(base, viewer.archetype, target.archetype)
	level = compatibility_of(viewer.archetype, target.archetype)
	if level in (CompatibilityLevel.BEST, CompatibilityLevel.GOOD):
		tags.append(TAG_PERFECT_PAIR)

	schedule_score: Optional[int] = None
	if viewer.schedule and target.schedule:
		schedule_score = schedule_similarity(viewer.schedule, target.schedule)
		if schedule_score > 0:
			tags.append(TAG_SAME_HOURS)

	final = int(_clamp(round(adjusted * schedule_factor(schedule_score))))
	return MatchScore(
		final_score=final,
		base_score=base,
		compatibility=level,
		schedule_score=schedule_score,
		tags=tuple(tags),
	)
