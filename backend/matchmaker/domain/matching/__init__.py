"""Archetype catalog and pure scoring functions."""

from matchmaker.domain.matching.archetypes import (
	compatibility_of,
	nearest_archetype,
	perfect_matches,
	profile_of,
	vector_of,
)
from matchmaker.domain.matching.models import Archetype, CompatibilityLevel, TraitVector
from matchmaker.domain.matching.scoring import apply_compatibility, build_side, final_match_score, score

__all__ = [
	"Archetype",
	"CompatibilityLevel",
	"TraitVector",
	"apply_compatibility",
	"build_side",
	"compatibility_of",
	"final_match_score",
	"nearest_archetype",
	"perfect_matches",
	"profile_of",
	"score",
	"vector_of",
]
