import pytest

from matchmaker.domain.matching import archetypes
from matchmaker.domain.matching.archetypes import (
	ARCHETYPE_VECTORS,
	archetypes_in_group,
	compatibility_of,
	nearest_archetype,
	perfect_matches,
	profile_of,
	vector_of,
)
from matchmaker.domain.matching.exceptions import UnknownArchetype
from matchmaker.domain.matching.models import Archetype, ArchetypeGroup, CompatibilityLevel, TraitVector


def test_catalog_covers_every_archetype():
	assert set(ARCHETYPE_VECTORS) == set(Archetype)
	assert len(Archetype) == 16
	assert sum(len(archetypes_in_group(group)) for group in ArchetypeGroup) == 16


def test_vector_of_accepts_enum_and_string():
	assert vector_of(Archetype.TIGER) == vector_of("Tiger")
	assert vector_of("wolf").leadership == 85


@pytest.mark.parametrize("value", ["unicorn", "", None])
def test_vector_of_rejects_unknown(value):
	with pytest.raises(UnknownArchetype):
		vector_of(value)


def test_compatibility_is_symmetric():
	for first in Archetype:
		for second in Archetype:
			assert compatibility_of(first, second) is compatibility_of(second, first)


def test_compatibility_examples():
	assert compatibility_of("tiger", "bear") is CompatibilityLevel.BEST
	assert compatibility_of(Archetype.OWL, Archetype.TIGER) is CompatibilityLevel.GOOD
	assert compatibility_of("dog", "tiger") is CompatibilityLevel.CHALLENGING
	assert compatibility_of("tiger", "hawk") is CompatibilityLevel.NEUTRAL


def test_wolf_row_levels():
	for partner in ("dog", "dolphin"):
		assert compatibility_of("wolf", partner) is CompatibilityLevel.BEST
	for partner in ("bear", "tiger"):
		assert compatibility_of("wolf", partner) is CompatibilityLevel.GOOD
	for partner in ("cat", "leopard"):
		assert compatibility_of(partner, "wolf") is CompatibilityLevel.CHALLENGING


def test_compatibility_unknown_never_raises():
	assert compatibility_of("tiger", "tiger") is CompatibilityLevel.UNKNOWN
	assert compatibility_of(None, "bear") is CompatibilityLevel.UNKNOWN
	assert compatibility_of("tiger", "unicorn") is CompatibilityLevel.UNKNOWN
	assert compatibility_of("wolf", "rabbit") is CompatibilityLevel.UNKNOWN


def test_build_compatibility_rejects_conflicts():
	with pytest.raises(ValueError):
		archetypes._build_compatibility(
			{
				CompatibilityLevel.BEST: ((Archetype.TIGER, Archetype.BEAR),),
				CompatibilityLevel.CHALLENGING: ((Archetype.BEAR, Archetype.TIGER),),
			}
		)
	with pytest.raises(ValueError):
		archetypes._build_compatibility({CompatibilityLevel.GOOD: ((Archetype.CAT, Archetype.CAT),)})


def test_perfect_matches_lists_best_before_good():
	assert perfect_matches("tiger") == (Archetype.BEAR, Archetype.WOLF, Archetype.OWL, Archetype.LEOPARD)
	assert perfect_matches(None) is None


def test_nearest_archetype_recovers_ideal_vectors():
	for archetype, vector in ARCHETYPE_VECTORS.items():
		assert nearest_archetype(vector) is archetype


def test_nearest_archetype_for_off_catalog_vector():
	vector = TraitVector(cooperation=84, exploration=41, strategy=56, leadership=59, social=57)
	assert nearest_archetype(vector) is Archetype.BEAR


def test_profile_groups():
	assert profile_of("koala").group is ArchetypeGroup.SUPPORT
	assert "strategy" in profile_of(Archetype.CAT).dominant_traits
