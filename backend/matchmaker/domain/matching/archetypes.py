"""Static archetype catalog: ideal trait vectors, profiles and pair compatibility.

The ideal vectors are hand tuned so that near-duplicate archetypes are pulled
apart along one dominant axis (wolf vs dog on leadership, dolphin vs dog on
leadership in the other direction, hawk vs cat on exploration). Changing a
number here changes product behaviour, so values are kept exactly as tuned.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from matchmaker.domain.matching.exceptions import UnknownArchetype
from matchmaker.domain.matching.models import (
	TRAIT_KEYS,
	Archetype,
	ArchetypeGroup,
	CompatibilityLevel,
	TraitVector,
	parse_archetype,
)


@dataclass(frozen=True, slots=True)
class ArchetypeProfile:
	group: ArchetypeGroup
	dominant_traits: tuple[str, ...]
	secondary_traits: tuple[str, ...]
	avoid_traits: tuple[str, ...]


ARCHETYPE_VECTORS: Mapping[Archetype, TraitVector] = {
	# attack
	Archetype.WOLF: TraitVector(cooperation=58, exploration=78, strategy=58, leadership=85, social=52),
	Archetype.TIGER: TraitVector(cooperation=38, exploration=85, strategy=42, leadership=60, social=35),
	Archetype.HAWK: TraitVector(cooperation=40, exploration=58, strategy=82, leadership=35, social=35),
	# strategy
	Archetype.OWL: TraitVector(cooperation=40, exploration=35, strategy=85, leadership=58, social=35),
	Archetype.FOX: TraitVector(cooperation=58, exploration=60, strategy=78, leadership=40, social=58),
	Archetype.HEDGEHOG: TraitVector(cooperation=42, exploration=38, strategy=88, leadership=38, social=25),
	Archetype.RAVEN: TraitVector(cooperation=62, exploration=42, strategy=80, leadership=35, social=38),
	# support
	Archetype.BEAR: TraitVector(cooperation=85, exploration=40, strategy=55, leadership=60, social=58),
	Archetype.DEER: TraitVector(cooperation=62, exploration=35, strategy=45, leadership=30, social=60),
	Archetype.KOALA: TraitVector(cooperation=55, exploration=30, strategy=35, leadership=25, social=75),
	# social
	Archetype.DOG: TraitVector(cooperation=82, exploration=58, strategy=38, leadership=70, social=82),
	Archetype.DOLPHIN: TraitVector(cooperation=78, exploration=62, strategy=35, leadership=35, social=90),
	Archetype.PANDA: TraitVector(cooperation=75, exploration=38, strategy=68, leadership=35, social=78),
	Archetype.RABBIT: TraitVector(cooperation=60, exploration=65, strategy=30, leadership=28, social=88),
	# lone
	Archetype.LEOPARD: TraitVector(cooperation=40, exploration=80, strategy=65, leadership=60, social=40),
	Archetype.CAT: TraitVector(cooperation=28, exploration=45, strategy=78, leadership=30, social=28),
}


def _profile(group: ArchetypeGroup, dominant: str, secondary: str, avoid: str) -> ArchetypeProfile:
	return ArchetypeProfile(
		group=group,
		dominant_traits=tuple(dominant.split()),
		secondary_traits=tuple(secondary.split()),
		avoid_traits=tuple(avoid.split()),
	)


ARCHETYPE_PROFILES: Mapping[Archetype, ArchetypeProfile] = {
	Archetype.WOLF: _profile(ArchetypeGroup.ATTACK, "exploration leadership", "cooperation social", "strategy"),
	Archetype.TIGER: _profile(ArchetypeGroup.ATTACK, "exploration", "leadership", "cooperation strategy social"),
	Archetype.HAWK: _profile(ArchetypeGroup.ATTACK, "strategy", "exploration", "cooperation leadership social"),
	Archetype.OWL: _profile(ArchetypeGroup.STRATEGY, "strategy", "leadership", "cooperation exploration social"),
	Archetype.FOX: _profile(ArchetypeGroup.STRATEGY, "strategy", "cooperation exploration social", "leadership"),
	Archetype.HEDGEHOG: _profile(ArchetypeGroup.STRATEGY, "strategy", "exploration", "cooperation leadership social"),
	Archetype.RAVEN: _profile(ArchetypeGroup.STRATEGY, "strategy", "cooperation", "exploration leadership social"),
	Archetype.BEAR: _profile(ArchetypeGroup.SUPPORT, "cooperation", "strategy leadership social", "exploration"),
	Archetype.DEER: _profile(ArchetypeGroup.SUPPORT, "cooperation", "social", "exploration strategy leadership"),
	Archetype.KOALA: _profile(ArchetypeGroup.SUPPORT, "social", "cooperation", "exploration strategy leadership"),
	Archetype.DOG: _profile(ArchetypeGroup.SOCIAL, "cooperation social", "exploration leadership", "strategy"),
	Archetype.DOLPHIN: _profile(ArchetypeGroup.SOCIAL, "cooperation social", "exploration", "strategy leadership"),
	Archetype.PANDA: _profile(ArchetypeGroup.SOCIAL, "cooperation social", "strategy", "exploration leadership"),
	Archetype.RABBIT: _profile(ArchetypeGroup.SOCIAL, "social", "cooperation exploration", "strategy leadership"),
	Archetype.LEOPARD: _profile(ArchetypeGroup.LONE, "exploration", "strategy leadership", "cooperation social"),
	Archetype.CAT: _profile(ArchetypeGroup.LONE, "strategy", "exploration", "cooperation leadership social"),
}


_A = Archetype

# Unordered pairs; lookups canonicalise the pair so either direction resolves.
_PAIR_LEVELS: dict[CompatibilityLevel, tuple[tuple[Archetype, Archetype], ...]] = {
	CompatibilityLevel.BEST: (
		(_A.TIGER, _A.BEAR),
		(_A.WOLF, _A.DOG),
		(_A.WOLF, _A.DOLPHIN),
		(_A.HAWK, _A.PANDA),
		(_A.OWL, _A.FOX),
		(_A.HEDGEHOG, _A.RAVEN),
		(_A.DEER, _A.KOALA),
		(_A.DOG, _A.RABBIT),
		(_A.LEOPARD, _A.RAVEN),
		(_A.CAT, _A.OWL),
		(_A.FOX, _A.DOLPHIN),
	),
	CompatibilityLevel.GOOD: (
		(_A.TIGER, _A.OWL),
		(_A.WOLF, _A.TIGER),
		(_A.WOLF, _A.BEAR),
		(_A.HAWK, _A.FOX),
		(_A.HAWK, _A.LEOPARD),
		(_A.OWL, _A.RAVEN),
		(_A.FOX, _A.PANDA),
		(_A.HEDGEHOG, _A.CAT),
		(_A.BEAR, _A.DOG),
		(_A.DEER, _A.DOLPHIN),
		(_A.DEER, _A.PANDA),
		(_A.KOALA, _A.RABBIT),
		(_A.DOG, _A.DOLPHIN),
		(_A.DOLPHIN, _A.PANDA),
		(_A.LEOPARD, _A.TIGER),
		(_A.CAT, _A.HAWK),
	),
	CompatibilityLevel.NEUTRAL: (
		(_A.TIGER, _A.HAWK),
		(_A.FOX, _A.CAT),
		(_A.BEAR, _A.OWL),
		(_A.PANDA, _A.RAVEN),
		(_A.RABBIT, _A.FOX),
		(_A.DEER, _A.RAVEN),
	),
	CompatibilityLevel.CHALLENGING: (
		(_A.TIGER, _A.DOG),
		(_A.WOLF, _A.CAT),
		(_A.WOLF, _A.LEOPARD),
		(_A.WOLF, _A.HEDGEHOG),
		(_A.TIGER, _A.KOALA),
		(_A.TIGER, _A.DEER),
		(_A.HAWK, _A.RABBIT),
		(_A.HAWK, _A.KOALA),
		(_A.OWL, _A.RABBIT),
		(_A.HEDGEHOG, _A.DOLPHIN),
		(_A.CAT, _A.DOLPHIN),
		(_A.CAT, _A.DOG),
		(_A.LEOPARD, _A.KOALA),
		(_A.LEOPARD, _A.DEER),
	),
}


def _build_compatibility(
	levels: Mapping[CompatibilityLevel, Iterable[tuple[Archetype, Archetype]]],
) -> dict[frozenset[Archetype], CompatibilityLevel]:
	table: dict[frozenset[Archetype], CompatibilityLevel] = {}
	for level, pairs in levels.items():
		for first, second in pairs:
			if first == second:
				raise ValueError(f"self pair listed for {first.value}")
			key = frozenset((first, second))
			existing = table.get(key)
			if existing is not None and existing is not level:
				raise ValueError(f"conflicting levels for {first.value}/{second.value}: {existing.value} vs {level.value}")
			table[key] = level
	return table


COMPATIBILITY: Mapping[frozenset[Archetype], CompatibilityLevel] = _build_compatibility(_PAIR_LEVELS)


def _require(archetype: Any) -> Archetype:
	parsed = parse_archetype(archetype, strict=True)
	if parsed is None:
		raise UnknownArchetype(archetype)
	return parsed


def vector_of(archetype: Archetype | str) -> TraitVector:
	"""Return the ideal trait vector of ``archetype``."""
	return ARCHETYPE_VECTORS[_require(archetype)]


def profile_of(archetype: Archetype | str) -> ArchetypeProfile:
	return ARCHETYPE_PROFILES[_require(archetype)]


def archetypes_in_group(group: ArchetypeGroup) -> tuple[Archetype, ...]:
	return tuple(a for a in Archetype if ARCHETYPE_PROFILES[a].group is group)


def compatibility_of(first: Any, second: Any) -> CompatibilityLevel:
	"""Classify a pair of archetypes; never raises.

	Pairs without an entry, unrecognised values and self pairs are ``UNKNOWN``.
	Callers that want a bonus for identical archetypes handle that case first.
	"""
	a = parse_archetype(first)
	b = parse_archetype(second)
	if a is None or b is None or a is b:
		return CompatibilityLevel.UNKNOWN
	return COMPATIBILITY.get(frozenset((a, b)), CompatibilityLevel.UNKNOWN)


def perfect_matches(archetype: Any) -> Optional[tuple[Archetype, ...]]:
	"""Best partners followed by good partners, or ``None`` when there are none."""
	source = parse_archetype(archetype)
	if source is None:
		return None
	best: list[Archetype] = []
	good: list[Archetype] = []
	for other in Archetype:
		level = compatibility_of(source, other)
		if level is CompatibilityLevel.BEST:
			best.append(other)
		elif level is CompatibilityLevel.GOOD:
			good.append(other)
	matches = tuple(best + good)
	return matches or None


def _distance(a: TraitVector, b: TraitVector) -> float:
	return math.sqrt(sum((getattr(a, key) - getattr(b, key)) ** 2 for key in TRAIT_KEYS))


def nearest_archetype(vector: TraitVector) -> Archetype:
	"""Classify a trait vector into the archetype with the closest ideal point.

	Ties resolve to the archetype listed first in the catalog.
	"""
	best_type = Archetype.WOLF
	best_distance = math.inf
	for archetype in Archetype:
		distance = _distance(vector, ARCHETYPE_VECTORS[archetype])
		if distance < best_distance:
			best_type = archetype
			best_distance = distance
	return best_type
