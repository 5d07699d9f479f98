"""Domain models used by the matching engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from matchmaker.domain.matching.exceptions import InvalidTraitVector, UnknownArchetype

TRAIT_KEYS: tuple[str, ...] = ("cooperation", "exploration", "strategy", "leadership", "social")

TRAIT_MIN = 0
TRAIT_MAX = 100


class Archetype(str, Enum):
	"""Play-style archetypes a user is classified into after the trait test."""

	WOLF = "wolf"
	TIGER = "tiger"
	HAWK = "hawk"
	OWL = "owl"
	FOX = "fox"
	HEDGEHOG = "hedgehog"
	RAVEN = "raven"
	BEAR = "bear"
	DEER = "deer"
	KOALA = "koala"
	DOG = "dog"
	DOLPHIN = "dolphin"
	PANDA = "panda"
	RABBIT = "rabbit"
	LEOPARD = "leopard"
	CAT = "cat"


class ArchetypeGroup(str, Enum):
	ATTACK = "attack"
	STRATEGY = "strategy"
	SUPPORT = "support"
	SOCIAL = "social"
	LONE = "lone"


class CompatibilityLevel(str, Enum):
	"""Discrete classification of how well two archetypes pair."""

	BEST = "best"
	GOOD = "good"
	NEUTRAL = "neutral"
	CHALLENGING = "challenging"
	UNKNOWN = "unknown"


def parse_archetype(value: Any, *, strict: bool = False) -> Optional[Archetype]:
	"""Return the archetype for ``value``; blank input means the test is incomplete.

	Unrecognised values are treated as incomplete unless ``strict`` is set.
	"""
	if value is None or isinstance(value, Archetype):
		return value
	text = str(value).strip().lower()
	if not text:
		return None
	try:
		return Archetype(text)
	except ValueError:
		if strict:
			raise UnknownArchetype(value) from None
		return None


def _validate_trait(name: str, value: Any) -> None:
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		raise InvalidTraitVector(name, value)
	if not math.isfinite(value) or value < TRAIT_MIN or value > TRAIT_MAX:
		raise InvalidTraitVector(name, value)


@dataclass(frozen=True, slots=True)
class TraitVector:
	"""A play-style point in the fixed five-dimensional trait space.

	Out-of-range values indicate an upstream bug, so construction rejects them
	instead of clamping.
	"""

	cooperation: float
	exploration: float
	strategy: float
	leadership: float
	social: float

	def __post_init__(self) -> None:
		for key in TRAIT_KEYS:
			_validate_trait(key, getattr(self, key))

	@classmethod
	def from_mapping(cls, record: Mapping[str, Any]) -> "TraitVector":
		values: dict[str, Any] = {}
		for key in TRAIT_KEYS:
			if key not in record or record[key] is None:
				raise InvalidTraitVector(key, None)
			raw = record[key]
			if isinstance(raw, str):
				try:
					raw = float(raw)
				except ValueError:
					raise InvalidTraitVector(key, record[key]) from None
			values[key] = raw
		return cls(**values)

	def to_dict(self) -> dict[str, float]:
		return {key: getattr(self, key) for key in TRAIT_KEYS}


@dataclass(frozen=True, slots=True)
class PlaySlot:
	"""One (day type, time slot) pair a user usually plays in, e.g. ``("weekend", "18-24")``."""

	day_type: str
	time_slot: str

	def key(self) -> str:
		return f"{self.day_type}:{self.time_slot}"

	@classmethod
	def from_key(cls, key: str) -> "PlaySlot":
		day_type, _, time_slot = key.partition(":")
		return cls(day_type=day_type, time_slot=time_slot)


def expand_schedule(day_types: Iterable[str], time_slots: Iterable[str]) -> tuple[PlaySlot, ...]:
	"""Cross every distinct day type with every distinct time slot, keeping input order."""
	days = list(dict.fromkeys(d.strip() for d in day_types if d and d.strip()))
	slots = list(dict.fromkeys(s.strip() for s in time_slots if s and s.strip()))
	return tuple(PlaySlot(day, slot) for day in days for slot in slots)


@dataclass(frozen=True, slots=True)
class MatchSide:
	"""One party's view of itself for a single comparison.

	``traits`` and ``archetype`` are ``None`` until the trait test is completed;
	``schedule`` is ``None`` when no play slots were submitted.
	"""

	user_id: str
	traits: Optional[TraitVector] = None
	archetype: Optional[Archetype] = None
	schedule: Optional[tuple[PlaySlot, ...]] = None


@dataclass(frozen=True, slots=True)
class MatchContext:
	viewer: MatchSide
	target: MatchSide


@dataclass(frozen=True, slots=True)
class MatchScore:
	final_score: int
	base_score: float
	compatibility: CompatibilityLevel
	schedule_score: Optional[int] = None
	tags: tuple[str, ...] = field(default_factory=tuple)
