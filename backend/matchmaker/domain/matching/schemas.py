"""Schemas for scored candidates and trait submissions."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from matchmaker.domain.matching.models import Archetype, parse_archetype


class ProfileSummary(BaseModel):
	nickname: str = ""
	avatar_url: Optional[str] = None
	archetype: Optional[Archetype] = None

	@field_validator("archetype", mode="before")
	@classmethod
	def _lenient_archetype(cls, value):
		return parse_archetype(value)


class ScoredCandidate(BaseModel):
	target_id: str = Field(min_length=1)
	final_score: float = Field(ge=0, le=100)
	profile: ProfileSummary = Field(default_factory=ProfileSummary)
	tags: list[str] = Field(default_factory=list)


class MatchResultsResponse(BaseModel):
	results: list[ScoredCandidate] = Field(default_factory=list)


class TraitValues(BaseModel):
	cooperation: float = Field(ge=0, le=100)
	exploration: float = Field(ge=0, le=100)
	strategy: float = Field(ge=0, le=100)
	leadership: float = Field(ge=0, le=100)
	social: float = Field(ge=0, le=100)


class TraitsSubmission(BaseModel):
	traits: TraitValues
	archetype: Optional[Archetype] = None
	day_types: list[str] = Field(default_factory=list)
	time_slots: list[str] = Field(default_factory=list)


class TraitsResult(BaseModel):
	traits: TraitValues
	archetype: Archetype
	perfect_matches: list[Archetype] = Field(default_factory=list)
	schedule: list[str] = Field(default_factory=list)
