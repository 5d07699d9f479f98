"""Reactive, locally re-ranked view over scored match candidates."""

from matchmaker.domain.results.controller import (
	MatchFetchError,
	MatchResultController,
	MatchResults,
	ResultOptions,
	derive_results,
)

__all__ = [
	"MatchFetchError",
	"MatchResultController",
	"MatchResults",
	"ResultOptions",
	"derive_results",
]
