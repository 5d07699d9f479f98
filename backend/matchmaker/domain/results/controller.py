"""Fetch scored candidates once per identity and re-rank them on every status tick."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence

from matchmaker.domain.common.listeners import Listener, ListenerSet, Unsubscribe
from matchmaker.domain.matching.exceptions import MatchingError
from matchmaker.domain.matching.repository import ProfileRepository
from matchmaker.domain.matching.schemas import ScoredCandidate
from matchmaker.domain.matching.service import calculate_match_results
from matchmaker.domain.status.resolver import StatusResolver
from matchmaker.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Sequence[ScoredCandidate]]]

SORT_BY_SCORE = "score"
SORT_BY_ONLINE = "online"
_SORT_KEYS = (SORT_BY_SCORE, SORT_BY_ONLINE)


class MatchFetchError(MatchingError):
	"""The scored-candidate read failed; kept in controller state instead of raised."""

	reason = "match_fetch_failed"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__()
		self.detail = detail

	def __str__(self) -> str:
		return f"{self.reason}: {self.detail}" if self.detail else self.reason


@dataclass(frozen=True, slots=True)
class ResultOptions:
	min_score: Optional[float] = None
	online_only: bool = False
	sort_by: str = SORT_BY_SCORE
	retain_on_error: bool = False

	def __post_init__(self) -> None:
		if self.sort_by not in _SORT_KEYS:
			raise ValueError(f"sort_by must be one of {_SORT_KEYS}, got {self.sort_by!r}")


@dataclass(frozen=True, slots=True)
class MatchResults:
	results: tuple[ScoredCandidate, ...] = ()
	loading: bool = False
	error: Optional[MatchFetchError] = None
	refetch: Callable[[], Optional[asyncio.Task]] = field(default=lambda: None, compare=False, repr=False)

	@property
	def is_empty(self) -> bool:
		return not self.loading and self.error is None and not self.results


def derive_results(
	rows: Sequence[ScoredCandidate],
	options: ResultOptions,
	is_online: Callable[[str], bool],
) -> tuple[ScoredCandidate, ...]:
	"""Filter then sort ``rows``; both sorts are stable on fetch order."""
	online = {row.target_id: is_online(row.target_id) for row in rows}
	selected = [
		row
		for row in rows
		if (options.min_score is None or row.final_score >= options.min_score)
		and (not options.online_only or online[row.target_id])
	]
	if options.sort_by == SORT_BY_ONLINE:
		selected.sort(key=lambda row: (not online[row.target_id], -row.final_score))
	else:
		selected.sort(key=lambda row: -row.final_score)
	return tuple(selected)


def service_fetcher(repository: Optional[ProfileRepository] = None) -> Fetcher:
	"""Fetcher that scores candidates in-process against the profile store."""

	async def _fetch(viewer_id: str) -> Sequence[ScoredCandidate]:
		return await calculate_match_results(viewer_id, repository)

	return _fetch


class MatchResultController:
	"""Owns one viewer's candidate list.

	Fetches happen only on identity change and explicit :meth:`refetch`; each
	bumps a generation counter and cancels the previous task, and a response
	from an older generation is dropped. Option changes and presence/status
	updates re-derive the visible list from the last fetched rows.
	"""

	def __init__(self, fetcher: Fetcher, resolver: StatusResolver, *, hydrate_statuses: bool = True) -> None:
		self._fetcher = fetcher
		self._resolver = resolver
		self._hydrate = hydrate_statuses
		self._viewer_id: Optional[str] = None
		self._options = ResultOptions()
		self._raw: tuple[ScoredCandidate, ...] = ()
		self._view: tuple[ScoredCandidate, ...] = ()
		self._loading = False
		self._error: Optional[MatchFetchError] = None
		self._generation = 0
		self._task: Optional[asyncio.Task] = None
		self._listeners = ListenerSet()
		self._unsubscribe: Optional[Unsubscribe] = resolver.subscribe(self._on_status_change)

	@property
	def viewer_id(self) -> Optional[str]:
		return self._viewer_id

	@property
	def options(self) -> ResultOptions:
		return self._options

	@property
	def state(self) -> MatchResults:
		return MatchResults(results=self._view, loading=self._loading, error=self._error, refetch=self.refetch)

	def subscribe(self, listener: Listener) -> Unsubscribe:
		return self._listeners.subscribe(listener)

	def use_results(self, viewer_id: Optional[str], options: Optional[ResultOptions] = None) -> MatchResults:
		if options is not None:
			self.set_options(options)
		self.set_viewer(viewer_id)
		return self.state

	def set_viewer(self, viewer_id: Optional[str]) -> None:
		viewer_id = viewer_id or None
		if viewer_id == self._viewer_id:
			return
		self._viewer_id = viewer_id
		self._raw = ()
		self._error = None
		if viewer_id is None:
			self._generation += 1
			self._cancel_inflight()
			self._loading = False
			self._publish()
			return
		self._start_fetch()

	def set_options(self, options: ResultOptions) -> None:
		if options == self._options:
			return
		self._options = options
		self._publish()

	def refetch(self) -> Optional[asyncio.Task]:
		if not self._viewer_id:
			return None
		return self._start_fetch()

	async def wait(self) -> None:
		"""Block until the latest fetch (including ones started meanwhile) settles."""
		while self._task is not None and not self._task.done():
			await asyncio.wait({self._task})

	def close(self) -> None:
		if self._unsubscribe is not None:
			self._unsubscribe()
			self._unsubscribe = None
		self._generation += 1
		self._cancel_inflight()

	def _start_fetch(self) -> asyncio.Task:
		self._generation += 1
		generation = self._generation
		self._cancel_inflight()
		self._loading = True
		self._publish()
		task = asyncio.create_task(self._fetch(self._viewer_id, generation))
		self._task = task
		return task

	def _cancel_inflight(self) -> None:
		task = self._task
		self._task = None
		if task is not None and not task.done():
			task.cancel()
			obs_metrics.MATCH_STALE_DISCARDS.inc()

	async def _fetch(self, viewer_id: str, generation: int) -> None:
		try:
			rows = await self._fetcher(viewer_id)
		except asyncio.CancelledError:
			raise
		except Exception as exc:
			if generation != self._generation:
				obs_metrics.MATCH_STALE_DISCARDS.inc()
				return
			obs_metrics.MATCH_FETCHES.labels(outcome="error").inc()
			logger.warning("match fetch failed viewer=%s", viewer_id, exc_info=True)
			if isinstance(exc, MatchFetchError):
				error = exc
			else:
				error = MatchFetchError(str(exc) or exc.__class__.__name__)
				error.__cause__ = exc
			self._error = error
			if not self._options.retain_on_error:
				self._raw = ()
			self._loading = False
			self._publish()
			return

		if generation != self._generation:
			obs_metrics.MATCH_STALE_DISCARDS.inc()
			return
		obs_metrics.MATCH_FETCHES.labels(outcome="ok").inc()
		self._raw = tuple(rows)
		self._error = None
		self._loading = False
		self._publish()
		if self._hydrate and self._raw:
			try:
				await self._resolver.statuses.hydrate(row.target_id for row in self._raw)
			except Exception:
				logger.warning("status hydrate failed viewer=%s", viewer_id, exc_info=True)

	def _on_status_change(self) -> None:
		if self._raw:
			self._publish()

	def _publish(self) -> None:
		self._view = derive_results(self._raw, self._options, self._resolver.is_online)
		self._listeners.notify()


__all__ = [
	"Fetcher",
	"MatchFetchError",
	"MatchResultController",
	"MatchResults",
	"ResultOptions",
	"derive_results",
	"service_fetcher",
]
