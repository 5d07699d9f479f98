"""Effective status: presence combined with the manual status."""

from __future__ import annotations

from typing import Optional

from matchmaker.domain.common.listeners import Listener, Unsubscribe
from matchmaker.domain.presence.tracker import PresenceTracker
from matchmaker.domain.status.models import EffectiveStatus, ManualStatus
from matchmaker.domain.status.store import ManualStatusStore


def resolve_status(is_present: bool, manual: Optional[ManualStatus]) -> EffectiveStatus:
	"""Nobody is shown available unless connected; manual offline hides a connected user."""
	if not is_present:
		return ManualStatus.OFFLINE
	if manual in (ManualStatus.OFFLINE, ManualStatus.AWAY, ManualStatus.DND):
		return manual
	return ManualStatus.ONLINE


class StatusResolver:
	"""Reads both sources on every call; nothing is cached here."""

	def __init__(self, presence: PresenceTracker, statuses: ManualStatusStore) -> None:
		self.presence = presence
		self.statuses = statuses

	def effective_status(self, user_id: str) -> EffectiveStatus:
		if not user_id:
			return ManualStatus.OFFLINE
		return resolve_status(self.presence.is_present(user_id), self.statuses.get(user_id))

	def is_online(self, user_id: str) -> bool:
		return self.effective_status(user_id) is ManualStatus.ONLINE

	def subscribe(self, listener: Listener) -> Unsubscribe:
		"""Listen to changes in either source."""
		unsubscribers = (self.presence.subscribe(listener), self.statuses.subscribe(listener))

		def _unsubscribe() -> None:
			for unsubscribe in unsubscribers:
				unsubscribe()

		return _unsubscribe


__all__ = ["StatusResolver", "resolve_status"]
