"""Domain models for the live presence channel."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional


class PresenceState(str, Enum):
	DISCONNECTED = "disconnected"
	CONNECTING = "connecting"
	SYNCED = "synced"


class PresenceEventKind(str, Enum):
	SYNC = "sync"
	JOIN = "join"
	LEAVE = "leave"


@dataclass(frozen=True, slots=True)
class PresenceEvent:
	"""A channel event; ``members`` is only set for full ``sync`` snapshots."""

	kind: PresenceEventKind
	user_id: Optional[str] = None
	members: Optional[FrozenSet[str]] = None

	@classmethod
	def sync(cls, members) -> "PresenceEvent":
		return cls(kind=PresenceEventKind.SYNC, members=frozenset(members))

	@classmethod
	def join(cls, user_id: str) -> "PresenceEvent":
		return cls(kind=PresenceEventKind.JOIN, user_id=user_id)

	@classmethod
	def leave(cls, user_id: str) -> "PresenceEvent":
		return cls(kind=PresenceEventKind.LEAVE, user_id=user_id)
