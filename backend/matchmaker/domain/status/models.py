"""Domain models for manual and effective user status."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ManualStatus(str, Enum):
	"""Availability a user picks explicitly; also the set of displayed statuses."""

	ONLINE = "online"
	AWAY = "away"
	DND = "dnd"
	OFFLINE = "offline"


EffectiveStatus = ManualStatus

DEFAULT_STATUS = ManualStatus.ONLINE


def parse_status(value: Any) -> Optional[ManualStatus]:
	"""Map a stored value to a status; blank means the row is gone."""
	if value is None or isinstance(value, ManualStatus):
		return value
	text = str(value).strip().lower()
	if not text:
		return None
	return ManualStatus(text)
