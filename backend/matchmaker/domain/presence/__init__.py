"""Live presence channel tracking."""

from matchmaker.domain.presence.models import PresenceEvent, PresenceEventKind, PresenceState
from matchmaker.domain.presence.tracker import PresenceTracker

__all__ = ["PresenceEvent", "PresenceEventKind", "PresenceState", "PresenceTracker"]
