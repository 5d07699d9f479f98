"""Manual status persistence, local mirror and effective status resolution."""

from matchmaker.domain.status.models import DEFAULT_STATUS, EffectiveStatus, ManualStatus, parse_status
from matchmaker.domain.status.resolver import StatusResolver, resolve_status
from matchmaker.domain.status.store import ManualStatusStore

__all__ = [
	"DEFAULT_STATUS",
	"EffectiveStatus",
	"ManualStatus",
	"ManualStatusStore",
	"StatusResolver",
	"parse_status",
	"resolve_status",
]
