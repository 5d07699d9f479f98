import pytest

from matchmaker.domain.presence.models import PresenceEvent, PresenceState
from matchmaker.domain.presence.tracker import PresenceTracker
from matchmaker.domain.status.models import ManualStatus
from matchmaker.domain.status.repository import StatusRepository
from matchmaker.domain.status.resolver import StatusResolver, resolve_status
from matchmaker.domain.status.store import ManualStatusStore


@pytest.mark.parametrize(
	"present, manual, expected",
	[
		(False, None, ManualStatus.OFFLINE),
		(False, ManualStatus.ONLINE, ManualStatus.OFFLINE),
		(False, ManualStatus.DND, ManualStatus.OFFLINE),
		(True, None, ManualStatus.ONLINE),
		(True, ManualStatus.ONLINE, ManualStatus.ONLINE),
		(True, ManualStatus.AWAY, ManualStatus.AWAY),
		(True, ManualStatus.DND, ManualStatus.DND),
		(True, ManualStatus.OFFLINE, ManualStatus.OFFLINE),
	],
)
def test_precedence(present, manual, expected):
	assert resolve_status(present, manual) is expected


def _synced_tracker(members):
	tracker = PresenceTracker()
	tracker.state = PresenceState.SYNCED
	tracker.apply(PresenceEvent.sync(members))
	return tracker


def test_resolver_reads_live_sources():
	tracker = _synced_tracker({"u1"})
	store = ManualStatusStore(StatusRepository())
	resolver = StatusResolver(tracker, store)

	assert resolver.effective_status("u1") is ManualStatus.ONLINE
	assert resolver.effective_status("u2") is ManualStatus.OFFLINE

	# invisible mode: connected but manually offline
	store.apply_remote_change("u1", ManualStatus.OFFLINE)
	assert resolver.effective_status("u1") is ManualStatus.OFFLINE
	assert not resolver.is_online("u1")

	store.apply_remote_change("u1", None)
	tracker.apply(PresenceEvent.leave("u1"))
	assert resolver.effective_status("u1") is ManualStatus.OFFLINE


def test_resolver_subscription_covers_both_sources():
	tracker = _synced_tracker(set())
	store = ManualStatusStore(StatusRepository())
	resolver = StatusResolver(tracker, store)
	ticks = []
	unsubscribe = resolver.subscribe(lambda: ticks.append(1))

	tracker.apply(PresenceEvent.join("u1"))
	store.apply_remote_change("u1", ManualStatus.AWAY)
	unsubscribe()
	store.apply_remote_change("u1", ManualStatus.DND)

	assert len(ticks) == 2
