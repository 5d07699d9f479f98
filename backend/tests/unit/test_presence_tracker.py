import asyncio

import pytest

from matchmaker.domain.presence.channel import RedisPresenceChannel, members_from_state, sweep_once
from matchmaker.domain.presence.models import PresenceEvent, PresenceState
from matchmaker.domain.presence.tracker import PresenceTracker


class RecordingChannel:
	"""In-memory channel that records the order of lifecycle calls."""

	def __init__(self, members=(), *, fail_untrack=False, fail_subscribe=False, failed_reads=0):
		self.calls = []
		self.members = set(members)
		self.pending = []
		self.failed_reads = failed_reads
		self.snapshots = 0
		self.fail_untrack = fail_untrack
		self.fail_subscribe = fail_subscribe

	async def subscribe(self):
		self.calls.append("subscribe")
		if self.fail_subscribe:
			raise ConnectionError("channel unavailable")

	async def track(self, member_key, meta):
		self.calls.append(("track", member_key))
		self.members.add(meta["user_id"])

	async def refresh(self, member_key):
		self.calls.append(("refresh", member_key))

	async def untrack(self, member_key):
		self.calls.append(("untrack", member_key))
		if self.fail_untrack:
			raise ConnectionError("leave lost")
		self.members.discard(member_key)

	async def snapshot(self):
		self.snapshots += 1
		return PresenceEvent.sync(self.members)

	async def read_events(self):
		if self.failed_reads:
			self.failed_reads -= 1
			raise ConnectionError("stream read failed")
		events, self.pending = self.pending, []
		return events

	async def close(self):
		self.calls.append("close")


@pytest.mark.asyncio
async def test_connect_syncs_member_set():
	channel = RecordingChannel(members={"u2", "u3"})
	tracker = PresenceTracker(lambda: channel)

	assert await tracker.connect("u1") is True

	assert tracker.state is PresenceState.SYNCED
	assert tracker.members == frozenset({"u1", "u2", "u3"})
	assert channel.calls[:2] == ["subscribe", ("track", "u1")]


@pytest.mark.asyncio
async def test_sync_replaces_set_and_join_leave_are_incremental():
	channel = RecordingChannel(members={"u2"})
	tracker = PresenceTracker(lambda: channel)
	await tracker.connect("u1")
	ticks = []
	tracker.subscribe(lambda: ticks.append(tracker.members))

	channel.pending = [PresenceEvent.join("u4"), PresenceEvent.leave("u2"), PresenceEvent.leave("ghost")]
	assert await tracker.run_once() == 3
	assert tracker.members == frozenset({"u1", "u4"})

	tracker.apply(PresenceEvent.sync({"u9"}))
	assert tracker.members == frozenset({"u9"})
	assert ticks == [frozenset({"u1", "u2", "u4"}), frozenset({"u1", "u4"}), frozenset({"u9"})]


@pytest.mark.asyncio
async def test_incremental_events_before_sync_are_ignored():
	tracker = PresenceTracker(RecordingChannel)
	tracker.apply(PresenceEvent.join("u1"))
	assert tracker.members == frozenset()


@pytest.mark.asyncio
async def test_disconnect_announces_leave_before_closing():
	channel = RecordingChannel(members={"u2"})
	tracker = PresenceTracker(lambda: channel)
	await tracker.connect("u1")
	ticks = []
	tracker.subscribe(lambda: ticks.append(tracker.state))

	await tracker.disconnect()

	assert channel.calls[-2:] == [("untrack", "u1"), "close"]
	assert tracker.state is PresenceState.DISCONNECTED
	assert tracker.members == frozenset()
	assert ticks == [PresenceState.DISCONNECTED]


@pytest.mark.asyncio
async def test_disconnect_closes_even_when_leave_fails():
	channel = RecordingChannel(fail_untrack=True)
	tracker = PresenceTracker(lambda: channel)
	await tracker.connect("u1")

	await tracker.disconnect()

	assert channel.calls[-1] == "close"
	assert tracker.state is PresenceState.DISCONNECTED


@pytest.mark.asyncio
async def test_identity_change_tears_down_previous_channel():
	channels = []

	def factory():
		channels.append(RecordingChannel())
		return channels[-1]

	tracker = PresenceTracker(factory)
	await tracker.connect("u1")
	await tracker.connect("u1")
	assert len(channels) == 1

	await tracker.connect("u2")

	assert len(channels) == 2
	assert channels[0].calls[-2:] == [("untrack", "u1"), "close"]
	assert tracker.user_id == "u2"
	assert tracker.members == frozenset({"u2"})

	assert await tracker.connect(None) is False
	assert channels[1].calls[-2:] == [("untrack", "u2"), "close"]


@pytest.mark.asyncio
async def test_connect_failure_leaves_tracker_disconnected():
	channel = RecordingChannel(fail_subscribe=True)
	tracker = PresenceTracker(lambda: channel)

	assert await tracker.connect("u1") is False

	assert tracker.state is PresenceState.DISCONNECTED
	assert channel.calls[-1] == "close"


def test_members_from_state_skips_malformed_entries():
	state = {
		"a": '{"user_id": "u1"}',
		"b": "not json",
		"c": '{"other": 1}',
		"d": {"user_id": "u4"},
	}
	assert members_from_state(state) == frozenset({"u1", "u4"})


@pytest.mark.asyncio
async def test_redis_channel_round_trip_between_two_trackers(fake_redis):
	first = PresenceTracker(lambda: RedisPresenceChannel("lobby", fake_redis, block_ms=0))
	second = PresenceTracker(lambda: RedisPresenceChannel("lobby", fake_redis, block_ms=0))

	await first.connect("alice")
	await second.connect("bob")
	assert second.members == frozenset({"alice", "bob"})

	await first.run_once()
	assert first.members == frozenset({"alice", "bob"})

	await second.disconnect()
	await first.run_once()
	assert first.members == frozenset({"alice"})
	assert await fake_redis.hkeys("presence:channel:lobby") == ["alice"]


@pytest.mark.asyncio
async def test_run_loop_stops_on_cancel():
	channel = RecordingChannel()
	tracker = PresenceTracker(lambda: channel)
	await tracker.connect("u1")
	channel.pending = [PresenceEvent.join("u5")]

	task = asyncio.create_task(tracker.run(idle_sleep=0.01))
	await asyncio.sleep(0.05)
	task.cancel()
	with pytest.raises(asyncio.CancelledError):
		await task

	assert "u5" in tracker.members


@pytest.mark.asyncio
async def test_run_loop_survives_failed_read_and_resyncs():
	channel = RecordingChannel(failed_reads=1)
	tracker = PresenceTracker(lambda: channel)
	await tracker.connect("u1")
	snapshots_after_connect = channel.snapshots
	channel.pending = [PresenceEvent.join("late")]

	task = asyncio.create_task(tracker.run(idle_sleep=0.01))
	await asyncio.sleep(0.05)
	assert not task.done()
	task.cancel()
	with pytest.raises(asyncio.CancelledError):
		await task

	assert tracker.is_present("late") is True
	assert channel.snapshots > snapshots_after_connect


@pytest.mark.asyncio
async def test_keepalive_refreshes_local_member_until_cancelled():
	channel = RecordingChannel()
	tracker = PresenceTracker(lambda: channel)
	await tracker.connect("u1")

	task = asyncio.create_task(tracker.run_keepalive(interval=0.01))
	await asyncio.sleep(0.05)
	task.cancel()
	with pytest.raises(asyncio.CancelledError):
		await task

	assert ("refresh", "u1") in channel.calls


class FrozenClock:
	def __init__(self, now=1_000.0):
		self.now = now

	def __call__(self):
		return self.now


@pytest.mark.asyncio
async def test_member_without_heartbeat_is_not_present_for_new_observers(fake_redis):
	clock = FrozenClock()

	def factory():
		return RedisPresenceChannel("lobby", fake_redis, block_ms=0, ttl_seconds=30, clock=clock)

	ghost = PresenceTracker(factory)
	await ghost.connect("ghost")
	# the ghost's process goes away without disconnecting
	clock.now += 31

	observer = PresenceTracker(factory)
	await observer.connect("alice")

	assert observer.is_present("ghost") is False
	assert observer.is_present("alice") is True


@pytest.mark.asyncio
async def test_sweeper_removes_expired_member_and_announces_leave(fake_redis):
	clock = FrozenClock()

	def factory():
		return RedisPresenceChannel("lobby", fake_redis, block_ms=0, ttl_seconds=30, clock=clock)

	ghost = PresenceTracker(factory)
	await ghost.connect("ghost")
	clock.now += 20
	watcher = PresenceTracker(factory)
	await watcher.connect("alice")
	assert watcher.is_present("ghost") is True

	clock.now += 15
	assert await sweep_once(factory()) == 1
	await watcher.run_once()

	assert watcher.is_present("ghost") is False
	assert await fake_redis.hkeys("presence:channel:lobby") == ["alice"]
	assert await fake_redis.zscore("presence:heartbeat:lobby", "ghost") is None


@pytest.mark.asyncio
async def test_refresh_extends_heartbeat_and_rejoins_after_sweep(fake_redis):
	clock = FrozenClock()
	channel = RedisPresenceChannel("lobby", fake_redis, block_ms=0, ttl_seconds=30, clock=clock)
	await channel.track("bob", {"user_id": "bob"})

	clock.now += 25
	await channel.refresh("bob")
	clock.now += 25
	assert (await channel.snapshot()).members == frozenset({"bob"})

	clock.now += 31
	assert await channel.sweep_expired() == 1
	assert (await channel.snapshot()).members == frozenset()

	await channel.refresh("bob")
	assert (await channel.snapshot()).members == frozenset({"bob"})
