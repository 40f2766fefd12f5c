"""Tests for the co-presence meeting tracker."""

from courtlife.meetings import MeetingTracker
from courtlife.schemas import MeetingSnapshot
from courtlife.world import InMemoryWorld, NobleProfile


def make_world() -> InMemoryWorld:
    return InMemoryWorld(
        nobles=[
            NobleProfile(actor_id="aldric", location="pravend"),
            NobleProfile(actor_id="marion", location="pravend"),
            NobleProfile(actor_id="ralf", location="pravend", adult=False),
            NobleProfile(actor_id="engelbert", army="northern_host"),
            NobleProfile(actor_id="godun", army="northern_host"),
            NobleProfile(actor_id="hermit", location="ocs_hall"),
        ]
    )


def test_pairs_are_order_independent_and_never_collide():
    world = make_world()
    tracker = MeetingTracker(world, remember_days=120)

    tracker.record_co_presence(["a|b", "c"])

    assert tracker.has_met_within("c", "a|b", 1)
    assert not tracker.has_met_within("a", "b|c", 1)
    assert tracker.last_seen("a", "b|c") is None


def test_sweep_records_settlement_and_army_pairs():
    world = make_world()
    tracker = MeetingTracker(world, remember_days=120)

    assert tracker.sweep() == 2
    assert tracker.last_seen("aldric", "marion") == 0.0
    assert tracker.last_seen("godun", "engelbert") == 0.0
    assert tracker.last_seen("aldric", "ralf") is None
    assert tracker.last_seen("hermit", "aldric") is None
    assert len(tracker) == 2


def test_has_met_within_window():
    world = make_world()
    tracker = MeetingTracker(world, remember_days=120)
    tracker.sweep()

    world.advance(10.0)
    assert tracker.has_met_within("aldric", "marion", 10.0)
    assert not tracker.has_met_within("aldric", "marion", 9.0)
    assert not tracker.has_met_within("aldric", "hermit", 100.0)
    assert not tracker.has_met_within(None, "marion", 100.0)


def test_stale_pairs_are_forgotten():
    world = make_world()
    tracker = MeetingTracker(world, remember_days=5)
    tracker.sweep()

    world.nobles["marion"].location = "ocs_hall"
    world.nobles["godun"].army = None
    world.advance(6.0)

    assert tracker.sweep() == 1
    assert tracker.last_seen("aldric", "marion") is None
    assert tracker.last_seen("engelbert", "godun") is None
    assert tracker.last_seen("hermit", "marion") == 6.0


def test_snapshot_round_trip_and_ragged_restore():
    world = make_world()
    tracker = MeetingTracker(world, remember_days=120)
    tracker.sweep()

    other = MeetingTracker(world, remember_days=120)
    other.restore(tracker.to_snapshot())
    assert other.last_seen("aldric", "marion") == 0.0

    other.restore(MeetingSnapshot(
        firsts=["marion", "engelbert"], seconds=["aldric", "godun"], last_seen_days=[3.0]
    ))
    assert len(other) == 1
    assert other.last_seen("marion", "aldric") == 3.0
