"""Tests for AgentState ticking and the AgentRegistry."""

import pytest

from courtlife.agents import AgentRegistry, AgentState
from courtlife.memory import MemoryRecord
from courtlife.schemas import MemoryKind, MemoryLogSnapshot, MemoryTag, TraitSnapshot
from courtlife.world import InMemoryWorld, NobleProfile


def make_world(**traits) -> InMemoryWorld:
    return InMemoryWorld(
        nobles=[
            NobleProfile(actor_id="x", traits=TraitSnapshot(**traits)),
            NobleProfile(actor_id="y"),
        ]
    )


def test_register_memory_adds_first_hand_belief_copy():
    world = make_world()
    registry = AgentRegistry(world.now)

    added = registry.register_memory(
        "x", "y", MemoryKind.BATTLE_VICTORY, 1.0, "Battle of Sargot", MemoryTag.BATTLE_VICTORY
    )

    assert len(added) == 2
    event, belief = added
    assert event.tags == {MemoryTag.BATTLE_VICTORY}
    assert belief.tags == {MemoryTag.BELIEF}
    assert belief.kind == event.kind == MemoryKind.BATTLE_VICTORY
    assert belief.weight == event.weight == 1.0
    assert registry.get("x").memories == added


def test_register_memory_without_belief_copy():
    world = make_world()
    registry = AgentRegistry(world.now)

    added = registry.register_memory(
        "x", "y", MemoryKind.INSULT, -0.5, mark_first_hand_as_belief=False
    )

    assert len(added) == 1
    assert added[0].tags == set()
    assert added[0].notes == ""


def test_registry_is_null_tolerant():
    world = make_world()
    registry = AgentRegistry(world.now)

    assert registry.get_or_create(None) is None
    assert registry.register_memory(None, "y", MemoryKind.INSULT, 1.0) == []
    assert len(registry) == 0


def test_get_or_create_returns_same_agent():
    registry = AgentRegistry(lambda: 0.0)
    first = registry.get_or_create("x")
    assert registry.get_or_create("x") is first
    assert "x" in registry
    assert [agent.actor_id for agent in registry] == ["x"]


def test_tick_is_idempotent_within_a_day():
    world = make_world()
    registry = AgentRegistry(world.now)
    registry.register_memory("x", "y", MemoryKind.INSULT, 1.0, mark_first_hand_as_belief=False)
    agent = registry.get("x")

    world.advance(1.0)
    assert agent.tick(world) == 0
    world.day = 1.9
    assert agent.tick(world) is None
    assert agent.memories[0].weight == pytest.approx(0.97)
    assert agent.last_tick_time == 1.0

    world.day = 2.0
    assert agent.tick(world) == 0
    assert agent.memories[0].weight == pytest.approx(0.94)


def test_tick_uses_owner_traits_for_decay():
    world = make_world(mercy=1)
    registry = AgentRegistry(world.now)
    registry.register_memory("x", "y", MemoryKind.INSULT, 1.0, mark_first_hand_as_belief=False)

    world.advance(1.0)
    registry.get("x").tick(world)

    assert registry.get("x").memories[0].weight == pytest.approx(1.0 - 0.03 * 1.25)


def test_tick_prunes_expired_and_dead_records():
    world = make_world()
    agent = AgentState("x")
    agent.add(MemoryRecord.create(MemoryKind.INSULT, "x", "y", 5.0, timestamp=0.0))
    agent.add(MemoryRecord.create(MemoryKind.INSULT, "x", "y", 0.02, timestamp=33.0))
    keeper = agent.add(MemoryRecord.create(MemoryKind.MURDER, "x", "y", -1.0, timestamp=0.0))

    world.day = 34.0
    assert agent.tick(world) == 2
    assert agent.memories == [keeper]


def test_snapshot_round_trip_preserves_records():
    agent = AgentState("x", last_tick_time=3.0, last_decay_day=3.0)
    agent.add(MemoryRecord.create(MemoryKind.BATTLE_VICTORY, "x", "y", 0.8, "Sargot", timestamp=1.0,
                                  tags=[MemoryTag.BATTLE_VICTORY, MemoryTag.BELIEF]))
    hearsay = MemoryRecord.create(MemoryKind.GOSSIP_HEARD, "z", "y", 0.15, "Ocs Hall", timestamp=2.0,
                                  tags=[MemoryTag.GOSSIP], original_kind=MemoryKind.MURDER)
    hearsay.repeat_count = 2
    agent.add(hearsay)

    snapshot = agent.to_snapshot()
    assert snapshot.kinds == ["battle_victory", "gossip_heard"]
    assert snapshot.original_kinds == [None, "murder"]
    assert snapshot.tags[0] == ["battle_victory", "belief"]

    restored = AgentState.from_snapshot(snapshot)
    assert restored.last_tick_time == 3.0
    assert restored.memories == agent.memories


def test_restore_truncates_ragged_lists():
    snapshot = MemoryLogSnapshot(
        actor_id="x",
        kinds=["insult", "murder"],
        original_kinds=[None, None],
        sources=["x", "x"],
        targets=["y", "y"],
        timestamps_days=[0.0, 1.0],
        weights=[0.5],
        decay_rates=[0.03, 0.03],
        never_forget=[False, True],
        repeat_counts=[1, 1],
        tags=[[], []],
        notes=["a", "b"],
    )

    restored = AgentState.from_snapshot(snapshot)

    assert len(restored.memories) == 1
    assert restored.memories[0].kind == MemoryKind.INSULT
    assert restored.memories[0].weight == 0.5
