"""Tests for in-memory and JSON persistence of registry snapshots."""

import json

import pytest

from courtlife.agents import AgentState
from courtlife.memory import MemoryRecord
from courtlife.persistence import InMemoryPersistence, JsonPersistence
from courtlife.schemas import MeetingSnapshot, MemoryKind, MemoryTag, RegistrySnapshot


def make_snapshot(with_meetings: bool = True) -> RegistrySnapshot:
    agent = AgentState("aldric", last_tick_time=4.0, last_decay_day=4.0)
    agent.add(MemoryRecord.create(
        MemoryKind.BATTLE_VICTORY, "aldric", "godun", 0.88, "Battle of Sargot",
        timestamp=0.0, tags=[MemoryTag.BATTLE_VICTORY],
    ))
    hearsay = agent.add(MemoryRecord.create(
        MemoryKind.GOSSIP_HEARD, "marion", "engelbert", 0.15, "The steward of Ocs Hall",
        timestamp=2.0, tags=[MemoryTag.GOSSIP], original_kind=MemoryKind.MURDER,
    ))
    hearsay.repeat_count = 2

    meetings = (
        MeetingSnapshot(firsts=["aldric"], seconds=["marion"], last_seen_days=[4.0])
        if with_meetings
        else None
    )
    return RegistrySnapshot(saved_at_day=4.0, agents=[agent.to_snapshot()], meetings=meetings)


@pytest.mark.asyncio
async def test_in_memory_persistence_round_trip():
    persistence = InMemoryPersistence()
    await persistence.initialize()

    snapshot = make_snapshot()
    await persistence.save_registry("s1", snapshot)
    loaded = await persistence.load_registry("s1")

    assert loaded == snapshot
    assert await persistence.load_registry("missing") is None

    await persistence.delete_session("s1")
    assert await persistence.load_registry("s1") is None
    await persistence.close()


@pytest.mark.asyncio
async def test_in_memory_persistence_isolates_stored_copy():
    persistence = InMemoryPersistence()
    snapshot = make_snapshot()
    await persistence.save_registry("s1", snapshot)

    snapshot.agents[0].weights[0] = 99.0
    loaded = await persistence.load_registry("s1")
    loaded.agents[0].notes[0] = "edited"

    stored = persistence.sessions["s1"].agents[0]
    assert stored.weights[0] == 0.88
    assert stored.notes[0] == "Battle of Sargot"


@pytest.mark.asyncio
async def test_json_persistence_writes_session_files(tmp_path):
    persistence = JsonPersistence(tmp_path)
    await persistence.initialize()

    snapshot = make_snapshot()
    await persistence.save_registry("campaign", snapshot)

    session_dir = tmp_path / "campaign"
    agents = json.loads((session_dir / "agents.json").read_text("utf-8"))
    meetings = json.loads((session_dir / "meetings.json").read_text("utf-8"))
    assert "meetings" not in agents
    assert agents["agents"][0]["original_kinds"] == [None, "murder"]
    assert agents["agents"][0]["timestamps_days"] == [0.0, 2.0]
    assert meetings == {"firsts": ["aldric"], "seconds": ["marion"], "last_seen_days": [4.0]}

    loaded = await persistence.load_registry("campaign")
    assert loaded == snapshot
    restored = AgentState.from_snapshot(loaded.agents[0])
    assert restored.memories[1].repeat_count == 2
    assert restored.memories[1].effective_kind == MemoryKind.MURDER


@pytest.mark.asyncio
async def test_json_persistence_without_meetings(tmp_path):
    persistence = JsonPersistence(tmp_path)
    await persistence.initialize()

    await persistence.save_registry("campaign", make_snapshot())
    await persistence.save_registry("campaign", make_snapshot(with_meetings=False))

    assert not (tmp_path / "campaign" / "meetings.json").exists()
    loaded = await persistence.load_registry("campaign")
    assert loaded.meetings is None


@pytest.mark.asyncio
async def test_json_persistence_missing_and_deleted_sessions(tmp_path):
    persistence = JsonPersistence(tmp_path / "sessions")
    await persistence.initialize()

    assert await persistence.load_registry("nope") is None

    await persistence.save_registry("campaign", make_snapshot())
    await persistence.delete_session("campaign")
    assert not (tmp_path / "sessions" / "campaign").exists()
    assert await persistence.load_registry("campaign") is None

    await persistence.delete_session("campaign")
    await persistence.close()
