"""Tests for the daily driver that ties the court together."""

import random

import pytest

from courtlife.memory import RetentionSettings
from courtlife.persistence import InMemoryPersistence
from courtlife.schemas import MemoryKind, RelationDetail
from courtlife.society import DayReport, NobleSociety
from courtlife.world import ClanProfile, InMemoryWorld, KingdomProfile, NobleProfile


def quiet_retention() -> RetentionSettings:
    return RetentionSettings(hard_cap=250, half_life_days=None, cull_threshold=0.2)


def make_society(nobles, **kwargs):
    world = InMemoryWorld(nobles=nobles)
    kwargs.setdefault("retention_settings", quiet_retention())
    kwargs.setdefault("rng", random.Random(0))
    return world, NobleSociety(world, **kwargs)


def test_insult_fades_then_is_forgotten():
    world, society = make_society([NobleProfile(actor_id="x"), NobleProfile(actor_id="y")])
    society.register_memory("x", "y", MemoryKind.INSULT, 1.0, "Slight at the feast",
                            mark_first_hand_as_belief=False)

    for _ in range(27):
        world.advance(1.0)
        society.run_day()

    memories = society.agent("x").memories
    assert len(memories) == 1
    assert memories[0].weight == pytest.approx(0.19)

    for _ in range(7):
        world.advance(1.0)
        society.run_day()

    assert society.agent("x").memories == []


def test_run_day_ticks_each_noble_once_per_day():
    world, society = make_society([
        NobleProfile(actor_id="x"),
        NobleProfile(actor_id="y"),
        NobleProfile(actor_id="child", adult=False),
        NobleProfile(actor_id="ghost", alive=False),
    ])

    first = society.run_day()
    second = society.run_day()

    assert first.ticked == 2
    assert second.ticked == 0
    assert "child" not in society.registry
    assert "ghost" not in society.registry


def test_tick_ignores_ineligible_actors():
    world, society = make_society([NobleProfile(actor_id="x"), NobleProfile(actor_id="kid", adult=False)])

    assert society.tick("kid") is None
    assert society.tick(None) is None
    assert society.tick("x") == 0
    assert society.tick("x") is None


def test_gossip_spreads_between_co_located_nobles():
    world, society = make_society([
        NobleProfile(actor_id="speaker", location="pravend"),
        NobleProfile(actor_id="listener", location="pravend"),
        NobleProfile(actor_id="villain"),
    ])
    society.register_memory("speaker", "villain", MemoryKind.MURDER, -1.0, "The steward of Ocs Hall")

    report = society.run_day()

    assert report.gossip_told == 1
    assert report.meetings_recorded == 1
    heard = society.agent("listener").memories
    assert [m.kind for m in heard] == [MemoryKind.GOSSIP_HEARD]
    assert heard[0].original_kind == MemoryKind.MURDER
    assert society.meetings.has_met_within("speaker", "listener", 1.0)


def test_day_listener_failures_are_isolated(capsys):
    seen = []

    def broken(report):
        raise RuntimeError("listener exploded")

    world, society = make_society(
        [NobleProfile(actor_id="x")], day_listeners=[broken, seen.append]
    )

    report = society.run_day()

    assert seen == [report]
    assert isinstance(report, DayReport)
    assert "Day listener failed: listener exploded" in capsys.readouterr().out


def test_season_summary_is_logged(capsys):
    world, society = make_society([NobleProfile(actor_id="x")], season_length_days=10)

    for _ in range(10):
        society.run_day()
        world.advance(1.0)
    assert "[Season Summary]" not in capsys.readouterr().out

    society.run_day()
    assert "[Season Summary] Pruned 0 memories, 0 gossip entries." in capsys.readouterr().out


def make_kingdom_world():
    return InMemoryWorld(
        nobles=[
            NobleProfile(actor_id="a", clan="c_a", spouse="a_wife"),
            NobleProfile(actor_id="a_wife", clan="c_a", spouse="a"),
            NobleProfile(actor_id="b", clan="c_b"),
            NobleProfile(actor_id="king", clan="c_k"),
        ],
        clans=[
            ClanProfile(clan_id="c_a", kingdom="vlandia"),
            ClanProfile(clan_id="c_b", kingdom="vlandia"),
            ClanProfile(clan_id="c_k", kingdom="vlandia"),
        ],
        kingdoms=[KingdomProfile(kingdom_id="vlandia", leader="king")],
    )


def ripples_in(world):
    return [c for c in world.changes if c.detail == RelationDetail.RIPPLE]


def test_society_ripples_world_changes_until_detached():
    world = make_kingdom_world()
    society = NobleSociety(world, retention_settings=quiet_retention())

    world.apply_relationship_delta("a", "b", 40, detail=RelationDetail.EMISSARY)
    assert {c.a for c in ripples_in(world)} == {"a_wife", "king"}
    assert society.ripples.applied_total == 2

    society.detach()
    world.changes.clear()
    world.apply_relationship_delta("a", "b", 40)
    assert ripples_in(world) == []


def test_apply_ripples_for_unreported_change():
    world = make_kingdom_world()
    society = NobleSociety(world, retention_settings=quiet_retention())

    results = society.apply_ripples("a", "b", -20, notify_primary=False)

    assert {r.observer for r in results} == {"a_wife", "king"}
    assert all(r.target == "a" for r in results)
    assert not society.ripples.guard.active


@pytest.mark.asyncio
async def test_run_saves_and_fresh_society_restores():
    persistence = InMemoryPersistence()
    world, society = make_society([
        NobleProfile(actor_id="x", location="pravend"),
        NobleProfile(actor_id="y", location="pravend"),
    ])
    society.register_memory("x", "y", MemoryKind.BATTLE_VICTORY, 1.0, "Battle of Sargot")

    result = await society.run(3, persistence=persistence, session_id="campaign-1")

    assert result["session_id"] == "campaign-1"
    assert result["final_day"] == 3.0
    assert len(result["reports"]) == 3
    assert "campaign-1" in persistence.sessions

    society.detach()
    fresh = NobleSociety(world, retention_settings=quiet_retention())
    assert await fresh.load(persistence, "campaign-1")
    assert fresh.agent("x").memories == society.agent("x").memories
    assert fresh.agent("x").last_tick_time == 2.0
    assert fresh.meetings.last_seen("x", "y") == 2.0

    assert not await fresh.load(persistence, "missing")
