"""Tests for relation ripple propagation."""

import pytest

from courtlife.ripple import (
    RippleService,
    RippleSettings,
    context_multiplier,
    round_half_away,
    saturation_attenuation,
    trait_modifier,
)
from courtlife.schemas import RelationDetail, TraitSnapshot
from courtlife.world import ClanProfile, InMemoryWorld, KingdomProfile, NobleProfile


def make_world() -> InMemoryWorld:
    world = InMemoryWorld(
        nobles=[
            NobleProfile(actor_id="a", clan="c_a", spouse="a_wife"),
            NobleProfile(actor_id="a_wife", clan="c_a", spouse="a"),
            NobleProfile(actor_id="a_cousin", clan="c_a"),
            NobleProfile(actor_id="dead_uncle", clan="c_a", alive=False),
            NobleProfile(actor_id="b", clan="c_b"),
            NobleProfile(actor_id="friend"),
            NobleProfile(actor_id="king", clan="c_k"),
        ],
        clans=[
            ClanProfile(clan_id="c_a", kingdom="vlandia"),
            ClanProfile(clan_id="c_b", kingdom="vlandia"),
            ClanProfile(clan_id="c_k", kingdom="vlandia"),
        ],
        kingdoms=[KingdomProfile(kingdom_id="vlandia", leader="king")],
    )
    world.set_relationship("b", "friend", 60)
    return world


def make_service(world, max_observers=20) -> RippleService:
    service = RippleService(world, RippleSettings(min_primary_delta=10, max_observers=max_observers))
    world.add_relation_listener(service.on_relation_changed)
    return service


def ripple_changes(world):
    return {c.a: c.delta for c in world.changes if c.detail == RelationDetail.RIPPLE}


def test_formula_pieces():
    assert context_multiplier(RelationDetail.DEFAULT, 40) == pytest.approx(0.60)
    assert context_multiplier(RelationDetail.DEFAULT, -10) == pytest.approx(0.50)
    assert context_multiplier(RelationDetail.EMISSARY, 40) == pytest.approx(0.69)

    assert saturation_attenuation(0) == 1.0
    assert saturation_attenuation(20) == 1.0
    assert saturation_attenuation(60) == pytest.approx(0.5)
    assert saturation_attenuation(-95) == pytest.approx(0.1)
    assert saturation_attenuation(100) == pytest.approx(0.1)

    assert round_half_away(2.5) == 3
    assert round_half_away(-2.5) == -3
    assert round_half_away(1.49) == 1
    assert round_half_away(-0.5) == -1


def test_trait_modifier_boosts_diplomatic_changes():
    world = make_world()
    world.nobles["king"].traits = TraitSnapshot(mercy=2, honor=-1, calculating=2)

    assert trait_modifier(world, "king", RelationDetail.DEFAULT) == pytest.approx(1.09)
    assert trait_modifier(world, "king", RelationDetail.EMISSARY) == pytest.approx(1.09 * 1.06)


def test_rings_keep_highest_weight_and_skip_dead():
    world = make_world()
    service = make_service(world)

    observers = service.collect_observers("a", "b")

    assert observers == {
        "a_wife": 0.60,
        "a_cousin": 0.35,
        "friend": 0.30,
        "king": 0.25,
    }


def test_large_change_ripples_capped_toward_target():
    world = make_world()
    make_service(world)

    world.apply_relationship_delta("a", "b", 40)

    ripples = [c for c in world.changes if c.detail == RelationDetail.RIPPLE]
    assert {c.a for c in ripples} == {"a_wife", "a_cousin", "friend", "king"}
    assert all(c.b == "b" for c in ripples)
    assert all(abs(c.delta) <= 5 for c in ripples)
    assert all(c.notify is False for c in ripples)
    # 40 * 0.30 * 0.60 * attenuation 0.5 (already friends at 60)
    assert ripple_changes(world)["friend"] == 4


def test_small_ripples_below_half_are_dropped():
    world = make_world()
    service = make_service(world)
    world.set_relationship("king", "b", 95)

    results = service.apply_ripples("a", "b", 10)

    by_observer = {r.observer: r for r in results}
    assert "king" not in by_observer
    assert by_observer["a_wife"].delta == 3
    assert by_observer["a_cousin"].delta == 2
    assert by_observer["friend"].delta == 1
    assert all(abs(r.raw) >= 0.5 for r in results)


def test_saturated_observer_gets_smaller_ripple():
    world = make_world()
    world.add_noble(NobleProfile(actor_id="lord_2", clan="c_k"))
    world.set_relationship("lord_2", "b", 95)
    service = make_service(world)

    results = {r.observer: r for r in service.apply_ripples("a", "b", 40)}

    assert abs(results["lord_2"].raw) < abs(results["king"].raw)
    assert abs(results["lord_2"].delta) < abs(results["king"].delta)


def test_negative_change_targets_initiator():
    world = make_world()
    service = make_service(world)

    results = service.apply_ripples("a", "b", -40)

    assert results
    assert all(r.target == "a" for r in results)
    assert all(r.delta < 0 for r in results)
    assert "a" not in {r.observer for r in results}


def test_observer_cap_prefers_closer_rings():
    world = make_world()
    service = make_service(world, max_observers=2)

    results = service.apply_ripples("a", "b", 40)

    assert [r.observer for r in results] == ["a_wife", "a_cousin"]


def test_closeness_breaks_ring_ties():
    world = make_world()
    world.add_noble(NobleProfile(actor_id="a_sister", clan="c_a"))
    world.set_relationship("a", "a_sister", 30)
    service = make_service(world)

    observers = service.collect_observers("a", "b")
    ranked = service.rank_observers("a", "b", observers)

    assert ranked.index("a_sister") < ranked.index("a_cousin")


def test_small_primary_changes_do_not_ripple():
    world = make_world()
    make_service(world)

    world.apply_relationship_delta("a", "b", 9)

    assert ripple_changes(world) == {}


def test_guard_blocks_reentry_and_releases():
    world = make_world()
    service = make_service(world)

    with service.guard.hold():
        world.apply_relationship_delta("a", "b", 40)
    assert ripple_changes(world) == {}
    assert not service.guard.active

    with pytest.raises(RuntimeError):
        with service.guard.hold():
            raise RuntimeError("boom")
    assert not service.guard.active


def test_missing_or_self_pairs_are_ignored():
    world = make_world()
    service = make_service(world)

    assert service.apply_ripples(None, "b", 40) == []
    assert service.apply_ripples("a", "a", 40) == []
    assert service.apply_ripples("a", "b", 0) == []
