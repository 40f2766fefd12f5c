"""
Relation ripples: second-order effects of a consequential relationship change.

When A's opinion of B moves by ten points or more, the people around them
notice. Family, clanmates, close friends and the wider kingdom each react with
a small, attenuated change toward whichever of the two is the "target" (B for
an improvement, A for a deterioration).

The world notifies ``RippleService.on_relation_changed`` after every applied
change. Ripples are themselves applied through the world, so a
``RippleGuard`` flag stops them from rippling again.
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from .config import Config
from .logging_utils import LOG_TAG_RIPPLE, log_debug, log_ripple
from .schemas import RelationDetail
from .world import SocialWorld


FAMILY_WEIGHT = 0.60
CLAN_WEIGHT = 0.35
FRIEND_WEIGHT = 0.30
KINGDOM_WEIGHT = 0.25

FRIEND_THRESHOLD = 50
MIN_RIPPLE_MAGNITUDE = 0.5
MAX_RIPPLE = 5


@dataclass(frozen=True)
class RippleSettings:
    min_primary_delta: int = field(default_factory=lambda: Config.RIPPLE_MIN_DELTA)
    max_observers: int = field(default_factory=lambda: Config.MAX_OBSERVERS)


class RippleGuard:
    """Re-entrancy flag: set while ripples are being applied."""

    def __init__(self) -> None:
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @contextmanager
    def hold(self) -> Iterator[None]:
        self._active = True
        try:
            yield
        finally:
            self._active = False


@dataclass
class RippleResult:
    """One applied secondary change."""

    observer: str
    target: str
    delta: int
    ring_weight: float
    raw: float


# ============================================================================
# Formula pieces
# ============================================================================


def context_multiplier(detail: RelationDetail, base_delta: int) -> float:
    magnitude = min(abs(base_delta), 15)
    multiplier = 0.30 + 0.02 * magnitude
    if detail.is_diplomatic:
        multiplier *= 1.15
    return multiplier


def trait_modifier(world: SocialWorld, observer: str, detail: RelationDetail) -> float:
    traits = world.traits(observer)
    modifier = 1.0 + 0.03 * (abs(traits.mercy) + abs(traits.honor))
    if detail.is_diplomatic:
        modifier *= 1.0 + 0.03 * abs(traits.calculating)
    return modifier


def saturation_attenuation(current: int) -> float:
    """Damp ripples onto relationships already near either extreme."""
    edge = abs(current)
    return 1.0 - min(max((edge - 20.0) / 80.0, 0.0), 0.9)


def round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def ripple_target(a: str, b: str, base_delta: int) -> str:
    return b if base_delta >= 0 else a


# ============================================================================
# Rings
# ============================================================================


def family_ring(world: SocialWorld, actor: str) -> List[str]:
    members: List[str] = []
    spouse = world.spouse_of(actor)
    if spouse:
        members.append(spouse)
    members.extend(world.parents_of(actor))
    members.extend(world.children_of(actor))
    members.extend(world.siblings_of(actor))
    return members


def clan_ring(world: SocialWorld, actor: str) -> List[str]:
    clan = world.clan_of(actor)
    if clan is None:
        return []
    return [lord for lord in world.clan_members(clan) if lord != actor]


def friend_ring(world: SocialWorld, actor: str) -> List[str]:
    return [
        other
        for other in world.alive_actors()
        if other != actor and world.get_relationship(actor, other) >= FRIEND_THRESHOLD
    ]


def kingdom_ring(world: SocialWorld, actor: str) -> List[str]:
    clan = world.clan_of(actor)
    kingdom = world.kingdom_of(clan) if clan is not None else None
    if kingdom is None:
        return []

    members: List[str] = []
    leader = world.kingdom_leader(kingdom)
    if leader is not None and leader != actor:
        members.append(leader)
    for kingdom_clan in world.kingdom_clans(kingdom):
        members.extend(lord for lord in world.clan_members(kingdom_clan) if lord != actor)
    return members


# ============================================================================
# Service
# ============================================================================


class RippleService:
    """Computes and applies ripples for one primary relationship change."""

    def __init__(self, world: SocialWorld, settings: Optional[RippleSettings] = None) -> None:
        self.world = world
        self.settings = settings or RippleSettings()
        self.guard = RippleGuard()
        self.applied_total = 0

    def collect_observers(self, a: str, b: str) -> Dict[str, float]:
        """Observer -> highest ring weight, with A and B removed."""
        world = self.world
        observers: Dict[str, float] = {}

        def accumulate(members: Iterable[str], weight: float, exclude: Optional[str] = None) -> None:
            for member in members:
                if member is None or member == exclude or not world.is_alive(member):
                    continue
                if weight > observers.get(member, 0.0):
                    observers[member] = weight

        accumulate(family_ring(world, a), FAMILY_WEIGHT)
        accumulate(family_ring(world, b), FAMILY_WEIGHT)
        accumulate(clan_ring(world, a), CLAN_WEIGHT, exclude=b)
        accumulate(clan_ring(world, b), CLAN_WEIGHT, exclude=a)
        accumulate(friend_ring(world, a), FRIEND_WEIGHT, exclude=b)
        accumulate(friend_ring(world, b), FRIEND_WEIGHT, exclude=a)
        accumulate(kingdom_ring(world, a), KINGDOM_WEIGHT)
        accumulate(kingdom_ring(world, b), KINGDOM_WEIGHT)

        observers.pop(a, None)
        observers.pop(b, None)
        return observers

    def rank_observers(self, a: str, b: str, observers: Dict[str, float]) -> List[str]:
        """Most relevant observers first, capped at ``max_observers``."""
        world = self.world

        def closeness(observer: str) -> int:
            return max(world.get_relationship(a, observer), world.get_relationship(b, observer))

        ranked = sorted(observers, key=lambda o: (-observers[o], -closeness(o)))
        return ranked[: self.settings.max_observers]

    def compute_ripple(
        self, observer: str, target: str, base_delta: int, ring_weight: float, detail: RelationDetail
    ) -> float:
        attenuation = saturation_attenuation(self.world.get_relationship(observer, target))
        return (
            base_delta
            * ring_weight
            * context_multiplier(detail, base_delta)
            * trait_modifier(self.world, observer, detail)
            * attenuation
        )

    def apply_ripples(
        self,
        a: Optional[str],
        b: Optional[str],
        base_delta: int,
        detail: RelationDetail = RelationDetail.DEFAULT,
        notify_primary: bool = True,
    ) -> List[RippleResult]:
        """Apply secondary changes for the primary change ``a`` -> ``b``."""
        if a is None or b is None or a == b or base_delta == 0:
            return []

        observers = self.collect_observers(a, b)
        if not observers:
            return []

        target = ripple_target(a, b, base_delta)
        results: List[RippleResult] = []

        for observer in self.rank_observers(a, b, observers):
            if observer == target or not self.world.is_alive(observer):
                continue

            ring_weight = observers[observer]
            raw = self.compute_ripple(observer, target, base_delta, ring_weight, detail)
            if abs(raw) < MIN_RIPPLE_MAGNITUDE:
                continue

            delta = max(-MAX_RIPPLE, min(MAX_RIPPLE, round_half_away(raw)))
            self.world.apply_relationship_delta(
                observer, target, delta, notify=False, detail=RelationDetail.RIPPLE
            )
            results.append(RippleResult(observer, target, delta, ring_weight, raw))

        if results:
            summary = (
                f"  {LOG_TAG_RIPPLE} {a}->{b} ({base_delta:+d}, {detail.value}) rippled to "
                + ", ".join(f"{r.observer}{r.delta:+d}" for r in results)
            )
            # Quiet primaries only show up under DEBUG_RIPPLE.
            if notify_primary:
                log_ripple(summary)
            else:
                log_debug("ripple", summary)
        self.applied_total += len(results)
        return results

    def on_relation_changed(
        self, a: str, b: str, delta: int, detail: RelationDetail, notify: bool
    ) -> None:
        """World relation listener: ripple consequential changes once."""
        if self.guard.active or abs(delta) < self.settings.min_primary_delta:
            return
        with self.guard.hold():
            self.apply_ripples(a, b, delta, detail, notify_primary=notify)
