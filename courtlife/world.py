"""
SocialWorld interface for the world simulation that hosts the nobles.

Courtlife never owns relationship scores, family trees or army rosters. It
reads them (and writes relationship deltas) through this interface, which the
host simulation implements. ``InMemoryWorld`` is a complete dict-backed
implementation used by tests, examples and JSON scenarios.

Key responsibilities of an implementation:
- Report simulated time in days (``now``)
- Store and mutate relationship scores in [-100, 100]
- Answer read-only social-graph queries (co-location, family, clan, kingdom)
- Notify relation listeners after every applied change so ripple propagation
  can react

Design principle: the core only ever changes a relationship through
``apply_relationship_delta``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .schemas import ActorPair, RelationDetail, TraitSnapshot


RELATION_MIN = -100
RELATION_MAX = 100
DEFAULT_MAX_CHANGES = 10_000

RelationListener = Callable[[str, str, int, RelationDetail, bool], None]
"""Callback signature: (actor_a, actor_b, delta, detail, notify)."""


class SocialWorld(ABC):
    """Abstract host world consumed by the gossip and ripple engines."""

    def __init__(self) -> None:
        self._relation_listeners: List[RelationListener] = []

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    @abstractmethod
    def now(self) -> float:
        """Current simulated time in days."""

    def advance(self, days: float = 1.0) -> float:
        """Move the clock forward. Host worlds usually drive their own time."""
        raise NotImplementedError(f"{type(self).__name__} does not advance its own clock")

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    @abstractmethod
    def get_relationship(self, a: str, b: str) -> int:
        """Relationship between ``a`` and ``b`` in [-100, 100]."""

    @abstractmethod
    def _apply_delta(self, a: str, b: str, delta: int) -> None:
        """Store the change. Called by ``apply_relationship_delta`` only."""

    def apply_relationship_delta(
        self,
        a: Optional[str],
        b: Optional[str],
        delta: int,
        notify: bool = True,
        detail: RelationDetail = RelationDetail.DEFAULT,
    ) -> None:
        """The sole mutator of relationship scores.

        Missing actors, self-relations and zero deltas are ignored. Listeners
        run after the change is stored.
        """
        if a is None or b is None or a == b or delta == 0:
            return
        self._apply_delta(a, b, delta)
        for listener in list(self._relation_listeners):
            listener(a, b, delta, detail, notify)

    def add_relation_listener(self, listener: RelationListener) -> None:
        self._relation_listeners.append(listener)

    def remove_relation_listener(self, listener: RelationListener) -> None:
        if listener in self._relation_listeners:
            self._relation_listeners.remove(listener)

    # ------------------------------------------------------------------
    # Actor facts
    # ------------------------------------------------------------------

    @abstractmethod
    def traits(self, actor: str) -> TraitSnapshot: ...

    @abstractmethod
    def is_alive(self, actor: str) -> bool: ...

    @abstractmethod
    def is_adult(self, actor: str) -> bool: ...

    @abstractmethod
    def is_noble(self, actor: str) -> bool: ...

    @abstractmethod
    def alive_actors(self) -> List[str]: ...

    def is_eligible_noble(self, actor: Optional[str]) -> bool:
        """Alive, adult noble: the only actors that gossip or are gossiped to."""
        return (
            actor is not None
            and self.is_alive(actor)
            and self.is_adult(actor)
            and self.is_noble(actor)
        )

    # ------------------------------------------------------------------
    # Whereabouts
    # ------------------------------------------------------------------

    @abstractmethod
    def location_of(self, actor: str) -> Optional[str]:
        """Settlement the actor is currently in, if any."""

    @abstractmethod
    def actors_at(self, location: str) -> List[str]: ...

    @abstractmethod
    def army_of(self, actor: str) -> Optional[str]: ...

    @abstractmethod
    def army_leaders(self, army: str) -> List[str]:
        """Leaders of the parties that make up ``army``."""

    @abstractmethod
    def party_of(self, actor: str) -> Optional[str]: ...

    @abstractmethod
    def party_members(self, party: str) -> List[str]: ...

    # ------------------------------------------------------------------
    # Family, clan, kingdom
    # ------------------------------------------------------------------

    @abstractmethod
    def spouse_of(self, actor: str) -> Optional[str]: ...

    @abstractmethod
    def parents_of(self, actor: str) -> List[str]: ...

    @abstractmethod
    def children_of(self, actor: str) -> List[str]: ...

    @abstractmethod
    def clan_of(self, actor: str) -> Optional[str]: ...

    @abstractmethod
    def clan_members(self, clan: str) -> List[str]:
        """Noble members (lords) of ``clan``."""

    @abstractmethod
    def kingdom_of(self, clan: str) -> Optional[str]: ...

    @abstractmethod
    def kingdom_leader(self, kingdom: str) -> Optional[str]: ...

    @abstractmethod
    def kingdom_clans(self, kingdom: str) -> List[str]: ...

    def siblings_of(self, actor: str) -> List[str]:
        siblings: List[str] = []
        for parent in self.parents_of(actor):
            for child in self.children_of(parent):
                if child != actor and child not in siblings:
                    siblings.append(child)
        return siblings


# ============================================================================
# In-memory implementation
# ============================================================================


class NobleProfile(BaseModel):
    """Static and slowly-changing facts about one actor."""

    actor_id: str = Field(..., description="Stable actor identifier")
    name: str = Field("", description="Display name")
    alive: bool = True
    adult: bool = True
    noble: bool = True
    traits: TraitSnapshot = Field(default_factory=TraitSnapshot)
    clan: Optional[str] = None
    location: Optional[str] = Field(None, description="Settlement currently in")
    army: Optional[str] = None
    party: Optional[str] = None
    spouse: Optional[str] = None
    father: Optional[str] = None
    mother: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.actor_id


class ClanProfile(BaseModel):
    clan_id: str
    name: str = ""
    kingdom: Optional[str] = None


class KingdomProfile(BaseModel):
    kingdom_id: str
    name: str = ""
    leader: Optional[str] = None


@dataclass
class RelationChange:
    """Audit entry for one applied relationship delta."""

    day: float
    a: str
    b: str
    delta: int
    detail: RelationDetail
    notify: bool


class InMemoryWorld(SocialWorld):
    """Dict-backed SocialWorld.

    Relationships are symmetric and clamped to [-100, 100]. Every applied
    change is appended to ``changes`` for inspection; only the newest
    ``max_changes`` entries are kept.
    """

    def __init__(
        self,
        nobles: Optional[Iterable[NobleProfile]] = None,
        clans: Optional[Iterable[ClanProfile]] = None,
        kingdoms: Optional[Iterable[KingdomProfile]] = None,
        *,
        day: float = 0.0,
        max_changes: int = DEFAULT_MAX_CHANGES,
    ) -> None:
        super().__init__()
        self.day = day
        self.max_changes = max_changes
        self.nobles: Dict[str, NobleProfile] = {}
        self.clans: Dict[str, ClanProfile] = {}
        self.kingdoms: Dict[str, KingdomProfile] = {}
        self.relations: Dict[ActorPair, int] = {}
        self.changes: List[RelationChange] = []

        for noble in nobles or ():
            self.add_noble(noble)
        for clan in clans or ():
            self.clans[clan.clan_id] = clan
        for kingdom in kingdoms or ():
            self.kingdoms[kingdom.kingdom_id] = kingdom

    # -- construction helpers -------------------------------------------

    def add_noble(self, noble: NobleProfile) -> NobleProfile:
        self.nobles[noble.actor_id] = noble
        return noble

    def set_relationship(self, a: str, b: str, value: int) -> None:
        """Seed a relationship without notifying listeners."""
        self.relations[ActorPair.unordered(a, b)] = max(RELATION_MIN, min(RELATION_MAX, value))

    def advance(self, days: float = 1.0) -> float:
        self.day += days
        return self.day

    def kill(self, actor: str) -> None:
        noble = self.nobles.get(actor)
        if noble is not None:
            noble.alive = False

    def noble(self, actor: str) -> Optional[NobleProfile]:
        return self.nobles.get(actor)

    # -- SocialWorld ----------------------------------------------------

    def now(self) -> float:
        return self.day

    def get_relationship(self, a: str, b: str) -> int:
        if a is None or b is None or a == b:
            return 0
        return self.relations.get(ActorPair.unordered(a, b), 0)

    def _apply_delta(self, a: str, b: str, delta: int) -> None:
        key = ActorPair.unordered(a, b)
        current = self.relations.get(key, 0)
        self.relations[key] = max(RELATION_MIN, min(RELATION_MAX, current + delta))

    def apply_relationship_delta(
        self,
        a: Optional[str],
        b: Optional[str],
        delta: int,
        notify: bool = True,
        detail: RelationDetail = RelationDetail.DEFAULT,
    ) -> None:
        if a is not None and b is not None and a != b and delta != 0:
            self.changes.append(RelationChange(self.day, a, b, delta, detail, notify))
            overflow = len(self.changes) - self.max_changes
            if overflow > 0:
                del self.changes[:overflow]
        super().apply_relationship_delta(a, b, delta, notify, detail)

    def traits(self, actor: str) -> TraitSnapshot:
        noble = self.nobles.get(actor)
        return noble.traits if noble else TraitSnapshot()

    def is_alive(self, actor: str) -> bool:
        noble = self.nobles.get(actor)
        return bool(noble and noble.alive)

    def is_adult(self, actor: str) -> bool:
        noble = self.nobles.get(actor)
        return bool(noble and noble.adult)

    def is_noble(self, actor: str) -> bool:
        noble = self.nobles.get(actor)
        return bool(noble and noble.noble)

    def alive_actors(self) -> List[str]:
        return [n.actor_id for n in self.nobles.values() if n.alive]

    def location_of(self, actor: str) -> Optional[str]:
        noble = self.nobles.get(actor)
        return noble.location if noble else None

    def actors_at(self, location: str) -> List[str]:
        return [n.actor_id for n in self.nobles.values() if n.location == location]

    def army_of(self, actor: str) -> Optional[str]:
        noble = self.nobles.get(actor)
        return noble.army if noble else None

    def army_leaders(self, army: str) -> List[str]:
        return [n.actor_id for n in self.nobles.values() if n.army == army and n.alive]

    def party_of(self, actor: str) -> Optional[str]:
        noble = self.nobles.get(actor)
        return noble.party if noble else None

    def party_members(self, party: str) -> List[str]:
        return [n.actor_id for n in self.nobles.values() if n.party == party]

    def spouse_of(self, actor: str) -> Optional[str]:
        noble = self.nobles.get(actor)
        return noble.spouse if noble else None

    def parents_of(self, actor: str) -> List[str]:
        noble = self.nobles.get(actor)
        if noble is None:
            return []
        return [p for p in (noble.father, noble.mother) if p]

    def children_of(self, actor: str) -> List[str]:
        return [
            n.actor_id
            for n in self.nobles.values()
            if actor in (n.father, n.mother)
        ]

    def clan_of(self, actor: str) -> Optional[str]:
        noble = self.nobles.get(actor)
        return noble.clan if noble else None

    def clan_members(self, clan: str) -> List[str]:
        return [n.actor_id for n in self.nobles.values() if n.clan == clan and n.noble]

    def kingdom_of(self, clan: str) -> Optional[str]:
        profile = self.clans.get(clan)
        return profile.kingdom if profile else None

    def kingdom_leader(self, kingdom: str) -> Optional[str]:
        profile = self.kingdoms.get(kingdom)
        return profile.leader if profile else None

    def kingdom_clans(self, kingdom: str) -> List[str]:
        return [c.clan_id for c in self.clans.values() if c.kingdom == kingdom]
