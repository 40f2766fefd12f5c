"""
Memory records, per-kind rules and the retention maintenance pass.

This module holds everything that decides how long a noble remembers
something:

- ``KIND_PROFILES``: one row per MemoryKind with its decay rate, whether it is
  never forgotten, which trait colours a noble's interest in it, and the flags
  used by belief scoring. Keeping this as data lets every rule be tested in
  isolation.
- ``MemoryRecord``: a single recollection. Its weight walks toward zero a
  little every day (scaled by the owner's personality) and a coarser age-based
  expiry retires it even if the weight is still non-zero.
- ``RetentionPolicy``: the maintenance pass run by the daily driver. It bounds
  memory growth with optional half-life decay, per-tag soft caps and a hard
  FIFO cap.

Design principle: decay is pure arithmetic on plain numbers; nothing here
reads the world except through the trait snapshot handed in by the caller.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, Field

from .config import Config
from .schemas import MemoryKind, MemoryTag, TraitSnapshot

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from .agents import AgentState


DEAD_WEIGHT_EPSILON = 0.001
"""Records with ``|weight|`` below this are semantically dead."""

DEFAULT_DECAY_RATE = 0.03
MAX_REPEAT_COUNT = 5


# ============================================================================
# Kind profiles
# ============================================================================


@dataclass(frozen=True)
class KindProfile:
    """Static configuration for one memory kind."""

    decay_rate: float = DEFAULT_DECAY_RATE
    never_forget: bool = False
    # Trait that makes a noble more interested in this kind of story.
    affinity_trait: Optional[str] = None
    affinity_base: float = 1.0
    affinity_slope: float = 0.0
    # Murder/betrayal: honour-driven credulity plus the dark-rumour bias.
    severe: bool = False
    # Trade deals and small favours are less likely to be believed.
    low_stakes: bool = False
    # Smears nobody wants to believe about their own clan.
    negative: bool = False

    def affinity(self, traits: TraitSnapshot) -> float:
        if self.affinity_trait is None:
            return self.affinity_base
        return self.affinity_base + self.affinity_slope * traits.level(self.affinity_trait)


_VALOR = dict(affinity_trait="valor", affinity_slope=0.25)
_MERCY = dict(affinity_trait="mercy", affinity_slope=0.25)
_HONOR = dict(affinity_trait="honor", affinity_slope=0.25)
_COMMERCE = dict(affinity_trait="generosity", affinity_base=0.5, affinity_slope=0.15)

KIND_PROFILES: Dict[MemoryKind, KindProfile] = {
    MemoryKind.TOURNAMENT_LOSS: KindProfile(decay_rate=0.05),
    MemoryKind.MINOR_FAVOR: KindProfile(decay_rate=0.05, low_stakes=True, **_COMMERCE),
    MemoryKind.TRADE_DEAL: KindProfile(decay_rate=0.025, low_stakes=True, **_COMMERCE),
    MemoryKind.TOURNAMENT_WIN: KindProfile(decay_rate=0.025, **_VALOR),
    MemoryKind.BETRAYAL: KindProfile(never_forget=True, severe=True, negative=True, **_HONOR),
    MemoryKind.MURDER: KindProfile(never_forget=True, severe=True, negative=True, **_MERCY),
    MemoryKind.CHILD_BORN: KindProfile(never_forget=True),
    MemoryKind.BATTLE_VICTORY: KindProfile(**_VALOR),
    MemoryKind.MILITARY_AID: KindProfile(**_VALOR),
    MemoryKind.LOST_SOLDIERS_TO: KindProfile(**_VALOR),
    MemoryKind.RELEASED_AFTER_BATTLE: KindProfile(**_MERCY),
    MemoryKind.FAVOR_REFUSED: KindProfile(**_HONOR),
    MemoryKind.BATTLE_DEFEAT: KindProfile(negative=True),
}

_DEFAULT_PROFILE = KindProfile()


def profile_for(kind: MemoryKind) -> KindProfile:
    """Return the profile for ``kind`` (default moderate decay if unlisted)."""
    return KIND_PROFILES.get(kind, _DEFAULT_PROFILE)


def trait_affinity(traits: TraitSnapshot, kind: MemoryKind) -> float:
    """How strongly a noble with ``traits`` is drawn to stories of ``kind``."""
    return profile_for(kind).affinity(traits)


def decay_modifier(traits: TraitSnapshot) -> float:
    """Scale factor applied to every decay rate of the noble owning the memory.

    Merciful nobles forgive faster; dishonourable ones hold grudges. The
    generosity and calculating multipliers are reproduced as observed.
    """
    modifier = 1.0
    if traits.mercy > 0:
        modifier *= 1.25
    if traits.honor < 0:
        modifier *= 0.85
    if traits.generosity > 0:
        modifier *= 0.9
    if traits.calculating > 0:
        modifier *= 1.1
    return modifier


# ============================================================================
# MemoryRecord
# ============================================================================


class MemoryRecord(BaseModel):
    """One noble's recollection of an event.

    The identifying fields (kind, source, target, notes, timestamp) are set
    once; weight, repeat_count and tags change as the memory decays or is
    reinforced by gossip.
    """

    kind: MemoryKind = Field(..., description="Event category")
    # Only set on gossip_heard records: the kind of the rumoured event.
    original_kind: Optional[MemoryKind] = Field(None, description="Kind being relayed")
    source: Optional[str] = Field(None, description="Actor who holds/experienced the event")
    target: Optional[str] = Field(None, description="Actor the event concerns")
    timestamp: float = Field(..., description="Simulated day of creation")
    weight: float = Field(..., description="Signed salience; sign is valence")
    decay_rate: float = Field(DEFAULT_DECAY_RATE, ge=0.0, description="Per-day decay")
    never_forget: bool = Field(False, description="Exempt from decay and expiry")
    repeat_count: int = Field(1, ge=1, description="Times this rumour was heard")
    tags: Set[MemoryTag] = Field(default_factory=set, description="Classification labels")
    notes: str = Field("", description="Free text; de-duplication key for gossip")

    @classmethod
    def create(
        cls,
        kind: MemoryKind,
        source: Optional[str],
        target: Optional[str],
        weight: float,
        notes: str = "",
        *,
        timestamp: float,
        tags: Optional[Iterable[MemoryTag]] = None,
        original_kind: Optional[MemoryKind] = None,
    ) -> "MemoryRecord":
        """Build a record with decay behaviour assigned from its kind."""
        profile = profile_for(kind)
        return cls(
            kind=kind,
            original_kind=original_kind,
            source=source,
            target=target,
            timestamp=timestamp,
            weight=weight,
            decay_rate=profile.decay_rate,
            never_forget=profile.never_forget,
            tags=set(tags or ()),
            notes=notes or "",
        )

    @property
    def effective_kind(self) -> MemoryKind:
        """The kind of the underlying event (unwraps relayed gossip)."""
        return self.original_kind or self.kind

    @property
    def is_dead(self) -> bool:
        return abs(self.weight) < DEAD_WEIGHT_EPSILON

    def age_days(self, now: float) -> float:
        return now - self.timestamp

    def decay(self, modifier: float) -> None:
        """Move weight toward zero by one day's worth of decay.

        Weight never crosses zero; anything within ``DEAD_WEIGHT_EPSILON`` of
        zero snaps to exactly zero.
        """
        if self.never_forget:
            return

        effective = self.decay_rate * modifier
        if self.weight > 0.0:
            self.weight = max(0.0, self.weight - effective)
        elif self.weight < 0.0:
            self.weight = min(0.0, self.weight + effective)

        if abs(self.weight) < DEAD_WEIGHT_EPSILON:
            self.weight = 0.0

    def is_expired(self, now: float, modifier: float) -> bool:
        """Age-based forgetting, independent of the current weight."""
        if self.never_forget:
            return False
        return self.age_days(now) * modifier * self.decay_rate > 1.0

    def reinforce(self, bump: float) -> None:
        """Register another hearing of the same rumour."""
        self.repeat_count = min(self.repeat_count + 1, MAX_REPEAT_COUNT)
        self.weight += bump

    def matches(self, kind: MemoryKind, target: Optional[str], notes: str) -> bool:
        return self.kind == kind and self.target == target and self.notes == notes

    def describe(self) -> str:
        relayed = f" (about {self.original_kind.value})" if self.original_kind else ""
        return (
            f"{self.kind.value}{relayed} {self.source}->{self.target} "
            f"w={self.weight:.2f} x{self.repeat_count} '{self.notes}'"
        )


# ============================================================================
# Retention maintenance pass
# ============================================================================


def _default_tag_caps() -> Dict[MemoryTag, int]:
    return {
        # Military history stays longest
        MemoryTag.BATTLE_VICTORY: 180,
        MemoryTag.BATTLE_DEFEAT: 180,
        # Enduring political beliefs / betrayals
        MemoryTag.BELIEF: 120,
        MemoryTag.BETRAYAL: 120,
        # Trade & diplomacy
        MemoryTag.TRADE_AGREEMENT: 80,
        # Everyday rumours fade fastest
        MemoryTag.GOSSIP: 60,
    }


@dataclass(frozen=True)
class RetentionSettings:
    """Knobs for the maintenance pass."""

    hard_cap: int = field(default_factory=lambda: Config.MEMORY_HARD_CAP)
    tag_caps: Dict[MemoryTag, int] = field(default_factory=_default_tag_caps)
    half_life_days: Optional[float] = field(default_factory=lambda: Config.HALF_LIFE_DAYS)
    cull_threshold: float = field(default_factory=lambda: Config.CULL_THRESHOLD)


class RetentionPolicy:
    """Bounds per-agent memory growth beyond ordinary decay."""

    def __init__(self, settings: Optional[RetentionSettings] = None) -> None:
        self.settings = settings or RetentionSettings()

    def enforce(self, agent: "AgentState", now: float) -> int:
        """Run the pass for ``agent`` at most once per day; return records removed."""
        if agent.last_decay_day is not None and now - agent.last_decay_day < 1.0:
            return 0

        days_since_last = 1.0 if agent.last_decay_day is None else now - agent.last_decay_day
        removed = 0

        if self.settings.half_life_days:
            removed += self.apply_half_life(agent.memories, days_since_last)

        for tag, ceiling in self.settings.tag_caps.items():
            removed += self.enforce_tag_cap(agent.memories, tag, ceiling)

        removed += self.enforce_hard_cap(agent.memories, self.settings.hard_cap)

        agent.last_decay_day = now
        return removed

    def apply_half_life(self, memories: List[MemoryRecord], elapsed_days: float) -> int:
        """Exponentially decay non-permanent records and cull the faint ones."""
        multiplier = math.pow(0.5, elapsed_days / self.settings.half_life_days)
        for record in memories:
            if not record.never_forget:
                record.weight *= multiplier

        threshold = self.settings.cull_threshold
        kept = [m for m in memories if m.never_forget or abs(m.weight) >= threshold]
        removed = len(memories) - len(kept)
        memories[:] = kept
        return removed

    @staticmethod
    def enforce_tag_cap(memories: List[MemoryRecord], tag: MemoryTag, ceiling: int) -> int:
        """Drop the oldest-by-timestamp records carrying ``tag`` beyond ``ceiling``."""
        tagged = [m for m in memories if tag in m.tags]
        overflow = len(tagged) - ceiling
        if overflow <= 0:
            return 0

        # sorted() is stable, so equal timestamps fall back to append order.
        oldest = sorted(tagged, key=lambda m: m.timestamp)[:overflow]
        doomed = {id(m) for m in oldest}
        memories[:] = [m for m in memories if id(m) not in doomed]
        return overflow

    @staticmethod
    def enforce_hard_cap(memories: List[MemoryRecord], cap: int) -> int:
        """FIFO eviction by append order; applies to never-forget records too."""
        overflow = len(memories) - cap
        if overflow <= 0:
            return 0
        del memories[:overflow]
        return overflow
