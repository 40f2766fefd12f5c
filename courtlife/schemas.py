"""
Pydantic schemas and enumerations shared across the courtlife package.

Design Philosophy:
- Memory kinds and tags are closed vocabularies (str enums) so that rule tables
  can key on them and snapshots serialize to plain strings
- Actors are referenced by stable string ids, never by object reference, so
  that saved memory logs carry no reference-graph cycles
- Simulated time is measured in days (float); day boundaries are ``floor(t)``
"""

from enum import Enum
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Vocabularies
# ============================================================================


class MemoryKind(str, Enum):
    """Category of a remembered event."""

    RELEASED_AFTER_BATTLE = "released_after_battle"
    FAVOR_REFUSED = "favor_refused"
    TRADE_DEAL = "trade_deal"
    INSULT = "insult"
    MILITARY_AID = "military_aid"
    BETRAYAL = "betrayal"
    MARRIAGE_PROPOSAL = "marriage_proposal"
    SUPPORT_IN_COUNCIL = "support_in_council"
    REJECTED_COUNCIL_PROPOSAL = "rejected_council_proposal"
    GOSSIP_HEARD = "gossip_heard"
    TOURNAMENT_WIN = "tournament_win"
    TOURNAMENT_LOSS = "tournament_loss"
    MINOR_FAVOR = "minor_favor"
    MURDER = "murder"
    BATTLE_VICTORY = "battle_victory"
    BATTLE_DEFEAT = "battle_defeat"
    LOST_SOLDIERS_TO = "lost_soldiers_to"
    CHILD_BORN = "child_born"
    TOURNAMENT_VICTORY = "tournament_victory"
    COWARDICE_IN_BATTLE = "cowardice_in_battle"
    INFLUENCED_BY = "influenced_by"
    LOST_SETTLEMENT = "lost_settlement"
    SIEGE_STARTED = "siege_started"
    BANDIT_THREAT = "bandit_threat"
    IMPRISONED = "imprisoned"


class MemoryTag(str, Enum):
    """Classification label used for retention caps and gossip filtering."""

    GOSSIP = "gossip"
    BATTLE_VICTORY = "battle_victory"
    BATTLE_DEFEAT = "battle_defeat"
    BETRAYAL = "betrayal"
    POLITICAL = "political"
    LIEGE_MISTREATMENT = "liege_mistreatment"
    TRADE_AGREEMENT = "trade_agreement"
    BELIEF = "belief"


class RelationDetail(str, Enum):
    """Why a relationship changed; diplomatic changes ripple harder."""

    DEFAULT = "default"
    EMISSARY = "emissary"
    GOSSIP = "gossip"
    RIPPLE = "ripple"

    @property
    def is_diplomatic(self) -> bool:
        return self is RelationDetail.EMISSARY


# ============================================================================
# Actor traits
# ============================================================================


class TraitSnapshot(BaseModel):
    """Integer personality trait levels for one actor (typically -2..+2)."""

    valor: int = 0
    mercy: int = 0
    honor: int = 0
    generosity: int = 0
    calculating: int = 0

    def level(self, trait: str) -> int:
        """Return the level for ``trait`` by name (unknown traits read as 0)."""
        return int(getattr(self, trait, 0))


# ============================================================================
# Keys
# ============================================================================


class ActorPair(NamedTuple):
    """Ordered pair of actor ids (e.g. listener → actor)."""

    first: str
    second: str

    @classmethod
    def unordered(cls, a: str, b: str) -> "ActorPair":
        """Canonical key for a symmetric relation between ``a`` and ``b``."""
        return cls(a, b) if a <= b else cls(b, a)


class ReasonKey(NamedTuple):
    """Key for per-reason cooldowns: (listener, actor, reason)."""

    listener: str
    actor: str
    reason: str


# ============================================================================
# Gossip observability
# ============================================================================


class GossipEvent(BaseModel):
    """One act of gossip, kept in a rolling log for observability only."""

    speaker: str = Field(..., description="Actor who told the rumour")
    subject: Optional[str] = Field(None, description="Actor the rumour is about")
    topic: str = Field(..., description="Kind of the relayed event")
    message: str = Field("", description="Free-text notes of the relayed memory")
    location: Optional[str] = Field(None, description="Settlement where it was told")
    timestamp: float = Field(..., description="Simulated day the rumour was told")


# ============================================================================
# Persistence schemas
# ============================================================================


class MemoryLogSnapshot(BaseModel):
    """One agent's memory log flattened into parallel lists of primitives.

    Each index ``i`` across the lists describes one record. Restoring tolerates
    ragged lists by truncating to the shortest one.
    """

    actor_id: str
    last_tick_time: Optional[float] = None
    last_decay_day: Optional[float] = None
    kinds: List[str] = Field(default_factory=list)
    original_kinds: List[Optional[str]] = Field(default_factory=list)
    sources: List[Optional[str]] = Field(default_factory=list)
    targets: List[Optional[str]] = Field(default_factory=list)
    timestamps_days: List[float] = Field(default_factory=list)
    weights: List[float] = Field(default_factory=list)
    decay_rates: List[float] = Field(default_factory=list)
    never_forget: List[bool] = Field(default_factory=list)
    repeat_counts: List[int] = Field(default_factory=list)
    tags: List[List[str]] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)


class MeetingSnapshot(BaseModel):
    """Meeting tracker state as parallel lists: pair members and last-seen day.

    Index ``i`` of ``firsts`` and ``seconds`` is one unordered pair, stored in
    canonical (sorted) order.
    """

    firsts: List[str] = Field(default_factory=list)
    seconds: List[str] = Field(default_factory=list)
    last_seen_days: List[float] = Field(default_factory=list)


class RegistrySnapshot(BaseModel):
    """Everything needed to restore a session's social memory."""

    saved_at_day: float = Field(..., description="Simulated day of the save")
    agents: List[MemoryLogSnapshot] = Field(default_factory=list)
    meetings: Optional[MeetingSnapshot] = None
