"""
Courtlife - social memory, gossip and relation ripples for simulated nobles.

Nobles remember what happened to them, forget at a pace set by their
personality, pass rumours to whoever is nearby and react to changes in the
relationships around them.

No file I/O required. No global registry.
The host world is injected as a ``SocialWorld``.
"""

__version__ = "0.1.0"

# Main driver
from .society import NobleSociety, DayReport

# Core components
from .agents import AgentState, AgentRegistry
from .memory import (
    MemoryRecord,
    KindProfile,
    KIND_PROFILES,
    RetentionPolicy,
    RetentionSettings,
    decay_modifier,
    trait_affinity,
)
from .gossip import (
    GossipEngine,
    GossipSettings,
    GossipLog,
    GossipOutcome,
    RelationLedger,
    ConsequenceRule,
    CONSEQUENCE_RULES,
)
from .ripple import RippleService, RippleSettings, RippleGuard, RippleResult
from .meetings import MeetingTracker

# Host world
from .world import (
    SocialWorld,
    InMemoryWorld,
    NobleProfile,
    ClanProfile,
    KingdomProfile,
)

# Persistence
from .persistence import PersistenceStrategy, InMemoryPersistence, JsonPersistence

# Core schemas
from .schemas import (
    MemoryKind,
    MemoryTag,
    RelationDetail,
    TraitSnapshot,
    ActorPair,
    ReasonKey,
    GossipEvent,
    MemoryLogSnapshot,
    MeetingSnapshot,
    RegistrySnapshot,
)

# Scenario loader helpers
from .scenario import load_court, CourtLoader, Court

__all__ = [
    # Main class
    "NobleSociety",
    "DayReport",
    # Core components
    "AgentState",
    "AgentRegistry",
    "MemoryRecord",
    "KindProfile",
    "KIND_PROFILES",
    "RetentionPolicy",
    "RetentionSettings",
    "decay_modifier",
    "trait_affinity",
    "GossipEngine",
    "GossipSettings",
    "GossipLog",
    "GossipOutcome",
    "RelationLedger",
    "ConsequenceRule",
    "CONSEQUENCE_RULES",
    "RippleService",
    "RippleSettings",
    "RippleGuard",
    "RippleResult",
    "MeetingTracker",
    # Host world
    "SocialWorld",
    "InMemoryWorld",
    "NobleProfile",
    "ClanProfile",
    "KingdomProfile",
    # Persistence
    "PersistenceStrategy",
    "InMemoryPersistence",
    "JsonPersistence",
    # Schemas
    "MemoryKind",
    "MemoryTag",
    "RelationDetail",
    "TraitSnapshot",
    "ActorPair",
    "ReasonKey",
    "GossipEvent",
    "MemoryLogSnapshot",
    "MeetingSnapshot",
    "RegistrySnapshot",
    # Scenario
    "load_court",
    "CourtLoader",
    "Court",
]
