"""
Gossip diffusion between co-located nobles.

Once a day each noble may tell one memory to a noble nearby. The listener
records the rumour as hearsay; hearing the same rumour again can turn it into
a belief, and the telling itself nudges the listener's opinion of the people
involved through a small, rate-limited relationship change.

Pieces:
- ``GossipLog``: rolling log of who told what, for observability only.
- ``RelationLedger``: the balanced relationship applier (per-reason cooldown
  plus a weekly cap per listener/actor pair).
- ``CONSEQUENCE_RULES``: table of trait-conditioned relationship nudges keyed
  by the kind of the relayed event.
- ``GossipEngine``: selection, listener choice, hearsay bookkeeping, belief
  formation and consequences.
"""

from __future__ import annotations

import math
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

from .agents import AgentRegistry, AgentState
from .config import Config
from .logging_utils import LOG_TAG_GOSSIP, log_debug
from .memory import MemoryRecord, decay_modifier, profile_for, trait_affinity
from .schemas import (
    ActorPair,
    GossipEvent,
    MemoryKind,
    MemoryTag,
    ReasonKey,
    RelationDetail,
    TraitSnapshot,
)
from .world import SocialWorld


FIRST_HEARING_WEIGHT = 0.1
REPEAT_HEARING_BUMP = 0.05
WELL_ESTABLISHED_REPEATS = 3
BELIEF_MIN_REPEATS = 2
BELIEF_THRESHOLD = 1.0
BELIEF_WEIGHT_FACTOR = 0.5
INTERACTION_COOLDOWN_DAYS = 1.0
LEDGER_WINDOW_DAYS = 7.0


@dataclass(frozen=True)
class GossipSettings:
    """Balance and anti-drift knobs for gossip."""

    weekly_pair_cap: float = field(default_factory=lambda: Config.WEEKLY_PAIR_CAP)
    reason_cooldown_days: float = field(default_factory=lambda: Config.REASON_COOLDOWN_DAYS)
    # When set, relationship consequences only fire on the hearing that
    # promoted a belief.
    require_belief_for_relation: bool = field(default_factory=lambda: Config.REQUIRE_BELIEF)
    lifespan_days: float = field(default_factory=lambda: Config.GOSSIP_LIFESPAN_DAYS)


# ============================================================================
# Gossip log
# ============================================================================


class GossipLog:
    """Rolling log of gossip events."""

    def __init__(self, lifespan_days: float = 20.0) -> None:
        self.lifespan_days = lifespan_days
        self.events: List[GossipEvent] = []
        self.expired_total = 0

    def __len__(self) -> int:
        return len(self.events)

    def add(self, event: GossipEvent) -> None:
        self.events.append(event)

    def cleanup(self, now: float) -> int:
        threshold = now - self.lifespan_days
        kept = [e for e in self.events if e.timestamp >= threshold]
        removed = len(self.events) - len(kept)
        self.events = kept
        self.expired_total += removed
        return removed

    def gossip_about(self, subject: str) -> List[GossipEvent]:
        return [e for e in self.events if e.subject == subject]

    def recent_gossip(self, since: float) -> List[GossipEvent]:
        return [e for e in self.events if e.timestamp > since]


# ============================================================================
# Balanced relationship applier
# ============================================================================


class RelationLedger:
    """Rate-limits relationship changes caused by gossip.

    For one (listener, actor, reason) request:

    1. the same reason between the same ordered pair is on cooldown for
       ``reason_cooldown_days``;
    2. the ordered pair keeps a rolling 7-day history of absolute applied
       deltas. Whatever is still inside the window counts against
       ``weekly_pair_cap``, so no 7-day span ever sums past the cap. A request
       larger than the remaining budget is clipped with its sign preserved; a
       request that clips to zero is dropped.

    Applied deltas go through the world without notifying listeners, so
    gossip never triggers ripples.
    """

    def __init__(self, world: SocialWorld, settings: Optional[GossipSettings] = None) -> None:
        self.world = world
        self.settings = settings or GossipSettings()
        # (day applied, |delta|), oldest first
        self._history: Dict[ActorPair, Deque[Tuple[float, float]]] = {}
        self._last_reason: Dict[ReasonKey, float] = {}

    @staticmethod
    def _expire(entries: Deque[Tuple[float, float]], now: float) -> None:
        while entries and now - entries[0][0] >= LEDGER_WINDOW_DAYS:
            entries.popleft()

    def try_apply(self, listener: Optional[str], actor: Optional[str], raw_delta: int, reason: str) -> int:
        """Apply as much of ``raw_delta`` as the limits allow; return what was applied."""
        if listener is None or actor is None or listener == actor or raw_delta == 0:
            return 0

        now = self.world.now()
        pair = ActorPair(listener, actor)
        reason_key = ReasonKey(listener, actor, reason)

        last = self._last_reason.get(reason_key)
        if last is not None and now - last < self.settings.reason_cooldown_days:
            return 0

        entries = self._history.setdefault(pair, deque())
        self._expire(entries, now)

        remaining = self.settings.weekly_pair_cap - sum(amount for _, amount in entries)
        if remaining <= 0:
            return 0

        applied = raw_delta
        if abs(raw_delta) > remaining:
            applied = int(math.copysign(int(remaining), raw_delta))
        if applied == 0:
            return 0

        self.world.apply_relationship_delta(
            listener, actor, applied, notify=False, detail=RelationDetail.GOSSIP
        )
        entries.append((now, float(abs(applied))))
        self._last_reason[reason_key] = now
        return applied

    def weekly_total(self, listener: str, actor: str) -> float:
        """Absolute delta applied to the pair during the last 7 days."""
        entries = self._history.get(ActorPair(listener, actor))
        if not entries:
            return 0.0
        now = self.world.now()
        return sum(amount for day, amount in entries if now - day < LEDGER_WINDOW_DAYS)

    def prune(self, now: float) -> int:
        """Drop window entries and reason stamps that can no longer matter."""
        removed = 0
        for pair in list(self._history):
            entries = self._history[pair]
            before = len(entries)
            self._expire(entries, now)
            removed += before - len(entries)
            if not entries:
                del self._history[pair]

        cooldown = self.settings.reason_cooldown_days
        stale = [key for key, day in self._last_reason.items() if now - day >= cooldown]
        for key in stale:
            del self._last_reason[key]
        return removed + len(stale)



# ============================================================================
# Consequence rules
# ============================================================================


SOURCE = "source"
SPEAKER = "speaker"


@dataclass(frozen=True)
class ConsequenceRule:
    """One trait-conditioned relationship nudge."""

    trait: str
    op: str
    threshold: int
    delta: int
    counterpart: str
    reason: str
    chance: float = 1.0

    def condition_holds(self, traits: TraitSnapshot) -> bool:
        level = traits.level(self.trait)
        if self.op == ">":
            return level > self.threshold
        if self.op == ">=":
            return level >= self.threshold
        if self.op == "<":
            return level < self.threshold
        raise ValueError(f"Unknown comparison {self.op!r}")

    def fires(self, traits: TraitSnapshot, rng: random.Random) -> bool:
        if not self.condition_holds(traits):
            return False
        if self.chance >= 1.0:
            return True
        return rng.random() < self.chance


_AID_RULES = (
    ConsequenceRule("valor", ">", 0, +1, SPEAKER, "aid+valor", 0.66),
    ConsequenceRule("honor", "<", 0, -1, SPEAKER, "aid-honor", 0.25),
)

CONSEQUENCE_RULES: Dict[MemoryKind, Tuple[ConsequenceRule, ...]] = {
    MemoryKind.RELEASED_AFTER_BATTLE: (
        ConsequenceRule("mercy", ">", 0, +1, SOURCE, "released_after_battle+mercy"),
        ConsequenceRule("mercy", "<", 0, -1, SOURCE, "released_after_battle-mercy"),
    ),
    MemoryKind.BATTLE_VICTORY: (
        ConsequenceRule("valor", ">", 0, +1, SOURCE, "battle_victory+valor"),
        ConsequenceRule("calculating", ">", 0, -1, SOURCE, "battle_victory-calculating"),
    ),
    MemoryKind.BATTLE_DEFEAT: (
        ConsequenceRule("calculating", ">", 0, -1, SOURCE, "battle_defeat-calculating"),
        ConsequenceRule("honor", ">=", 2, +1, SOURCE, "battle_defeat+honor", 0.25),
    ),
    MemoryKind.LOST_SOLDIERS_TO: (
        ConsequenceRule("honor", ">=", 2, +1, SOURCE, "lost_soldiers_to+honor", 0.33),
        ConsequenceRule("mercy", ">=", 1, -1, SOURCE, "lost_soldiers_to-mercy", 0.33),
    ),
    MemoryKind.MURDER: (
        ConsequenceRule("mercy", ">", 0, -1, SOURCE, "murder-mercy"),
    ),
    MemoryKind.TRADE_DEAL: (
        ConsequenceRule("generosity", ">", 2, +1, SPEAKER, "trade_deal+generosity", 0.5),
        ConsequenceRule("calculating", ">", 1, -1, SPEAKER, "trade_deal-calculating", 0.25),
    ),
    MemoryKind.MILITARY_AID: _AID_RULES,
    MemoryKind.MINOR_FAVOR: _AID_RULES,
    MemoryKind.BETRAYAL: (
        ConsequenceRule("honor", ">", 0, -1, SPEAKER, "betrayal-honor"),
        ConsequenceRule("calculating", ">=", 2, +1, SPEAKER, "betrayal+calculating", 0.2),
    ),
    MemoryKind.FAVOR_REFUSED: (
        ConsequenceRule("mercy", "<", 0, +1, SPEAKER, "favor_refused+mercy"),
        ConsequenceRule("honor", ">", 0, -1, SPEAKER, "favor_refused-honor", 0.5),
    ),
}


# ============================================================================
# Engine
# ============================================================================


@dataclass
class GossipOutcome:
    """What happened during one successful telling."""

    speaker: str
    listener: str
    record: MemoryRecord
    relayed_kind: MemoryKind
    first_hearing: bool
    belief_promoted: bool = False
    applied: List[Tuple[str, int, str]] = field(default_factory=list)


class GossipEngine:
    """Runs one gossip attempt per agent tick."""

    def __init__(
        self,
        world: SocialWorld,
        registry: AgentRegistry,
        settings: Optional[GossipSettings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.world = world
        self.registry = registry
        self.settings = settings or GossipSettings()
        self.rng = rng or random.Random()
        self.log = GossipLog(self.settings.lifespan_days)
        self.ledger = RelationLedger(world, self.settings)
        self._last_interaction: Dict[ActorPair, float] = {}
        self.tellings = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def nearby_nobles(self, speaker: str) -> List[str]:
        """Eligible nobles the speaker can talk to right now."""
        world = self.world
        location = world.location_of(speaker)
        army = world.army_of(speaker)
        party = world.party_of(speaker)

        if location is not None:
            pool = world.actors_at(location)
        elif army is not None:
            pool = world.army_leaders(army)
        elif party is not None:
            pool = world.party_members(party)
        else:
            pool = []

        return [a for a in pool if a != speaker and world.is_eligible_noble(a)]

    def last_interaction(self, a: str, b: str) -> Optional[float]:
        return self._last_interaction.get(ActorPair.unordered(a, b))

    def forget_stale(self, now: float) -> int:
        """Prune cooldown and rate-limit bookkeeping that has run its course."""
        stale = [
            pair
            for pair, day in self._last_interaction.items()
            if now - day >= INTERACTION_COOLDOWN_DAYS
        ]
        for pair in stale:
            del self._last_interaction[pair]
        return len(stale) + self.ledger.prune(now)

    def select_memory(self, agent: AgentState, now: float) -> Optional[MemoryRecord]:
        """Pick the memory the speaker is most eager to share."""
        traits = self.world.traits(agent.actor_id)
        modifier = decay_modifier(traits)

        candidates = [
            m
            for m in agent.live_memories(now, modifier)
            if not (
                m.kind == MemoryKind.GOSSIP_HEARD
                and m.repeat_count >= WELL_ESTABLISHED_REPEATS
                and MemoryTag.GOSSIP in m.tags
            )
        ]
        if not candidates:
            return None

        def eagerness(m: MemoryRecord) -> float:
            return m.weight * trait_affinity(traits, m.effective_kind) / (m.age_days(now) + 1.0)

        return max(candidates, key=eagerness)

    def belief_score(self, speaker: str, listener: str, record: MemoryRecord) -> float:
        """How readily ``listener`` accepts the rumour in ``record`` from ``speaker``."""
        kind = record.effective_kind
        profile = profile_for(kind)
        traits = self.world.traits(listener)

        score = self.world.get_relationship(speaker, listener) / 10.0
        score += trait_affinity(traits, kind) - 1.0
        score += 0.3 * traits.valor
        score -= 0.2 * traits.calculating
        if profile.severe:
            score += 0.3 * traits.honor + 0.5
        if profile.low_stakes:
            score -= 0.2

        if profile.negative and record.target is not None:
            listener_clan = self.world.clan_of(listener)
            if listener_clan is not None and listener_clan == self.world.clan_of(record.target):
                score -= 0.5

        return score

    # ------------------------------------------------------------------
    # The attempt
    # ------------------------------------------------------------------

    def try_gossip(self, agent: Optional[AgentState]) -> Optional[GossipOutcome]:
        """Let ``agent`` tell one memory to a nearby noble.

        Returns ``None`` whenever any precondition fails.
        """
        if agent is None:
            return None

        now = self.world.now()
        self.log.cleanup(now)

        if not agent.memories:
            return None

        speaker = agent.actor_id
        if not self.world.is_eligible_noble(speaker):
            return None

        pool = self.nearby_nobles(speaker)
        if not pool:
            return None

        record = self.select_memory(agent, now)
        if record is None:
            return None

        listener = self.rng.choice(pool)
        pair = ActorPair.unordered(speaker, listener)
        last = self._last_interaction.get(pair)
        if last is not None and now - last < INTERACTION_COOLDOWN_DAYS:
            return None

        relayed_kind = record.effective_kind
        listener_agent = self.registry.get_or_create(listener)
        if listener_agent.find(relayed_kind, record.target, record.notes) is not None:
            return None

        self.log.add(
            GossipEvent(
                speaker=speaker,
                subject=record.target,
                topic=relayed_kind.value,
                message=record.notes,
                location=self.world.location_of(speaker),
                timestamp=now,
            )
        )

        existing = self._find_hearsay(listener_agent, relayed_kind, record)
        outcome = GossipOutcome(
            speaker=speaker,
            listener=listener,
            record=record,
            relayed_kind=relayed_kind,
            first_hearing=existing is None,
        )

        if existing is None:
            listener_agent.add(
                MemoryRecord.create(
                    MemoryKind.GOSSIP_HEARD,
                    speaker,
                    record.target,
                    FIRST_HEARING_WEIGHT,
                    record.notes,
                    timestamp=now,
                    tags=[MemoryTag.GOSSIP],
                    original_kind=relayed_kind,
                )
            )
        else:
            existing.reinforce(REPEAT_HEARING_BUMP)
            score = self.belief_score(speaker, listener, record)
            if existing.repeat_count >= BELIEF_MIN_REPEATS and score >= BELIEF_THRESHOLD:
                listener_agent.add(
                    MemoryRecord.create(
                        relayed_kind,
                        speaker,
                        record.target,
                        record.weight * BELIEF_WEIGHT_FACTOR,
                        record.notes,
                        timestamp=now,
                        tags=[MemoryTag.BELIEF],
                    )
                )
                outcome.belief_promoted = True
                log_debug(
                    "gossip",
                    f"  {LOG_TAG_GOSSIP} [Belief] {listener} now believes {relayed_kind.value} "
                    f"about {record.target} from {speaker} ('{record.notes}', score={score:.2f})",
                )

        log_debug(
            "gossip",
            f"  {LOG_TAG_GOSSIP} {speaker} told {listener} about {relayed_kind.value} "
            f"involving {record.target or 'unknown'} ('{record.notes}') weight={record.weight:.2f}",
        )

        if not self.settings.require_belief_for_relation or outcome.belief_promoted:
            outcome.applied = self._apply_consequences(speaker, listener, record, relayed_kind)

        self._last_interaction[pair] = now
        self.tellings += 1
        return outcome

    def _find_hearsay(
        self, listener_agent: AgentState, relayed_kind: MemoryKind, record: MemoryRecord
    ) -> Optional[MemoryRecord]:
        for m in listener_agent.memories:
            if (
                m.kind == MemoryKind.GOSSIP_HEARD
                and m.effective_kind == relayed_kind
                and m.notes == record.notes
                and m.target == record.target
            ):
                return m
        return None

    def _apply_consequences(
        self, speaker: str, listener: str, record: MemoryRecord, kind: MemoryKind
    ) -> List[Tuple[str, int, str]]:
        traits = self.world.traits(listener)
        applied: List[Tuple[str, int, str]] = []
        for rule in CONSEQUENCE_RULES.get(kind, ()):
            if not rule.fires(traits, self.rng):
                continue
            actor = record.source if rule.counterpart == SOURCE else speaker
            delta = self.ledger.try_apply(listener, actor, rule.delta, rule.reason)
            if delta:
                applied.append((actor, delta, rule.reason))
        return applied
