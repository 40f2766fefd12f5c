"""
Per-noble agent state and the registry that owns it.

An ``AgentState`` is a noble's memory log plus the bookkeeping that keeps its
daily tick idempotent. The ``AgentRegistry`` is an explicitly owned object
(pass it to the engines that need it) mapping actor ids to agent state with
get-or-create semantics. Agents are never removed: nobles who leave the world
simply stop being ticked.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Optional

from .logging_utils import LOG_TAG_DETERMINISTIC, log_debug
from .memory import MemoryRecord, decay_modifier
from .schemas import MemoryKind, MemoryLogSnapshot, MemoryTag

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from .gossip import GossipEngine
    from .world import SocialWorld


def same_day(a: float, b: float) -> bool:
    """True when two simulated timestamps fall on the same day."""
    return math.floor(a) == math.floor(b)


@dataclass
class AgentState:
    """Memory log and tick bookkeeping for one noble."""

    actor_id: str
    # Append order is chronological order.
    memories: List[MemoryRecord] = field(default_factory=list)
    last_tick_time: Optional[float] = None
    last_decay_day: Optional[float] = None

    def add(self, record: MemoryRecord) -> MemoryRecord:
        self.memories.append(record)
        return record

    def should_tick(self, now: float) -> bool:
        if self.last_tick_time is None:
            return True
        return now > self.last_tick_time and not same_day(now, self.last_tick_time)

    def tick(self, world: "SocialWorld", gossip: Optional["GossipEngine"] = None) -> Optional[int]:
        """Run the daily lifecycle: gossip, decay, prune, stamp.

        Returns the number of pruned records, or ``None`` when the agent has
        already ticked today.
        """
        now = world.now()
        if not self.should_tick(now):
            return None

        if gossip is not None:
            gossip.try_gossip(self)

        # One modifier per tick; traits do not change mid-day.
        modifier = decay_modifier(world.traits(self.actor_id))
        for record in self.memories:
            record.decay(modifier)

        pruned = self.prune(now, modifier)
        self.last_tick_time = now
        return pruned

    def prune(self, now: float, modifier: float) -> int:
        """Remove expired and dead records; return how many were removed."""
        kept = [m for m in self.memories if not (m.is_expired(now, modifier) or m.is_dead)]
        removed = len(self.memories) - len(kept)
        self.memories[:] = kept
        if removed:
            log_debug("memory", f"  {LOG_TAG_DETERMINISTIC} [Memory] {self.actor_id} forgot {removed} memories")
        return removed

    def live_memories(self, now: float, modifier: float) -> List[MemoryRecord]:
        return [m for m in self.memories if not m.is_dead and not m.is_expired(now, modifier)]

    def find(self, kind: MemoryKind, target: Optional[str], notes: str) -> Optional[MemoryRecord]:
        for record in self.memories:
            if record.matches(kind, target, notes):
                return record
        return None

    # -- persistence ----------------------------------------------------

    def to_snapshot(self) -> MemoryLogSnapshot:
        """Flatten the memory log into parallel primitive lists."""
        snapshot = MemoryLogSnapshot(
            actor_id=self.actor_id,
            last_tick_time=self.last_tick_time,
            last_decay_day=self.last_decay_day,
        )
        for m in self.memories:
            snapshot.kinds.append(m.kind.value)
            snapshot.original_kinds.append(m.original_kind.value if m.original_kind else None)
            snapshot.sources.append(m.source)
            snapshot.targets.append(m.target)
            snapshot.timestamps_days.append(m.timestamp)
            snapshot.weights.append(m.weight)
            snapshot.decay_rates.append(m.decay_rate)
            snapshot.never_forget.append(m.never_forget)
            snapshot.repeat_counts.append(m.repeat_count)
            snapshot.tags.append(sorted(tag.value for tag in m.tags))
            snapshot.notes.append(m.notes)
        return snapshot

    @classmethod
    def from_snapshot(cls, snapshot: MemoryLogSnapshot) -> "AgentState":
        columns = [
            snapshot.kinds,
            snapshot.original_kinds,
            snapshot.sources,
            snapshot.targets,
            snapshot.timestamps_days,
            snapshot.weights,
            snapshot.decay_rates,
            snapshot.never_forget,
            snapshot.repeat_counts,
            snapshot.tags,
            snapshot.notes,
        ]
        count = min(len(column) for column in columns)

        agent = cls(
            actor_id=snapshot.actor_id,
            last_tick_time=snapshot.last_tick_time,
            last_decay_day=snapshot.last_decay_day,
        )
        for i in range(count):
            original = snapshot.original_kinds[i]
            agent.memories.append(
                MemoryRecord(
                    kind=MemoryKind(snapshot.kinds[i]),
                    original_kind=MemoryKind(original) if original else None,
                    source=snapshot.sources[i],
                    target=snapshot.targets[i],
                    timestamp=snapshot.timestamps_days[i],
                    weight=snapshot.weights[i],
                    decay_rate=snapshot.decay_rates[i],
                    never_forget=snapshot.never_forget[i],
                    repeat_count=max(1, snapshot.repeat_counts[i]),
                    tags={MemoryTag(t) for t in snapshot.tags[i]},
                    notes=snapshot.notes[i] or "",
                )
            )
        return agent


class AgentRegistry:
    """Owned map from actor id to AgentState."""

    def __init__(self, clock: Callable[[], float]) -> None:
        """
        Args:
            clock: Returns the current simulated day (usually ``world.now``).
        """
        self._clock = clock
        self._agents: Dict[str, AgentState] = {}

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, actor_id: object) -> bool:
        return actor_id in self._agents

    def __iter__(self) -> Iterator[AgentState]:
        return iter(list(self._agents.values()))

    def get(self, actor_id: Optional[str]) -> Optional[AgentState]:
        if actor_id is None:
            return None
        return self._agents.get(actor_id)

    def get_or_create(self, actor_id: Optional[str]) -> Optional[AgentState]:
        if actor_id is None:
            return None
        agent = self._agents.get(actor_id)
        if agent is None:
            agent = AgentState(actor_id=actor_id)
            self._agents[actor_id] = agent
        return agent

    def all_agents(self) -> List[AgentState]:
        return list(self._agents.values())

    def register_memory(
        self,
        source: Optional[str],
        target: Optional[str],
        kind: MemoryKind,
        weight: float,
        notes: str = "",
        tag: Optional[MemoryTag] = None,
        mark_first_hand_as_belief: bool = True,
    ) -> List[MemoryRecord]:
        """Record an event in ``source``'s memory.

        A first-hand witness also gets a second copy tagged ``belief`` so the
        event is held as established fact, separate from any hearsay copy that
        arrives later. Returns the records added (empty for a missing source).
        """
        agent = self.get_or_create(source)
        if agent is None:
            return []

        now = self._clock()
        record = MemoryRecord.create(
            kind, source, target, weight, notes,
            timestamp=now,
            tags=[tag] if tag is not None else None,
        )
        added = [agent.add(record)]
        log_debug(
            "memory",
            f"  {LOG_TAG_DETERMINISTIC} [Memory] {source} recorded {kind.value} "
            f"(weight={weight:.2f}) notes='{notes}'",
        )

        if mark_first_hand_as_belief:
            belief = MemoryRecord.create(
                kind, source, target, weight, notes,
                timestamp=now,
                tags=[MemoryTag.BELIEF],
            )
            added.append(agent.add(belief))

        return added

    # -- persistence ----------------------------------------------------

    def snapshots(self) -> List[MemoryLogSnapshot]:
        return [agent.to_snapshot() for agent in self._agents.values()]

    def restore(self, snapshots: List[MemoryLogSnapshot]) -> None:
        """Replace registry contents with the given snapshots."""
        self._agents = {}
        for snapshot in snapshots:
            self._agents[snapshot.actor_id] = AgentState.from_snapshot(snapshot)
