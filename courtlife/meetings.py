"""Lightweight "has met" tracking based on daily co-presence."""

from __future__ import annotations

from typing import Dict, List, Optional

from .config import Config
from .logging_utils import log_debug
from .schemas import ActorPair, MeetingSnapshot
from .world import SocialWorld


class MeetingTracker:
    """Remembers when two adult nobles last shared a settlement or an army."""

    def __init__(self, world: SocialWorld, remember_days: Optional[float] = None) -> None:
        self.world = world
        self.remember_days = Config.MEETING_REMEMBER_DAYS if remember_days is None else remember_days
        self._last_seen: Dict[ActorPair, float] = {}

    def __len__(self) -> int:
        return len(self._last_seen)

    def sweep(self) -> int:
        """Record today's co-presence and forget stale pairs.

        Returns the number of pairs recorded.
        """
        world = self.world
        lords = [a for a in world.alive_actors() if world.is_eligible_noble(a)]

        by_location: Dict[str, List[str]] = {}
        by_army: Dict[str, List[str]] = {}
        for lord in lords:
            location = world.location_of(lord)
            if location is not None:
                by_location.setdefault(location, []).append(lord)
            army = world.army_of(lord)
            if army is not None:
                by_army.setdefault(army, []).append(lord)

        recorded = 0
        for location, group in by_location.items():
            recorded += self.record_co_presence(group, f"settlement:{location}")
        for group in by_army.values():
            recorded += self.record_co_presence(group, "army")

        self.forget_old()
        return recorded

    def record_co_presence(self, actors: List[str], context: str = "") -> int:
        if len(actors) < 2:
            return 0
        now = self.world.now()
        count = 0
        for i, a in enumerate(actors):
            for b in actors[i + 1:]:
                if a == b:
                    continue
                self._last_seen[ActorPair.unordered(a, b)] = now
                count += 1
                log_debug("meeting", f"  [MEETING] met {a} & {b} via {context}")
        return count

    def forget_old(self) -> int:
        cutoff = self.world.now() - self.remember_days
        stale = [pair for pair, seen in self._last_seen.items() if seen < cutoff]
        for pair in stale:
            del self._last_seen[pair]
        if stale:
            log_debug("meeting", f"  [MEETING] forgot {len(stale)} old meeting pairs")
        return len(stale)

    def last_seen(self, a: Optional[str], b: Optional[str]) -> Optional[float]:
        if a is None or b is None:
            return None
        return self._last_seen.get(ActorPair.unordered(a, b))

    def has_met_within(self, a: Optional[str], b: Optional[str], within_days: float) -> bool:
        seen = self.last_seen(a, b)
        if seen is None:
            return False
        return self.world.now() - seen <= within_days

    def to_snapshot(self) -> MeetingSnapshot:
        snapshot = MeetingSnapshot()
        for pair, seen in self._last_seen.items():
            snapshot.firsts.append(pair.first)
            snapshot.seconds.append(pair.second)
            snapshot.last_seen_days.append(seen)
        return snapshot

    def restore(self, snapshot: MeetingSnapshot) -> None:
        count = min(len(snapshot.firsts), len(snapshot.seconds), len(snapshot.last_seen_days))
        self._last_seen = {
            ActorPair.unordered(snapshot.firsts[i], snapshot.seconds[i]): snapshot.last_seen_days[i]
            for i in range(count)
        }
