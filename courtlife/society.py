"""
Daily driver for a court of nobles.

``NobleSociety`` wires the registry, gossip engine, ripple service, retention
policy and meeting tracker to a ``SocialWorld`` and runs them once per
simulated day:

1. Tick every eligible noble (gossip attempt, decay, prune)
2. Run the retention maintenance pass for that noble
3. Sweep co-presence into the meeting tracker
4. Log a season summary every ``season_length_days``
5. Invoke day listeners (failures are logged, never fatal)

The world owns the clock. ``run_day`` works with any ``SocialWorld``; the
async ``run`` loop additionally needs a world that can ``advance`` its own
time (``InMemoryWorld`` does).
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from .agents import AgentRegistry, AgentState
from .gossip import GossipEngine, GossipSettings
from .logging_utils import (
    LOG_TAG_DETERMINISTIC,
    LOG_TAG_ERROR,
    LOG_TAG_INFO,
    LOG_TAG_SUCCESS,
    log_deterministic,
    log_error,
    log_info,
    log_success,
)
from .meetings import MeetingTracker
from .memory import MemoryRecord, RetentionPolicy, RetentionSettings
from .persistence import InMemoryPersistence, PersistenceStrategy
from .ripple import RippleResult, RippleService, RippleSettings
from .schemas import MemoryKind, MemoryTag, RegistrySnapshot, RelationDetail
from .world import SocialWorld


DEFAULT_SEASON_LENGTH_DAYS = 10


@dataclass
class DayReport:
    """What one call to ``run_day`` did."""

    day: int
    ticked: int = 0
    pruned: int = 0
    retained_removed: int = 0
    gossip_told: int = 0
    gossip_expired: int = 0
    meetings_recorded: int = 0


DayListener = Callable[[DayReport], None]


class NobleSociety:
    """
    Social-memory simulation for the nobles of one world.

    All collaborators are owned by the instance (no module-level state), so
    several societies can run side by side in one process.
    """

    def __init__(
        self,
        world: SocialWorld,
        *,
        registry: Optional[AgentRegistry] = None,
        gossip_settings: Optional[GossipSettings] = None,
        ripple_settings: Optional[RippleSettings] = None,
        retention_settings: Optional[RetentionSettings] = None,
        rng: Optional[random.Random] = None,
        track_meetings: bool = True,
        season_length_days: int = DEFAULT_SEASON_LENGTH_DAYS,
        day_listeners: Optional[List[DayListener]] = None,
    ):
        """
        Args:
            world: Host world providing time, relationships and the social graph
            registry: Optional pre-populated registry (defaults to empty)
            gossip_settings: Gossip balance knobs (defaults from Config)
            ripple_settings: Ripple knobs (defaults from Config)
            retention_settings: Maintenance pass knobs (defaults from Config)
            rng: Random source for listener choice and probabilistic rules
            track_meetings: Whether to run the daily co-presence sweep
            season_length_days: Days between season summaries
            day_listeners: Callables invoked with each ``DayReport``
        """
        self.world = world
        self.registry = registry or AgentRegistry(world.now)
        self.gossip = GossipEngine(world, self.registry, gossip_settings, rng)
        self.ripples = RippleService(world, ripple_settings)
        self.retention = RetentionPolicy(retention_settings)
        self.meetings: Optional[MeetingTracker] = MeetingTracker(world) if track_meetings else None
        self.season_length_days = season_length_days
        self.day_listeners: List[DayListener] = day_listeners or []

        self._season_anchor_day: Optional[int] = None
        self._season_pruned = 0
        self._season_gossip_pruned = 0

        world.add_relation_listener(self.ripples.on_relation_changed)

    def detach(self) -> None:
        """Stop reacting to the world's relationship changes."""
        self.world.remove_relation_listener(self.ripples.on_relation_changed)

    # ------------------------------------------------------------------
    # Exposed operations
    # ------------------------------------------------------------------

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
        return self.registry.register_memory(
            source, target, kind, weight, notes, tag, mark_first_hand_as_belief
        )

    def tick(self, actor: Optional[str]) -> Optional[int]:
        """Tick one noble; returns pruned count or ``None`` if nothing ran."""
        if not self.world.is_eligible_noble(actor):
            return None
        agent = self.registry.get_or_create(actor)
        return agent.tick(self.world, self.gossip)

    def apply_ripples(
        self,
        a: Optional[str],
        b: Optional[str],
        base_delta: int,
        detail: RelationDetail = RelationDetail.DEFAULT,
        notify_primary: bool = True,
    ) -> List[RippleResult]:
        """Ripple a primary change the world did not report itself."""
        if self.ripples.guard.active:
            return []
        with self.ripples.guard.hold():
            return self.ripples.apply_ripples(a, b, base_delta, detail, notify_primary)

    # ------------------------------------------------------------------
    # Daily loop
    # ------------------------------------------------------------------

    def run_day(self) -> DayReport:
        """Run one simulated day for every eligible noble."""
        now = self.world.now()
        report = DayReport(day=math.floor(now))
        told_before = self.gossip.tellings
        expired_before = self.gossip.log.expired_total

        for actor in self.world.alive_actors():
            if not self.world.is_eligible_noble(actor):
                continue
            agent = self.registry.get_or_create(actor)
            pruned = agent.tick(self.world, self.gossip)
            if pruned is None:
                continue
            report.ticked += 1
            report.pruned += pruned
            report.retained_removed += self.retention.enforce(agent, now)

        report.gossip_told = self.gossip.tellings - told_before
        self.gossip.log.cleanup(now)
        self.gossip.forget_stale(now)
        report.gossip_expired = self.gossip.log.expired_total - expired_before

        if self.meetings is not None:
            report.meetings_recorded = self.meetings.sweep()

        self._update_season(report)
        self._notify_listeners(report)
        return report

    def _update_season(self, report: DayReport) -> None:
        self._season_pruned += report.pruned + report.retained_removed
        self._season_gossip_pruned += report.gossip_expired

        if self._season_anchor_day is None:
            self._season_anchor_day = report.day

        if report.day - self._season_anchor_day >= self.season_length_days:
            log_info(
                f"{LOG_TAG_INFO} [Season Summary] Pruned {self._season_pruned} memories, "
                f"{self._season_gossip_pruned} gossip entries."
            )
            self._season_pruned = 0
            self._season_gossip_pruned = 0
            self._season_anchor_day = report.day

    def _notify_listeners(self, report: DayReport) -> None:
        for listener in self.day_listeners:
            try:
                listener(report)
            except Exception as exc:
                log_error(f"  {LOG_TAG_ERROR} [Society] Day listener failed: {exc}")

    async def run(
        self,
        num_days: int,
        persistence: Optional[PersistenceStrategy] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run ``num_days`` days, advancing the world after each, then save.

        Returns:
            Dict with session_id, final_day and the list of DayReports
        """
        persistence = persistence or InMemoryPersistence()
        session_id = session_id or uuid4().hex
        await persistence.initialize()

        try:
            log_info(f"{LOG_TAG_INFO} Starting court session {session_id}")
            log_info(f"{LOG_TAG_INFO} Nobles: {len(self.world.alive_actors())}, Days: {num_days}")

            reports: List[DayReport] = []
            for _ in range(num_days):
                try:
                    report = self.run_day()
                except Exception as exc:
                    log_error(f"{LOG_TAG_ERROR} Day {math.floor(self.world.now())} failed: {exc}")
                    raise
                log_deterministic(
                    f"  {LOG_TAG_DETERMINISTIC} [Day {report.day}] ticked={report.ticked} "
                    f"gossip={report.gossip_told} pruned={report.pruned + report.retained_removed}"
                )
                reports.append(report)
                self.world.advance(1.0)

            await self.save(persistence, session_id)
            log_success(f"{LOG_TAG_SUCCESS} Court session complete!")
            return {
                "session_id": session_id,
                "final_day": self.world.now(),
                "reports": reports,
            }
        finally:
            await persistence.close()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self) -> RegistrySnapshot:
        return RegistrySnapshot(
            saved_at_day=self.world.now(),
            agents=self.registry.snapshots(),
            meetings=self.meetings.to_snapshot() if self.meetings is not None else None,
        )

    def restore(self, snapshot: RegistrySnapshot) -> None:
        self.registry.restore(snapshot.agents)
        if self.meetings is not None and snapshot.meetings is not None:
            self.meetings.restore(snapshot.meetings)

    async def save(self, persistence: PersistenceStrategy, session_id: str) -> None:
        await persistence.save_registry(session_id, self.snapshot())

    async def load(self, persistence: PersistenceStrategy, session_id: str) -> bool:
        """Restore from ``session_id``; returns False when nothing was saved."""
        snapshot = await persistence.load_registry(session_id)
        if snapshot is None:
            return False
        self.restore(snapshot)
        return True

    def agent(self, actor: Optional[str]) -> Optional[AgentState]:
        return self.registry.get(actor)
