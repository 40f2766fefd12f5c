"""Run a small Vlandian court for a month and report what the nobles came to believe.

    python examples/court/run.py --days 30 --seed 7

Pass ``--save`` to write the final memory logs to ``COURTLIFE_DATA_DIR``
(default ``court_sessions/``). Set ``DEBUG_GOSSIP=1`` or ``DEBUG_RIPPLE=1`` to
watch rumours and ripples as they happen.
"""

from __future__ import annotations

import argparse
import asyncio
import random

from courtlife import (
    CourtLoader,
    DayReport,
    InMemoryPersistence,
    JsonPersistence,
    MemoryKind,
    MemoryTag,
    NobleSociety,
    RelationDetail,
)
from courtlife.config import Config
from courtlife.logging_utils import Color, colored


def print_beliefs(society: NobleSociety) -> None:
    print(colored("\nWhat the court believes:", Color.BOLD))
    for agent in society.registry:
        noble = society.world.noble(agent.actor_id)
        name = noble.display_name if noble else agent.actor_id
        hearsay = [m for m in agent.memories if m.kind == MemoryKind.GOSSIP_HEARD]
        beliefs = [m for m in agent.memories if MemoryTag.BELIEF in m.tags and m.source != agent.actor_id]
        print(f"  {name}: {len(agent.memories)} memories, {len(hearsay)} rumours heard")
        for record in beliefs:
            print(colored(f"    believes {record.describe()}", Color.YELLOW))


def print_relations(society: NobleSociety) -> None:
    world = society.world
    print(colored("\nRelations changed during the month:", Color.BOLD))
    totals: dict[tuple[str, str, str], int] = {}
    for change in world.changes:
        key = (change.a, change.b, change.detail.value)
        totals[key] = totals.get(key, 0) + change.delta
    for (a, b, detail), delta in sorted(totals.items()):
        print(f"  {a} -> {b} ({detail}): {delta:+d}")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Run a small noble court.")
    parser.add_argument("--scenario", default="vlandian_court")
    parser.add_argument("--days", type=int, default=None)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--save", action="store_true", help="Write memory logs to disk")
    args = parser.parse_args()

    Config.validate()
    print(Config.display())

    court = CourtLoader().load(args.scenario)
    print(colored(f"\n{court.name}", Color.BOLD))
    print(court.description)

    def on_day(report: DayReport) -> None:
        # Halfway through, the king publicly rewards Aldric.
        if report.day == 15:
            court.world.apply_relationship_delta(
                "derthert", "aldric", 20, detail=RelationDetail.EMISSARY
            )

    society = NobleSociety(
        court.world,
        registry=court.registry,
        rng=random.Random(args.seed),
        day_listeners=[on_day],
    )

    persistence = JsonPersistence() if args.save else InMemoryPersistence()
    result = await society.run(
        args.days or court.recommended_days,
        persistence=persistence,
        session_id=args.scenario,
    )

    told = sum(report.gossip_told for report in result["reports"])
    print(colored(f"\n{told} rumours told over {len(result['reports'])} days", Color.CYAN))
    print_beliefs(society)
    print_relations(society)


if __name__ == "__main__":
    asyncio.run(main())
