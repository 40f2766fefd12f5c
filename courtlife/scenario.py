"""
Court loading from JSON scenario files.

A court scenario declares the nobles of a small world (traits, clan, family,
whereabouts), its clans and kingdoms, the starting relationship scores and any
memories the nobles already carry. ``CourtLoader`` turns it into an
``InMemoryWorld`` plus a seeded ``AgentRegistry``.

Scenario file structure:
```json
{
  "name": "Vlandian Court",
  "description": "...",
  "start_day": 0,
  "recommended_days": 30,
  "kingdoms": [{"kingdom_id": "vlandia", "name": "Vlandia", "leader": "derthert"}],
  "clans": [{"clan_id": "dey_meroc", "name": "dey Meroc", "kingdom": "vlandia"}],
  "nobles": [
    {"actor_id": "derthert", "clan": "dey_meroc", "location": "pravend",
     "traits": {"valor": 1, "honor": 2}}
  ],
  "relations": [{"a": "derthert", "b": "aldric", "value": 40}],
  "memories": [
    {"source": "aldric", "target": "derthert", "kind": "battle_victory",
     "weight": 1.0, "notes": "Battle of Sargot", "tag": "battle_victory"}
  ]
}
```

Usage:
    loader = CourtLoader()
    court = loader.load("vlandian_court")
    society = NobleSociety(court.world, registry=court.registry)
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .agents import AgentRegistry
from .config import Config
from .schemas import MemoryKind, MemoryTag
from .world import ClanProfile, InMemoryWorld, KingdomProfile, NobleProfile


@dataclass
class Court:
    """A loaded scenario: world, seeded registry and metadata."""

    name: str
    description: str
    world: InMemoryWorld
    registry: AgentRegistry
    recommended_days: int = 30


class CourtLoader:
    """Load and validate court scenarios from JSON files.

    Directory structure:
    - Default: {PROJECT_ROOT}/examples/scenarios/
    - Override via constructor: CourtLoader(Path("/custom/scenarios"))

    Validation raises ValueError for missing required fields, an empty court,
    and relations or memories that name unknown nobles.
    """

    def __init__(self, scenarios_dir: Optional[Path] = None):
        self.scenarios_dir = scenarios_dir or Config.SCENARIOS_DIR

    def load(self, scenario_name: str) -> Court:
        """Load a scenario by name (file name without ``.json``).

        Raises:
            FileNotFoundError: If the scenario file doesn't exist
            ValueError: If the scenario is malformed
        """
        scenario_path = self.scenarios_dir / f"{scenario_name}.json"
        if not scenario_path.exists():
            raise FileNotFoundError(
                f"Scenario '{scenario_name}' not found at {scenario_path}"
            )

        data = json.loads(scenario_path.read_text("utf-8"))
        return self.build(data, fallback_name=scenario_name)

    def build(self, data: Dict[str, Any], fallback_name: str = "court") -> Court:
        """Build a Court from already-parsed scenario data."""
        self._validate_scenario(data)

        world = InMemoryWorld(
            nobles=[NobleProfile(**entry) for entry in data["nobles"]],
            clans=[ClanProfile(**entry) for entry in data.get("clans", [])],
            kingdoms=[KingdomProfile(**entry) for entry in data.get("kingdoms", [])],
            day=float(data.get("start_day", 0.0)),
        )

        for relation in data.get("relations", []):
            self._require_nobles(world, relation.get("a"), relation.get("b"), context="relation")
            world.set_relationship(relation["a"], relation["b"], int(relation["value"]))

        registry = AgentRegistry(world.now)
        for entry in data.get("memories", []):
            self._seed_memory(world, registry, entry)

        return Court(
            name=data.get("name", fallback_name),
            description=data.get("description", ""),
            world=world,
            registry=registry,
            recommended_days=int(data.get("recommended_days", 30)),
        )

    def _validate_scenario(self, data: Dict[str, Any]) -> None:
        required = ["name", "description", "nobles"]
        missing = [field for field in required if field not in data]
        if missing:
            raise ValueError(f"Scenario missing required fields: {missing}")

        if not data["nobles"]:
            raise ValueError("Scenario must have at least one noble")

        ids = [entry.get("actor_id") for entry in data["nobles"]]
        if any(actor_id is None for actor_id in ids):
            raise ValueError("Each noble entry must include an 'actor_id'")
        if len(set(ids)) != len(ids):
            raise ValueError("Noble actor_ids must be unique")

    def _require_nobles(self, world: InMemoryWorld, *actors: Optional[str], context: str) -> None:
        for actor in actors:
            if actor is None or actor not in world.nobles:
                raise ValueError(f"Scenario {context} references unknown noble '{actor}'")

    def _seed_memory(self, world: InMemoryWorld, registry: AgentRegistry, entry: Dict[str, Any]) -> None:
        if "kind" not in entry:
            raise ValueError("Each memory entry must include a 'kind'")
        source = entry.get("source")
        target = entry.get("target")
        self._require_nobles(world, source, context="memory")
        if target is not None:
            self._require_nobles(world, target, context="memory")

        tag = entry.get("tag")
        registry.register_memory(
            source,
            target,
            MemoryKind(entry["kind"]),
            float(entry.get("weight", 1.0)),
            entry.get("notes", ""),
            MemoryTag(tag) if tag else None,
            mark_first_hand_as_belief=entry.get("first_hand", True),
        )

    def list_scenarios(self) -> List[str]:
        """List scenario names (files starting with ``_`` are skipped)."""
        if not self.scenarios_dir.exists():
            return []
        return sorted(
            f.stem for f in self.scenarios_dir.glob("*.json")
            if not f.name.startswith("_")
        )


def load_court(scenario_name: str) -> Court:
    """Convenience function to load a court scenario from the default directory."""
    return CourtLoader().load(scenario_name)
