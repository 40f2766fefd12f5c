"""
PersistenceStrategy interface for saving a court's social memory.

Persistence is OPTIONAL: a society runs entirely in memory and only touches a
backend when the driver's ``run``/``save``/``load`` coroutines are used.

Two included implementations:
1. InMemoryPersistence - dict-based storage, data lost on exit (tests, prototyping)
2. JsonPersistence - human-readable JSON files, one directory per session

What is saved is a ``RegistrySnapshot``: every agent's memory log flattened
into parallel lists of primitives (see ``MemoryLogSnapshot``), plus the
meeting tracker. Relationship scores belong to the host world and are not
saved here; neither are the gossip rate-limit ledgers.

Usage pattern:
    persistence = JsonPersistence("court_sessions")
    await persistence.initialize()
    await persistence.save_registry("campaign-1", snapshot)
    restored = await persistence.load_registry("campaign-1")
    await persistence.close()
"""

import asyncio
import json
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .config import Config
from .schemas import MeetingSnapshot, RegistrySnapshot


class PersistenceStrategy(ABC):
    """Abstract base class for social-memory persistence.

    All methods are async so file or network backends never block a running
    simulation; they are no-ops for the in-memory backend.

    Method categories:
    1. Lifecycle: initialize(), close()
    2. Snapshots: save_registry(), load_registry()
    3. Cleanup: delete_session()
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (create directories, open connections)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        pass

    @abstractmethod
    async def save_registry(self, session_id: str, snapshot: RegistrySnapshot) -> None:
        """
        Save a full registry snapshot for a session, replacing any previous one.

        Args:
            session_id: Caller-chosen session identifier
            snapshot: Agents and meeting state to save
        """
        pass

    @abstractmethod
    async def load_registry(self, session_id: str) -> Optional[RegistrySnapshot]:
        """
        Load the most recent snapshot for a session.

        Returns:
            RegistrySnapshot if one was saved, None otherwise
        """
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete everything stored for a session (missing sessions are ignored)."""
        pass


class InMemoryPersistence(PersistenceStrategy):
    """Dict-based persistence (no files).

    Snapshots are deep-copied on save and load so later mutation of the live
    registry cannot leak into stored data.
    """

    def __init__(self):
        self.sessions: Dict[str, RegistrySnapshot] = {}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        # Keep data so callers can inspect it after a run.
        pass

    async def save_registry(self, session_id: str, snapshot: RegistrySnapshot) -> None:
        self.sessions[session_id] = snapshot.model_copy(deep=True)

    async def load_registry(self, session_id: str) -> Optional[RegistrySnapshot]:
        snapshot = self.sessions.get(session_id)
        return snapshot.model_copy(deep=True) if snapshot is not None else None

    async def delete_session(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)


class JsonPersistence(PersistenceStrategy):
    """File-based persistence using JSON.

    Directory structure:
    ```
    {base_path}/
      {session_id}/
        agents.json      # saved_at_day + one MemoryLogSnapshot per agent
        meetings.json    # MeetingSnapshot (parallel pair / last-seen lists)
    ```

    All file I/O runs in a worker thread (``asyncio.to_thread``).
    """

    def __init__(self, base_path: Path | str | None = None):
        self.base_path = Path(base_path) if base_path is not None else Config.DATA_DIR

    async def initialize(self) -> None:
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)

    async def close(self) -> None:
        return None

    async def save_registry(self, session_id: str, snapshot: RegistrySnapshot) -> None:
        session_dir = self._session_dir(session_id)
        await asyncio.to_thread(session_dir.mkdir, parents=True, exist_ok=True)

        agents_payload = snapshot.model_dump(mode="json", exclude={"meetings"})
        await asyncio.to_thread(
            (session_dir / "agents.json").write_text,
            json.dumps(agents_payload, indent=2),
            "utf-8",
        )

        meetings_path = session_dir / "meetings.json"
        if snapshot.meetings is not None:
            meetings_payload = snapshot.meetings.model_dump(mode="json")
            await asyncio.to_thread(
                meetings_path.write_text, json.dumps(meetings_payload, indent=2), "utf-8"
            )
        elif meetings_path.exists():
            await asyncio.to_thread(meetings_path.unlink)

    async def load_registry(self, session_id: str) -> Optional[RegistrySnapshot]:
        session_dir = self._session_dir(session_id)
        agents_path = session_dir / "agents.json"
        if not agents_path.exists():
            return None

        payload = await asyncio.to_thread(json.loads, agents_path.read_text("utf-8"))
        snapshot = RegistrySnapshot.model_validate(payload)

        meetings_path = session_dir / "meetings.json"
        if meetings_path.exists():
            meetings = await asyncio.to_thread(json.loads, meetings_path.read_text("utf-8"))
            snapshot.meetings = MeetingSnapshot.model_validate(meetings)
        return snapshot

    async def delete_session(self, session_id: str) -> None:
        session_dir = self._session_dir(session_id)
        if session_dir.exists():
            await asyncio.to_thread(shutil.rmtree, session_dir)

    def _session_dir(self, session_id: str) -> Path:
        return self.base_path / session_id
