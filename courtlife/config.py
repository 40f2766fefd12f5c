"""
Courtlife Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


class Config:
    """Application configuration loaded from environment variables."""

    # Memory retention
    MEMORY_HARD_CAP: int = int(os.getenv("COURTLIFE_MEMORY_HARD_CAP", "250"))
    # Exponential half-life decay in the maintenance pass. Unset = disabled.
    HALF_LIFE_DAYS: float | None = _env_optional_float("COURTLIFE_HALF_LIFE_DAYS")
    CULL_THRESHOLD: float = float(os.getenv("COURTLIFE_CULL_THRESHOLD", "0.20"))

    # Gossip balance & anti-drift
    WEEKLY_PAIR_CAP: float = float(os.getenv("COURTLIFE_WEEKLY_PAIR_CAP", "2"))
    REASON_COOLDOWN_DAYS: float = float(os.getenv("COURTLIFE_REASON_COOLDOWN_DAYS", "5"))
    REQUIRE_BELIEF: bool = _env_bool("COURTLIFE_REQUIRE_BELIEF")
    GOSSIP_LIFESPAN_DAYS: float = float(os.getenv("COURTLIFE_GOSSIP_LIFESPAN_DAYS", "20"))

    # Relation ripples
    RIPPLE_MIN_DELTA: int = int(os.getenv("COURTLIFE_RIPPLE_MIN_DELTA", "10"))
    MAX_OBSERVERS: int = int(os.getenv("COURTLIFE_MAX_OBSERVERS", "20"))

    # Meeting tracker
    MEETING_REMEMBER_DAYS: float = float(os.getenv("COURTLIFE_MEETING_REMEMBER_DAYS", "120"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str | None = os.getenv("COURTLIFE_LOG_FILE")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    DATA_DIR: Path = Path(os.getenv("COURTLIFE_DATA_DIR", "court_sessions"))
    SCENARIOS_DIR: Path = PROJECT_ROOT / "examples" / "scenarios"

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if values are nonsensical."""
        if cls.MEMORY_HARD_CAP <= 0:
            raise ValueError("COURTLIFE_MEMORY_HARD_CAP must be a positive integer")

        if cls.HALF_LIFE_DAYS is not None and cls.HALF_LIFE_DAYS <= 0:
            raise ValueError(
                "COURTLIFE_HALF_LIFE_DAYS must be positive. "
                "Leave it unset to disable half-life decay."
            )

        if cls.WEEKLY_PAIR_CAP < 0:
            raise ValueError("COURTLIFE_WEEKLY_PAIR_CAP cannot be negative")

        if cls.RIPPLE_MIN_DELTA < 1:
            raise ValueError("COURTLIFE_RIPPLE_MIN_DELTA must be >= 1")

        if cls.MAX_OBSERVERS < 0:
            raise ValueError("COURTLIFE_MAX_OBSERVERS cannot be negative")

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        half_life = f"{cls.HALF_LIFE_DAYS:g} days" if cls.HALF_LIFE_DAYS else "off"
        lines = [
            "Courtlife Configuration:",
            f"  Memory hard cap: {cls.MEMORY_HARD_CAP}",
            f"  Half-life decay: {half_life}",
            f"  Weekly pair cap: {cls.WEEKLY_PAIR_CAP:g}",
            f"  Reason cooldown: {cls.REASON_COOLDOWN_DAYS:g} days",
            f"  Require belief: {cls.REQUIRE_BELIEF}",
            f"  Ripple min delta: {cls.RIPPLE_MIN_DELTA}",
            f"  Max observers: {cls.MAX_OBSERVERS}",
        ]
        return "\n".join(lines)
