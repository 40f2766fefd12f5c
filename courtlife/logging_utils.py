"""Logging utilities for Courtlife simulations.

Provides color-coded output to distinguish memory bookkeeping, gossip and
relation ripples. Topic-specific chatter is gated behind ``DEBUG_*``
environment variables so a full court can tick quietly.
"""

import os
from datetime import datetime
from enum import Enum

from .config import Config


class Color(Enum):
    """ANSI color codes for terminal output."""

    BLUE = "\033[94m"      # Deterministic bookkeeping (decay, pruning)
    YELLOW = "\033[93m"    # Gossip and belief formation
    MAGENTA = "\033[95m"   # Relation ripples
    RED = "\033[91m"       # Errors
    GREEN = "\033[92m"     # Success/completion
    CYAN = "\033[96m"      # Info/metadata

    # Formatting
    BOLD = "\033[1m"
    RESET = "\033[0m"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes if colors are enabled.

    Args:
        text: Text to colorize
        color: Color to apply
        bold: Whether to make text bold

    Returns:
        Colorized text if COURTLIFE_NO_COLOR is not set, otherwise plain text
    """
    if os.getenv("COURTLIFE_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def debug_enabled(topic: str) -> bool:
    """Return True when ``DEBUG_<TOPIC>`` is set to a truthy value."""
    value = os.getenv(f"DEBUG_{topic.upper()}", "")
    return value.strip().lower() in ("1", "true", "yes", "on")


def _emit(message: str, color: Color) -> None:
    print(colored(message, color))
    log_path = os.getenv("COURTLIFE_LOG_FILE") or Config.LOG_FILE
    if log_path:
        # Plain text in the file; colours only make sense on a terminal.
        with open(log_path, "a", encoding="utf-8") as handle:
            handle.write(f"{datetime.now():%Y-%m-%d %H:%M:%S} | {message}\n")


def log_deterministic(message: str) -> None:
    """Log a deterministic bookkeeping operation (blue)."""
    _emit(message, Color.BLUE)


def log_gossip(message: str) -> None:
    """Log a gossip or belief operation (yellow)."""
    _emit(message, Color.YELLOW)


def log_ripple(message: str) -> None:
    """Log a relation ripple (magenta)."""
    _emit(message, Color.MAGENTA)


def log_error(message: str) -> None:
    """Log an error (red)."""
    _emit(message, Color.RED)


def log_success(message: str) -> None:
    """Log a success (green)."""
    _emit(message, Color.GREEN)


def log_info(message: str) -> None:
    """Log metadata/info (cyan)."""
    _emit(message, Color.CYAN)


def log_debug(topic: str, message: str) -> None:
    """Log ``message`` only when the ``DEBUG_<TOPIC>`` switch is on."""
    if not debug_enabled(topic):
        return
    color = {
        "memory": Color.BLUE,
        "gossip": Color.YELLOW,
        "ripple": Color.MAGENTA,
    }.get(topic.lower(), Color.CYAN)
    _emit(message, color)


# Markers for operation types (color-blind accessible)
LOG_TAG_DETERMINISTIC = "[•]"  # Bookkeeping
LOG_TAG_GOSSIP = "[GOSSIP]"    # Gossip/belief
LOG_TAG_RIPPLE = "[RIPPLE]"    # Relation ripple
LOG_TAG_ERROR = "[!]"          # Error
LOG_TAG_SUCCESS = "[✓]"        # Success
LOG_TAG_INFO = "[i]"           # Information
