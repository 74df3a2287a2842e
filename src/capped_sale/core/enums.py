"""Enumerations used across the sale."""

from enum import Enum


class Role(str, Enum):
    OWNER = "owner"
    REGISTRAR = "registrar"


class SalePhase(str, Enum):
    PENDING = "pending"  # Before start_time
    RESTRICTED = "restricted"  # Participant caps enforced, whitelisting closed
    OPEN = "open"  # Only the global cap applies
    ENDED = "ended"  # After end_time


class LogFormat(str, Enum):
    JSON = "json"
    CONSOLE = "console"
