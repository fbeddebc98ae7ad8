"""
Shared enums and constants used across the application.
"""

from enum import Enum


class PlatformName(str, Enum):
    MERCADOLIBRE = "mercadolibre"


class ListingStatus(str, Enum):
    """Listing status values as reported by the marketplace"""
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class MovementKind(str, Enum):
    """Cause of a stock movement. Values are stored verbatim in stock_movements.kind"""
    RECEIVED = "received"
    SOLD = "sold"
    ADJUSTED = "adjusted"
    SYNC_RECONCILED = "sync-reconciled"


class SyncDirection(str, Enum):
    PUSH = "push"  # Local inventory is authoritative
    PULL = "pull"  # Marketplace is authoritative


class SyncStatus(str, Enum):
    """Outcome of a sync run, recorded in the activity log."""
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"
