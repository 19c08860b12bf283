"""HALO — Shared vocabulary for sources, event types and lifecycle states."""

from enum import Enum


class Source(str, Enum):
    SHOPIFY = "shopify"
    META = "meta"
    GOOGLE = "google"


class EventType(str, Enum):
    ORDER = "order"
    CUSTOMER = "customer"
    AD_SPEND = "ad_spend"


class ConnectionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    REVOKED = "revoked"


class RawEventStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class BatchStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"


class CursorStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
