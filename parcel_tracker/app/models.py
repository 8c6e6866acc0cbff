"""Data models for package tracking - carrier-agnostic."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class PackageStatus(str, Enum):
    """Lifecycle state of a tracked package."""

    NEW = "NEW"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    HALTED = "HALTED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({PackageStatus.DELIVERED, PackageStatus.HALTED})


class Carrier(str, Enum):
    """Carriers the tracker knows how to query."""

    UNKNOWN = "UNKNOWN"
    UPS = "UPS"
    USPS = "USPS"
    FEDEX = "FEDEX"
    DHL = "DHL"


def as_utc(value: datetime) -> datetime:
    """Return value as an aware datetime, taking naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class TrackingEvent:
    """Represents a single tracking event."""

    timestamp: datetime
    description: str = ""
    location: Optional[str] = None
    raw_status: Optional[str] = None

    @property
    def key(self) -> tuple:
        """Identity used for duplicate suppression."""
        return (self.timestamp, self.description)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "location": self.location,
            "description": self.description,
            "raw_status": self.raw_status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackingEvent":
        return cls(
            timestamp=as_utc(datetime.fromisoformat(data["timestamp"])),
            description=data.get("description") or "",
            location=data.get("location"),
            raw_status=data.get("raw_status"),
        )


@dataclass
class Package:
    """A tracked shipment, keyed by its carrier tracking number."""

    tracking_number: str
    title: Optional[str] = None
    carrier: Carrier = Carrier.UNKNOWN
    status: PackageStatus = PackageStatus.NEW
    events: List[TrackingEvent] = field(default_factory=list)
    meta: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.title:
            self.title = self.tracking_number

    @property
    def latest_event(self) -> Optional[TrackingEvent]:
        return self.events[-1] if self.events else None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary shape."""
        return {
            "id": self.tracking_number,
            "title": self.title,
            "carrier": self.carrier.value,
            "status": self.status.value,
            "events": [event.to_dict() for event in self.events],
            "meta": dict(self.meta),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Package":
        return cls(
            tracking_number=data["id"],
            title=data.get("title"),
            carrier=Carrier(data.get("carrier", Carrier.UNKNOWN.value)),
            status=PackageStatus(data.get("status", PackageStatus.NEW.value)),
            events=[TrackingEvent.from_dict(event) for event in data.get("events", [])],
            meta=dict(data.get("meta") or {}),
        )


@dataclass
class FetchResult:
    """Normalized result of one carrier fetch."""

    events: List[TrackingEvent] = field(default_factory=list)
    meta: Dict[str, str] = field(default_factory=dict)
