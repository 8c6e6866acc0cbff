"""Package status state machine.

A package moves NEW -> IN_TRANSIT -> DELIVERED, or to HALTED from either
of the first two. DELIVERED and HALTED are terminal. The status is derived
from the latest event of each fetched batch through a fixed table of
normalized carrier status codes; unknown codes never change the status.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from .models import Package, PackageStatus, TrackingEvent

_LOGGER = logging.getLogger(__name__)

STATUS_TABLE: Dict[str, PackageStatus] = {
    "info_received": PackageStatus.NEW,
    "pending": PackageStatus.NEW,
    "picked_up": PackageStatus.IN_TRANSIT,
    "in_transit": PackageStatus.IN_TRANSIT,
    "transit": PackageStatus.IN_TRANSIT,
    "out_for_delivery": PackageStatus.IN_TRANSIT,
    "available_for_pickup": PackageStatus.IN_TRANSIT,
    "failed_attempt": PackageStatus.IN_TRANSIT,
    "delivered": PackageStatus.DELIVERED,
    "exception": PackageStatus.HALTED,
    "delivery_exception": PackageStatus.HALTED,
    "returned": PackageStatus.HALTED,
    "return_to_sender": PackageStatus.HALTED,
    "expired": PackageStatus.HALTED,
}

# Higher rank wins; terminal states share the top rank
_RANK = {
    PackageStatus.NEW: 0,
    PackageStatus.IN_TRANSIT: 1,
    PackageStatus.DELIVERED: 2,
    PackageStatus.HALTED: 2,
}


def normalize_status_code(raw_status: Optional[str]) -> str:
    """Lower-case a carrier code and fold spaces and dashes to underscores."""
    if not raw_status:
        return ""
    return raw_status.strip().lower().replace("-", "_").replace(" ", "_")


def classify(raw_status: Optional[str]) -> Optional[PackageStatus]:
    """Map a carrier status code to a package status, None if unrecognized."""
    return STATUS_TABLE.get(normalize_status_code(raw_status))


def next_status(current: PackageStatus, latest: TrackingEvent) -> PackageStatus:
    """Compute the status after observing ``latest``."""
    if current.is_terminal:
        return current
    proposed = classify(latest.raw_status)
    if proposed is None:
        _LOGGER.debug("Unrecognized carrier status %r, keeping %s", latest.raw_status, current)
        return current
    if _RANK[proposed] < _RANK[current]:
        return current
    return proposed


def merge_events(
    existing: List[TrackingEvent], batch: Iterable[TrackingEvent]
) -> List[TrackingEvent]:
    """Append new events from batch to existing in place.

    Events equal in timestamp and description to a stored one, or to an
    earlier one in the same batch, are dropped. Returns the events that
    were actually added.
    """
    seen = {event.key for event in existing}
    added = []
    for event in batch:
        if event.key in seen:
            continue
        seen.add(event.key)
        added.append(event)

    if added:
        existing.extend(added)
        # Stable sort keeps the carrier's order for equal timestamps
        existing.sort(key=lambda e: e.timestamp)
    return added


def is_stale(package: Package, now: datetime, stale_after: timedelta) -> bool:
    """Check if a package has not moved for longer than stale_after."""
    latest = package.latest_event
    if latest is None:
        return False
    return now - latest.timestamp > stale_after


def apply_events(
    package: Package,
    batch: List[TrackingEvent],
    now: Optional[datetime] = None,
    stale_after: Optional[timedelta] = None,
    force: bool = False,
) -> bool:
    """Merge a fetched batch into package and recompute its status.

    Terminal packages are left alone unless ``force`` is set, in which case
    new events are still merged but the terminal status is kept.

    Returns:
        True if events or status changed, False otherwise
    """
    if package.is_terminal and not force:
        return False

    added = merge_events(package.events, batch)
    old_status = package.status

    if batch:
        latest = max(batch, key=lambda e: e.timestamp)
        package.status = next_status(package.status, latest)

    if stale_after is not None and not package.is_terminal:
        now = now or datetime.now(timezone.utc)
        if is_stale(package, now, stale_after):
            _LOGGER.info(
                "Package %s has not moved since %s, halting",
                package.tracking_number,
                package.latest_event.timestamp.isoformat(),
            )
            package.status = PackageStatus.HALTED

    if package.status != old_status:
        _LOGGER.info(
            "Package %s: %s -> %s", package.tracking_number, old_status.value, package.status.value
        )
    return bool(added) or package.status != old_status
