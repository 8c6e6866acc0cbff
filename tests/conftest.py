"""Shared fixtures: temporary datastores and a fake Ship24 transport."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from parcel_tracker.app.models import TrackingEvent
from parcel_tracker.carriers import ProviderRegistry
from parcel_tracker.datastore import Datastore

NOW = datetime(2025, 3, 4, 18, 0, tzinfo=timezone.utc)


class FakeShip24Client:
    """Stands in for Ship24Client; answers from a canned table.

    Values in ``responses`` are either a Ship24 response dict or an
    exception instance to raise.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: List[tuple] = []

    async def track(self, tracking_number: str, courier_code: Optional[str] = None) -> Dict[str, Any]:
        self.calls.append((tracking_number, courier_code))
        response = self.responses.get(tracking_number)
        if response is None:
            return build_payload(tracking_number, [])
        if isinstance(response, Exception):
            raise response
        return response


def build_event(
    when: datetime,
    status: str,
    milestone: Optional[str],
    location: Optional[str] = None,
    courier_code: str = "ups",
) -> Dict[str, Any]:
    """A Ship24 event as found in /trackers/track responses."""
    return {
        "eventId": f"evt-{when.isoformat()}",
        "status": status,
        "occurrenceDatetime": when.strftime("%Y-%m-%dT%H:%M:%S"),
        "location": location,
        "courierCode": courier_code,
        "statusCode": f"code_{milestone}" if milestone else None,
        "statusMilestone": milestone,
    }


def build_payload(
    tracking_number: str,
    events: List[Dict[str, Any]],
    estimated_delivery: Optional[str] = None,
    courier_code: Optional[str] = "ups",
) -> Dict[str, Any]:
    """A Ship24 /trackers/track response wrapping the given events."""
    return {
        "data": {
            "trackings": [
                {
                    "tracker": {
                        "trackerId": f"tracker-{tracking_number}",
                        "trackingNumber": tracking_number,
                        "courierCode": [courier_code] if courier_code else [],
                    },
                    "shipment": {
                        "statusMilestone": events[0]["statusMilestone"] if events else "pending",
                        "delivery": {"estimatedDeliveryDate": estimated_delivery},
                    },
                    "events": events,
                }
            ]
        }
    }


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_event():
    """Factory for TrackingEvent relative to NOW."""

    def _make(hours_ago: float = 0, description: str = "Update", raw_status: Optional[str] = "in_transit",
              location: Optional[str] = None) -> TrackingEvent:
        return TrackingEvent(
            timestamp=NOW - timedelta(hours=hours_ago),
            description=description,
            location=location,
            raw_status=raw_status,
        )

    return _make


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "store" / "packages.json"


@pytest.fixture
def datastore(store_path):
    return Datastore(store_path)


@pytest.fixture
def fake_client():
    return FakeShip24Client()


@pytest.fixture
def registry(fake_client):
    return ProviderRegistry(fake_client)


@pytest.fixture
def ship24_event():
    return build_event


@pytest.fixture
def ship24_payload():
    return build_payload


@pytest.fixture
def fake_client_cls():
    return FakeShip24Client
