"""Ship24 response adapter - Converts Ship24 API responses to tracking events."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..app.backend import CarrierAdapter
from ..app.models import FetchResult, TrackingEvent, as_utc
from ..const import META_COURIER_CODE, META_ESTIMATED_DELIVERY, META_TRACKER_ID
from ..exceptions import NotFound, ParseError

if TYPE_CHECKING:
    from .client import Ship24Client

_LOGGER = logging.getLogger(__name__)


class Ship24Adapter:
    """Adapter for converting Ship24 API responses to FetchResult models."""

    @staticmethod
    def _parse_datetime(date_str: Optional[str]) -> Optional[datetime]:
        """Parse datetime string from Ship24 format."""
        if not date_str or not isinstance(date_str, str):
            return None
        try:
            # Ship24 uses ISO format, try parsing
            return as_utc(datetime.fromisoformat(date_str.replace("Z", "+00:00")))
        except ValueError:
            for fmt in ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d"]:
                try:
                    return as_utc(datetime.strptime(date_str, fmt))
                except ValueError:
                    continue
            _LOGGER.warning("Failed to parse datetime: %s", date_str)
            return None

    @staticmethod
    def _extract_location(event: Dict[str, Any]) -> Optional[str]:
        """Extract a printable location from an event."""
        location = event.get("location")
        if isinstance(location, dict):
            return location.get("address") or location.get("name") or location.get("city")
        if isinstance(location, str):
            return location or None
        return None

    @staticmethod
    def _parse_events(events_data: List[Dict[str, Any]]) -> List[TrackingEvent]:
        """Parse tracking events from Ship24 response."""
        events = []
        for event_data in events_data:
            if not isinstance(event_data, dict):
                raise ParseError(f"Ship24 event is a {type(event_data).__name__}, expected an object")

            # Ship24 uses occurrenceDatetime
            timestamp = Ship24Adapter._parse_datetime(
                event_data.get("occurrenceDatetime")
                or event_data.get("datetime")
                or event_data.get("occurredAt")
            )
            if not timestamp:
                _LOGGER.warning("Skipping Ship24 event without a usable time: %s", event_data)
                continue

            events.append(
                TrackingEvent(
                    timestamp=timestamp,
                    description=event_data.get("status") or "",
                    location=Ship24Adapter._extract_location(event_data),
                    raw_status=event_data.get("statusMilestone") or event_data.get("statusCode"),
                )
            )

        # Sort by timestamp (oldest first)
        events.sort(key=lambda e: e.timestamp)
        return events

    @staticmethod
    def _extract_tracking(tracker_data: Dict[str, Any], tracking_number: str) -> Dict[str, Any]:
        """Find the tracking object in a /trackers/track response."""
        data = tracker_data.get("data")
        if not isinstance(data, dict):
            raise ParseError("Ship24 response has no 'data' object")

        trackings = data.get("trackings")
        if not isinstance(trackings, list):
            raise ParseError("Ship24 response has no 'trackings' list")
        if not trackings:
            raise NotFound(f"Ship24 returned no tracking for {tracking_number}")

        tracking = trackings[0]
        if not isinstance(tracking, dict):
            raise ParseError("Ship24 tracking entry is not an object")
        return tracking

    @staticmethod
    def to_fetch_result(tracker_data: Dict[str, Any], tracking_number: str) -> FetchResult:
        """Convert Ship24 tracker response to a FetchResult.

        Args:
            tracker_data: Raw Ship24 API response (from /trackers/track)
            tracking_number: The tracking number that was requested

        Returns:
            FetchResult with events oldest first and carrier extras in meta

        Raises:
            NotFound: Ship24 has no tracking for the number
            ParseError: The response is not shaped like a Ship24 tracking
        """
        tracking = Ship24Adapter._extract_tracking(tracker_data, tracking_number)

        tracker = tracking.get("tracker") or {}
        shipment = tracking.get("shipment") or {}
        events_data = tracking.get("events") or []
        if not isinstance(tracker, dict) or not isinstance(shipment, dict):
            raise ParseError("Ship24 'tracker' and 'shipment' must be objects")
        if not isinstance(events_data, list):
            raise ParseError("Ship24 'events' is not a list")

        events = Ship24Adapter._parse_events(events_data)

        meta: Dict[str, str] = {}
        tracker_id = tracker.get("trackerId")
        if tracker_id:
            meta[META_TRACKER_ID] = str(tracker_id)

        # Carrier as Ship24 identified it, most recent event first
        courier_codes = tracker.get("courierCode")
        if isinstance(courier_codes, list) and courier_codes:
            meta[META_COURIER_CODE] = str(courier_codes[0])
        elif isinstance(courier_codes, str) and courier_codes:
            meta[META_COURIER_CODE] = courier_codes
        elif events_data and events_data[0].get("courierCode"):
            meta[META_COURIER_CODE] = str(events_data[0]["courierCode"])

        delivery = shipment.get("delivery")
        if not isinstance(delivery, dict):
            delivery = {}
        estimated_delivery = Ship24Adapter._parse_datetime(delivery.get("estimatedDeliveryDate"))
        if estimated_delivery:
            meta[META_ESTIMATED_DELIVERY] = estimated_delivery.isoformat()

        return FetchResult(events=events, meta=meta)


class Ship24CarrierAdapter(CarrierAdapter):
    """Carrier adapter that queries one courier through Ship24."""

    def __init__(self, client: "Ship24Client", courier_code: Optional[str], name: str):
        """Initialize adapter with client and the Ship24 courier code.

        Args:
            client: Ship24Client instance
            courier_code: Ship24 courier code, None to let Ship24 detect it
            name: Human readable carrier name for logs
        """
        self._client = client
        self.courier_code = courier_code
        self.name = name

    async def fetch(self, tracking_number: str) -> FetchResult:
        """Fetch and normalize the events for a tracking number."""
        _LOGGER.debug("Fetching %s from Ship24 as %s", tracking_number, self.name)
        response = await self._client.track(tracking_number, self.courier_code)
        result = Ship24Adapter.to_fetch_result(response, tracking_number)
        _LOGGER.debug("Ship24 returned %d events for %s", len(result.events), tracking_number)
        return result
