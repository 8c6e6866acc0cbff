"""Carrier backend interface the refresh coordinator talks to."""

from .models import FetchResult


class CarrierAdapter:
    """Minimal common interface of a carrier integration.

    ``fetch`` returns the carrier's events for a tracking number, oldest
    first, or raises one of the FetchError subclasses. A carrier with no
    information yet yields an empty event list, not an error.
    """

    name = "carrier"

    async def fetch(self, tracking_number: str) -> FetchResult:
        raise NotImplementedError
