"""Carrier detection and adapter resolution."""

import logging
import re
from typing import Optional, Pattern, Tuple

from .app.backend import CarrierAdapter
from .app.models import Carrier, Package
from .exceptions import NoAdapterFound
from .ship24.adapter import Ship24CarrierAdapter
from .ship24.client import Ship24Client

_LOGGER = logging.getLogger(__name__)


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(pattern) for pattern in patterns)


# Checked in this order; the first carrier with a matching pattern wins
CARRIER_PATTERNS: Tuple[Tuple[Carrier, Tuple[Pattern, ...]], ...] = (
    (Carrier.UPS, _compile(r"^1Z[0-9A-Z]{16}$", r"^T[0-9]{10}$")),
    (
        Carrier.USPS,
        _compile(
            r"^(94|93|92|95)[0-9]{20}$",
            r"^(94|93|92|95)[0-9]{18}$",
            r"^[A-Z]{2}[0-9]{9}US$",
            r"^420[0-9]{5}(94|93|92|95)[0-9]{20}$",
        ),
    ),
    (Carrier.FEDEX, _compile(r"^[0-9]{12}$", r"^[0-9]{15}$", r"^96[0-9]{20}$")),
    (Carrier.DHL, _compile(r"^[0-9]{10}$", r"^JD[0-9]{18}$", r"^JJD[0-9]{17,19}$")),
)

TRACKING_URLS = {
    Carrier.UPS: "https://www.ups.com/track?tracknum={}",
    Carrier.USPS: "https://tools.usps.com/go/TrackConfirmAction?qtc_tLabels1={}",
    Carrier.FEDEX: "https://www.fedex.com/fedextrack/?trknbr={}",
    Carrier.DHL: "https://www.dhl.com/global-en/home/tracking.html?tracking-id={}",
}

_ALIASES = {
    "ups": Carrier.UPS,
    "usps": Carrier.USPS,
    "us_post": Carrier.USPS,
    "uspost": Carrier.USPS,
    "fedex": Carrier.FEDEX,
    "fed_ex": Carrier.FEDEX,
    "dhl": Carrier.DHL,
    "unknown": Carrier.UNKNOWN,
    "auto": Carrier.UNKNOWN,
}


def normalize_tracking_number(tracking_number: str) -> str:
    """Upper-case a tracking number and drop any whitespace."""
    return re.sub(r"\s+", "", tracking_number or "").upper()


def detect_carrier(tracking_number: str) -> Carrier:
    """Detect carrier based on tracking number format."""
    normalized = normalize_tracking_number(tracking_number)
    for carrier, patterns in CARRIER_PATTERNS:
        if any(pattern.match(normalized) for pattern in patterns):
            return carrier
    return Carrier.UNKNOWN


def parse_carrier(name: Optional[str]) -> Carrier:
    """Parse a carrier name or alias as given on the command line."""
    key = (name or "").strip().lower().replace("-", "_").replace(" ", "")
    if not key:
        return Carrier.UNKNOWN
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return Carrier(key.upper())
    except ValueError:
        raise ValueError(f"Unknown carrier '{name}'") from None


def tracking_url(carrier: Carrier, tracking_number: str) -> Optional[str]:
    """Public tracking page for a package, if the carrier has one."""
    template = TRACKING_URLS.get(carrier)
    return template.format(tracking_number) if template else None


class ProviderRegistry:
    """Resolves packages to carrier adapters."""

    def __init__(self, client: Ship24Client):
        """Initialize registry with the Ship24 transport shared by all carriers."""
        self._client = client

    def adapter_for(self, carrier: Carrier) -> CarrierAdapter:
        """Build the adapter for a known carrier."""
        match carrier:
            case Carrier.UPS:
                return Ship24CarrierAdapter(self._client, "ups", "UPS")
            case Carrier.USPS:
                return Ship24CarrierAdapter(self._client, "us-post", "USPS")
            case Carrier.FEDEX:
                return Ship24CarrierAdapter(self._client, "fedex", "FedEx")
            case Carrier.DHL:
                return Ship24CarrierAdapter(self._client, "dhl", "DHL")
            case _:
                raise ValueError(f"No adapter for carrier {carrier}")

    def resolve(self, package: Package) -> Tuple[Carrier, CarrierAdapter]:
        """Find the adapter for a package.

        Args:
            package: The package to resolve

        Returns:
            Tuple of (carrier, adapter); carrier is the detected one when the
            package's carrier is UNKNOWN

        Raises:
            NoAdapterFound: carrier is UNKNOWN and detection found nothing
        """
        carrier = package.carrier
        if carrier == Carrier.UNKNOWN:
            carrier = detect_carrier(package.tracking_number)
            if carrier == Carrier.UNKNOWN:
                raise NoAdapterFound(package.tracking_number)
            _LOGGER.debug("Detected %s for %s", carrier.value, package.tracking_number)
        return carrier, self.adapter_for(carrier)
