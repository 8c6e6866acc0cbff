"""Constants for the parcel tracker."""

from datetime import timedelta

APP_NAME = "parcel-tracker"
FEED_TITLE = "Tracked packages"
FEED_ID = "urn:parcel-tracker:packages"

# Ship24 API Configuration
SHIP24_API_BASE_URL = "https://api.ship24.com/public/v1"
SHIP24_API_TRACKERS_TRACK_ENDPOINT = "/trackers/track"

# Environment variables
ENV_DATASTORE = "PARCEL_TRACKER_DATASTORE"
ENV_API_KEY = "SHIP24_API_KEY"
ENV_WORKERS = "PARCEL_TRACKER_WORKERS"
ENV_TIMEOUT = "PARCEL_TRACKER_TIMEOUT"
ENV_STALE_DAYS = "PARCEL_TRACKER_STALE_DAYS"
ENV_LOG_LEVEL = "PARCEL_TRACKER_LOG_LEVEL"

DATASTORE_FILENAME = "packages.json"

# Refresh defaults
DEFAULT_WORKERS = 4
DEFAULT_FETCH_TIMEOUT = 45  # seconds, covers the client's own retries
DEFAULT_STALE_DAYS = 30
DEFAULT_LOG_LEVEL = "WARNING"

# Terminal packages drop out of the default list view after this long
LIST_HIDE_AFTER = timedelta(days=7)

# Persisted document keys
KEY_PACKAGES = "packages"

# Meta keys filled in by carrier adapters
META_ESTIMATED_DELIVERY = "estimated_delivery"
META_COURIER_CODE = "courier_code"
META_TRACKER_ID = "ship24_tracker_id"
