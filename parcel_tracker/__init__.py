"""Personal parcel tracker: keeps a list of shipments and refreshes them through Ship24."""

__version__ = "0.1.0"
