"""Carrier-agnostic application layer: models, state machine and views."""
