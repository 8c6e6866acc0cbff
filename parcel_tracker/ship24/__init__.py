"""Ship24 aggregator integration: HTTP client and response adapter."""
