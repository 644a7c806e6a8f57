"""Linked zero-copy byte buffers, stream adapters, poller load balancing and socket helpers."""

__version__ = "0.1.0"