"""alloctrack client library.

Provides an HTTP client for interacting with the allocation server.
"""

from alloctrack.client.allocation_client import AllocationClient

__all__ = ["AllocationClient"]
