"""Client-side helpers for interactive regeneration."""

from treasury.client.throttle import RegenerationThrottle, cache_key

__all__ = ["RegenerationThrottle", "cache_key"]
