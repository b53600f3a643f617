"""Route modules exposed by the API package."""

from . import metrics, ping, requests

__all__ = ["metrics", "ping", "requests"]
