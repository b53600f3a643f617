"""HTTP middleware for the portal API."""

from .correlation import CORRELATION_HEADER, CorrelationIdMiddleware

__all__ = ["CORRELATION_HEADER", "CorrelationIdMiddleware"]
