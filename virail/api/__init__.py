"""General-purpose client for the Virail API."""

from .client import ApiClient


__all__ = ["ApiClient"]
