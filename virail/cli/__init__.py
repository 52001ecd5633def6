"""Command line interface for the Virail client."""

from .main import app, main


__all__ = ["app", "main"]
