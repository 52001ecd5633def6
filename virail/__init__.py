"""Client library for the Virail Studio SEO/GEO analytics API."""

from virail.core._version import __version__


__all__ = ["__version__"]
