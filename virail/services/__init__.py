"""Wiring of the session and API services from settings."""

from .factories import create_api_client, create_auth_service, create_key_value_store


__all__ = ["create_api_client", "create_auth_service", "create_key_value_store"]
